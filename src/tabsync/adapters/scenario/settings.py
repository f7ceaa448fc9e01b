"""Dictionary-backed settings store with snapshot backups."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tabsync.domain.ports import BACKUP_SETTING

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

log = logging.getLogger(__name__)


class InMemorySettings:
    def __init__(
        self,
        values: Mapping[str, object] | None = None,
        *,
        snapshot: Callable[[], object] | None = None,
    ) -> None:
        self._values: dict[str, object] = dict(values or {})
        self._snapshot = snapshot
        self.backups = 0

    def get(self, name: str, default: object = None) -> object:
        return self._values.get(name, default)

    def set(self, name: str, value: object) -> None:
        self._values[name] = value

    def backup_now(self) -> None:
        backup = self._snapshot() if self._snapshot is not None else {}
        history = self._values.get(BACKUP_SETTING)
        entries = list(history) if isinstance(history, list) else []
        entries.append(backup)
        self._values[BACKUP_SETTING] = entries
        self.backups += 1
        log.info("Backed up page tree (%s backups)", self.backups)
