"""Port for settings lookup and backup checkpoints."""

from __future__ import annotations

from typing import Protocol

BACKUP_SETTING = "backup_page_tree"
REMEMBER_OPEN_PAGES_SETTING = "remember_open_pages_between_sessions"


class SettingsStore(Protocol):
    def get(self, name: str, default: object = None) -> object: ...

    def backup_now(self) -> None: ...


__all__ = ["BACKUP_SETTING", "REMEMBER_OPEN_PAGES_SETTING", "SettingsStore"]
