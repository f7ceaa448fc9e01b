"""Escalating per-tab counters for tabs that never answer detail requests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


@dataclass(slots=True)
class StubbornTabTracker:
    """Counts consecutive run ticks a tab has stayed unresolved.

    ``threshold`` is expressed in ticks; see
    ``AssociationConfig.stubborn_threshold_ticks``.
    """

    threshold: int
    _counts: dict[int, int] = field(default_factory=dict[int, int], repr=False)

    def increment(self, tab_id: int) -> int:
        count = self._counts.get(tab_id, 0) + 1
        self._counts[tab_id] = count
        return count

    def is_stubborn(self, tab_id: int) -> bool:
        return self._counts.get(tab_id, 0) >= self.threshold

    def clear(self, tab_id: int) -> None:
        self._counts.pop(tab_id, None)

    def prune(self, live_tab_ids: Iterable[int]) -> list[int]:
        """Forget tabs that are gone; returns the ids dropped."""

        live = set(live_tab_ids)
        gone = [tab_id for tab_id in self._counts if tab_id not in live]
        for tab_id in gone:
            del self._counts[tab_id]
        return gone
