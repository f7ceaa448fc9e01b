"""Binding restorable window nodes to live windows by descendant votes."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tabsync.domain.model import WINDOW_DEFAULT_TITLE, NodeKind

if TYPE_CHECKING:
    from tabsync.domain.model import LiveTab, TreeNode
    from tabsync.domain.ports import LiveSession, TreeStore

    from .restore import PageRestorer

log = logging.getLogger(__name__)

POSITION_TIE_BREAK = 0.00001


@dataclass(slots=True)
class WindowAssociationResult:
    associated: int = 0
    merged: int = 0
    skipped: int = 0


@dataclass(frozen=True, slots=True)
class _Pairing:
    score: float
    window: TreeNode
    live_window_id: int


class WindowAssociator:
    """Greedy, highest-score-first assignment of restorable windows.

    Every bound page below a restorable window votes for the live window its
    tab currently lives in (1.0 per page, plus a tiny bonus when its stored
    index equals the live one). Pairings are taken in descending score order;
    a live window id or window node consumed by an earlier pairing is skipped.
    There is no backtracking: the relaxed passes of the pipeline pick up what
    a stringent pass leaves behind.
    """

    def __init__(self, *, tree: TreeStore, session: LiveSession, restorer: PageRestorer) -> None:
        self._tree = tree
        self._session = session
        self._restorer = restorer

    async def associate(
        self, *, require_count_match: bool, allow_merge: bool
    ) -> WindowAssociationResult:
        result = WindowAssociationResult()
        windows = self._tree.filter(lambda node: node.is_window and node.restorable)
        if not windows:
            return result

        tabs = await self._session.query_tabs()
        tabs_by_id = {tab.id: tab for tab in tabs}
        live_tab_counts = Counter(tab.window_id for tab in tabs)

        pairings: list[_Pairing] = []
        page_counts: dict[str, int] = {}
        for window in windows:
            votes, matching = self._votes(window, tabs_by_id)
            page_counts[window.id] = matching
            pairings.extend(
                _Pairing(score=score, window=window, live_window_id=live_window_id)
                for live_window_id, score in votes.items()
            )
        pairings.sort(key=lambda pairing: pairing.score, reverse=True)
        log.debug("Window association pairings: %s", pairings)

        used_window_ids: set[int] = set()
        used_nodes: set[str] = set()
        for pairing in pairings:
            window, live_window_id = pairing.window, pairing.live_window_id
            if live_window_id in used_window_ids or window.id in used_nodes:
                continue

            if require_count_match and page_counts[window.id] != live_tab_counts[live_window_id]:
                log.debug(
                    "Skipping window %s for live window %s: %s pages vs %s tabs",
                    window.id,
                    live_window_id,
                    page_counts[window.id],
                    live_tab_counts[live_window_id],
                )
                result.skipped += 1
                continue

            existing = self._tree.get_by_live_id(live_window_id, kind=NodeKind.WINDOW)
            if existing is not None and existing is not window:
                if not allow_merge:
                    log.debug(
                        "Not merging live window node %s into %s in this pass",
                        existing.id,
                        window.id,
                    )
                    result.skipped += 1
                    continue
                log.info("Merging windows %s into %s", existing.id, window.id)
                self._restorer.merge_nodes(existing, window)
                result.merged += 1

            log.info("Restoring window node %s as window %s", window.id, live_window_id)
            self._tree.update_node(
                window,
                restorable=False,
                hibernated=False,
                live_id=live_window_id,
                title=WINDOW_DEFAULT_TITLE,
            )
            self._tree.expand_node(window)
            used_window_ids.add(live_window_id)
            used_nodes.add(window.id)
            result.associated += 1

        return result

    def _votes(
        self, window: TreeNode, tabs_by_id: dict[int, LiveTab]
    ) -> tuple[dict[int, float], int]:
        votes: dict[int, float] = {}
        matching = 0
        for node in window.descendants():
            if not node.is_tab or node.live_id is None:
                continue
            tab = tabs_by_id.get(node.live_id)
            if tab is None:
                continue
            if node.pinned != tab.pinned or node.incognito != tab.incognito:
                continue
            matching += 1
            bonus = POSITION_TIE_BREAK if node.index == tab.index else 0.0
            votes[tab.window_id] = votes.get(tab.window_id, 0.0) + 1.0 + bonus
        return votes, matching
