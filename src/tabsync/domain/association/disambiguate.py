"""Untangling same-key pages bound to tabs of the wrong window.

When several pages share a fuzzy key, an association run may hand page A the
tab that really belongs to page B in another window. Such pages are found by
comparing each page's recorded live window with its top-level window node,
and fixed by swapping live tab id, window id and index between members of the
same key group. The node itself never moves; only the binding does.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from tabsync.config.association import DEFAULT_DISAMBIGUATION_ROUNDS

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from tabsync.domain.model import FuzzyKey, TreeNode
    from tabsync.domain.ports import TreeStore

log = logging.getLogger(__name__)


@dataclass(slots=True)
class DisambiguationResult:
    swaps: int = 0
    rounds: int = 0
    unresolved: list[str] = field(default_factory=list[str])


class Disambiguator:
    def __init__(self, tree: TreeStore, *, max_rounds: int = DEFAULT_DISAMBIGUATION_ROUNDS) -> None:
        self._tree = tree
        self.max_rounds = max_rounds

    def run(self, rounds: int | None = None) -> DisambiguationResult:
        """Swap until a round changes nothing, for at most ``rounds`` rounds."""

        remaining = self.max_rounds if rounds is None else rounds
        result = DisambiguationResult()
        while remaining > 0:
            result.unresolved.clear()
            swaps = self._round(remaining, result)
            result.rounds += 1
            result.swaps += swaps
            if swaps == 0:
                break
            remaining -= 1
        return result

    def _round(self, iteration: int, result: DisambiguationResult) -> int:
        swaps = 0
        groups = self._tree.group_by(_misplaced_key)
        for key, items in groups.items():
            if len(items) < 2:
                continue
            for offset in range(len(items)):
                # rotate the starting member between rounds
                item = items[(offset + iteration) % len(items)]
                if _is_placed(item):
                    continue

                partner = _swap_partner(item, items)
                if partner is None:
                    log.warning(
                        "Disambiguation missed page %s (window %s) in group %s",
                        item.id,
                        item.window_id,
                        key,
                    )
                    result.unresolved.append(item.id)
                    continue

                log.info(
                    "Swapping pages %s and %s for disambiguation (windows %s <-> %s)",
                    item.id,
                    partner.id,
                    item.window_id,
                    partner.window_id,
                )
                self._swap(item, partner)
                swaps += 1
        return swaps

    def _swap(self, item: TreeNode, partner: TreeNode) -> None:
        item_binding = (item.live_id, item.window_id, item.index)
        self._tree.update_node(
            item, live_id=partner.live_id, window_id=partner.window_id, index=partner.index
        )
        live_id, window_id, index = item_binding
        self._tree.update_node(partner, live_id=live_id, window_id=window_id, index=index)


def _is_placed(node: TreeNode) -> bool:
    return node.window_id == node.top_parent().live_id


def _misplaced_key(node: TreeNode) -> FuzzyKey | None:
    if not node.is_tab or _is_placed(node):
        return None
    return node.fuzzy_key


def _swap_partner(item: TreeNode, items: Sequence[TreeNode]) -> TreeNode | None:
    """Pick who ``item`` trades bindings with, most reciprocal first."""

    item_window = item.top_parent().live_id

    def reciprocal(node: TreeNode) -> bool:
        return node.window_id == item_window and item.window_id == node.top_parent().live_id

    tiers: tuple[Callable[[TreeNode], bool], ...] = (
        lambda node: reciprocal(node) and node.index == item.index,
        reciprocal,
        lambda node: item.window_id == node.top_parent().live_id,
        lambda node: node.window_id == item_window,
    )
    for tier in tiers:
        for node in items:
            if node is not item and tier(node):
                return node
    return None
