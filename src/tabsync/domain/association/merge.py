"""Merging the children of one window node into another, keeping tab order."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tabsync.domain.model import MoveRelation

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tabsync.domain.model import TreeNode
    from tabsync.domain.ports import TreeStore

log = logging.getLogger(__name__)


@dataclass(slots=True)
class WindowMergeResult:
    placed: int = 0
    adjacency_misses: int = 0


class WindowMerger:
    """Move ``source``'s children into ``destination`` by live index adjacency.

    Each incoming child is slotted next to the destination tab whose index is
    one above (insert before) or one below (insert after, or as its first
    child if that tab already has children). A child with no such neighbour
    follows the previously placed child when that one sat directly before it
    in the live window; otherwise it is appended and counted as an adjacency
    miss. Children without a live index always follow the previous child.
    The now-empty source node is left for the caller to remove
    (``TreeStore.merge_nodes``).
    """

    def __init__(self, tree: TreeStore) -> None:
        self._tree = tree

    def merge(self, source: TreeNode, destination: TreeNode) -> WindowMergeResult:
        result = WindowMergeResult()
        if source is destination:
            return result

        existing = self._tree.filter(lambda _node: True, list(destination.children))
        anchor: TreeNode | None = None

        for node in list(source.children):
            if node.is_tab and node.index == 0:
                self._tree.move_node(node, MoveRelation.PREPEND, destination)
                anchor = node
                result.placed += 1
                continue

            if not node.is_tab or node.index is None:
                # no live position to go by; keep it behind the previous child
                if anchor is not None:
                    self._tree.move_node(node, MoveRelation.AFTER, anchor)
                else:
                    self._tree.move_node(node, MoveRelation.PREPEND, destination)
                anchor = node
                result.placed += 1
                continue

            following = _tab_at(existing, node.index + 1)
            if following is not None:
                self._tree.move_node(node, MoveRelation.BEFORE, following)
                anchor = node
                result.placed += 1
                continue

            preceding = _tab_at(existing, node.index - 1)
            if preceding is not None:
                if preceding.children:
                    self._tree.move_node(node, MoveRelation.PREPEND, preceding)
                else:
                    self._tree.move_node(node, MoveRelation.AFTER, preceding)
                    anchor = node
                result.placed += 1
                continue

            if _follows(anchor, node):
                self._tree.move_node(node, MoveRelation.AFTER, anchor)
                anchor = node
                result.placed += 1
                continue

            log.warning(
                "No neighbour by index for page %s while merging window %s into %s",
                node.id,
                source.id,
                destination.id,
            )
            self._tree.move_node(node, MoveRelation.APPEND, destination)
            result.adjacency_misses += 1

        return result


def _tab_at(nodes: Sequence[TreeNode], index: int) -> TreeNode | None:
    for node in nodes:
        if node.is_tab and node.index == index:
            return node
    return None


def _follows(anchor: TreeNode | None, node: TreeNode) -> bool:
    if anchor is None or not anchor.is_tab or anchor.index is None or node.index is None:
        return False
    return anchor.index == node.index - 1
