"""Port for the hierarchical tree store the engine reconciles."""

from __future__ import annotations

from collections.abc import Callable, Hashable
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tabsync.domain.model import LiveTab, MoveRelation, NodeKind, TreeNode


type NodePredicate = Callable[[TreeNode], bool]
type NodeKeyFunc = Callable[[TreeNode], Hashable | None]


class TreeStore(Protocol):
    """Query and mutation surface of the persisted tree.

    ``scope`` arguments restrict predicate scans to the given nodes and their
    descendants; ``None`` scans the whole tree below the root.
    """

    @property
    def root(self) -> TreeNode: ...

    def get_node(self, node_id: str) -> TreeNode | None: ...

    def get_by_live_id(self, live_id: int, *, kind: NodeKind) -> TreeNode | None: ...

    def find(
        self, predicate: NodePredicate, scope: Sequence[TreeNode] | None = None
    ) -> TreeNode | None: ...

    def filter(
        self, predicate: NodePredicate, scope: Sequence[TreeNode] | None = None
    ) -> list[TreeNode]: ...

    def reduce[T](
        self,
        func: Callable[[T, TreeNode], T],
        initial: T,
        scope: Sequence[TreeNode] | None = None,
    ) -> T: ...

    def group_by(self, key: NodeKeyFunc) -> dict[Hashable, list[TreeNode]]: ...

    def add_node(self, node: TreeNode, parent: TreeNode | None = None) -> TreeNode: ...

    def remove_node(self, node: TreeNode, *, archive: bool = False) -> None: ...

    def update_node(self, node: TreeNode, **changes: object) -> None: ...

    def move_node(
        self,
        node: TreeNode,
        relation: MoveRelation,
        target: TreeNode,
        *,
        quiet: bool = False,
    ) -> None: ...

    def merge_nodes(self, source: TreeNode, destination: TreeNode) -> None: ...

    def add_tab_to_window(
        self, tab: LiveTab, page: TreeNode | None = None
    ) -> tuple[TreeNode, TreeNode]: ...

    def get_tab_index(self, node: TreeNode) -> int | None: ...

    def rebuild_indexes(self) -> None: ...

    async def rebuild_page_window_ids(self) -> None: ...

    async def conform_tab_order(self) -> None: ...

    def expand_node(self, node: TreeNode) -> None: ...

    def focus_page(self, tab_id: int) -> None: ...


class RecentlyClosedRegistry(Protocol):
    """Side registry holding archived (recently closed) nodes."""

    def find_by_session_guid(self, session_guid: str) -> TreeNode | None: ...

    def take(self, node: TreeNode) -> TreeNode: ...


__all__ = ["NodeKeyFunc", "NodePredicate", "RecentlyClosedRegistry", "TreeStore"]
