"""In-memory tree store plus its recently-closed archive."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tabsync.domain.model import MoveRelation, NodeKind, TreeNode, new_window_node, page_from_tab

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable, Iterator, Sequence

    from tabsync.domain.model import LiveTab
    from tabsync.domain.ports import LiveSession, NodeKeyFunc, NodePredicate

log = logging.getLogger(__name__)


class NodeNotFoundError(KeyError):
    """Raised when a stable node id is not present in the tree."""

    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(node_id)

    def __str__(self) -> str:
        return f"Node not found: {self.node_id}"


class InvalidMoveError(ValueError):
    """Raised when a node would be moved relative to itself or its own subtree."""


class InMemoryArchive:
    """Recently closed subtrees, searchable by session guid."""

    def __init__(self) -> None:
        self._roots: list[TreeNode] = []

    def __len__(self) -> int:
        return len(self._roots)

    def __iter__(self) -> Iterator[TreeNode]:
        for root in self._roots:
            yield root
            yield from root.descendants()

    def add(self, node: TreeNode) -> None:
        node.parent = None
        self._roots.append(node)

    def find_by_session_guid(self, session_guid: str) -> TreeNode | None:
        return next((node for node in self if node.session_guid == session_guid), None)

    def take(self, node: TreeNode) -> TreeNode:
        """Detach ``node`` (without its children) from the archive."""

        parent = node.parent
        if parent is None:
            position = self._roots.index(node)
            self._roots[position : position + 1] = node.children
        else:
            position = parent.children.index(node)
            parent.children[position : position + 1] = node.children
        for child in node.children:
            child.parent = parent
        node.children = []
        node.parent = None
        return node


class InMemoryPageTree:
    """``TreeStore`` keeping the whole tree in memory.

    Stable ids and live ids are indexed in dictionaries; everything else is a
    pre-order scan. A ``LiveSession`` is only needed for the operations that
    read from or write to the host (window-id refresh, tab-order conformance).
    """

    def __init__(
        self,
        session: LiveSession | None = None,
        *,
        archive: InMemoryArchive | None = None,
    ) -> None:
        self.session = session
        self.archive = archive or InMemoryArchive()
        self.focused_page_id: str | None = None
        self._root = TreeNode(kind=NodeKind.ROOT)
        self._by_id: dict[str, TreeNode] = {self._root.id: self._root}
        self._by_live_id: dict[tuple[NodeKind, int], TreeNode] = {}

    @property
    def root(self) -> TreeNode:
        return self._root

    def __len__(self) -> int:
        return len(self._by_id) - 1

    # Queries

    def get_node(self, node_id: str) -> TreeNode | None:
        return self._by_id.get(node_id)

    def require_node(self, node_id: str) -> TreeNode:
        node = self._by_id.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def get_by_live_id(self, live_id: int, *, kind: NodeKind) -> TreeNode | None:
        return self._by_live_id.get((kind, live_id))

    def find(
        self, predicate: NodePredicate, scope: Sequence[TreeNode] | None = None
    ) -> TreeNode | None:
        return next((node for node in self._walk(scope) if predicate(node)), None)

    def filter(
        self, predicate: NodePredicate, scope: Sequence[TreeNode] | None = None
    ) -> list[TreeNode]:
        return [node for node in self._walk(scope) if predicate(node)]

    def reduce[T](
        self,
        func: Callable[[T, TreeNode], T],
        initial: T,
        scope: Sequence[TreeNode] | None = None,
    ) -> T:
        accumulator = initial
        for node in self._walk(scope):
            accumulator = func(accumulator, node)
        return accumulator

    def group_by(self, key: NodeKeyFunc) -> dict[Hashable, list[TreeNode]]:
        groups: dict[Hashable, list[TreeNode]] = {}
        for node in self._walk(None):
            value = key(node)
            if value is None:
                continue
            groups.setdefault(value, []).append(node)
        return groups

    def get_tab_index(self, node: TreeNode) -> int | None:
        """Position of ``node`` among the tabs of its window, in tree order."""

        if not node.is_tab:
            return None
        window = node.top_parent()
        if not window.is_window:
            return None
        tabs = [candidate for candidate in window.descendants() if candidate.is_tab]
        return tabs.index(node)

    # Mutations

    def add_node(self, node: TreeNode, parent: TreeNode | None = None) -> TreeNode:
        target = parent or self._root
        if node.parent is not None:
            self._detach(node)
        node.parent = target
        target.children.append(node)
        self._index_subtree(node)
        return node

    def remove_node(self, node: TreeNode, *, archive: bool = False) -> None:
        if node.is_root:
            raise InvalidMoveError("The root node cannot be removed")
        self._detach(node)
        self._unindex_subtree(node)
        if archive:
            self.archive.add(node)

    def update_node(self, node: TreeNode, **changes: object) -> None:
        for name in changes:
            if name in {"kind", "id", "parent", "children"} or not hasattr(node, name):
                raise AttributeError(f"Cannot update node field: {name}")

        if "live_id" in changes and node.id in self._by_id:
            self._unindex_live_id(node)
        for name, value in changes.items():
            setattr(node, name, value)
        if "live_id" in changes and node.id in self._by_id:
            self._index_live_id(node)

    def move_node(
        self,
        node: TreeNode,
        relation: MoveRelation,
        target: TreeNode,
        *,
        quiet: bool = False,
    ) -> None:
        if node is target or node.contains(target):
            raise InvalidMoveError(f"Cannot move node {node.id} relative to itself or its subtree")

        if relation in (MoveRelation.PREPEND, MoveRelation.APPEND):
            parent = target
        elif target.parent is None:
            raise InvalidMoveError(f"Target node {target.id} has no parent")
        else:
            parent = target.parent

        self._detach(node)
        if relation is MoveRelation.PREPEND:
            position = 0
        elif relation is MoveRelation.APPEND:
            position = len(parent.children)
        elif relation is MoveRelation.BEFORE:
            position = parent.children.index(target)
        else:
            position = parent.children.index(target) + 1
        parent.children.insert(position, node)
        node.parent = parent
        if node.id not in self._by_id:
            self._index_subtree(node)
        if not quiet:
            log.debug("Moved node %s %s %s", node.id, relation, target.id)

    def merge_nodes(self, source: TreeNode, destination: TreeNode) -> None:
        """Hand ``source``'s remaining children to ``destination`` and drop ``source``."""

        if source is destination:
            return
        if source.contains(destination):
            raise InvalidMoveError(f"Cannot merge node {source.id} into its own subtree")
        for child in list(source.children):
            self.move_node(child, MoveRelation.APPEND, destination, quiet=True)
        self.remove_node(source)

    def add_tab_to_window(
        self, tab: LiveTab, page: TreeNode | None = None
    ) -> tuple[TreeNode, TreeNode]:
        """Place a page for ``tab`` in the window node bound to its window.

        The window node is created when missing. ``page`` is bound to the tab
        first when given, otherwise a fresh page is made.
        """

        window = self.get_by_live_id(tab.window_id, kind=NodeKind.WINDOW)
        if window is None:
            window = new_window_node(tab.window_id, incognito=tab.incognito)
            self.add_node(window)

        if page is None:
            page = page_from_tab(tab)
        else:
            self.update_node(
                page,
                live_id=tab.id,
                window_id=tab.window_id,
                index=tab.index,
                pinned=tab.pinned,
                hibernated=False,
                restorable=False,
            )

        following = next(
            (
                child
                for child in window.children
                if child is not page
                and child.is_tab
                and child.index is not None
                and child.index > tab.index
            ),
            None,
        )
        if page.parent is None and page.id not in self._by_id:
            self.add_node(page, window)
            if following is not None:
                self.move_node(page, MoveRelation.BEFORE, following, quiet=True)
        elif following is not None:
            self.move_node(page, MoveRelation.BEFORE, following, quiet=True)
        else:
            self.move_node(page, MoveRelation.APPEND, window, quiet=True)
        return page, window

    def rebuild_indexes(self) -> None:
        self._by_id = {self._root.id: self._root}
        self._by_live_id = {}
        for node in self._root.descendants():
            self._by_id[node.id] = node
            self._index_live_id(node)

    async def rebuild_page_window_ids(self) -> None:
        if self.session is None:
            return
        for tab in await self.session.query_tabs():
            page = self.get_by_live_id(tab.id, kind=NodeKind.PAGE)
            if page is None or page.hibernated:
                continue
            if page.window_id != tab.window_id or page.index != tab.index:
                self.update_node(page, window_id=tab.window_id, index=tab.index)

    async def conform_tab_order(self) -> None:
        """Move host tabs so their order matches tree order within each window."""

        if self.session is None:
            return
        moved = False
        for window in self._root.children:
            if not window.is_window or window.hibernated or window.live_id is None:
                continue
            tabs = [
                node
                for node in window.descendants()
                if node.is_tab and node.window_id == window.live_id
            ]
            for position, page in enumerate(tabs):
                if page.index == position or page.live_id is None:
                    continue
                log.debug("Moving tab %s to index %s", page.live_id, position)
                await self.session.move_tab(page.live_id, position)
                moved = True
        if moved:
            await self.rebuild_page_window_ids()

    def expand_node(self, node: TreeNode) -> None:
        if not node.expanded:
            self.update_node(node, expanded=True)

    def focus_page(self, tab_id: int) -> None:
        page = self.get_by_live_id(tab_id, kind=NodeKind.PAGE)
        if page is not None:
            self.focused_page_id = page.id

    # Internals

    def _walk(self, scope: Sequence[TreeNode] | None) -> Iterator[TreeNode]:
        if scope is None:
            yield from self._root.descendants()
            return
        for node in scope:
            yield node
            yield from node.descendants()

    def _detach(self, node: TreeNode) -> None:
        if node.parent is not None:
            node.parent.children.remove(node)
            node.parent = None

    def _index_subtree(self, node: TreeNode) -> None:
        for member in (node, *node.descendants()):
            self._by_id[member.id] = member
            self._index_live_id(member)

    def _unindex_subtree(self, node: TreeNode) -> None:
        for member in (node, *node.descendants()):
            self._by_id.pop(member.id, None)
            self._unindex_live_id(member)

    def _index_live_id(self, node: TreeNode) -> None:
        if node.live_id is not None and not node.is_root:
            self._by_live_id[(node.kind, node.live_id)] = node

    def _unindex_live_id(self, node: TreeNode) -> None:
        if node.live_id is None:
            return
        key = (node.kind, node.live_id)
        if self._by_live_id.get(key) is node:
            del self._by_live_id[key]
