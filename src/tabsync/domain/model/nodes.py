"""
Persisted tree nodes:
one tagged variant for the root, windows and pages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import uuid4

from .enums import NodeKind, WindowType

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .live import LiveTab

ROOT_NODE_ID = "root"
WINDOW_DEFAULT_TITLE = "Window"

type FuzzyKey = tuple[str, str, int, bool, bool]


def new_node_id(kind: NodeKind) -> str:
    prefix = "p" if kind is NodeKind.PAGE else "w"
    return f"{prefix}{uuid4().hex}"


@dataclass(eq=False, kw_only=True)
class TreeNode:
    """A row of the persisted tree.

    ``live_id`` is the volatile host id the node is currently bound to (tab id
    for pages, window id for windows). ``window_id`` and ``index`` are the host
    window and position last recorded for a page. Page-only and window-only
    fields are simply left at their defaults for the other kind.
    """

    kind: NodeKind
    id: str = ""
    live_id: int | None = None
    window_id: int | None = None
    index: int | None = None
    hibernated: bool = False
    restorable: bool = False
    title: str | None = None
    incognito: bool = False

    # pages
    url: str = ""
    referrer: str = ""
    history_length: int = 1
    pinned: bool = False
    session_guid: str | None = None
    status: str = "complete"
    restored: bool = False

    # windows
    window_type: WindowType = WindowType.NORMAL
    old: bool = False
    expanded: bool = True

    parent: TreeNode | None = field(default=None, repr=False)
    children: list[TreeNode] = field(default_factory=list["TreeNode"], repr=False)

    def __post_init__(self) -> None:
        if not self.id:
            self.id = ROOT_NODE_ID if self.kind is NodeKind.ROOT else new_node_id(self.kind)

    @property
    def is_root(self) -> bool:
        return self.kind is NodeKind.ROOT

    @property
    def is_window(self) -> bool:
        return self.kind is NodeKind.WINDOW

    @property
    def is_page(self) -> bool:
        return self.kind is NodeKind.PAGE

    @property
    def is_tab(self) -> bool:
        """True for pages currently bound to a live tab."""
        return self.kind is NodeKind.PAGE and not self.hibernated

    @property
    def fuzzy_key(self) -> FuzzyKey:
        return (self.url, self.referrer, self.history_length, self.pinned, self.incognito)

    def top_parent(self) -> TreeNode:
        """Return the ancestor sitting directly under the root (or ``self``)."""

        node = self
        while node.parent is not None and not node.parent.is_root:
            node = node.parent
        return node

    def descendants(self) -> Iterator[TreeNode]:
        """Yield all descendants in document (depth-first, pre-order) order."""

        for child in self.children:
            yield child
            yield from child.descendants()

    def contains(self, other: TreeNode) -> bool:
        node: TreeNode | None = other
        while node is not None:
            if node is self:
                return True
            node = node.parent
        return False


def page_from_tab(tab: LiveTab) -> TreeNode:
    return TreeNode(
        kind=NodeKind.PAGE,
        live_id=tab.id,
        window_id=tab.window_id,
        index=tab.index,
        url=tab.url,
        title=tab.title or tab.url,
        pinned=tab.pinned,
        incognito=tab.incognito,
        status=tab.status,
    )


def new_window_node(
    window_id: int | None,
    *,
    incognito: bool = False,
    window_type: WindowType = WindowType.NORMAL,
) -> TreeNode:
    return TreeNode(
        kind=NodeKind.WINDOW,
        live_id=window_id,
        incognito=incognito,
        window_type=window_type,
        title=WINDOW_DEFAULT_TITLE,
    )
