"""Public domain model surface."""

from __future__ import annotations

from tabsync.domain.model.enums import DetailAction, MoveRelation, NodeKind, WindowType
from tabsync.domain.model.live import DetailRequest, LiveTab
from tabsync.domain.model.nodes import (
    ROOT_NODE_ID,
    WINDOW_DEFAULT_TITLE,
    FuzzyKey,
    TreeNode,
    new_window_node,
    page_from_tab,
)

__all__ = [
    "ROOT_NODE_ID",
    "WINDOW_DEFAULT_TITLE",
    "DetailAction",
    "DetailRequest",
    "FuzzyKey",
    "LiveTab",
    "MoveRelation",
    "NodeKind",
    "TreeNode",
    "WindowType",
    "new_window_node",
    "page_from_tab",
]
