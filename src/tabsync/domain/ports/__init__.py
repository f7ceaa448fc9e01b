"""Collaborator ports consumed by the association engine."""

from __future__ import annotations

from .session import LiveSession
from .settings import BACKUP_SETTING, REMEMBER_OPEN_PAGES_SETTING, SettingsStore
from .tree import NodeKeyFunc, NodePredicate, RecentlyClosedRegistry, TreeStore

__all__ = [
    "BACKUP_SETTING",
    "REMEMBER_OPEN_PAGES_SETTING",
    "LiveSession",
    "NodeKeyFunc",
    "NodePredicate",
    "RecentlyClosedRegistry",
    "SettingsStore",
    "TreeStore",
]
