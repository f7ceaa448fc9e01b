"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class NodeKind(StrEnum):
    """Discriminator of the tagged tree node variant."""

    ROOT = "root"
    WINDOW = "window"
    PAGE = "page"


class WindowType(StrEnum):
    NORMAL = "normal"
    POPUP = "popup"


class DetailAction(StrEnum):
    """What the engine intends to do with a page's detail response."""

    ASSOCIATE = "associate"
    STORE = "store"
    ASSOCIATE_EXISTING = "associate_existing"


class MoveRelation(StrEnum):
    BEFORE = "before"
    AFTER = "after"
    PREPEND = "prepend"
    APPEND = "append"
