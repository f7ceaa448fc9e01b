"""Adapters implementing the engine's ports."""

from __future__ import annotations

from .memory_tree import InMemoryArchive, InMemoryPageTree, InvalidMoveError, NodeNotFoundError

__all__ = ["InMemoryArchive", "InMemoryPageTree", "InvalidMoveError", "NodeNotFoundError"]
