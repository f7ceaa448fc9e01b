"""Snapshots of the host's live windows and tabs.

These are owned by the host process; the engine only ever reads them through
the live-session port and never holds on to them across runs.
"""

from __future__ import annotations

from dataclasses import dataclass

from .enums import DetailAction


@dataclass(frozen=True, slots=True, kw_only=True)
class LiveTab:
    id: int
    window_id: int
    index: int
    url: str
    pinned: bool = False
    incognito: bool = False
    active: bool = False
    title: str = ""
    status: str = "complete"


@dataclass(frozen=True, slots=True)
class DetailRequest:
    """Payload sent to a tab's in-page agent asking for referrer/history details."""

    action: DetailAction
    run_id: str | None = None
