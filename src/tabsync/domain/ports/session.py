"""Port for the host process exposing live windows and tabs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from tabsync.domain.model import DetailRequest, LiveTab


@runtime_checkable
class LiveSession(Protocol):
    async def query_tabs(self, *, window_id: int | None = None) -> list[LiveTab]: ...

    async def get_tab(self, tab_id: int) -> LiveTab | None: ...

    def request_details(self, tab_id: int, request: DetailRequest) -> bool:
        """Ask the tab's in-page agent for details.

        Returns ``False`` when no channel to the agent exists yet (try again
        later) and ``True`` once dispatched; the response arrives separately.
        """
        ...

    def focused_window_id(self) -> int | None: ...

    def is_control_surface(self, tab: LiveTab) -> bool: ...

    async def move_tab(self, tab_id: int, index: int) -> None: ...


__all__ = ["LiveSession"]
