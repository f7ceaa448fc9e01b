"""Scripted host session driven by a scenario's live tabs."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from tabsync.domain.association.urls import is_scriptable_url
from tabsync.domain.model import LiveTab

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Mapping

    from tabsync.domain.model import DetailRequest

    from .schema import ScenarioTab

    type DetailsHandler = Callable[[int, Mapping[str, object]], Awaitable[object]]

log = logging.getLogger(__name__)

CONTROL_SURFACE_PREFIX = "chrome-extension://tabsync/"


def live_tab_from_scenario(tab: ScenarioTab) -> LiveTab:
    return LiveTab(
        id=tab.id,
        window_id=tab.window_id,
        index=tab.index,
        url=tab.url,
        pinned=tab.pinned,
        incognito=tab.incognito,
        active=tab.active,
        title=tab.title,
        status=tab.status,
    )


class ScenarioSession:
    """``LiveSession`` over a fixed set of tabs.

    A detail request to a tab whose agent responds is answered on the next
    loop iteration through the handler given to ``connect``; the answer is the
    referrer, history length and session guid recorded for that tab.
    """

    def __init__(
        self,
        tabs: Iterable[ScenarioTab] = (),
        *,
        focused_window_id: int | None = None,
    ) -> None:
        self._tabs: dict[int, LiveTab] = {}
        self._details: dict[int, dict[str, object]] = {}
        self.connected: set[int] = set()
        self.requests: list[tuple[int, DetailRequest]] = []
        self.moves: list[tuple[int, int]] = []
        self._focused_window_id = focused_window_id
        self._handler: DetailsHandler | None = None
        self._tasks: set[asyncio.Task[object]] = set()
        for tab in tabs:
            self.open_tab(tab)

    @property
    def pending(self) -> bool:
        return bool(self._tasks)

    def connect(self, handler: DetailsHandler) -> None:
        self._handler = handler

    def open_tab(self, tab: ScenarioTab) -> LiveTab:
        live = live_tab_from_scenario(tab)
        self._tabs[live.id] = live
        self._details[live.id] = {
            "referrer": tab.referrer,
            "historylength": tab.history_length,
            "session_guid": tab.session_guid,
        }
        if tab.responds and is_scriptable_url(tab.url):
            self.connected.add(live.id)
        return live

    def close_tab(self, tab_id: int) -> None:
        tab = self._tabs.pop(tab_id)
        self._details.pop(tab_id, None)
        self.connected.discard(tab_id)
        self._reindex(tab.window_id)

    async def query_tabs(self, *, window_id: int | None = None) -> list[LiveTab]:
        tabs = [tab for tab in self._tabs.values() if window_id is None or tab.window_id == window_id]
        return sorted(tabs, key=lambda tab: (tab.window_id, tab.index))

    async def get_tab(self, tab_id: int) -> LiveTab | None:
        return self._tabs.get(tab_id)

    def request_details(self, tab_id: int, request: DetailRequest) -> bool:
        self.requests.append((tab_id, request))
        if tab_id not in self.connected:
            return False
        if self._handler is None:
            return True

        payload: dict[str, object] = {
            "action": request.action.value,
            "run_id": request.run_id,
            **self._details[tab_id],
        }
        task = asyncio.get_running_loop().create_task(self._deliver(tab_id, payload))
        self._tasks.add(task)
        task.add_done_callback(self._delivered)
        return True

    def focused_window_id(self) -> int | None:
        return self._focused_window_id

    def is_control_surface(self, tab: LiveTab) -> bool:
        return tab.url.startswith(CONTROL_SURFACE_PREFIX)

    async def move_tab(self, tab_id: int, index: int) -> None:
        tab = self._tabs[tab_id]
        ordered = [
            other
            for other in sorted(self._tabs.values(), key=lambda other: other.index)
            if other.window_id == tab.window_id and other.id != tab_id
        ]
        ordered.insert(min(index, len(ordered)), tab)
        for position, other in enumerate(ordered):
            self._tabs[other.id] = replace(other, index=position)
        self.moves.append((tab_id, index))

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*tuple(self._tasks), return_exceptions=True)

    async def _deliver(self, tab_id: int, payload: Mapping[str, object]) -> None:
        if self._handler is None or tab_id not in self._tabs:
            return
        log.debug("Delivering details of tab %s: %s", tab_id, payload)
        await self._handler(tab_id, payload)

    def _reindex(self, window_id: int) -> None:
        ordered = sorted(
            (tab for tab in self._tabs.values() if tab.window_id == window_id),
            key=lambda tab: tab.index,
        )
        for position, tab in enumerate(ordered):
            self._tabs[tab.id] = replace(tab, index=position)

    def _delivered(self, task: asyncio.Task[object]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error("Delivering page details failed", exc_info=exc)
