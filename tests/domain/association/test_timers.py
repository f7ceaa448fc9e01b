from __future__ import annotations

import asyncio
import logging

import pytest

from tabsync.domain.association import TimerNotFoundError, TimerRegistry


def test_reset_replaces_pending_timer() -> None:
    fired: list[str] = []

    async def scenario() -> None:
        timers = TimerRegistry()
        timers.reset("tick", 5, lambda: fired.append("first"))
        timers.reset("tick", 5, lambda: fired.append("second"))
        assert timers.pending_labels == ("tick",)
        await asyncio.sleep(0.05)
        assert not timers.busy

    asyncio.run(scenario())

    assert fired == ["second"]


def test_clear_unknown_label_raises() -> None:
    async def scenario() -> None:
        timers = TimerRegistry()
        with pytest.raises(TimerNotFoundError) as excinfo:
            timers.clear("missing")
        assert str(excinfo.value) == "A timer with the given label does not exist: missing"

    asyncio.run(scenario())


def test_cleared_timer_never_fires() -> None:
    fired: list[str] = []

    async def scenario() -> None:
        timers = TimerRegistry()
        timers.reset("tick", 5, lambda: fired.append("tick"))
        timers.clear("tick")
        assert not timers.exists("tick")
        await asyncio.sleep(0.02)

    asyncio.run(scenario())

    assert fired == []


def test_async_callbacks_are_awaited_by_drain() -> None:
    done: list[str] = []

    async def work() -> None:
        await asyncio.sleep(0)
        done.append("work")

    async def scenario() -> None:
        timers = TimerRegistry()
        timers.reset("work", 1, work)
        await asyncio.sleep(0.01)
        await timers.drain()
        assert not timers.busy

    asyncio.run(scenario())

    assert done == ["work"]


def test_failed_background_task_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    async def boom() -> None:
        raise RuntimeError("boom")

    async def scenario() -> None:
        timers = TimerRegistry()
        timers.spawn(boom())
        await timers.drain()

    with caplog.at_level(logging.ERROR, logger="tabsync.domain.association.timers"):
        asyncio.run(scenario())

    assert "Background task failed" in caplog.text


def test_cancel_all_drops_everything() -> None:
    fired: list[str] = []

    async def scenario() -> None:
        timers = TimerRegistry()
        timers.reset("a", 5, lambda: fired.append("a"))
        timers.reset("b", 5, lambda: fired.append("b"))
        timers.cancel_all()
        assert timers.pending_labels == ()
        await asyncio.sleep(0.02)

    asyncio.run(scenario())

    assert fired == []
