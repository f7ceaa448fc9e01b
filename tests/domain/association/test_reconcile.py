from __future__ import annotations

import asyncio

from tabsync.domain.association import ReconcilePipeline, ReconcileReport
from tabsync.domain.association.reconcile import RECONCILE_TIMER, FunctionStage
from tests.helpers.engine import make_harness, make_tab, page_node, window_node

A = "https://example.com/a"
B = "https://example.com/b"
C = "https://example.com/c"

EXPECTED_STAGES = [
    "refresh-window-ids",
    "associate-windows-stringent",
    "disambiguate",
    "associate-windows-stringent-merge",
    "disambiguate",
    "associate-windows-relaxed",
    "disambiguate",
    "associate-windows-relaxed-merge",
    "finalize",
]


def test_pipeline_runs_stages_in_order() -> None:
    harness = make_harness([], [])

    async def scenario() -> ReconcileReport:
        report = await harness.engine.reconcile()
        harness.engine.shutdown()
        return report

    report = asyncio.run(scenario())

    assert report.stages == EXPECTED_STAGES


def test_second_reconciliation_changes_nothing() -> None:
    harness = make_harness(
        [window_node(page_node(A, index=0), page_node(B, index=1))],
        [make_tab(10, A, window_id=5, index=0), make_tab(11, B, window_id=5, index=1)],
    )

    async def scenario() -> tuple[ReconcileReport, ReconcileReport]:
        await harness.engine.start()
        await harness.settle()
        first = harness.engine.reconciler.last_report
        assert first is not None
        second = await harness.engine.reconcile()
        await harness.settle()
        harness.engine.shutdown()
        return first, second

    first, second = asyncio.run(scenario())

    assert first.unresolved == set()
    assert second.changes == 0
    assert harness.session.moves == []
    assert harness.settings.backups == 1


def test_no_new_backup_when_one_exists() -> None:
    harness = make_harness([], [], settings={"backup_page_tree": [{"old": True}]})

    async def scenario() -> None:
        await harness.engine.reconcile()
        harness.engine.shutdown()

    asyncio.run(scenario())

    assert harness.settings.backups == 0


def test_schedule_is_debounced_by_name() -> None:
    harness = make_harness([], [])
    reconciler = harness.engine.reconciler
    calls: list[int] = []

    async def count(_report: ReconcileReport) -> None:
        calls.append(1)

    reconciler.pipeline = ReconcilePipeline(stages=(FunctionStage("count", count),))

    async def scenario() -> None:
        reconciler.schedule(10)
        reconciler.schedule(10)
        reconciler.schedule(10)
        assert reconciler.pending
        assert harness.engine.timers.pending_labels == (RECONCILE_TIMER,)
        await harness.settle()
        harness.engine.shutdown()

    asyncio.run(scenario())

    assert calls == [1]
    assert reconciler.last_report is not None
    assert reconciler.last_report.stages == ["count"]


def test_reconcile_now_drops_pending_trigger() -> None:
    harness = make_harness([], [])
    reconciler = harness.engine.reconciler

    async def scenario() -> None:
        reconciler.schedule(1000)
        assert reconciler.pending
        await harness.engine.reconcile()
        assert not reconciler.pending
        harness.engine.shutdown()

    asyncio.run(scenario())


def test_crossed_same_key_pages_settle_after_one_reconciliation() -> None:
    left = page_node(A, live_id=20, window_id=6, index=0)
    right = page_node(A, live_id=10, window_id=5, index=0)
    harness = make_harness(
        [
            window_node(left, page_node(B, live_id=11, window_id=5, index=1), live_id=5),
            window_node(right, page_node(C, live_id=21, window_id=6, index=1), live_id=6),
        ],
        [
            make_tab(10, A, window_id=5, index=0),
            make_tab(11, B, window_id=5, index=1),
            make_tab(20, A, window_id=6, index=0),
            make_tab(21, C, window_id=6, index=1),
        ],
    )

    async def scenario() -> tuple[ReconcileReport, ReconcileReport]:
        first = await harness.engine.reconcile()
        second = await harness.engine.reconcile()
        harness.engine.shutdown()
        return first, second

    first, second = asyncio.run(scenario())

    assert first.swaps == 1
    assert (left.live_id, right.live_id) == (10, 20)
    assert second.swaps == 0
    assert second.changes == 0
    assert second.unresolved == set()
    assert harness.session.moves == []
