"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from tabsync.adapters import InMemoryPageTree
from tabsync.adapters.agent import handle_page_details
from tabsync.adapters.scenario import (
    InMemorySettings,
    ScenarioSession,
    build_tree,
    dump_tree,
    load_scenario,
)
from tabsync.config import get_association_config
from tabsync.domain.association import AssociationEngine

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

    from tabsync.adapters.scenario import Scenario
    from tabsync.config import AssociationConfig
    from tabsync.domain.association import ReconcileReport

log = getLogger(__name__)

DEFAULT_SETTLE_SECONDS = 60.0
IDLE_POLL_SECONDS = 0.01


@dataclass(slots=True)
class SimulationResult:
    tree: InMemoryPageTree
    session: ScenarioSession
    settings: InMemorySettings
    report: ReconcileReport


def build_engine(
    scenario: Scenario,
    *,
    config: AssociationConfig | None = None,
) -> tuple[AssociationEngine, InMemoryPageTree, ScenarioSession, InMemorySettings]:
    """Wire an engine over in-memory adapters loaded from ``scenario``."""

    session = ScenarioSession(scenario.tabs, focused_window_id=scenario.focused_window_id)
    tree = build_tree(scenario.tree, InMemoryPageTree(session), archive=scenario.archive)
    settings = InMemorySettings(scenario.settings, snapshot=lambda: dump_tree(tree))
    engine = AssociationEngine.build(
        tree=tree,
        session=session,
        settings=settings,
        config=config,
        recently_closed=tree.archive,
    )

    async def deliver(tab_id: int, payload: Mapping[str, object]) -> None:
        await handle_page_details(engine, tab_id, payload)

    session.connect(deliver)
    return engine, tree, session, settings


async def wait_until_idle(engine: AssociationEngine, session: ScenarioSession) -> None:
    while engine.timers.busy or session.pending or engine.runs.active_run is not None:
        await asyncio.sleep(IDLE_POLL_SECONDS)


async def simulate_scenario(
    scenario: Scenario,
    *,
    config: AssociationConfig | None = None,
    settle_seconds: float = DEFAULT_SETTLE_SECONDS,
) -> SimulationResult:
    """Run one association run plus reconciliation over ``scenario``.

    Raises ``TimeoutError`` when the engine is still busy after
    ``settle_seconds``.
    """

    engine, tree, session, settings = build_engine(
        scenario, config=config or get_association_config()
    )
    log.info(
        "Simulating %s live tabs against %s persisted nodes", len(scenario.tabs), len(tree)
    )
    try:
        async with asyncio.timeout(settle_seconds):
            await engine.start()
            await wait_until_idle(engine, session)
        report = engine.reconciler.last_report or await engine.reconcile()
    finally:
        engine.shutdown()

    log.info(
        "Finished simulation: changes=%s, unresolved=%s, backups=%s",
        report.changes,
        len(report.unresolved),
        settings.backups,
    )
    return SimulationResult(tree=tree, session=session, settings=settings, report=report)


def simulate_scenario_file(
    path: str | Path,
    *,
    config: AssociationConfig | None = None,
    settle_seconds: float = DEFAULT_SETTLE_SECONDS,
) -> SimulationResult:
    scenario = load_scenario(path)
    return asyncio.run(
        simulate_scenario(scenario, config=config, settle_seconds=settle_seconds)
    )
