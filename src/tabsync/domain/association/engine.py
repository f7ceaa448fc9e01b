"""Facade wiring the association collaborators around one tree and session."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tabsync.config import AssociationConfig
from tabsync.domain.model import DetailAction, NodeKind

from .disambiguate import Disambiguator
from .existing import ExistingPageAssociator
from .matching import Matcher
from .merge import WindowMerger
from .reconcile import RECONCILE_TIMER, Reconciler
from .restore import PageRestorer
from .runs import AssociationRunCoordinator
from .stubborn import StubbornTabTracker
from .timers import TimerRegistry
from .windows import WindowAssociator

if TYPE_CHECKING:
    from tabsync.domain.model import TreeNode
    from tabsync.domain.ports import (
        LiveSession,
        RecentlyClosedRegistry,
        SettingsStore,
        TreeStore,
    )

    from .reconcile import ReconcileReport
    from .runs import AssociationRun

log = logging.getLogger(__name__)


class AssociationEngine:
    """Entry point used by the host integration.

    All collaborators share one ``TimerRegistry`` and must be driven from a
    single running event loop.
    """

    def __init__(
        self,
        *,
        tree: TreeStore,
        session: LiveSession,
        timers: TimerRegistry,
        runs: AssociationRunCoordinator,
        existing: ExistingPageAssociator,
        reconciler: Reconciler,
        restorer: PageRestorer,
        config: AssociationConfig,
    ) -> None:
        self.tree = tree
        self.session = session
        self.timers = timers
        self.runs = runs
        self.existing = existing
        self.reconciler = reconciler
        self.restorer = restorer
        self.config = config

    @classmethod
    def build(
        cls,
        *,
        tree: TreeStore,
        session: LiveSession,
        settings: SettingsStore,
        config: AssociationConfig | None = None,
        recently_closed: RecentlyClosedRegistry | None = None,
    ) -> AssociationEngine:
        effective_config = config or AssociationConfig()
        timers = TimerRegistry()
        matcher = Matcher(tree)
        restorer = PageRestorer(
            tree=tree,
            session=session,
            matcher=matcher,
            merger=WindowMerger(tree),
            timers=timers,
        )
        reconciler = Reconciler(
            tree=tree,
            session=session,
            settings=settings,
            timers=timers,
            disambiguator=Disambiguator(tree, max_rounds=effective_config.disambiguation_rounds),
            windows=WindowAssociator(tree=tree, session=session, restorer=restorer),
            config=effective_config,
        )
        runs = AssociationRunCoordinator(
            tree=tree,
            session=session,
            matcher=matcher,
            restorer=restorer,
            tracker=StubbornTabTracker(effective_config.stubborn_threshold_ticks),
            reconciler=reconciler,
            timers=timers,
            config=effective_config,
            recently_closed=recently_closed,
        )
        existing = ExistingPageAssociator(
            tree=tree,
            session=session,
            matcher=matcher,
            restorer=restorer,
            reconciler=reconciler,
            timers=timers,
            config=effective_config,
            recently_closed=recently_closed,
        )
        return cls(
            tree=tree,
            session=session,
            timers=timers,
            runs=runs,
            existing=existing,
            reconciler=reconciler,
            restorer=restorer,
            config=effective_config,
        )

    async def start(self) -> AssociationRun | None:
        return await self.runs.start()

    def associate_existing(self, page: TreeNode) -> bool:
        return self.existing.request(page)

    async def reconcile(self) -> ReconcileReport:
        """Run the reconciliation pipeline now, dropping any pending trigger."""

        if self.reconciler.pending:
            self.timers.clear(RECONCILE_TIMER)
        return await self.reconciler.run()

    async def on_page_details(
        self,
        tab_id: int,
        *,
        action: DetailAction,
        run_id: str | None = None,
        referrer: str | None = None,
        history_length: int | None = None,
        session_guid: str | None = None,
    ) -> TreeNode | None:
        """Handle a tab agent's answer to an earlier detail request."""

        tab = await self.session.get_tab(tab_id)
        if tab is None:
            log.debug("Details arrived for tab %s which no longer exists", tab_id)
            return None

        if action is DetailAction.ASSOCIATE:
            return await self.runs.on_detail_received(
                run_id,
                tab,
                referrer=referrer,
                history_length=history_length,
                session_guid=session_guid,
            )

        if action is DetailAction.ASSOCIATE_EXISTING:
            return self.existing.associate(
                tab,
                referrer=referrer,
                history_length=history_length,
                session_guid=session_guid,
            )

        page = self.tree.get_by_live_id(tab_id, kind=NodeKind.PAGE)
        if page is None:
            log.debug("Details to store arrived for unknown tab %s", tab_id)
            return None
        changes: dict[str, object] = {}
        if referrer is not None:
            changes["referrer"] = referrer
        if history_length is not None:
            changes["history_length"] = history_length
        if session_guid is not None:
            changes["session_guid"] = session_guid
        if changes:
            self.tree.update_node(page, **changes)
        return page

    async def settle(self) -> None:
        """Let background work started so far finish."""

        await self.timers.drain()

    def shutdown(self) -> None:
        self.timers.cancel_all()
