"""Association runs: binding every unbound live tab to a page node.

A run enumerates the live tabs, binds what it can straight away (fast match,
non-scriptable and New Tab pages) and asks the rest for their referrer and
history length. Those stay pending until their details arrive or they have
been pending for ``stubborn_threshold_ticks`` ticks, at which point they are
bound on url/pinned/incognito alone. Each tick ends the run and starts a
fresh one, so tabs that appear mid-run are covered too. Only one run is ever
active.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import uuid4

from tabsync.domain.model import DetailAction, DetailRequest, NodeKind

from .matching import MatchCriteria
from .repair import fix_bad_nodes
from .timers import TimerNotFoundError
from .urls import is_new_tab_url, is_scriptable_url

if TYPE_CHECKING:
    from tabsync.config import AssociationConfig
    from tabsync.domain.model import LiveTab, TreeNode
    from tabsync.domain.ports import LiveSession, RecentlyClosedRegistry, TreeStore

    from .matching import Matcher
    from .reconcile import Reconciler
    from .restore import PageRestorer
    from .stubborn import StubbornTabTracker
    from .timers import TimerRegistry

log = logging.getLogger(__name__)


def new_run_id() -> str:
    return uuid4().hex


@dataclass(slots=True)
class AssociationRun:
    run_id: str = field(default_factory=new_run_id)
    total: int = 0
    count: int = 0
    tab_ids: list[int] = field(default_factory=list[int])


class AssociationRunCoordinator:
    def __init__(
        self,
        *,
        tree: TreeStore,
        session: LiveSession,
        matcher: Matcher,
        restorer: PageRestorer,
        tracker: StubbornTabTracker,
        reconciler: Reconciler,
        timers: TimerRegistry,
        config: AssociationConfig,
        recently_closed: RecentlyClosedRegistry | None = None,
    ) -> None:
        self._tree = tree
        self._session = session
        self._matcher = matcher
        self._restorer = restorer
        self._tracker = tracker
        self._reconciler = reconciler
        self._timers = timers
        self._config = config
        self._recently_closed = recently_closed
        self._runs: dict[str, AssociationRun] = {}
        self._concurrent_runs = 0

    @property
    def tracker(self) -> StubbornTabTracker:
        return self._tracker

    @property
    def active_run(self) -> AssociationRun | None:
        return next(iter(self._runs.values()), None)

    async def start(self) -> AssociationRun | None:
        """Start a run unless one is already active."""

        if self._concurrent_runs > 0:
            return None

        # stray pages at the root would otherwise match against the wrong windows
        await fix_bad_nodes(self._tree, self._session)

        tabs = await self._session.query_tabs()
        if self._concurrent_runs > 0:
            return None

        run = AssociationRun()
        self._runs[run.run_id] = run
        self._concurrent_runs += 1
        log.info("Starting association run %s over %s tabs", run.run_id, len(tabs))

        for tab in tabs:
            if self._session.is_control_surface(tab):
                continue
            existing = self._tree.get_by_live_id(tab.id, kind=NodeKind.PAGE)
            if existing is not None and not existing.hibernated:
                continue
            if not await self._try_associate_tab(run, tab):
                run.total += 1

        dropped = self._tracker.prune(tab.id for tab in tabs)
        if dropped:
            log.debug("Dropped stubborn counts for closed tabs %s", dropped)

        if not run.tab_ids:
            log.info("No tabs left to associate, ending run %s", run.run_id)
            self.end(run.run_id)
            return run

        log.info("Association run %s waiting on %s tabs", run.run_id, len(run.tab_ids))
        self._arm(run.run_id)
        return run

    async def tick(self, run_id: str) -> None:
        run = self._runs.get(run_id)
        if run is None:
            log.debug("Association run %s already ended", run_id)
            return

        log.debug("Tick for run %s: pending tabs %s", run_id, run.tab_ids)
        for tab_id in list(run.tab_ids):
            self._tracker.increment(tab_id)
            if not self._tracker.is_stubborn(tab_id):
                continue
            self._tracker.clear(tab_id)
            run.tab_ids.remove(tab_id)
            tab = await self._session.get_tab(tab_id)
            if tab is None:
                continue
            log.info("Using fallback association for stubborn tab %s", tab_id)
            self.bind_tab(tab)

        self.end(run_id)
        await self.start()

    def end(self, run_id: str) -> None:
        run = self._runs.pop(run_id, None)
        log.info("Ending association run %s (%s)", run_id, run)
        if run is not None:
            self._concurrent_runs -= 1

        self._tree.rebuild_indexes()
        self._reconciler.schedule(self._config.reconcile_delay_ms)

        try:
            self._timers.clear(run_id)
        except TimerNotFoundError:
            pass

    async def on_detail_received(
        self,
        run_id: str | None,
        tab: LiveTab,
        *,
        referrer: str | None = None,
        history_length: int | None = None,
        session_guid: str | None = None,
    ) -> TreeNode:
        for run in self._runs.values():
            if tab.id in run.tab_ids:
                run.tab_ids.remove(tab.id)
        self._tracker.clear(tab.id)

        run = self._runs.get(run_id) if run_id is not None else None
        if run is not None:
            run.count += 1
            self._arm(run.run_id)

        return self.bind_tab(
            tab, referrer=referrer, history_length=history_length, session_guid=session_guid
        )

    def bind_tab(
        self,
        tab: LiveTab,
        *,
        referrer: str | None = None,
        history_length: int | None = None,
        session_guid: str | None = None,
    ) -> TreeNode:
        """Bind ``tab`` to its restorable page, or give it a fresh one.

        A page already bound to ``tab`` is kept when nothing restorable
        matches, and merged into the match when something does.
        """

        existing = self._tree.get_by_live_id(tab.id, kind=NodeKind.PAGE)
        if existing is not None and existing.hibernated:
            existing = None

        match = self._find_restorable(tab, referrer, history_length, session_guid)
        if match is None and existing is not None:
            return existing
        if match is None:
            log.debug("No page node found for tab %s, adding a new one", tab.id)
            page, _window = self._tree.add_tab_to_window(tab)
            self._tree.update_node(
                page, referrer=referrer or "", history_length=history_length or 1
            )
            if tab.active and self._session.focused_window_id() == tab.window_id:
                self._tree.focus_page(tab.id)
            return page

        if existing is not None and existing is not match:
            log.info(
                "Merging page %s for tab %s into restorable page %s",
                existing.id,
                tab.id,
                match.id,
            )
            self._restorer.merge_nodes(existing, match)

        log.debug("Page node %s found for tab %s, restoring", match.id, tab.id)
        self._restorer.restore_binding(tab, match)
        if referrer is not None:
            self._tree.update_node(match, referrer=referrer)
        if history_length is not None:
            self._tree.update_node(match, history_length=history_length)
        return match

    def try_fast_associate(self, tab: LiveTab, *, must_be_restorable: bool) -> TreeNode | None:
        match = self._matcher.fast_match(tab, must_be_restorable=must_be_restorable)
        if match is None:
            return None

        log.debug("Fast associating tab %s with page %s", tab.id, match.id)
        self._restorer.restore_binding(tab, match)
        if is_scriptable_url(tab.url):
            # only refreshes the stored details for a later run's benefit
            self._session.request_details(tab.id, DetailRequest(DetailAction.STORE))
        return match

    async def _try_associate_tab(self, run: AssociationRun, tab: LiveTab) -> bool:
        """Return True if ``tab`` was dealt with now, False if it is pending."""

        if tab.incognito:
            # incognito pages are never persisted, so nothing to restore
            self._tree.add_tab_to_window(tab)
            return True

        if is_new_tab_url(tab.url) and tab.index == 0 and not tab.pinned:
            window_tabs = await self._session.query_tabs(window_id=tab.window_id)
            if len(window_tabs) == 1:
                self._tree.add_tab_to_window(tab)
                return True

        if self.try_fast_associate(tab, must_be_restorable=True) is not None:
            return True

        if is_new_tab_url(tab.url):
            # New Tab pages only ever fast match, so a blank startup tab cannot
            # resurrect a window from the last session
            self._tree.add_tab_to_window(tab)
            return True

        if not is_scriptable_url(tab.url):
            log.debug("Blind association for non-scriptable tab %s (%s)", tab.id, tab.url)
            self.bind_tab(tab)
            return True

        run.tab_ids.append(tab.id)
        if not self._session.request_details(
            tab.id, DetailRequest(DetailAction.ASSOCIATE, run.run_id)
        ):
            log.debug("No channel to tab %s yet for run %s", tab.id, run.run_id)
        return False

    def _find_restorable(
        self,
        tab: LiveTab,
        referrer: str | None,
        history_length: int | None,
        session_guid: str | None,
    ) -> TreeNode | None:
        if session_guid:
            hibernated = self._tree.find(
                lambda node: node.is_page and node.hibernated and node.session_guid == session_guid
            )
            if hibernated is not None:
                return hibernated
            if self._recently_closed is not None:
                closed = self._recently_closed.find_by_session_guid(session_guid)
                if closed is not None:
                    self._recently_closed.take(closed)
                    page, _window = self._tree.add_tab_to_window(tab, closed)
                    return page

        return self._matcher.best_match(
            MatchCriteria.restorable_for_tab(
                tab, referrer=referrer, history_length=history_length
            ),
            index=tab.index,
        )

    def _arm(self, run_id: str) -> None:
        self._timers.reset(run_id, self._config.tick_interval_ms, lambda: self.tick(run_id))
