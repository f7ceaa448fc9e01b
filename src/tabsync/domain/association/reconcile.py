"""Post-association reconciliation pipeline.

Stages run strictly in order, each awaiting the previous one:

1. refresh recorded window ids from the host
2. associate windows, stringent (child counts must agree), no merging
3. disambiguate
4. associate windows, stringent, merging allowed
5. disambiguate
6. associate windows, relaxed, no merging
7. disambiguate
8. associate windows, relaxed, merging allowed
9. disambiguate, then repair placement/structure, rebuild indexes, fix pinned
   order and index swaps, conform the host tab order, purge old windows and
   take a first backup

Triggers are debounced by name through the ``TimerRegistry``: scheduling again
while a run is pending only pushes the pending run back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from tabsync.domain.ports import BACKUP_SETTING

from .repair import (
    fix_all_pinned_unpinned_order,
    fix_bad_nodes,
    move_pages_to_correct_windows,
    remove_old_windows,
    remove_zero_child_windows,
    swap_pages_by_index,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from tabsync.config import AssociationConfig
    from tabsync.domain.ports import LiveSession, SettingsStore, TreeStore

    from .disambiguate import Disambiguator
    from .timers import TimerRegistry
    from .windows import WindowAssociator

log = logging.getLogger(__name__)

RECONCILE_TIMER = "reconcile"
CONFORM_TAB_ORDER_TIMER = "conform-tab-order"


@dataclass(slots=True)
class ReconcileReport:
    """Counters of everything one pipeline run changed."""

    windows_associated: int = 0
    windows_merged: int = 0
    swaps: int = 0
    moves: int = 0
    repairs: int = 0
    removals: int = 0
    unresolved: set[str] = field(default_factory=set[str])
    stages: list[str] = field(default_factory=list[str])

    @property
    def changes(self) -> int:
        return (
            self.windows_associated
            + self.windows_merged
            + self.swaps
            + self.moves
            + self.repairs
            + self.removals
        )


class ReconcileStage(Protocol):
    """Contract implemented by each pipeline stage."""

    name: str

    async def run(self, *, report: ReconcileReport) -> None: ...


@dataclass(slots=True)
class FunctionStage:
    name: str
    func: Callable[[ReconcileReport], Awaitable[None]]

    async def run(self, *, report: ReconcileReport) -> None:
        await self.func(report)


@dataclass(slots=True)
class ReconcilePipeline:
    stages: Sequence[ReconcileStage] = field(default_factory=tuple)

    async def run(self, *, report: ReconcileReport | None = None) -> ReconcileReport:
        active_report = report or ReconcileReport()
        for stage in self.stages:
            log.debug("Reconcile stage %s", stage.name)
            await stage.run(report=active_report)
            active_report.stages.append(stage.name)
        return active_report


class Reconciler:
    def __init__(
        self,
        *,
        tree: TreeStore,
        session: LiveSession,
        settings: SettingsStore,
        timers: TimerRegistry,
        disambiguator: Disambiguator,
        windows: WindowAssociator,
        config: AssociationConfig,
    ) -> None:
        self._tree = tree
        self._session = session
        self._settings = settings
        self._timers = timers
        self._disambiguator = disambiguator
        self._windows = windows
        self._config = config
        self.pipeline = ReconcilePipeline(stages=self._default_stages())
        self.last_report: ReconcileReport | None = None

    @property
    def pending(self) -> bool:
        return self._timers.exists(RECONCILE_TIMER)

    def schedule(self, delay_ms: int | None = None) -> None:
        delay = self._config.reconcile_delay_ms if delay_ms is None else delay_ms
        self._timers.reset(RECONCILE_TIMER, delay, self.run)

    async def run(self) -> ReconcileReport:
        report = await self.pipeline.run()
        self.last_report = report
        log.info(
            "Reconciliation complete: windows=%s merged=%s swaps=%s moves=%s repairs=%s "
            "removed=%s unresolved=%s",
            report.windows_associated,
            report.windows_merged,
            report.swaps,
            report.moves,
            report.repairs,
            report.removals,
            len(report.unresolved),
        )
        return report

    def _default_stages(self) -> tuple[ReconcileStage, ...]:
        return (
            FunctionStage("refresh-window-ids", self._refresh_window_ids),
            FunctionStage(
                "associate-windows-stringent", self._associate_windows(strict=True, merge=False)
            ),
            FunctionStage("disambiguate", self._disambiguate),
            FunctionStage(
                "associate-windows-stringent-merge",
                self._associate_windows(strict=True, merge=True),
            ),
            FunctionStage("disambiguate", self._disambiguate),
            FunctionStage(
                "associate-windows-relaxed", self._associate_windows(strict=False, merge=False)
            ),
            FunctionStage("disambiguate", self._disambiguate),
            FunctionStage(
                "associate-windows-relaxed-merge",
                self._associate_windows(strict=False, merge=True),
            ),
            FunctionStage("finalize", self._finalize),
        )

    async def _refresh_window_ids(self, _report: ReconcileReport) -> None:
        await self._tree.rebuild_page_window_ids()

    def _associate_windows(
        self, *, strict: bool, merge: bool
    ) -> Callable[[ReconcileReport], Awaitable[None]]:
        async def associate(report: ReconcileReport) -> None:
            result = await self._windows.associate(require_count_match=strict, allow_merge=merge)
            report.windows_associated += result.associated
            report.windows_merged += result.merged

        return associate

    async def _disambiguate(self, report: ReconcileReport) -> None:
        result = self._disambiguator.run()
        report.swaps += result.swaps
        report.unresolved.update(result.unresolved)

    async def _finalize(self, report: ReconcileReport) -> None:
        await self._disambiguate(report)
        report.moves += await move_pages_to_correct_windows(self._tree, self._session)
        report.repairs += await fix_bad_nodes(self._tree, self._session)
        report.removals += remove_zero_child_windows(self._tree)

        await self._tree.rebuild_page_window_ids()
        self._tree.rebuild_indexes()

        report.moves += fix_all_pinned_unpinned_order(self._tree)
        report.swaps += swap_pages_by_index(self._tree)

        await self._tree.conform_tab_order()
        self._timers.reset(
            CONFORM_TAB_ORDER_TIMER, self._config.tab_order_settle_ms, self._tree.conform_tab_order
        )

        report.removals += remove_old_windows(self._tree, self._settings)

        if not self._settings.get(BACKUP_SETTING, []):
            log.info("No backup of the page tree yet, taking one")
            self._settings.backup_now()
