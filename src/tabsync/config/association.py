"""Timing and retry defaults for the association engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from .env import optional_positive_int

DEFAULT_TICK_INTERVAL_MS: Final[int] = 1000
DEFAULT_STUBBORN_BUDGET_MS: Final[int] = 15000
DEFAULT_RECONCILE_DELAY_MS: Final[int] = 500
DEFAULT_EXISTING_RECONCILE_DELAY_MS: Final[int] = 5000
DEFAULT_DETAILS_MAX_RETRIES: Final[int] = 30
DEFAULT_DETAILS_RETRY_WAIT_MS: Final[int] = 1500
DEFAULT_DISAMBIGUATION_ROUNDS: Final[int] = 3
DEFAULT_TAB_ORDER_SETTLE_MS: Final[int] = 500


@dataclass(frozen=True, slots=True)
class AssociationConfig:
    """Holds every tunable constant of an association engine instance."""

    tick_interval_ms: int = DEFAULT_TICK_INTERVAL_MS
    stubborn_budget_ms: int = DEFAULT_STUBBORN_BUDGET_MS
    reconcile_delay_ms: int = DEFAULT_RECONCILE_DELAY_MS
    existing_reconcile_delay_ms: int = DEFAULT_EXISTING_RECONCILE_DELAY_MS
    details_max_retries: int = DEFAULT_DETAILS_MAX_RETRIES
    details_retry_wait_ms: int = DEFAULT_DETAILS_RETRY_WAIT_MS
    disambiguation_rounds: int = DEFAULT_DISAMBIGUATION_ROUNDS
    tab_order_settle_ms: int = DEFAULT_TAB_ORDER_SETTLE_MS

    @property
    def stubborn_threshold_ticks(self) -> int:
        """Ticks after which a silent tab is bound without its details.

        Derived from the budget so the wall-clock fallback delay does not
        change when the tick cadence does.
        """

        return max(1, self.stubborn_budget_ms // self.tick_interval_ms)


def get_association_config() -> AssociationConfig:
    return AssociationConfig(
        tick_interval_ms=optional_positive_int(
            "TABSYNC_TICK_INTERVAL_MS", DEFAULT_TICK_INTERVAL_MS
        ),
        stubborn_budget_ms=optional_positive_int(
            "TABSYNC_STUBBORN_BUDGET_MS", DEFAULT_STUBBORN_BUDGET_MS
        ),
        reconcile_delay_ms=optional_positive_int(
            "TABSYNC_RECONCILE_DELAY_MS", DEFAULT_RECONCILE_DELAY_MS
        ),
        existing_reconcile_delay_ms=optional_positive_int(
            "TABSYNC_EXISTING_RECONCILE_DELAY_MS", DEFAULT_EXISTING_RECONCILE_DELAY_MS
        ),
        details_max_retries=optional_positive_int(
            "TABSYNC_DETAILS_MAX_RETRIES", DEFAULT_DETAILS_MAX_RETRIES
        ),
        details_retry_wait_ms=optional_positive_int(
            "TABSYNC_DETAILS_RETRY_WAIT_MS", DEFAULT_DETAILS_RETRY_WAIT_MS
        ),
        disambiguation_rounds=optional_positive_int(
            "TABSYNC_DISAMBIGUATION_ROUNDS", DEFAULT_DISAMBIGUATION_ROUNDS
        ),
        tab_order_settle_ms=optional_positive_int(
            "TABSYNC_TAB_ORDER_SETTLE_MS", DEFAULT_TAB_ORDER_SETTLE_MS
        ),
    )
