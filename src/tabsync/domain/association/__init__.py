"""Tab-to-page association engine."""

from __future__ import annotations

from .disambiguate import DisambiguationResult, Disambiguator
from .engine import AssociationEngine
from .existing import ExistingPageAssociator
from .matching import MatchCriteria, Matcher
from .merge import WindowMerger, WindowMergeResult
from .reconcile import (
    ReconcilePipeline,
    Reconciler,
    ReconcileReport,
    ReconcileStage,
)
from .restore import PageRestorer
from .runs import AssociationRun, AssociationRunCoordinator
from .stubborn import StubbornTabTracker
from .timers import TimerNotFoundError, TimerRegistry
from .windows import WindowAssociationResult, WindowAssociator

__all__ = [
    "AssociationEngine",
    "AssociationRun",
    "AssociationRunCoordinator",
    "DisambiguationResult",
    "Disambiguator",
    "ExistingPageAssociator",
    "MatchCriteria",
    "Matcher",
    "PageRestorer",
    "ReconcilePipeline",
    "ReconcileReport",
    "ReconcileStage",
    "Reconciler",
    "StubbornTabTracker",
    "TimerNotFoundError",
    "TimerRegistry",
    "WindowAssociationResult",
    "WindowAssociator",
    "WindowMergeResult",
    "WindowMerger",
]
