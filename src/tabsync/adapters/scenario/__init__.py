"""Scenario-driven adapters for simulating a host session."""

from __future__ import annotations

from .loader import build_tree, dump_node, dump_tree, load_scenario, node_from_scenario
from .schema import Scenario, ScenarioNode, ScenarioTab
from .session import CONTROL_SURFACE_PREFIX, ScenarioSession
from .settings import InMemorySettings

__all__ = [
    "CONTROL_SURFACE_PREFIX",
    "InMemorySettings",
    "Scenario",
    "ScenarioNode",
    "ScenarioSession",
    "ScenarioTab",
    "build_tree",
    "dump_node",
    "dump_tree",
    "load_scenario",
    "node_from_scenario",
]
