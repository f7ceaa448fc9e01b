from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from tabsync.ui import cli as cli_module

if TYPE_CHECKING:
    from pathlib import Path

FAST_ENV = {
    "TABSYNC_TICK_INTERVAL_MS": "5",
    "TABSYNC_STUBBORN_BUDGET_MS": "25",
    "TABSYNC_RECONCILE_DELAY_MS": "10",
    "TABSYNC_EXISTING_RECONCILE_DELAY_MS": "10",
    "TABSYNC_DETAILS_RETRY_WAIT_MS": "5",
    "TABSYNC_TAB_ORDER_SETTLE_MS": "5",
}

SCENARIO = {
    "tree": [
        {
            "kind": "window",
            "children": [
                {"kind": "page", "url": "https://example.com/a", "index": 0},
                {"kind": "page", "url": "https://example.com/b", "index": 1},
            ],
        }
    ],
    "tabs": [
        {"id": 10, "window_id": 3, "index": 0, "url": "https://example.com/a"},
        {"id": 11, "window_id": 3, "index": 1, "url": "https://example.com/b"},
    ],
}


@pytest.fixture
def fast_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name, value in FAST_ENV.items():
        monkeypatch.setenv(name, value)


@pytest.fixture
def scenario_file(tmp_path: Path) -> Path:
    path = tmp_path / "scenario.json"
    path.write_text(json.dumps(SCENARIO), encoding="utf-8")
    return path


@pytest.mark.usefixtures("fast_env")
def test_cli_simulate_prints_tree_and_counters(
    scenario_file: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    cli_module.main(["simulate", str(scenario_file), "--settle-seconds", "5"])

    *tree_lines, counters = capsys.readouterr().out.strip().splitlines()
    assert counters.startswith("windows associated: ")
    assert "unresolved: 0" in counters
    dumped = json.loads("\n".join(tree_lines))
    assert dumped[0]["live_id"] == 3
    assert [child["live_id"] for child in dumped[0]["children"]] == [10, 11]


@pytest.mark.usefixtures("fast_env")
def test_cli_invalid_scenario_exits_2(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    path = tmp_path / "broken.json"
    path.write_text(json.dumps({"tree": [{"kind": "page"}]}), encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(["simulate", str(path)])

    assert excinfo.value.code == 2
    assert "Invalid scenario" in capsys.readouterr().err


@pytest.mark.usefixtures("fast_env")
def test_cli_missing_scenario_exits_2(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(["simulate", str(tmp_path / "missing.json")])

    assert excinfo.value.code == 2


def test_cli_bad_configuration_exits_2(
    scenario_file: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("TABSYNC_TICK_INTERVAL_MS", "soon")

    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(["simulate", str(scenario_file)])

    assert excinfo.value.code == 2
    assert "TABSYNC_TICK_INTERVAL_MS must be an integer" in capsys.readouterr().err


def test_cli_unexpected_failure_exits_1(
    scenario_file: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    def fail(*_: object, **__: object) -> None:
        raise RuntimeError("host went away")

    monkeypatch.setattr(cli_module, "simulate_scenario_file", fail)

    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(["simulate", str(scenario_file)])

    assert excinfo.value.code == 1


def test_cli_requires_a_command() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli_module.main([])

    assert excinfo.value.code == 2
