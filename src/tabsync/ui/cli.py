#!/usr/bin/env python3

# ruff: noqa: T201

from __future__ import annotations

import argparse
import json
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv
from pydantic import ValidationError

from tabsync.adapters.scenario import dump_tree
from tabsync.app import DEFAULT_SETTLE_SECONDS, simulate_scenario_file
from tabsync.config import ConfigurationError, configure_logging, get_association_config

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from tabsync.app import SimulationResult


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Associate live tabs with a persisted page tree")
    subparsers = parser.add_subparsers(dest="command", required=True)

    simulate = subparsers.add_parser(
        "simulate", help="Run association and reconciliation over a scenario file"
    )
    simulate.add_argument("scenario", type=str, help="Path to a JSON scenario file")
    simulate.add_argument(
        "--settle-seconds",
        type=float,
        default=DEFAULT_SETTLE_SECONDS,
        help="Give up if the engine is still busy after this long (default: %(default)s)",
    )
    simulate.add_argument(
        "--verbose",
        action="store_true",
        help="Log every association decision",
    )
    return parser.parse_args(list(argv))


def _print_result(result: SimulationResult) -> None:
    report = result.report
    print(json.dumps(dump_tree(result.tree), indent=2))
    print(
        f"windows associated: {report.windows_associated}, merged: {report.windows_merged}, "
        f"swaps: {report.swaps}, moves: {report.moves}, repairs: {report.repairs}, "
        f"removed: {report.removals}, unresolved: {len(report.unresolved)}"
    )


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    parsed_args: argparse.Namespace
    try:
        parsed_args = _parse_args(argv if argv is not None else sys.argv[1:])
        configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)
        config = get_association_config()
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)

    try:
        result = simulate_scenario_file(
            parsed_args.scenario,
            config=config,
            settle_seconds=parsed_args.settle_seconds,
        )
    except (ValidationError, FileNotFoundError) as exc:
        print(f"Invalid scenario: {exc}", file=sys.stderr)
        sys.exit(2)
    except Exception as e:  # noqa: BLE001
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    _print_result(result)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    print("\nClosed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
