#!/usr/bin/env python
"""CLI entry point for the enhancement cost optimizer."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .catalog import Catalog, CatalogError
from .config import ConfigError, load_config
from .market import MarketDataError, MarketSnapshot
from .optimizer import optimize
from .optimizer_logging import LogLevel
from .report import format_breakdown, ladder_frame, strategies_frame


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Find the cheapest way to enhance an item from +0 to a target level."
    )
    parser.add_argument("item", help="Item id, e.g. /items/cheese_sword")
    parser.add_argument("level", type=int, help="Target enhancement level (1-20)")
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="Path to config YAML (default: Enhancer/DefaultEnhancerConfig.yaml)",
    )
    parser.add_argument(
        "--catalog",
        type=Path,
        default=None,
        help="Game data JSON (default: Enhancer/data/game_data.json)",
    )
    parser.add_argument(
        "--market",
        type=Path,
        default=None,
        help="Market snapshot JSON (default: Enhancer/data/market_snapshot.json)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=[level.name for level in LogLevel],
        help="Override the config log level",
    )
    parser.add_argument(
        "--ladder",
        action="store_true",
        help="Also print the per-level cost ladder",
    )
    parser.add_argument(
        "--csv",
        type=Path,
        default=None,
        help="Write the reported strategies to this CSV file",
    )

    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
        catalog = Catalog.load(args.catalog)
        snapshot = MarketSnapshot.load(args.market)
    except (ConfigError, CatalogError, MarketDataError, FileNotFoundError) as exc:
        print(f"Could not load input data: {exc}", file=sys.stderr)
        return 1

    breakdown = optimize(
        args.item,
        args.level,
        config,
        catalog,
        snapshot,
        log_level=args.log_level,
    )
    if breakdown is None:
        print(f"No enhancement path for {args.item} +{args.level}", file=sys.stderr)
        return 1

    print(format_breakdown(breakdown, catalog))

    if args.ladder:
        print("\n--- Cost Ladder ---")
        frame = ladder_frame(breakdown.cost_ladder, breakdown.traditional_ladder)
        print(frame.to_string(float_format=lambda v: f"{v:,.0f}"))

    if args.csv:
        strategies_frame(breakdown).to_csv(args.csv, index=False)
        print(f"\nStrategies written to {args.csv}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
