"""Tabular and plain-text views of an optimizer Breakdown."""
from __future__ import annotations

from typing import List, Optional, Sequence

import pandas as pd

from .catalog import Catalog
from .optimizer import Breakdown

STRATEGY_COLUMNS = [
    "protect_from", "label", "expected_attempts", "total_time",
    "base_cost", "material_cost", "protection_cost",
    "protection_item_id", "protection_count", "total_cost",
]


def format_duration(total_seconds: float) -> str:
    """Approximate duration in the largest sensible unit."""
    if total_seconds < 60:
        return f"~{round(total_seconds)} seconds"
    if total_seconds < 3600:
        return f"~{round(total_seconds / 60)} minutes"
    if total_seconds < 86400:
        return f"~{total_seconds / 3600:.1f} hours"
    return f"~{total_seconds / 86400:.1f} days"


def strategies_frame(breakdown: Breakdown) -> pd.DataFrame:
    """One row per reported strategy, in reported (cheapest-first) order."""
    rows = [{col: getattr(s, col) for col in STRATEGY_COLUMNS} for s in breakdown.all_strategies]
    return pd.DataFrame(rows, columns=STRATEGY_COLUMNS)


def ladder_frame(
    final_costs: Sequence[float],
    traditional_costs: Optional[Sequence[float]] = None,
) -> pd.DataFrame:
    """Cost per level, optionally next to the pre-mirror ladder."""
    frame = pd.DataFrame({"level": range(len(final_costs)), "cost": list(final_costs)})
    if traditional_costs is not None:
        frame["traditional_cost"] = list(traditional_costs)
        frame["mirror_savings"] = frame["traditional_cost"] - frame["cost"]
    return frame.set_index("level")


def format_breakdown(breakdown: Breakdown, catalog: Optional[Catalog] = None) -> str:
    """Render the breakdown the way the enhancement tooltip reads."""
    optimal = breakdown.optimal_strategy
    lines: List[str] = [f"ENHANCEMENT PATH (+0 -> +{breakdown.target_level})"]
    lines.append(f"  Strategy: {optimal.label}")
    if optimal.used_mirror:
        lines.append(f"  Uses Philosopher's Mirror from +{optimal.mirror_start_level}")
    lines.append(f"  Expected Attempts: {optimal.expected_attempts:,.1f}")

    if optimal.used_mirror and optimal.consumed_items:
        lines.append("  Consumed Items (Philosopher's Mirror):")
        consumed = sorted(
            (c for c in optimal.consumed_items if c.quantity > 0),
            key=lambda c: -c.level,
        )
        for item in consumed:
            lines.append(
                f"    +{item.level}: {item.quantity} x {item.cost_each:,.0f} = {item.total_cost:,.0f}"
            )
        if optimal.philosopher_mirror_cost > 0:
            each = optimal.philosopher_mirror_cost / optimal.mirror_count
            lines.append(
                f"  Philosopher's Mirror: {optimal.philosopher_mirror_cost:,.0f} "
                f"({optimal.mirror_count}x @ {each:,.0f} each)"
            )
    else:
        lines.append(f"  Base Item: {optimal.base_cost:,.0f}")
        lines.append(f"  Materials: {optimal.material_cost:,.0f}")
        if optimal.protection_cost > 0:
            protection = f"  Protection: {optimal.protection_cost:,.0f}"
            if optimal.protection_count > 0:
                name = ""
                if optimal.protection_item_id:
                    name = " " + (catalog.item_name(optimal.protection_item_id)
                                  if catalog else optimal.protection_item_id)
                protection += f" ({optimal.protection_count:.1f}x{name})"
            lines.append(protection)

    lines.append(f"  Total: {optimal.total_cost:,.0f}")
    lines.append(f"  Time: {format_duration(optimal.total_time)}")
    return "\n".join(lines)
