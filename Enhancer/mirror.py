"""Duplication ("philosopher's mirror") optimization over a cost ladder.

A mirror fuses a +(L-2) and a +(L-1) copy into one +L copy. Once that is
cheaper than enhancing to some level, every higher level is built the same
way, so costs follow ``cost[L] = cost[L-2] + cost[L-1] + mirror_price`` and
the number of leaf copies consumed follows Fibonacci-shaped counts.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, MutableSequence, Optional

from .optimizer_logging import LogLevel, OptimizerLogger, create_logger

# First level with two lower non-trivial levels to fuse
MIRROR_MIN_LEVEL = 3


@lru_cache(maxsize=None)
def fib(n: int) -> int:
    """fib(0) = fib(1) = 1, fib(k) = fib(k-1) + fib(k-2)."""
    if n < 0:
        raise ValueError(f"fib is undefined for negative n ({n})")
    previous, current = 1, 1
    for _ in range(n - 1):
        previous, current = current, previous + current
    return current


@lru_cache(maxsize=None)
def mirror_fib(n: int) -> int:
    """mirror_fib(0) = 1, mirror_fib(1) = 2, mirror_fib(k) = mirror_fib(k-1) + mirror_fib(k-2) + 1."""
    if n < 0:
        raise ValueError(f"mirror_fib is undefined for negative n ({n})")
    if n == 0:
        return 1
    previous, current = 1, 2
    for _ in range(n - 1):
        previous, current = current, previous + current + 1
    return current


@dataclass
class ConsumedItem:
    level: int
    quantity: int
    cost_each: float
    total_cost: float


@dataclass
class MirrorPlan:
    """Outcome of the mirror pass. ``mirror_start_level`` None means no mirrors."""
    mirror_start_level: Optional[int] = None
    consumed_items: List[ConsumedItem] = field(default_factory=list)
    mirror_count: int = 0
    philosopher_mirror_cost: float = 0.0

    @property
    def used_mirror(self) -> bool:
        return self.mirror_start_level is not None

    @property
    def consumed_items_cost(self) -> float:
        return sum(item.total_cost for item in self.consumed_items)

    @property
    def total_cost(self) -> float:
        return self.consumed_items_cost + self.philosopher_mirror_cost

    def reconciles(self, ladder, rel_tol: float = 1e-6) -> bool:
        """True when consumed items plus mirrors add up to the final ladder entry."""
        if not self.used_mirror:
            return True
        return math.isclose(self.total_cost, ladder[-1], rel_tol=rel_tol)


class MirrorOptimizer:
    """Applies the mirror recurrence to a ladder and derives quantities."""

    def __init__(self, logger: Optional[OptimizerLogger] = None):
        self.logger = logger or create_logger(LogLevel.SILENT)

    def optimize(self, ladder: MutableSequence[float], mirror_price: float) -> MirrorPlan:
        """
        Rewrite ``ladder`` in place from the first level where fusing wins.

        Parameters
        ----------
        ladder : list[float]
            Minimum cost per level, index = level. Entries at and above the
            mirror start level are overwritten; each index is written once.
        mirror_price : float
            Price of one mirror. Non-positive prices skip the pass.

        Returns
        -------
        MirrorPlan
            Start level, consumed copies and mirror count for the top level.
        """
        if not mirror_price > 0:
            self.logger.log_mirror_skipped(mirror_price)
            return MirrorPlan()

        target_level = len(ladder) - 1
        mirror_start_level: Optional[int] = None

        for level in range(MIRROR_MIN_LEVEL, target_level + 1):
            candidate = ladder[level - 2] + ladder[level - 1] + mirror_price
            if mirror_start_level is None:
                if not candidate < ladder[level]:
                    continue
                mirror_start_level = level
                self.logger.log_mirror_trigger(level, candidate, ladder[level])
            ladder[level] = candidate

        if mirror_start_level is None:
            return MirrorPlan()

        plan = self.build_plan(ladder, mirror_start_level, mirror_price)
        self.logger.log_mirror_plan(plan)
        return plan

    @staticmethod
    def build_plan(ladder, mirror_start_level: int, mirror_price: float) -> MirrorPlan:
        """Quantities of +(start-2) and +(start-1) copies and mirrors for the top level."""
        target_level = len(ladder) - 1
        n = target_level - mirror_start_level

        lower_level = mirror_start_level - 2
        upper_level = mirror_start_level - 1
        lower_quantity = fib(n)
        upper_quantity = fib(n + 1)
        mirror_count = mirror_fib(n)

        consumed = [
            ConsumedItem(
                level=lower_level,
                quantity=lower_quantity,
                cost_each=ladder[lower_level],
                total_cost=lower_quantity * ladder[lower_level],
            ),
            ConsumedItem(
                level=upper_level,
                quantity=upper_quantity,
                cost_each=ladder[upper_level],
                total_cost=upper_quantity * ladder[upper_level],
            ),
        ]
        return MirrorPlan(
            mirror_start_level=mirror_start_level,
            consumed_items=consumed,
            mirror_count=mirror_count,
            philosopher_mirror_cost=mirror_count * mirror_price,
        )
