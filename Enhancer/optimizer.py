"""Minimum-expected-cost enhancement path for an item, +0 to a target level."""
from __future__ import annotations

import copy
import time
from dataclasses import dataclass, field
from typing import List, Optional, Union

from .attempt_model import (
    MAX_ENHANCEMENT_LEVEL,
    AttemptModel,
    EnhancementParameters,
    MarkovAttemptModel,
)
from .cache import EnhancementCostCache, get_cost_cache
from .catalog import Catalog
from .config import EnhancerConfig, EnhancingSettings
from .ladder import CostLadder, CostLadderBuilder, LadderResult
from .market import MarketSnapshot, PriceResolver
from .mirror import ConsumedItem, MirrorOptimizer, MirrorPlan
from .optimizer_logging import LogLevel, OptimizerLogger, create_logger
from .strategy import Strategy, StrategyEvaluator


@dataclass
class OptimalStrategy:
    """The winning plan: a traditional strategy or a mirror-optimized one."""
    protect_from: int
    label: str
    expected_attempts: float
    total_time: float
    base_cost: float
    material_cost: float
    protection_cost: float
    protection_item_id: Optional[str]
    protection_count: float
    total_cost: float
    used_mirror: bool = False
    mirror_start_level: Optional[int] = None
    consumed_items: List[ConsumedItem] = field(default_factory=list)
    consumed_items_cost: float = 0.0
    philosopher_mirror_cost: float = 0.0
    mirror_count: int = 0
    traditional_cost: Optional[float] = None

    @classmethod
    def from_strategy(cls, strategy: Strategy) -> "OptimalStrategy":
        return cls(
            protect_from=strategy.protect_from,
            label=strategy.label,
            expected_attempts=strategy.expected_attempts,
            total_time=strategy.total_time,
            base_cost=strategy.base_cost,
            material_cost=strategy.material_cost,
            protection_cost=strategy.protection_cost,
            protection_item_id=strategy.protection_item_id,
            protection_count=strategy.protection_count,
            total_cost=strategy.total_cost,
            traditional_cost=strategy.total_cost,
        )


@dataclass
class Breakdown:
    """Result of one optimizer invocation. Never mutated after return."""
    target_level: int
    item_level: int
    optimal_strategy: OptimalStrategy
    all_strategies: List[Union[Strategy, OptimalStrategy]]
    cost_ladder: CostLadder
    traditional_ladder: CostLadder = field(default_factory=list)


class ResultAssembler:
    """Packages the ladder and mirror plan into a Breakdown."""

    @staticmethod
    def assemble(
        ladder: LadderResult,
        final_costs: CostLadder,
        plan: MirrorPlan,
        item_level: int,
    ) -> Breakdown:
        """
        Pick the overall winner for the top ladder level.

        Parameters
        ----------
        ladder : LadderResult
            Traditional ladder with per-level sorted strategies.
        final_costs : list[float]
            Ladder after the mirror pass (equal to ``ladder.costs`` when no
            mirror was used).
        plan : MirrorPlan
            Mirror pass outcome.
        item_level : int
            Catalog item level, reported as-is.
        """
        target_level = ladder.target_level
        traditional = ladder.strategies_by_level[target_level]
        best = traditional[0]

        if not plan.used_mirror:
            return Breakdown(
                target_level=target_level,
                item_level=item_level,
                optimal_strategy=OptimalStrategy.from_strategy(best),
                all_strategies=list(traditional),
                cost_ladder=list(final_costs),
                traditional_ladder=list(ladder.costs),
            )

        # Consumed copies already carry their own base, material and protection costs
        optimal = OptimalStrategy(
            protect_from=best.protect_from,
            label=best.label,
            expected_attempts=best.expected_attempts,
            total_time=best.total_time,
            base_cost=0.0,
            material_cost=0.0,
            protection_cost=0.0,
            protection_item_id=None,
            protection_count=0.0,
            total_cost=final_costs[target_level],
            used_mirror=True,
            mirror_start_level=plan.mirror_start_level,
            consumed_items=list(plan.consumed_items),
            consumed_items_cost=plan.consumed_items_cost,
            philosopher_mirror_cost=plan.philosopher_mirror_cost,
            mirror_count=plan.mirror_count,
            traditional_cost=best.total_cost,
        )
        return Breakdown(
            target_level=target_level,
            item_level=item_level,
            optimal_strategy=optimal,
            all_strategies=[optimal],
            cost_ladder=list(final_costs),
            traditional_ladder=list(ladder.costs),
        )


class EnhancementOptimizer:
    """
    Computes the cheapest way to own an item at a given enhancement level.

    Parameters
    ----------
    catalog : Catalog
        Static item and recipe data.
    prices : PriceResolver
        Realistic price lookups over the current market snapshot.
    attempt_model : AttemptModel, optional
        Defaults to ``MarkovAttemptModel``.
    logger : OptimizerLogger, optional
        Defaults to a silent logger.
    cache : EnhancementCostCache, optional
        Memoizes breakdowns by (item, level); invalidated on price changes.
        Callers always receive their own copy of a cached breakdown.
    """

    def __init__(
        self,
        catalog: Catalog,
        prices: PriceResolver,
        attempt_model: Optional[AttemptModel] = None,
        logger: Optional[OptimizerLogger] = None,
        cache: Optional[EnhancementCostCache] = None,
    ):
        self.catalog = catalog
        self.prices = prices
        self.logger = logger or create_logger(LogLevel.SILENT)
        self.evaluator = StrategyEvaluator(
            attempt_model or MarkovAttemptModel(), prices, self.logger
        )
        self.ladder_builder = CostLadderBuilder(self.evaluator)
        self.mirror_optimizer = MirrorOptimizer(self.logger)
        self.cache = cache

    def _validate_request(self, item_id: str, target_level: int) -> Optional[str]:
        if isinstance(target_level, bool) or not isinstance(target_level, int):
            return f"target level {target_level!r} is not an integer"
        if not 1 <= target_level <= MAX_ENHANCEMENT_LEVEL:
            return f"target level {target_level} outside 1-{MAX_ENHANCEMENT_LEVEL}"
        if not self.catalog.has_item(item_id):
            return "unknown item"
        if not self.catalog.is_enhanceable(item_id):
            return "item has no enhancement materials"
        return None

    def calculate_enhancement_path(
        self,
        item_id: str,
        target_level: int,
        settings: Optional[EnhancingSettings] = None,
    ) -> Optional[Breakdown]:
        """
        Optimize the path from +0 to ``target_level`` for ``item_id``.

        Returns
        -------
        Breakdown or None
            None for an invalid request or when some level cannot be priced.
        """
        reason = self._validate_request(item_id, target_level)
        if reason is not None:
            self.logger.log_input_invalid(item_id, reason)
            return None

        settings = settings or EnhancingSettings()
        if self.cache is not None:
            salt = f"{settings!r}|{self.prices.rules!r}"
            if self.cache.check_and_invalidate(self.prices.snapshot, salt=salt):
                self.logger.log_cache_event("invalidate", "market snapshot changed")
            cached = self.cache.get(item_id, target_level)
            if cached is not None:
                self.logger.log_cache_event("hit", f"{item_id} +{target_level}")
                return copy.deepcopy(cached)
            self.logger.log_cache_event("miss", f"{item_id} +{target_level}")

        item_level = self.catalog.item_level(item_id)
        self.logger.log_run_start(item_id, target_level, item_level)
        params = EnhancementParameters.from_settings(settings, item_level, target_level)

        ladder = self.ladder_builder.build(item_id, target_level, params)
        if ladder is None:
            return None

        final_costs = list(ladder.costs)
        mirror_price = self.prices.realistic_base_price(self.prices.rules.mirror_item_id)
        plan = self.mirror_optimizer.optimize(final_costs, mirror_price)
        if plan.used_mirror:
            self.logger.log_ladder(final_costs, title=f"Mirror-Optimized Ladder ({item_id})")

        breakdown = ResultAssembler.assemble(ladder, final_costs, plan, item_level)
        self.logger.log_result(item_id, breakdown)

        if self.cache is not None:
            self.cache.set(item_id, target_level, copy.deepcopy(breakdown))
        return breakdown

    def total_cost(
        self,
        item_id: str,
        enhancement_level: int,
        settings: Optional[EnhancingSettings] = None,
    ) -> Optional[float]:
        """Cost of owning ``item_id`` at ``enhancement_level`` (+0 is the base price)."""
        if enhancement_level == 0:
            return self.prices.realistic_base_price(item_id)
        breakdown = self.calculate_enhancement_path(item_id, enhancement_level, settings)
        if breakdown is None:
            return None
        return breakdown.optimal_strategy.total_cost


def optimize(
    item_id: str,
    target_level: int,
    config: EnhancerConfig,
    catalog: Catalog,
    snapshot: MarketSnapshot,
    attempt_model: Optional[AttemptModel] = None,
    logger: Optional[OptimizerLogger] = None,
    log_level: Union[LogLevel, str, int, None] = None,
    cache: Optional[EnhancementCostCache] = None,
) -> Optional[Breakdown]:
    """
    One-shot optimization from a loaded config, catalog and market snapshot.

    Parameters
    ----------
    item_id : str
        Item to optimize.
    target_level : int
        Desired enhancement level (1-20).
    config : EnhancerConfig
        Character setup and pricing rules.
    catalog : Catalog
        Static game data.
    snapshot : MarketSnapshot
        Current market prices.
    attempt_model : AttemptModel, optional
        Defaults to ``MarkovAttemptModel``.
    logger : OptimizerLogger, optional
        Pre-configured logger. If None, one is created based on log_level
        (falling back to ``config.log_level``).
    cache : EnhancementCostCache, optional
        Memoization cache. If None and ``config.cache.enabled``, the shared
        cache from ``get_cost_cache`` is used, sized by ``config.cache``.

    Returns
    -------
    Breakdown or None
    """
    start_time = time.perf_counter()
    if logger is None:
        logger = create_logger(level=log_level if log_level is not None else config.log_level)

    if cache is None and config.cache.enabled:
        cache = get_cost_cache(config.cache.max_size, config.cache.hash_sample_size)

    prices = PriceResolver(catalog, snapshot, config.pricing, logger)
    optimizer = EnhancementOptimizer(catalog, prices, attempt_model, logger, cache)
    breakdown = optimizer.calculate_enhancement_path(item_id, target_level, config.enhancing)

    elapsed_ms = (time.perf_counter() - start_time) * 1000
    logger.log_run_finished(elapsed_ms)
    return breakdown
