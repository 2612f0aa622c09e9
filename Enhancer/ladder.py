"""Per-level minimum cost ladder ("mixed strategy" ladder)."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .attempt_model import EnhancementParameters
from .strategy import Strategy, StrategyEvaluator

CostLadder = List[float]


@dataclass
class LadderResult:
    """Cost ladder plus the sorted strategies priced at each level."""
    costs: CostLadder
    strategies_by_level: Dict[int, List[Strategy]] = field(default_factory=dict)

    @property
    def target_level(self) -> int:
        return len(self.costs) - 1

    def best_strategy(self, level: int) -> Strategy:
        return self.strategies_by_level[level][0]


class CostLadderBuilder:
    """
    Builds the minimum cost of owning the item at each level 0..target.

    Each level picks its own cheapest protection threshold independently,
    so the ladder is never above any single fixed-threshold ladder.
    """

    def __init__(self, evaluator: StrategyEvaluator):
        self.evaluator = evaluator

    def build(
        self,
        item_id: str,
        target_level: int,
        params: EnhancementParameters,
    ) -> Optional[LadderResult]:
        """
        Return the ladder for ``item_id`` up to ``target_level``.

        Returns None as soon as a level has no successfully priced strategy;
        a zero entry would corrupt the mirror recurrence.
        """
        prices = self.evaluator.prices
        logger = self.evaluator.logger

        costs: CostLadder = [prices.realistic_base_price(item_id)]
        strategies_by_level: Dict[int, List[Strategy]] = {}

        for level in range(1, target_level + 1):
            strategies = self.evaluator.enumerate_strategies(item_id, level, params)
            if not strategies:
                logger.log_level_failure(item_id, level)
                return None
            strategies_by_level[level] = strategies
            costs.append(min(s.total_cost for s in strategies))

        logger.log_ladder(costs, title=f"Cost Ladder ({item_id})")
        return LadderResult(costs=costs, strategies_by_level=strategies_by_level)
