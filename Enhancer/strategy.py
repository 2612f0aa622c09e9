"""Price every protection strategy for reaching one enhancement level."""
from __future__ import annotations

import math
import numbers
from dataclasses import dataclass
from typing import List, Optional

from .attempt_model import AttemptModel, EnhancementParameters
from .market import PriceResolver
from .optimizer_logging import LogLevel, OptimizerLogger, create_logger

# Protection can only matter once there is a level to fall back to
MIN_PROTECT_FROM = 2


@dataclass
class Strategy:
    """One candidate plan for reaching a single target level."""
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


def strategy_label(protect_from: int) -> str:
    return "Never" if protect_from == 0 else f"From +{protect_from}"


def protection_thresholds(target_level: int) -> List[int]:
    """``0`` (never protect) followed by every threshold from 2 to the target."""
    return [0] + list(range(MIN_PROTECT_FROM, target_level + 1))


def _invalid_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return True
    return not math.isfinite(value) or value < 0


def validate_attempt_result(result) -> Optional[str]:
    """Return a reason string if ``result`` is unusable, else None."""
    if result is None:
        return "attempt model returned nothing"
    for name in ("expected_attempts", "total_time", "expected_protection_uses"):
        value = getattr(result, name, None)
        if _invalid_number(value):
            return f"invalid {name} {value!r}"
    return None


class StrategyEvaluator:
    """
    Combines an attempt model with a price resolver to cost strategies.

    A strategy whose attempt model call raises (any exception) or returns
    malformed numbers is dropped (logged once per logger), never priced at zero.
    """

    def __init__(
        self,
        attempt_model: AttemptModel,
        prices: PriceResolver,
        logger: Optional[OptimizerLogger] = None,
    ):
        self.attempt_model = attempt_model
        self.prices = prices
        self.logger = logger or create_logger(LogLevel.SILENT)

    def evaluate(
        self,
        item_id: str,
        target_level: int,
        protect_from: int,
        params: EnhancementParameters,
    ) -> Optional[Strategy]:
        """
        Cost one ``protect_from`` strategy for reaching ``target_level``.

        Parameters
        ----------
        item_id : str
            Item being enhanced.
        target_level : int
            Level to reach from +0.
        protect_from : int
            0 for never, else the level from which protection is consumed.
        params : EnhancementParameters
            Character setup; target and threshold are overridden.

        Returns
        -------
        Strategy or None
            None when the attempt model fails for this strategy.
        """
        strategy_params = params.with_strategy(target_level, protect_from)
        try:
            result = self.attempt_model.compute(strategy_params)
        except Exception as exc:
            self.logger.log_strategy_failure(
                item_id, target_level, protect_from, f"{type(exc).__name__}: {exc}"
            )
            return None

        reason = validate_attempt_result(result)
        if reason is not None:
            self.logger.log_strategy_failure(item_id, target_level, protect_from, reason)
            return None

        attempts = float(result.expected_attempts)
        material_cost = self.prices.per_action_material_cost(item_id) * attempts

        protection_cost = 0.0
        protection_item_id: Optional[str] = None
        protection_count = 0.0
        if protect_from > 0 and result.expected_protection_uses > 0:
            unit_price, cheapest_id = self.prices.cheapest_protection(item_id)
            if unit_price > 0:
                protection_count = float(result.expected_protection_uses)
                protection_cost = unit_price * protection_count
                protection_item_id = cheapest_id

        base_cost = self.prices.realistic_base_price(item_id)

        strategy = Strategy(
            protect_from=protect_from,
            label=strategy_label(protect_from),
            expected_attempts=attempts,
            total_time=float(result.total_time),
            base_cost=base_cost,
            material_cost=material_cost,
            protection_cost=protection_cost,
            protection_item_id=protection_item_id,
            protection_count=protection_count,
            total_cost=base_cost + material_cost + protection_cost,
        )
        self.logger.log_strategy(target_level, strategy)
        return strategy

    def enumerate_strategies(
        self,
        item_id: str,
        target_level: int,
        params: EnhancementParameters,
    ) -> List[Strategy]:
        """All successfully evaluated strategies, cheapest first (stable)."""
        strategies = []
        for protect_from in protection_thresholds(target_level):
            strategy = self.evaluate(item_id, target_level, protect_from, params)
            if strategy is not None:
                strategies.append(strategy)
        strategies.sort(key=lambda s: s.total_cost)
        return strategies
