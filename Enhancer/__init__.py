"""Enhancer package: minimum-expected-cost enhancement path optimization."""
from .attempt_model import (
    AttemptModel,
    AttemptModelError,
    AttemptResult,
    EnhancementParameters,
    MarkovAttemptModel,
)
from .cache import EnhancementCostCache, clear_cost_cache, get_cost_cache, reset_cost_cache
from .catalog import Catalog, CatalogError
from .config import load_config, save_config, EnhancerConfig, EnhancingSettings, PricingRules
from .market import MarketDataError, MarketPrice, MarketSnapshot, PriceResolver
from .mirror import MirrorOptimizer, MirrorPlan, fib, mirror_fib
from .optimizer import Breakdown, EnhancementOptimizer, OptimalStrategy, ResultAssembler, optimize
from .optimizer_logging import LogLevel, OptimizerLogger, create_logger, create_string_logger
from .strategy import Strategy, StrategyEvaluator

__all__ = [
    "AttemptModel",
    "AttemptModelError",
    "AttemptResult",
    "EnhancementParameters",
    "MarkovAttemptModel",
    "EnhancementCostCache",
    "get_cost_cache",
    "clear_cost_cache",
    "reset_cost_cache",
    "Catalog",
    "CatalogError",
    "load_config",
    "save_config",
    "EnhancerConfig",
    "EnhancingSettings",
    "PricingRules",
    "MarketDataError",
    "MarketPrice",
    "MarketSnapshot",
    "PriceResolver",
    "MirrorOptimizer",
    "MirrorPlan",
    "fib",
    "mirror_fib",
    "Breakdown",
    "EnhancementOptimizer",
    "OptimalStrategy",
    "ResultAssembler",
    "optimize",
    "LogLevel",
    "OptimizerLogger",
    "create_logger",
    "create_string_logger",
    "Strategy",
    "StrategyEvaluator",
]
