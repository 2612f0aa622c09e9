"""Shared fixtures: a small in-memory catalog and a scripted attempt model."""
from __future__ import annotations

from typing import Callable, Dict, List, Optional, Tuple

import pytest

from Enhancer.attempt_model import AttemptModelError, AttemptResult, EnhancementParameters
from Enhancer.cache import reset_cost_cache
from Enhancer.catalog import Catalog
from Enhancer.market import MarketPrice, MarketSnapshot

SWORD = "/items/test_sword"


class ScriptedAttemptModel:
    """
    Attempt model returning canned results keyed by (target, protect_from).

    A value may be an AttemptResult, None, or an exception instance to raise.
    Keys not in ``results`` go to ``default`` if given, else raise
    AttemptModelError.
    """

    def __init__(self, results: Optional[Dict[Tuple[int, int], object]] = None,
                 default: Optional[Callable[[int, int], object]] = None):
        self.results = dict(results or {})
        self.default = default
        self.calls: List[Tuple[int, int]] = []

    def compute(self, params: EnhancementParameters):
        key = (params.target_level, params.protect_from)
        self.calls.append(key)
        if key in self.results:
            value = self.results[key]
        elif self.default is not None:
            value = self.default(*key)
        else:
            raise AttemptModelError(f"no scripted result for {key}")
        if isinstance(value, Exception):
            raise value
        return value


def linear_attempts(target: int, protect_from: int):
    """Never-protect only: two attempts per level, 12s each."""
    if protect_from != 0:
        raise AttemptModelError("protection not scripted")
    return AttemptResult(expected_attempts=2.0 * target,
                         total_time=24.0 * target,
                         expected_protection_uses=0.0)


def doubling_attempts(target: int, protect_from: int):
    """Never-protect only: 10 * 2^target attempts, steep enough for mirrors to win."""
    if protect_from != 0:
        raise AttemptModelError("protection not scripted")
    attempts = 10.0 * 2 ** target
    return AttemptResult(expected_attempts=attempts,
                         total_time=12.0 * attempts,
                         expected_protection_uses=0.0)


def make_snapshot(prices: Dict[str, Tuple[float, float]]) -> MarketSnapshot:
    return MarketSnapshot({item_id: MarketPrice(ask, bid) for item_id, (ask, bid) in prices.items()})


@pytest.fixture(autouse=True)
def fresh_shared_cache():
    """optimize() memoizes in a process-wide cache; start each test empty."""
    reset_cost_cache()
    yield
    reset_cost_cache()


@pytest.fixture
def sword_catalog() -> Catalog:
    """One enhanceable sword costing 100 coins per attempt, plus a plain material."""
    return Catalog.from_dict({
        "itemDetailMap": {
            "/items/coin": {"name": "Coin", "sellPrice": 1},
            "/items/stick": {"name": "Stick", "sellPrice": 2},
            SWORD: {
                "name": "Test Sword",
                "itemLevel": 1,
                "enhancementCosts": [{"itemHrid": "/items/coin", "count": 100}],
            },
        },
        "actionDetailMap": {},
    })


@pytest.fixture
def sword_params() -> EnhancementParameters:
    return EnhancementParameters(
        enhancing_level=100.0,
        house_level=0,
        tool_bonus=0.0,
        speed_bonus=0.0,
        item_level=1,
        target_level=1,
    )


@pytest.fixture
def sword_market() -> MarketSnapshot:
    """Sword at 1000 ask only, universal protection at 50, no mirror listed."""
    return make_snapshot({
        SWORD: (1000.0, 0.0),
        "/items/mirror_of_protection": (50.0, 0.0),
    })
