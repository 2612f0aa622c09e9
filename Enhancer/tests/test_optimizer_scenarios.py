"""End-to-end scenarios for the enhancement optimizer.

These scenarios run the full pipeline (strategies, ladder, mirror pass,
assembly) against scripted attempt models so every expected number can be
worked out by hand, plus a smoke run over the bundled sample data.
"""
from __future__ import annotations

import pytest

from conftest import (
    SWORD,
    ScriptedAttemptModel,
    doubling_attempts,
    linear_attempts,
    make_snapshot,
)
from Enhancer import (
    Catalog,
    EnhancementCostCache,
    EnhancementOptimizer,
    EnhancerConfig,
    LogLevel,
    MarkovAttemptModel,
    MarketSnapshot,
    PriceResolver,
    create_string_logger,
    get_cost_cache,
    load_config,
    optimize,
)
from Enhancer.attempt_model import AttemptResult
from Enhancer.config import CacheSettings


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def tradeoff_model() -> ScriptedAttemptModel:
    """Two attempts per level, except +5 where protecting from +2 pays off."""
    return ScriptedAttemptModel(
        {
            (5, 0): AttemptResult(10.0, 120.0, 0.0),
            (5, 2): AttemptResult(8.0, 96.0, 3.0),
        },
        default=linear_attempts,
    )


@pytest.fixture
def mirror_market() -> MarketSnapshot:
    return make_snapshot({
        SWORD: (1000.0, 0.0),
        "/items/mirror_of_protection": (50.0, 0.0),
        "/items/philosophers_mirror": (500.0, 0.0),
    })


def make_optimizer(catalog, market, model, logger=None, cache=None) -> EnhancementOptimizer:
    return EnhancementOptimizer(catalog, PriceResolver(catalog, market), model, logger, cache)


# ---------------------------------------------------------------------------
# Scenario 1: traditional enhancement
# ---------------------------------------------------------------------------

class TestTraditionalPath:
    """Without a priced mirror the cheapest protection strategy wins."""

    def test_protection_strategy_selected(self, sword_catalog, sword_market, tradeoff_model):
        breakdown = make_optimizer(sword_catalog, sword_market, tradeoff_model) \
            .calculate_enhancement_path(SWORD, 5)

        optimal = breakdown.optimal_strategy
        assert optimal.label == "From +2"
        assert optimal.total_cost == 1950.0
        assert optimal.protection_cost == 150.0
        assert not optimal.used_mirror
        assert optimal.traditional_cost == 1950.0

    def test_all_strategies_sorted(self, sword_catalog, sword_market, tradeoff_model):
        breakdown = make_optimizer(sword_catalog, sword_market, tradeoff_model) \
            .calculate_enhancement_path(SWORD, 5)

        assert [s.total_cost for s in breakdown.all_strategies] == [1950.0, 2000.0]
        assert breakdown.all_strategies[0].total_cost == breakdown.optimal_strategy.total_cost

    def test_ladder(self, sword_catalog, sword_market, tradeoff_model):
        breakdown = make_optimizer(sword_catalog, sword_market, tradeoff_model) \
            .calculate_enhancement_path(SWORD, 5)

        assert breakdown.target_level == 5
        assert breakdown.item_level == 1
        assert breakdown.cost_ladder == [1000.0, 1200.0, 1400.0, 1600.0, 1800.0, 1950.0]
        assert breakdown.traditional_ladder == breakdown.cost_ladder

    def test_expensive_mirror_ignored(self, sword_catalog, tradeoff_model):
        market = make_snapshot({
            SWORD: (1000.0, 0.0),
            "/items/mirror_of_protection": (50.0, 0.0),
            "/items/philosophers_mirror": (1e9, 0.0),
        })
        breakdown = make_optimizer(sword_catalog, market, tradeoff_model) \
            .calculate_enhancement_path(SWORD, 5)

        assert not breakdown.optimal_strategy.used_mirror
        assert breakdown.optimal_strategy.total_cost == 1950.0


# ---------------------------------------------------------------------------
# Scenario 2: mirror duplication
# ---------------------------------------------------------------------------

class TestMirrorPath:
    """Doubling attempt counts make fusing lower copies cheaper from +3.

    Traditional ladder: 1000 + 1000 * 2^L = 2000, 3000, 5000, 9000, 17000, 33000.
    With a 500 mirror: +3 = 8500, +4 = 14000, +5 = 23000.
    """

    @pytest.fixture
    def breakdown(self, sword_catalog, mirror_market):
        model = ScriptedAttemptModel(default=doubling_attempts)
        return make_optimizer(sword_catalog, mirror_market, model) \
            .calculate_enhancement_path(SWORD, 5)

    def test_mirror_used(self, breakdown):
        optimal = breakdown.optimal_strategy
        assert optimal.used_mirror
        assert optimal.mirror_start_level == 3
        assert optimal.total_cost == 23000.0
        assert optimal.traditional_cost == 33000.0

    def test_direct_costs_zeroed(self, breakdown):
        optimal = breakdown.optimal_strategy
        assert optimal.base_cost == 0.0
        assert optimal.material_cost == 0.0
        assert optimal.protection_cost == 0.0

    def test_single_reported_strategy(self, breakdown):
        assert breakdown.all_strategies == [breakdown.optimal_strategy]

    def test_consumption(self, breakdown):
        optimal = breakdown.optimal_strategy
        assert [(c.level, c.quantity, c.total_cost) for c in optimal.consumed_items] == [
            (1, 2, 6000.0),
            (2, 3, 15000.0),
        ]
        assert optimal.mirror_count == 4
        assert optimal.philosopher_mirror_cost == 2000.0

    def test_reconciles_with_ladder(self, breakdown):
        optimal = breakdown.optimal_strategy
        assert optimal.consumed_items_cost + optimal.philosopher_mirror_cost == pytest.approx(
            breakdown.cost_ladder[5]
        )

    def test_both_ladders_reported(self, breakdown):
        assert breakdown.cost_ladder == [1000.0, 3000.0, 5000.0, 8500.0, 14000.0, 23000.0]
        assert breakdown.traditional_ladder == [1000.0, 3000.0, 5000.0, 9000.0, 17000.0, 33000.0]

    def test_below_start_level_stays_traditional(self, sword_catalog, mirror_market):
        model = ScriptedAttemptModel(default=doubling_attempts)
        breakdown = make_optimizer(sword_catalog, mirror_market, model) \
            .calculate_enhancement_path(SWORD, 2)

        assert not breakdown.optimal_strategy.used_mirror
        assert breakdown.optimal_strategy.total_cost == 5000.0


# ---------------------------------------------------------------------------
# Scenario 3: failures
# ---------------------------------------------------------------------------

class TestFailures:

    @pytest.mark.parametrize("item_id, level", [
        (SWORD, 0),
        (SWORD, 21),
        (SWORD, -3),
        (SWORD, "5"),
        (SWORD, True),
        ("/items/nonexistent", 5),
        ("/items/stick", 5),
    ])
    def test_invalid_request(self, sword_catalog, sword_market, item_id, level):
        model = ScriptedAttemptModel(default=linear_attempts)
        logger, buffer = create_string_logger(LogLevel.MINIMAL)
        optimizer = make_optimizer(sword_catalog, sword_market, model, logger)

        assert optimizer.calculate_enhancement_path(item_id, level) is None
        assert model.calls == []
        assert "Skipping" in buffer.getvalue()

    def test_attempt_model_always_failing(self, sword_catalog, sword_market):
        optimizer = make_optimizer(sword_catalog, sword_market, ScriptedAttemptModel())
        assert optimizer.calculate_enhancement_path(SWORD, 5) is None

    def test_failure_at_one_level(self, sword_catalog, sword_market):
        def attempts(target, protect_from):
            if target == 4:
                return None
            return linear_attempts(target, protect_from)

        optimizer = make_optimizer(sword_catalog, sword_market, ScriptedAttemptModel(default=attempts))
        assert optimizer.calculate_enhancement_path(SWORD, 3) is not None
        assert optimizer.calculate_enhancement_path(SWORD, 5) is None

    def test_unexpected_model_error_drops_one_strategy(self, sword_catalog, sword_market):
        model = ScriptedAttemptModel({(3, 2): RuntimeError("solver crashed")},
                                     default=linear_attempts)
        logger, buffer = create_string_logger(LogLevel.MINIMAL)
        breakdown = make_optimizer(sword_catalog, sword_market, model, logger) \
            .calculate_enhancement_path(SWORD, 3)

        assert breakdown is not None
        assert breakdown.optimal_strategy.protect_from == 0
        assert breakdown.optimal_strategy.total_cost == 1600.0
        assert "RuntimeError" in buffer.getvalue()


# ---------------------------------------------------------------------------
# Scenario 4: total cost and caching
# ---------------------------------------------------------------------------

class TestTotalCost:

    def test_level_zero_is_base_price(self, sword_catalog, sword_market, tradeoff_model):
        optimizer = make_optimizer(sword_catalog, sword_market, tradeoff_model)
        assert optimizer.total_cost(SWORD, 0) == 1000.0
        assert tradeoff_model.calls == []

    def test_enhanced_level(self, sword_catalog, sword_market, tradeoff_model):
        optimizer = make_optimizer(sword_catalog, sword_market, tradeoff_model)
        assert optimizer.total_cost(SWORD, 5) == 1950.0

    def test_unpriceable(self, sword_catalog, sword_market):
        optimizer = make_optimizer(sword_catalog, sword_market, ScriptedAttemptModel())
        assert optimizer.total_cost(SWORD, 5) is None


class TestCaching:

    def test_repeat_request_served_from_cache(self, sword_catalog, sword_market, tradeoff_model):
        cache = EnhancementCostCache()
        optimizer = make_optimizer(sword_catalog, sword_market, tradeoff_model, cache=cache)

        first = optimizer.calculate_enhancement_path(SWORD, 5)
        calls = len(tradeoff_model.calls)
        second = optimizer.calculate_enhancement_path(SWORD, 5)

        assert second is not first
        assert second == first
        assert len(tradeoff_model.calls) == calls
        assert cache.stats().hits == 1

    def test_mutating_result_leaves_cache_intact(self, sword_catalog, sword_market, tradeoff_model):
        optimizer = make_optimizer(sword_catalog, sword_market, tradeoff_model,
                                   cache=EnhancementCostCache())

        first = optimizer.calculate_enhancement_path(SWORD, 5)
        first.cost_ladder[5] = 0.0
        first.all_strategies.clear()
        first.optimal_strategy.total_cost = -1.0

        second = optimizer.calculate_enhancement_path(SWORD, 5)
        assert second.cost_ladder[5] == 1950.0
        assert [s.total_cost for s in second.all_strategies] == [1950.0, 2000.0]
        assert second.optimal_strategy.total_cost == 1950.0

        second.cost_ladder.append(1.0)
        third = optimizer.calculate_enhancement_path(SWORD, 5)
        assert len(third.cost_ladder) == 6

    def test_price_change_invalidates(self, sword_catalog, sword_market, tradeoff_model):
        cache = EnhancementCostCache()
        make_optimizer(sword_catalog, sword_market, tradeoff_model, cache=cache) \
            .calculate_enhancement_path(SWORD, 5)

        cheaper = make_snapshot({
            SWORD: (900.0, 0.0),
            "/items/mirror_of_protection": (50.0, 0.0),
        })
        breakdown = make_optimizer(sword_catalog, cheaper, tradeoff_model, cache=cache) \
            .calculate_enhancement_path(SWORD, 5)

        assert breakdown.optimal_strategy.total_cost == 1850.0

    def test_failures_not_cached(self, sword_catalog, sword_market):
        cache = EnhancementCostCache()
        optimizer = make_optimizer(sword_catalog, sword_market, ScriptedAttemptModel(), cache=cache)

        assert optimizer.calculate_enhancement_path(SWORD, 5) is None
        assert len(cache) == 0


class TestConfiguredCache:
    """optimize() memoizes through the shared cache when the config enables it."""

    def test_repeat_optimize_reuses_results(self, sword_catalog, sword_market, tradeoff_model):
        config = EnhancerConfig(cache=CacheSettings(enabled=True, max_size=5))

        first = optimize(SWORD, 5, config, sword_catalog, sword_market, attempt_model=tradeoff_model)
        calls = len(tradeoff_model.calls)
        second = optimize(SWORD, 5, config, sword_catalog, sword_market, attempt_model=tradeoff_model)

        assert calls > 0
        assert len(tradeoff_model.calls) == calls
        assert second == first
        assert get_cost_cache().stats().hits == 1

    def test_shared_cache_sized_from_config(self, sword_catalog, sword_market, tradeoff_model):
        config = EnhancerConfig(cache=CacheSettings(enabled=True, max_size=5, hash_sample_size=3))
        optimize(SWORD, 5, config, sword_catalog, sword_market, attempt_model=tradeoff_model)

        stats = get_cost_cache().stats()
        assert stats.max_size == 5
        assert stats.size == 1

    def test_disabled_cache_recomputes(self, sword_catalog, sword_market, tradeoff_model):
        config = EnhancerConfig(cache=CacheSettings(enabled=False))

        optimize(SWORD, 5, config, sword_catalog, sword_market, attempt_model=tradeoff_model)
        calls = len(tradeoff_model.calls)
        optimize(SWORD, 5, config, sword_catalog, sword_market, attempt_model=tradeoff_model)

        assert len(tradeoff_model.calls) == 2 * calls

    def test_explicit_cache_wins(self, sword_catalog, sword_market, tradeoff_model):
        cache = EnhancementCostCache(max_size=2)
        optimize(SWORD, 5, EnhancerConfig(), sword_catalog, sword_market,
                 attempt_model=tradeoff_model, cache=cache)

        assert len(cache) == 1
        assert len(get_cost_cache()) == 0

    def test_pricing_change_not_served_stale(self, sword_catalog, sword_market, tradeoff_model):
        config = EnhancerConfig()
        optimize(SWORD, 5, config, sword_catalog, sword_market, attempt_model=tradeoff_model)

        config.pricing.universal_protection_id = "/items/unlisted_protection"
        breakdown = optimize(SWORD, 5, config, sword_catalog, sword_market,
                             attempt_model=tradeoff_model)

        # Protecting now means sacrificing a 1000 sword, so never protecting wins
        assert breakdown.optimal_strategy.label == "Never"
        assert breakdown.optimal_strategy.total_cost == 2000.0


# ---------------------------------------------------------------------------
# Scenario 5: bundled sample data with the Markov model
# ---------------------------------------------------------------------------

class TestBundledData:

    @pytest.fixture(scope="class")
    def bundled(self):
        return load_config(), Catalog.load(), MarketSnapshot.load()

    def test_cheap_sword(self, bundled):
        config, catalog, snapshot = bundled
        breakdown = optimize("/items/cheese_sword", 5, config, catalog, snapshot)

        assert breakdown is not None
        # ask/bid spread 210/150 is too wide; crafting 10 cheese at 18 x 0.9 is 162
        assert breakdown.cost_ladder[0] == pytest.approx(162.0)
        assert not breakdown.optimal_strategy.used_mirror
        assert breakdown.cost_ladder[5] > breakdown.cost_ladder[1] > breakdown.cost_ladder[0]

    def test_high_level_sword(self, bundled):
        config, catalog, snapshot = bundled
        breakdown = optimize("/items/holy_sword", 15, config, catalog, snapshot,
                             attempt_model=MarkovAttemptModel())

        assert breakdown is not None
        optimal = breakdown.optimal_strategy
        assert optimal.total_cost == breakdown.cost_ladder[15]
        if optimal.used_mirror:
            assert optimal.consumed_items_cost + optimal.philosopher_mirror_cost == pytest.approx(
                optimal.total_cost, rel=1e-6
            )

    def test_trainee_charm_material(self, bundled):
        config, catalog, snapshot = bundled
        breakdown = optimize("/items/trainee_enhancing_charm", 1, config, catalog, snapshot)

        optimal = breakdown.optimal_strategy
        assert optimal.material_cost == pytest.approx(250000.0 * optimal.expected_attempts)

    def test_run_logged(self, bundled):
        config, catalog, snapshot = bundled
        logger, buffer = create_string_logger(LogLevel.SUMMARY)
        optimize("/items/cheese_sword", 3, config, catalog, snapshot, logger=logger)

        output = buffer.getvalue()
        assert "Optimizing /items/cheese_sword to +3" in output
        assert "Finished in" in output
