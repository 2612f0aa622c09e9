"""Market snapshots and the realistic price resolver.

Every cost the optimizer reports is ultimately derived from
``PriceResolver.realistic_base_price`` or ``PriceResolver.material_unit_price``;
both treat a price of 0 as "no data".
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .catalog import Catalog
from .config import PricingRules
from .optimizer_logging import LogLevel, OptimizerLogger, create_logger
from .resources import get_resource_path

MARKET_SNAPSHOT_PATH = get_resource_path("Enhancer/data/market_snapshot.json")

# Market entries are keyed by enhancement level; the optimizer prices +0 items
BASE_LEVEL_KEY = "0"


class MarketDataError(ValueError):
    """Raised when a market snapshot file cannot be validated."""


class MarketQuote(BaseModel):
    """One ask/bid pair as found in a snapshot file (``a``/``b`` or ``ask``/``bid``)."""
    ask: float = Field(default=0.0, alias="a")
    bid: float = Field(default=0.0, alias="b")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class MarketSnapshotFile(BaseModel):
    """Upstream wire shape: ``{"marketData": {item: {level: quote}}}``."""
    market_data: Dict[str, Dict[str, MarketQuote]] = Field(alias="marketData")
    timestamp: Optional[float] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


FLAT_QUOTES_ADAPTER: TypeAdapter = TypeAdapter(Dict[str, MarketQuote])


@dataclass(frozen=True)
class MarketPrice:
    ask: float = 0.0
    bid: float = 0.0


def sanitize_market_price(price: MarketPrice) -> MarketPrice:
    """Copy the valid side over a negative one so a bad sign cannot poison sums."""
    ask, bid = price.ask, price.bid
    if ask > 0 and bid < 0:
        bid = ask
    if bid > 0 and ask < 0:
        ask = bid
    return MarketPrice(ask=ask, bid=bid)


class MarketSnapshot:
    """Immutable view of +0 market prices, in the order they were loaded."""

    def __init__(self, prices: Optional[Mapping[str, MarketPrice]] = None):
        self._prices: Dict[str, MarketPrice] = dict(prices or {})

    def __len__(self) -> int:
        return len(self._prices)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._prices

    def has_price(self, item_id: str) -> bool:
        return item_id in self._prices

    def price(self, item_id: str) -> MarketPrice:
        """Return the ask/bid for ``item_id``; ``MarketPrice(0, 0)`` when unlisted."""
        return self._prices.get(item_id, MarketPrice())

    def entries(self) -> Iterator[Tuple[str, MarketPrice]]:
        return iter(self._prices.items())

    @classmethod
    def from_dict(cls, data: Any) -> "MarketSnapshot":
        """
        Validate raw JSON data into a snapshot.

        Accepts the upstream ``marketData`` shape (only the +0 entry of each
        item is kept) or a flat ``{item: {"ask": .., "bid": ..}}`` mapping.
        """
        try:
            if isinstance(data, Mapping) and "marketData" in data:
                parsed = MarketSnapshotFile.model_validate(data)
                quotes = {
                    item_id: levels[BASE_LEVEL_KEY]
                    for item_id, levels in parsed.market_data.items()
                    if BASE_LEVEL_KEY in levels
                }
            else:
                quotes = FLAT_QUOTES_ADAPTER.validate_python(data)
        except ValidationError as exc:
            raise MarketDataError(f"Invalid market snapshot: {exc}") from exc

        return cls({item_id: MarketPrice(q.ask, q.bid) for item_id, q in quotes.items()})

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "MarketSnapshot":
        """Load a snapshot from a JSON file."""
        snapshot_path = path or MARKET_SNAPSHOT_PATH
        try:
            raw = json.loads(snapshot_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise MarketDataError(f"Invalid JSON in {snapshot_path}: {exc}") from exc
        return cls.from_dict(raw)


class PriceResolver:
    """
    Resolves realistic acquisition prices from a market snapshot and catalog.

    Parameters
    ----------
    catalog : Catalog
        Static game data used for the production-cost fallback.
    snapshot : MarketSnapshot
        Current market prices.
    rules : PricingRules, optional
        Thresholds and special item ids. Defaults to ``PricingRules()``.
    logger : OptimizerLogger, optional
        Receives TRACE-level per-material price lines.
    """

    def __init__(
        self,
        catalog: Catalog,
        snapshot: MarketSnapshot,
        rules: Optional[PricingRules] = None,
        logger: Optional[OptimizerLogger] = None,
    ):
        self.catalog = catalog
        self.snapshot = snapshot
        self.rules = rules or PricingRules()
        self.logger = logger or create_logger(LogLevel.SILENT)

    def price(self, item_id: str) -> MarketPrice:
        return self.snapshot.price(item_id)

    def _ask(self, item_id: str) -> float:
        ask = self.snapshot.price(item_id).ask
        return ask if ask > 0 else 0.0

    def production_cost(self, item_id: str) -> float:
        """
        Cost to craft ``item_id`` from its recipe inputs at ask prices.

        Inputs are discounted by ``rules.production_discount``; an upgrade
        item (for refined gear) is added at full ask. 0 when no recipe exists.
        """
        recipe = self.catalog.recipe(item_id)
        if recipe is None:
            return 0.0

        total = sum(self._ask(inp.item_id) * inp.count for inp in recipe.inputs)
        total *= self.rules.production_discount

        if recipe.upgrade_item_id:
            total += self._ask(recipe.upgrade_item_id)
        return total

    def realistic_base_price(self, item_id: str) -> float:
        """
        Manipulation-resistant acquisition price for ``item_id``.

        Wide ask/bid spreads and asks far above production cost are treated
        as inflated listings; production cost is the fallback throughout.
        """
        market = self.snapshot.price(item_id)
        ask = market.ask if market.ask > 0 else 0.0
        bid = market.bid if market.bid > 0 else 0.0
        threshold = self.rules.spread_threshold

        production = self.production_cost(item_id)

        if ask > 0 and bid > 0:
            if ask / bid > threshold:
                return max(bid, production)
            return ask

        if ask > 0:
            if production > 0 and ask / production > threshold:
                return production
            return max(ask, production)

        if bid > 0:
            return max(bid, production)

        return production

    def material_unit_price(self, item_id: str) -> float:
        """Unit price of one enhancement material."""
        rules = self.rules
        if item_id.startswith(rules.trainee_prefix):
            return rules.trainee_charm_price
        if item_id == rules.currency_item_id:
            return 1.0
        if self.snapshot.has_price(item_id):
            return max(0.0, sanitize_market_price(self.snapshot.price(item_id)).ask)
        return self.catalog.sell_price(item_id)

    def per_action_material_cost(self, item_id: str) -> float:
        """Total material price consumed by one enhancement attempt."""
        total = 0.0
        for material in self.catalog.enhancement_materials(item_id):
            unit_price = self.material_unit_price(material.item_id)
            self.logger.log_material_price(material.item_id, unit_price, material.count)
            total += unit_price * material.count
        return total

    def protection_candidates(self, item_id: str) -> List[str]:
        """The item itself, the universal protection, then item-specific ones."""
        candidates = [item_id, self.rules.universal_protection_id]
        for option in self.catalog.protection_options(item_id):
            if option not in candidates:
                candidates.append(option)
        return candidates

    def cheapest_protection(self, item_id: str) -> Tuple[float, Optional[str]]:
        """
        Cheapest positive realistic price among the protection candidates.

        Returns
        -------
        tuple[float, str | None]
            ``(price, item_id)``, or ``(0.0, None)`` if nothing is priced.
        """
        best_price = float("inf")
        best_id: Optional[str] = None
        for candidate in self.protection_candidates(item_id):
            price = self.realistic_base_price(candidate)
            if 0 < price < best_price:
                best_price = price
                best_id = candidate

        if best_id is None:
            return 0.0, None
        return best_price, best_id
