"""Static game-data catalog: items, enhancement materials, and crafting recipes.

This module provides functionality to:
1. Load item and action data from a game-data JSON export
2. Look up the fixed per-attempt enhancement materials of an item
3. Look up item-specific protection consumables
4. Find the crafting action whose first output is a given item
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .resources import get_resource_path

GAME_DATA_PATH = get_resource_path("Enhancer/data/game_data.json")


class CatalogError(KeyError):
    """Raised when game data is missing or structurally invalid."""


@dataclass(frozen=True)
class ItemCount:
    """An item id paired with a quantity."""
    item_id: str
    count: float


@dataclass
class ItemDetail:
    """Static details for one item."""
    item_id: str
    name: str
    item_level: int = 1
    sell_price: float = 0.0
    enhancement_costs: List[ItemCount] = field(default_factory=list)
    protection_item_ids: List[str] = field(default_factory=list)


@dataclass
class Recipe:
    """A crafting action producing one item."""
    action_id: str
    inputs: List[ItemCount]
    output_count: float = 1.0
    upgrade_item_id: Optional[str] = None


def _parse_item_counts(raw: Any) -> List[ItemCount]:
    counts: List[ItemCount] = []
    for entry in raw or []:
        item_id = entry.get("itemHrid", "")
        count = entry.get("count", 0)
        if item_id and count > 0:
            counts.append(ItemCount(item_id=item_id, count=float(count)))
    return counts


class Catalog:
    """
    Read-only lookup over item and crafting-action data.

    Every lookup of an unknown item degrades to an empty result (or None)
    rather than raising, so a missing entry surfaces as a clean optimizer
    failure.
    """

    def __init__(self, items: Mapping[str, ItemDetail], actions: Mapping[str, Dict[str, Any]]):
        self._items: Dict[str, ItemDetail] = dict(items)
        self._actions: Dict[str, Dict[str, Any]] = dict(actions)
        self._recipe_cache: Dict[str, Optional[Recipe]] = {}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Catalog":
        """
        Build a catalog from a game-data mapping.

        Parameters
        ----------
        data : Mapping
            Object with ``itemDetailMap`` and ``actionDetailMap`` keys, in the
            shape of the game's client data export.
        """
        item_map = data.get("itemDetailMap")
        if not isinstance(item_map, Mapping):
            raise CatalogError("game data has no itemDetailMap")
        action_map = data.get("actionDetailMap", {}) or {}

        items: Dict[str, ItemDetail] = {}
        for item_id, detail in item_map.items():
            if not isinstance(detail, Mapping):
                raise CatalogError(f"item entry for {item_id} is not an object")
            items[item_id] = ItemDetail(
                item_id=item_id,
                name=detail.get("name", item_id),
                item_level=int(detail.get("itemLevel") or 1),
                sell_price=float(detail.get("sellPrice") or 0.0),
                enhancement_costs=_parse_item_counts(detail.get("enhancementCosts")),
                protection_item_ids=list(detail.get("protectionItemHrids") or []),
            )

        return cls(items, action_map)

    @classmethod
    def load(cls, data_path: Optional[Path] = None) -> "Catalog":
        """Load a catalog from a game-data JSON file."""
        path = data_path or GAME_DATA_PATH
        if not path.exists():
            raise FileNotFoundError(f"game data not found at {path}")

        with path.open("r", encoding="utf-8") as fh:
            try:
                data = json.load(fh)
            except json.JSONDecodeError as exc:
                raise CatalogError(f"Invalid JSON in {path}: {exc}") from exc

        return cls.from_dict(data)

    # -------------------------------------------------------------------------
    # Item lookups
    # -------------------------------------------------------------------------

    def has_item(self, item_id: str) -> bool:
        return item_id in self._items

    def item(self, item_id: str) -> Optional[ItemDetail]:
        return self._items.get(item_id)

    def item_name(self, item_id: str) -> str:
        detail = self._items.get(item_id)
        return detail.name if detail else item_id

    def item_level(self, item_id: str) -> int:
        detail = self._items.get(item_id)
        return detail.item_level if detail else 1

    def sell_price(self, item_id: str) -> float:
        detail = self._items.get(item_id)
        return detail.sell_price if detail else 0.0

    def enhancement_materials(self, item_id: str) -> List[ItemCount]:
        """Materials consumed by every enhancement attempt on ``item_id``."""
        detail = self._items.get(item_id)
        return list(detail.enhancement_costs) if detail else []

    def is_enhanceable(self, item_id: str) -> bool:
        return bool(self.enhancement_materials(item_id))

    def protection_options(self, item_id: str) -> List[str]:
        """Item-specific protection consumables declared for ``item_id``."""
        detail = self._items.get(item_id)
        return list(detail.protection_item_ids) if detail else []

    # -------------------------------------------------------------------------
    # Recipe lookups
    # -------------------------------------------------------------------------

    def recipe(self, item_id: str) -> Optional[Recipe]:
        """
        Find the crafting action whose first output is ``item_id``.

        Results are cached, including misses.

        Returns
        -------
        Recipe or None
            None if the item is unknown or no action produces it.
        """
        if item_id in self._recipe_cache:
            return self._recipe_cache[item_id]

        found: Optional[Recipe] = None
        if item_id in self._items:
            for action_id, action in self._actions.items():
                outputs = action.get("outputItems") or []
                if not outputs or outputs[0].get("itemHrid") != item_id:
                    continue
                found = Recipe(
                    action_id=action_id,
                    inputs=_parse_item_counts(action.get("inputItems")),
                    output_count=float(outputs[0].get("count", 1) or 1),
                    upgrade_item_id=action.get("upgradeItemHrid") or None,
                )
                break

        self._recipe_cache[item_id] = found
        return found
