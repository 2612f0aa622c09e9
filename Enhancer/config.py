"""Load, normalise, and save optimizer configuration from DefaultEnhancerConfig.yaml."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .attempt_model import EnhancementParameters
from .resources import get_resource_path

DEFAULT_CONFIG_PATH = get_resource_path("Enhancer/DefaultEnhancerConfig.yaml")

# Log level names accepted in the YAML file (matched case-insensitively)
LOG_LEVEL_NAMES = ("SILENT", "MINIMAL", "SUMMARY", "DETAILED", "DEBUG", "TRACE")


class ConfigError(ValueError):
    """Raised when a configuration value cannot be interpreted."""


@dataclass
class EnhancingSettings:
    enhancing_level: float = 1.0  # effective level, tea bonus included
    house_level: int = 0
    tool_bonus: float = 0.0  # success bonus %, equipment + house
    speed_bonus: float = 0.0  # action speed bonus %
    blessed_tea: bool = False
    guzzling_bonus: float = 1.0  # drink concentration multiplier (1.0 = none)


@dataclass
class PricingRules:
    spread_threshold: float = 1.3  # ask/bid (or ask/production) ratio treated as inflated
    production_discount: float = 0.9  # efficiency tea discount on recipe inputs
    trainee_charm_price: float = 250000.0
    trainee_prefix: str = "/items/trainee_"
    currency_item_id: str = "/items/coin"
    universal_protection_id: str = "/items/mirror_of_protection"
    mirror_item_id: str = "/items/philosophers_mirror"


@dataclass
class CacheSettings:
    enabled: bool = True
    max_size: int = 100
    hash_sample_size: int = 10  # market entries sampled for change detection


@dataclass
class EnhancerConfig:
    enhancing: EnhancingSettings = field(default_factory=EnhancingSettings)
    pricing: PricingRules = field(default_factory=PricingRules)
    cache: CacheSettings = field(default_factory=CacheSettings)
    log_level: str = "SILENT"

    def to_parameters(self, item_level: int, target_level: int,
                      protect_from: int = 0) -> EnhancementParameters:
        """Build the attempt-model input bundle for one strategy."""
        return EnhancementParameters.from_settings(
            self.enhancing,
            item_level=item_level,
            target_level=target_level,
            protect_from=protect_from,
        )


def _to_bool(raw: Any) -> bool:
    """Interpret YAML-ish booleans, including quoted 'yes'/'no' strings."""
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)):
        return raw != 0
    if isinstance(raw, str):
        return raw.strip().lower() in {"1", "true", "yes", "on"}
    return False


def _to_float(raw: Any, default: float) -> float:
    if isinstance(raw, bool) or raw is None:
        return default
    try:
        return float(raw)
    except (TypeError, ValueError):
        return default


def _normalise_log_level(raw: Any) -> str:
    name = str(raw or "SILENT").strip().upper()
    if name not in LOG_LEVEL_NAMES:
        raise ConfigError(f"Unknown log level {raw!r}; expected one of {', '.join(LOG_LEVEL_NAMES)}")
    return name


def load_config(path: Optional[Path] = None) -> EnhancerConfig:
    """Load and normalise configuration YAML into EnhancerConfig dataclass."""
    cfg_path = path or DEFAULT_CONFIG_PATH
    if not cfg_path.exists():
        return EnhancerConfig()

    with cfg_path.open("r", encoding="utf-8") as fh:
        try:
            raw = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {cfg_path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"{cfg_path} must contain a mapping at the top level")

    # Enhancing character setup
    enh_raw = raw.get("enhancing", {}) or {}
    enhancing = EnhancingSettings(
        enhancing_level=max(1.0, _to_float(enh_raw.get("enhancingLevel"), 1.0)),
        house_level=max(0, int(_to_float(enh_raw.get("houseLevel"), 0))),
        tool_bonus=max(0.0, _to_float(enh_raw.get("toolBonus"), 0.0)),
        speed_bonus=max(0.0, _to_float(enh_raw.get("speedBonus"), 0.0)),
        blessed_tea=_to_bool(enh_raw.get("blessedTea", False)),
        guzzling_bonus=max(1.0, _to_float(enh_raw.get("guzzlingBonus"), 1.0)),
    )

    # Pricing heuristics
    defaults = PricingRules()
    pricing_raw = raw.get("pricing", {}) or {}
    pricing = PricingRules(
        spread_threshold=max(1.0, _to_float(pricing_raw.get("spreadThreshold"), defaults.spread_threshold)),
        production_discount=min(1.0, max(0.0, _to_float(
            pricing_raw.get("productionDiscount"), defaults.production_discount))),
        trainee_charm_price=max(0.0, _to_float(
            pricing_raw.get("traineeCharmPrice"), defaults.trainee_charm_price)),
        trainee_prefix=str(pricing_raw.get("traineePrefix", defaults.trainee_prefix)),
        currency_item_id=str(pricing_raw.get("currencyItem", defaults.currency_item_id)),
        universal_protection_id=str(
            pricing_raw.get("universalProtectionItem", defaults.universal_protection_id)),
        mirror_item_id=str(pricing_raw.get("mirrorItem", defaults.mirror_item_id)),
    )

    # Memoization cache
    cache_raw = raw.get("cache", {}) or {}
    cache = CacheSettings(
        enabled=_to_bool(cache_raw.get("enabled", True)),
        max_size=max(1, int(_to_float(cache_raw.get("maxSize"), 100))),
        hash_sample_size=max(1, int(_to_float(cache_raw.get("hashSampleSize"), 10))),
    )

    return EnhancerConfig(
        enhancing=enhancing,
        pricing=pricing,
        cache=cache,
        log_level=_normalise_log_level(raw.get("logLevel", "SILENT")),
    )


def save_config(config: EnhancerConfig, path: Optional[Path] = None) -> None:
    """
    Save EnhancerConfig back to YAML file.

    Parameters
    ----------
    config : EnhancerConfig
        The configuration to save
    path : Path, optional
        Path to save to. Defaults to DefaultEnhancerConfig.yaml
    """
    cfg_path = path or DEFAULT_CONFIG_PATH

    data: Dict[str, Any] = {}

    data["enhancing"] = {
        "enhancingLevel": config.enhancing.enhancing_level,
        "houseLevel": config.enhancing.house_level,
        "toolBonus": config.enhancing.tool_bonus,
        "speedBonus": config.enhancing.speed_bonus,
        "blessedTea": config.enhancing.blessed_tea,
        "guzzlingBonus": config.enhancing.guzzling_bonus,
    }

    data["pricing"] = {
        "spreadThreshold": config.pricing.spread_threshold,
        "productionDiscount": config.pricing.production_discount,
        "traineeCharmPrice": config.pricing.trainee_charm_price,
        "traineePrefix": config.pricing.trainee_prefix,
        "currencyItem": config.pricing.currency_item_id,
        "universalProtectionItem": config.pricing.universal_protection_id,
        "mirrorItem": config.pricing.mirror_item_id,
    }

    data["cache"] = {
        "enabled": config.cache.enabled,
        "maxSize": config.cache.max_size,
        "hashSampleSize": config.cache.hash_sample_size,
    }

    data["logLevel"] = config.log_level

    with cfg_path.open("w", encoding="utf-8") as fh:
        yaml.dump(data, fh, default_flow_style=False, allow_unicode=True, sort_keys=False)
