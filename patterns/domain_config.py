"""Dataclass-based store configuration.

Thresholds, fallbacks and limits are grouped into frozen dataclasses so
services can take a config object instead of reaching for magic numbers.
Override individual values from environment variables with from_env().
"""

import os
from dataclasses import dataclass, field, replace


# ---------------------------------------------------------------------------
# Nested config sections
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class InventoryConfig:
    """Inventory management thresholds."""

    low_stock_threshold: int = 10
    default_warehouse_name: str = "Main Warehouse"
    default_warehouse_code: str = "MAIN"


@dataclass(frozen=True)
class PricingConfig:
    """Regional pricing fallbacks."""

    fallback_currency: str = "USD"
    fallback_region_code: str = "ROW"


@dataclass(frozen=True)
class CouponConfig:
    default_usage_limit_per_user: int = 1


@dataclass(frozen=True)
class GeminiDefaults:
    """Defaults for the Gemini SEO helper."""

    model: str = "GEMINI_2_5_FLASH"
    temperature: float = 0.7
    max_tokens: int = 2048
    top_p: float = 0.9
    top_k: int = 40
    timeout_ms: int = 30000
    retry_attempts: int = 3
    cache_ttl_seconds: int = 3600
    cache_max_entries: int = 1000


# ---------------------------------------------------------------------------
# Top-level store config
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StoreConfig:
    """Complete configuration for the store.

    Usage::

        config = StoreConfig.default()
        if inventory.quantity <= config.inventory.low_stock_threshold:
            raise_alert(inventory)
    """

    inventory: InventoryConfig = field(default_factory=InventoryConfig)
    pricing: PricingConfig = field(default_factory=PricingConfig)
    coupons: CouponConfig = field(default_factory=CouponConfig)
    gemini: GeminiDefaults = field(default_factory=GeminiDefaults)

    default_store_name: str = "My Store"
    max_page_size: int = 100

    @classmethod
    def default(cls) -> "StoreConfig":
        """Create config with all defaults."""
        return cls()

    @classmethod
    def from_env(cls, prefix: str = "STORE_") -> "StoreConfig":
        """Create config from environment variables.

        Example: STORE_LOW_STOCK_THRESHOLD=5
        """
        config = cls()

        threshold = os.getenv(f"{prefix}LOW_STOCK_THRESHOLD")
        if threshold:
            config = replace(
                config,
                inventory=replace(config.inventory, low_stock_threshold=int(threshold)),
            )

        currency = os.getenv(f"{prefix}FALLBACK_CURRENCY")
        if currency:
            config = replace(
                config,
                pricing=replace(config.pricing, fallback_currency=currency.upper()),
            )

        store_name = os.getenv(f"{prefix}NAME")
        if store_name:
            config = replace(config, default_store_name=store_name)

        return config


# Process-wide configuration instance
config = StoreConfig.from_env()
