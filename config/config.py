"""
Configuration classes for the pricing optimizer.
Defines the effective thresholds used by every pipeline stage, with the
hardcoded defaults that apply when a config layer is missing, and the
per-key validation applied to every config layer before it is merged.
"""

import logging
from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields

from pydantic import TypeAdapter, ValidationError

logger = logging.getLogger(__name__)

# Resolved config tables are reused for this long before a reload
CACHE_TTL_SECONDS = 5 * 60


@dataclass(frozen=True)
class OptimizerConfig:
    # Cooldown
    cooldown_price_days: int = 3
    cooldown_price_days_gold: int = 7

    # Margin (0-1 fractions)
    min_margin_pct: float = 0.10
    high_margin_threshold: float = 0.30

    # Price steps (0-1 fractions)
    max_price_step_pct: float = 0.05
    max_price_step_pct_gold: float = 0.02
    price_step_clear: float = 0.03
    price_step_low_stock: float = 0.05
    price_step_overpriced: float = 0.03

    # Stock cover, days
    stock_critical_days: float = 10
    stock_warning_days: float = 14
    stock_overstock_days: float = 120
    stock_cow_min_days: float = 15

    # Conversion (0-100 percentages, same scale as SKUData funnel fields)
    ctr_benchmark: float = 1.5
    cr_cart_low: float = 5.0
    cr_order_low: float = 1.5
    cr_order_high: float = 8.0
    buyout_low: float = 50.0

    # Rank (ratios of current vs average)
    rank_drop_warning: float = 0.80
    rank_drop_critical: float = 0.70
    sales_drop_warning: float = 0.20

    # Advertising
    drr_warning: float = 30
    drr_critical: float = 50
    spend_spike_multiplier: float = 2.0

    # Family
    family_max_changes: int = 1
    family_price_gap_min: float = 0.05

    # Data sufficiency
    min_clicks_for_decision: int = 30
    min_orders_for_decision: int = 10
    data_window_days: int = 14

    # Schedule
    schedule_time: str = "09:00"
    ttl_default_days: int = 7

    @classmethod
    def field_names(cls) -> frozenset[str]:
        return frozenset(f.name for f in fields(cls))

    @classmethod
    def from_mapping(cls, values: dict) -> "OptimizerConfig":
        """Build a config from a merged mapping, ignoring keys that are not fields."""
        known = cls.field_names()
        return cls(**{k: v for k, v in values.items() if k in known})

    def to_dict(self) -> dict:
        return asdict(self)


# One adapter per field, built from the dataclass annotations
FIELD_ADAPTERS = {f.name: TypeAdapter(f.type) for f in fields(OptimizerConfig)}


def check_layer_values(values: Mapping) -> tuple[dict, dict[str, str]]:
    """
    Coerce the known keys of one config layer to their field types.

    Returns the accepted values and an error message per rejected key.
    Numeric strings are coerced; ``None`` is rejected like any other invalid
    value. Keys that are not config fields appear in neither result.
    """
    valid: dict = {}
    errors: dict[str, str] = {}
    for key, value in values.items():
        adapter = FIELD_ADAPTERS.get(key)
        if adapter is None:
            continue
        try:
            valid[key] = adapter.validate_python(value)
        except ValidationError as e:
            errors[key] = e.errors()[0]["msg"]
    return valid, errors


def validate_layer(values: Mapping, source: str) -> dict:
    """Accepted values of a layer; rejected keys are dropped with a warning."""
    valid, errors = check_layer_values(values)
    for key, message in errors.items():
        logger.warning(f"Ignoring {source} {key}={values[key]!r}: {message}")
    unknown = set(values) - OptimizerConfig.field_names()
    if unknown:
        logger.debug(f"Ignoring unknown keys in {source}: {sorted(map(str, unknown))}")
    return valid
