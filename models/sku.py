"""
Input data model for the pricing optimizer: one SKU's metrics for a run.
"""

import math
from datetime import datetime

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

from .enums import PriceAction

# Stock cover reported when a SKU has no sales velocity
NO_VELOCITY_COVER_DAYS = 999.0


def is_known(*values) -> bool:
    """True when every value is present and not NaN."""
    for value in values:
        if value is None:
            return False
        if isinstance(value, float) and math.isnan(value):
            return False
    return True


class SKUData(BaseModel):
    """
    Metrics of a single SKU, aggregated from stock, funnel, sales and ad feeds.

    Conversion fields (``ctr``, ``cr_cart``, ``cr_order``, ``buyout_percent``,
    ``drr``) and trend fields are percentages on a 0-100 scale; ``margin`` is a
    0-1 fraction. Accepts both snake_case names and the feed's camelCase keys.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    # Identity
    sku: str
    nm_id: int = 0
    title: str = ""
    category: str = ""
    family_id: str | None = None

    # Stock
    stock_total: float = 0
    in_transit: float = 0
    effective_stock: float | None = None

    # Velocity
    orders_per_day: float = 0.0
    orders_last_7d: float = 0
    orders_last_14d: float = 0
    stock_cover_days: float | None = None

    # Price
    current_price: float = 0.0
    cost_price: float | None = None
    margin: float | None = None  # (price - cost) / price
    cm0: float | None = None  # Contribution margin per unit

    # Funnel (7-14 day window)
    impressions: float = 0
    clicks: float = 0
    ctr: float = 0.0
    cart_adds: float = 0
    cr_cart: float = 0.0
    orders: float = 0
    cr_order: float = 0.0
    buyout_percent: float = 0.0

    # Advertising
    ad_spend: float = 0.0
    ad_orders: float = 0
    cpo: float | None = None
    drr: float | None = None
    profit_per_ad_order: float | None = None

    # Trends, % change vs previous window
    sales_trend_7d: float | None = None
    impressions_trend_14d: float | None = None
    orders_trend_14d: float | None = None

    # History
    last_price_change: datetime | None = None
    last_price_direction: PriceAction | None = None
    price_changes_last_30d: int | None = None

    # Competitors
    competitor_price_min: float | None = None
    competitor_price_avg: float | None = None

    @model_validator(mode="before")
    @classmethod
    def _derive_stock_fields(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)

        def pick(name: str, alias: str, default=None):
            if data.get(name) is not None:
                return data[name]
            if data.get(alias) is not None:
                return data[alias]
            return default

        stock_total = pick("stock_total", "stockTotal", 0) or 0
        in_transit = pick("in_transit", "inTransit", 0) or 0
        effective = pick("effective_stock", "effectiveStock")
        if effective is None:
            effective = stock_total + in_transit
            data["effective_stock"] = effective

        if pick("stock_cover_days", "stockCoverDays") is None:
            velocity = pick("orders_per_day", "ordersPerDay", 0.0)
            if is_known(velocity) and velocity > 0:
                data["stock_cover_days"] = effective / velocity
            else:
                data["stock_cover_days"] = NO_VELOCITY_COVER_DAYS
        return data
