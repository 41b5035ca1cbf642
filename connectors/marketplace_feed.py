"""
Module: connectors.marketplace_feed

Aggregates already-fetched marketplace rows (stocks, sales funnel, sales and
ad statistics) into ``SKUData`` records for the optimizer. Fetching the rows
is the caller's job; nothing here does network I/O.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from models.sku import NO_VELOCITY_COVER_DAYS, SKUData

logger = logging.getLogger(__name__)

VALID_PERIODS = (7, 14, 30)
DEFAULT_PERIOD = 7
UNKNOWN = "Unknown"


def normalize_period(period: Any) -> int:
    """Clamp a requested period to one of the supported windows."""
    try:
        period = int(period)
    except (TypeError, ValueError):
        return DEFAULT_PERIOD
    return period if period in VALID_PERIODS else DEFAULT_PERIOD


def aggregate_stocks(stocks: Iterable[Mapping[str, Any]]) -> dict[int, dict[str, Any]]:
    """
    Sum warehouse rows per nmId. Price, category and article are taken from
    the first row seen; quantities and goods in transit are summed.
    """
    by_nm_id: dict[int, dict[str, Any]] = {}
    for row in stocks:
        nm_id = int(row["nmId"])
        in_transit = (row.get("inWayToClient") or 0) + (row.get("inWayFromClient") or 0)
        existing = by_nm_id.get(nm_id)
        if existing:
            existing["quantity"] += row.get("quantity") or 0
            existing["in_transit"] += in_transit
            continue
        price = row.get("Price") or 0
        discount = row.get("Discount") or 0
        by_nm_id[nm_id] = {
            "quantity": row.get("quantity") or 0,
            "in_transit": in_transit,
            "price": price * (1 - discount / 100),
            "category": row.get("category") or UNKNOWN,
            "sku": row.get("supplierArticle") or "",
        }
    return by_nm_id


def parse_funnel(funnel: Iterable[Mapping[str, Any]]) -> dict[int, dict[str, Any]]:
    """Flatten sales-funnel cards; cards without selected-period stats are skipped."""
    by_nm_id: dict[int, dict[str, Any]] = {}
    for card in funnel:
        stats = (card.get("statistic") or {}).get("selected")
        product = card.get("product") or {}
        if not stats or "nmId" not in product:
            continue
        conversions = stats.get("conversions") or {}
        by_nm_id[int(product["nmId"])] = {
            "title": product.get("title") or UNKNOWN,
            "vendor_code": product.get("vendorCode") or "",
            "open_count": stats.get("openCount") or 0,
            "cart_count": stats.get("cartCount") or 0,
            "order_count": stats.get("orderCount") or 0,
            "cr_cart": conversions.get("addToCartPercent") or 0,
            "cr_order": conversions.get("cartToOrderPercent") or 0,
            "buyout_percent": conversions.get("buyoutPercent") or 0,
        }
    return by_nm_id


def count_sales(sales: Iterable[Mapping[str, Any]]) -> dict[int, int]:
    counts: dict[int, int] = {}
    for sale in sales:
        nm_id = int(sale["nmId"])
        counts[nm_id] = counts.get(nm_id, 0) + 1
    return counts


def build_sku_data(
    stocks: Iterable[Mapping[str, Any]],
    funnel: Iterable[Mapping[str, Any]],
    sales: Iterable[Mapping[str, Any]],
    ad_stats: Mapping[int, Mapping[str, Any]] | None = None,
    period_days: int = DEFAULT_PERIOD,
) -> list[SKUData]:
    """
    Join stock, funnel, sales and ad rows by nmId into optimizer inputs.
    Records that fail validation are skipped with a warning.
    """
    period = normalize_period(period_days)
    stock_map = aggregate_stocks(stocks)
    funnel_map = parse_funnel(funnel)
    sales_map = count_sales(sales)
    ad_stats = ad_stats or {}

    records = []
    for nm_id in sorted(set(stock_map) | set(funnel_map)):
        stock = stock_map.get(nm_id, {})
        card = funnel_map.get(nm_id, {})
        sales_count = sales_map.get(nm_id, 0)
        ads = ad_stats.get(nm_id) or {}

        stock_total = stock.get("quantity", 0)
        in_transit = stock.get("in_transit", 0)
        effective_stock = stock_total + in_transit
        orders_per_day = sales_count / period
        stock_cover_days = (
            effective_stock / orders_per_day if orders_per_day > 0 else NO_VELOCITY_COVER_DAYS
        )

        impressions = card.get("open_count", 0)
        # Cart adds stand in for engaged clicks
        clicks = card.get("cart_count", 0)
        ctr = clicks / impressions * 100 if impressions > 0 else 0.0

        try:
            records.append(
                SKUData(
                    sku=stock.get("sku") or card.get("vendor_code") or str(nm_id),
                    nm_id=nm_id,
                    title=card.get("title", UNKNOWN),
                    category=stock.get("category", UNKNOWN),
                    stock_total=stock_total,
                    in_transit=in_transit,
                    effective_stock=effective_stock,
                    orders_per_day=orders_per_day,
                    orders_last_7d=sales_count,
                    orders_last_14d=sales_count,
                    stock_cover_days=stock_cover_days,
                    current_price=stock.get("price", 0.0),
                    impressions=impressions,
                    clicks=clicks,
                    ctr=ctr,
                    cart_adds=card.get("cart_count", 0),
                    orders=card.get("order_count", 0),
                    cr_cart=card.get("cr_cart", 0.0),
                    cr_order=card.get("cr_order", 0.0),
                    buyout_percent=card.get("buyout_percent", 0.0),
                    ad_spend=ads.get("advertSpend") or 0.0,
                    ad_orders=ads.get("advertOrders") or 0,
                    drr=ads.get("drr"),
                )
            )
        except ValidationError as e:
            logger.warning(f"Skipping nmId {nm_id}: {e.error_count()} validation error(s)")

    logger.info(
        f"Feed: stocks={len(stock_map)}, funnel={len(funnel_map)}, sales={sum(sales_map.values())}; "
        f"built {len(records)} SKUs for a {period}-day period"
    )
    return records
