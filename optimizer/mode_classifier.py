"""
Mode Classifier: places each SKU in one strategic mode.

Modes are evaluated as a cascade, first match wins:
1. STOP   - loss-making
2. CLEAR  - overstocked
3. COW    - cash cow
4. GROWTH - everything else
"""

from config.config import OptimizerConfig
from models.enums import AdsAction, PriceAction, SKUMode
from models.optimizer import ModeActions, ModeResult
from models.sku import SKUData, is_known

from .rules import Rule, always, first_match

STOP_TTL_DAYS = 14
CLEAR_TTL_DAYS = 5  # Re-evaluated more often
COW_TTL_DAYS = 7
GROWTH_TTL_DAYS = 7


def _mode(mode, reason, ttl_days, price, ads) -> ModeResult:
    return ModeResult(
        mode=mode,
        reason=reason,
        ttl_days=ttl_days,
        actions=ModeActions(price=price, ads=ads),
    )


def _stop(reason: str) -> ModeResult:
    return _mode(SKUMode.STOP, reason, STOP_TTL_DAYS, PriceAction.UP, AdsAction.PAUSE)


def effective_margin(sku: SKUData) -> float:
    """Margin ratio from cm0 when available, else the reported margin, else 0."""
    if is_known(sku.cm0) and is_known(sku.current_price) and sku.current_price > 0:
        return sku.cm0 / sku.current_price
    return sku.margin if is_known(sku.margin) else 0.0


def _is_cow(sku: SKUData, config: OptimizerConfig) -> bool:
    return (
        effective_margin(sku) >= config.high_margin_threshold
        and is_known(sku.stock_cover_days)
        and sku.stock_cover_days >= config.stock_cow_min_days
    )


MODE_RULES = [
    Rule(
        "stop_cm0",
        lambda sku, cfg: is_known(sku.cm0) and sku.cm0 <= 0,
        lambda sku, cfg: _stop(
            f"Loss-making: CM0 = {sku.cm0:.0f} <= 0. Raise the price urgently."
        ),
    ),
    Rule(
        "stop_margin",
        lambda sku, cfg: not is_known(sku.cm0) and is_known(sku.margin) and sku.margin <= 0,
        lambda sku, cfg: _stop(
            f"Loss-making: margin {sku.margin * 100:.0f}% <= 0. Raise the price urgently."
        ),
    ),
    Rule(
        "stop_below_min_margin",
        lambda sku, cfg: is_known(sku.margin) and sku.margin < cfg.min_margin_pct,
        lambda sku, cfg: _stop(
            f"Margin {sku.margin * 100:.0f}% is below the minimum "
            f"{cfg.min_margin_pct * 100:.0f}%."
        ),
    ),
    Rule(
        "clear",
        lambda sku, cfg: is_known(sku.stock_cover_days)
        and sku.stock_cover_days >= cfg.stock_overstock_days,
        lambda sku, cfg: _mode(
            SKUMode.CLEAR,
            f"Overstock: stock for {sku.stock_cover_days:.0f} days "
            f"(>{cfg.stock_overstock_days:g}). About "
            f"{sku.stock_total * sku.current_price / 1000:.0f}K frozen in stock.",
            CLEAR_TTL_DAYS,
            PriceAction.DOWN,
            AdsAction.ON,
        ),
    ),
    Rule(
        "cow",
        _is_cow,
        # Conservative: HOLD even when conversion is good
        lambda sku, cfg: _mode(
            SKUMode.COW,
            f"Cash cow: margin {effective_margin(sku) * 100:.0f}% >= "
            f"{cfg.high_margin_threshold * 100:.0f}%, stable stock "
            f"({sku.stock_cover_days:.0f}d).",
            COW_TTL_DAYS,
            PriceAction.HOLD,
            AdsAction.SCALE,
        ),
    ),
    Rule(
        "growth",
        always,
        lambda sku, cfg: _mode(
            SKUMode.GROWTH,
            "Active growth: optimizing profit per day; price left to the price engine.",
            GROWTH_TTL_DAYS,
            PriceAction.HOLD,
            AdsAction.ON,
        ),
    ),
]


def classify_mode(sku: SKUData, config: OptimizerConfig) -> ModeResult:
    """Classify a SKU into its strategic mode (first matching rule wins)."""
    return first_match(MODE_RULES, sku, config)


# --- Helpers --- #

MODE_PRIORITY = {
    SKUMode.STOP: 1,
    SKUMode.CLEAR: 2,
    SKUMode.COW: 3,
    SKUMode.GROWTH: 4,
}

MODE_DISPLAY_INFO = {
    SKUMode.STOP: {"symbol": "■", "color": "#EF4444", "label": "STOP", "description": "Stop-loss"},
    SKUMode.CLEAR: {"symbol": "%", "color": "#F59E0B", "label": "CLEAR", "description": "Clearance"},
    SKUMode.COW: {"symbol": "$", "color": "#10B981", "label": "COW", "description": "Cash cow"},
    SKUMode.GROWTH: {"symbol": "↗", "color": "#3B82F6", "label": "GROWTH", "description": "Growth"},
}

MODE_PRICE_DIRECTION = {
    SKUMode.STOP: PriceAction.UP,
    SKUMode.CLEAR: PriceAction.DOWN,
    SKUMode.COW: PriceAction.HOLD,
    SKUMode.GROWTH: PriceAction.HOLD,  # Decided by the price engine
}


def get_mode_priority(mode: SKUMode) -> int:
    """Lower is more urgent."""
    return MODE_PRIORITY[mode]


def get_mode_display_info(mode: SKUMode) -> dict[str, str]:
    return dict(MODE_DISPLAY_INFO[mode])


def get_mode_price_direction(mode: SKUMode) -> PriceAction:
    return MODE_PRICE_DIRECTION[mode]
