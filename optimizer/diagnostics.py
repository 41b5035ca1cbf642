"""
Diagnostic Engine: six independent blocks of problem detection for a SKU.

Blocks run in fixed order (DATA, TRAFFIC, CREATIVE, CONVERSION, PRICE, RANK)
and each yields at most one finding. Insufficient data short-circuits the rest.
"""

from config.config import OptimizerConfig
from models.enums import ActionHint, DiagnosisBlock, DiagnosisCode
from models.optimizer import DiagnosisResult
from models.sku import SKUData, is_known

from .rules import Rule, collect, first_match, run_check

# Minimum impressions before CTR is judged at all
MIN_IMPRESSIONS_FOR_CTR = 100
# Impressions above which a very low CTR points at the creative itself
CREATIVE_MISMATCH_IMPRESSIONS = 500
# Click-to-order conversion (percent) below which ad traffic looks non-target
NON_TARGET_CONVERSION_PCT = 0.5
# Competitor is "cheaper" when we are more than this much above its minimum
COMPETITOR_PREMIUM = 1.10

BLOCK_PRIORITY = (
    DiagnosisBlock.DATA,
    DiagnosisBlock.RANK,
    DiagnosisBlock.PRICE,
    DiagnosisBlock.CONVERSION,
    DiagnosisBlock.TRAFFIC,
    DiagnosisBlock.CREATIVE,
)


def _finding(block, code, confidence, hint, reason, **metrics) -> DiagnosisResult:
    return DiagnosisResult(
        block=block,
        code=code,
        confidence=confidence,
        action_hint=hint,
        reason=reason,
        metrics={k: float(v) for k, v in metrics.items() if is_known(v)},
    )


def _count(value) -> float:
    return value if is_known(value) else 0


# --- Shared signals --- #


def has_enough_data(sku: SKUData, config: OptimizerConfig) -> bool:
    """Clicks and orders both reach the decision minimums (unknown counts as 0)."""
    return (
        _count(sku.clicks) >= config.min_clicks_for_decision
        and _count(sku.orders) >= config.min_orders_for_decision
    )


def effective_order_trend(sku: SKUData) -> float:
    """
    Current order velocity relative to its average: the provided 14-day trend
    (percent change) if present, else the 7d vs 14d daily-order ratio, else 1.0.
    """
    if is_known(sku.orders_trend_14d):
        return 1 + sku.orders_trend_14d / 100
    if is_known(sku.orders_last_7d, sku.orders_last_14d) and sku.orders_last_14d > 0:
        avg_7d = sku.orders_last_7d / 7
        avg_14d = sku.orders_last_14d / 14
        return avg_7d / avg_14d
    return 1.0


# --- Block 1: Data sufficiency --- #


def check_data_sufficiency(sku: SKUData, config: OptimizerConfig) -> DiagnosisResult | None:
    if has_enough_data(sku, config):
        return None
    clicks, orders = _count(sku.clicks), _count(sku.orders)
    missing = []
    if clicks < config.min_clicks_for_decision:
        missing.append(f"clicks {clicks:g}/{config.min_clicks_for_decision}")
    if orders < config.min_orders_for_decision:
        missing.append(f"orders {orders:g}/{config.min_orders_for_decision}")
    return _finding(
        DiagnosisBlock.DATA,
        DiagnosisCode.INSUFFICIENT_DATA,
        0.1,
        ActionHint.HOLD,
        f"Insufficient data: {', '.join(missing)}. More statistics needed.",
        clicks=clicks,
        orders=orders,
    )


# --- Block 2: Traffic quality --- #


def _click_conversion(sku: SKUData) -> float:
    return sku.orders / sku.clicks * 100 if sku.clicks > 0 else 0.0


TRAFFIC_RULES = [
    Rule(
        "traffic_non_target",
        lambda sku, cfg: is_known(sku.clicks, sku.orders)
        and sku.clicks > cfg.min_clicks_for_decision
        and _click_conversion(sku) < NON_TARGET_CONVERSION_PCT,
        lambda sku, cfg: _finding(
            DiagnosisBlock.TRAFFIC,
            DiagnosisCode.TRAFFIC_NON_TARGET_SUSPECTED,
            0.7,
            ActionHint.ADS_DOWN,
            f"Non-target traffic suspected: {sku.clicks:g} clicks but conversion "
            f"{_click_conversion(sku):.1f}%. Ads attract the wrong audience.",
            clicks=sku.clicks,
            orders=sku.orders,
            conversion_from_clicks=_click_conversion(sku),
            ad_spend=sku.ad_spend,
        ),
    ),
    Rule(
        "traffic_quality_low",
        lambda sku, cfg: is_known(sku.cpo, sku.cm0) and sku.cpo > 0 and sku.cpo > sku.cm0,
        lambda sku, cfg: _finding(
            DiagnosisBlock.TRAFFIC,
            DiagnosisCode.TRAFFIC_QUALITY_LOW,
            0.8,
            ActionHint.ADS_DOWN,
            f"CPO ({sku.cpo:.0f}) exceeds contribution margin ({sku.cm0:.0f}). Ads lose money.",
            cpo=sku.cpo,
            cm0=sku.cm0,
        ),
    ),
]


def diagnose_traffic(sku: SKUData, config: OptimizerConfig) -> DiagnosisResult | None:
    if not is_known(sku.ad_spend) or sku.ad_spend <= 0:
        return None  # No ads running
    return first_match(TRAFFIC_RULES, sku, config)


# --- Block 3: Creative / CTR --- #


CREATIVE_RULES = [
    Rule(
        "creative_mismatch",
        lambda sku, cfg: sku.impressions > CREATIVE_MISMATCH_IMPRESSIONS
        and sku.ctr < cfg.ctr_benchmark * 0.5,
        lambda sku, cfg: _finding(
            DiagnosisBlock.CREATIVE,
            DiagnosisCode.CREATIVE_MISMATCH_SUSPECTED,
            0.8,
            ActionHint.HOLD,
            f"{sku.impressions:g} impressions but CTR only {sku.ctr:.1f}%. "
            "Main photo does not attract the target audience.",
            ctr=sku.ctr,
            impressions=sku.impressions,
        ),
    ),
    Rule(
        "ctr_below_benchmark",
        lambda sku, cfg: sku.ctr < cfg.ctr_benchmark * 0.7,
        lambda sku, cfg: _finding(
            DiagnosisBlock.CREATIVE,
            DiagnosisCode.CTR_BELOW_BENCHMARK,
            0.75,
            ActionHint.HOLD,
            f"CTR {sku.ctr:.1f}% below benchmark {cfg.ctr_benchmark}%. Check the main photo.",
            ctr=sku.ctr,
            ctr_benchmark=cfg.ctr_benchmark,
            impressions=sku.impressions,
        ),
    ),
]


def diagnose_creative(sku: SKUData, config: OptimizerConfig) -> DiagnosisResult | None:
    if not is_known(sku.impressions, sku.ctr) or sku.impressions < MIN_IMPRESSIONS_FOR_CTR:
        return None
    return first_match(CREATIVE_RULES, sku, config)


# --- Block 4: Conversion --- #


CONVERSION_RULES = [
    Rule(
        "card_conversion_weak",
        lambda sku, cfg: sku.ctr >= cfg.ctr_benchmark
        and sku.cr_cart < cfg.cr_cart_low
        and sku.clicks > 50,
        lambda sku, cfg: _finding(
            DiagnosisBlock.CONVERSION,
            DiagnosisCode.CARD_CONVERSION_WEAK,
            0.75,
            ActionHint.PRICE_DOWN,
            f"CTR is fine ({sku.ctr:.1f}%) but few add to cart: {sku.cr_cart:.1f}%. "
            "The product card does not convince.",
            ctr=sku.ctr,
            cr_cart=sku.cr_cart,
        ),
    ),
    Rule(
        "checkout_conversion_weak",
        lambda sku, cfg: sku.cr_cart >= cfg.cr_cart_low
        and sku.cr_order < cfg.cr_order_low
        and sku.cart_adds > 20,
        lambda sku, cfg: _finding(
            DiagnosisBlock.CONVERSION,
            DiagnosisCode.CHECKOUT_CONVERSION_WEAK,
            0.7,
            ActionHint.HOLD,
            f"Carts are filled ({sku.cr_cart:.1f}%) but not ordered: CR {sku.cr_order:.1f}%. "
            "The problem is at checkout, not the price.",
            cr_cart=sku.cr_cart,
            cr_order=sku.cr_order,
        ),
    ),
]


def diagnose_conversion(sku: SKUData, config: OptimizerConfig) -> DiagnosisResult | None:
    if not is_known(sku.ctr, sku.cr_cart, sku.cr_order, sku.clicks, sku.cart_adds):
        return None
    return first_match(CONVERSION_RULES, sku, config)


# --- Block 5: Price --- #


def _competitor_cheaper(sku: SKUData) -> bool:
    return (
        is_known(sku.competitor_price_min)
        and sku.competitor_price_min > 0
        and sku.current_price > sku.competitor_price_min * COMPETITOR_PREMIUM
    )


def _overpriced(sku: SKUData, config: OptimizerConfig) -> DiagnosisResult:
    if _competitor_cheaper(sku):
        return _finding(
            DiagnosisBlock.PRICE,
            DiagnosisCode.OVERPRICED,
            0.85,
            ActionHint.PRICE_DOWN,
            f"CTR {sku.ctr:.1f}% is fine but CR {sku.cr_order:.1f}% is low. Competitors are "
            f"cheaper (from {sku.competitor_price_min:g} vs our {sku.current_price:g}).",
            ctr=sku.ctr,
            cr_order=sku.cr_order,
            current_price=sku.current_price,
            competitor_price_min=sku.competitor_price_min,
        )
    return _finding(
        DiagnosisBlock.PRICE,
        DiagnosisCode.OVERPRICED,
        0.7,
        ActionHint.PRICE_DOWN,
        f"CTR {sku.ctr:.1f}% is fine but CR {sku.cr_order:.1f}% is low. "
        f"The price {sku.current_price:g} may be scaring buyers off.",
        ctr=sku.ctr,
        cr_order=sku.cr_order,
        current_price=sku.current_price,
    )


PRICE_RULES = [
    Rule(
        "overpriced",
        lambda sku, cfg: is_known(sku.ctr, sku.cr_order)
        and sku.ctr >= cfg.ctr_benchmark
        and sku.cr_order < cfg.cr_order_low,
        _overpriced,
    ),
    Rule(
        "underpriced",
        lambda sku, cfg: is_known(sku.stock_cover_days, sku.orders_per_day)
        and sku.stock_cover_days <= cfg.stock_critical_days
        and sku.orders_per_day > 0.5,
        lambda sku, cfg: _finding(
            DiagnosisBlock.PRICE,
            DiagnosisCode.UNDERPRICED,
            0.9,
            ActionHint.PRICE_UP,
            f"Deficit: stock for {sku.stock_cover_days:.0f} days at "
            f"{sku.orders_per_day:.1f} orders/day. Price can go up.",
            stock_cover_days=sku.stock_cover_days,
            orders_per_day=sku.orders_per_day,
        ),
    ),
    Rule(
        "price_competitive",
        lambda sku, cfg: is_known(sku.ctr, sku.cr_order)
        and sku.ctr >= cfg.ctr_benchmark
        and sku.cr_order >= cfg.cr_order_low,
        lambda sku, cfg: _finding(
            DiagnosisBlock.PRICE,
            DiagnosisCode.PRICE_COMPETITIVE,
            0.8,
            ActionHint.HOLD,
            f"Price is competitive: CTR {sku.ctr:.1f}%, CR {sku.cr_order:.1f}%. Leave it.",
            ctr=sku.ctr,
            cr_order=sku.cr_order,
        ),
    ),
]


def diagnose_price(sku: SKUData, config: OptimizerConfig) -> DiagnosisResult | None:
    return first_match(PRICE_RULES, sku, config)


# --- Block 6: Rank --- #


RANK_RULES = [
    Rule(
        "rank_drop_critical",
        lambda sku, cfg, trend: trend < cfg.rank_drop_critical,
        lambda sku, cfg, trend: _finding(
            DiagnosisBlock.RANK,
            DiagnosisCode.RANK_DROP_CRITICAL,
            0.9,
            ActionHint.HOLD,
            f"CRITICAL: orders fell to {trend * 100:.0f}% of average. Price increase blocked.",
            effective_trend=trend,
            orders_last_7d=sku.orders_last_7d,
            orders_last_14d=sku.orders_last_14d,
        ),
    ),
    Rule(
        "rank_drop_warning",
        lambda sku, cfg, trend: trend < cfg.rank_drop_warning,
        lambda sku, cfg, trend: _finding(
            DiagnosisBlock.RANK,
            DiagnosisCode.RANK_DROP_WARNING,
            0.75,
            ActionHint.ADS_UP,
            f"Orders declining: {trend * 100:.0f}% of average. Consider stronger ads.",
            effective_trend=trend,
        ),
    ),
    Rule(
        "impressions_drop",
        lambda sku, cfg, trend: is_known(sku.impressions_trend_14d)
        and sku.impressions_trend_14d < -cfg.sales_drop_warning * 100,
        lambda sku, cfg, trend: _finding(
            DiagnosisBlock.RANK,
            DiagnosisCode.RANK_DROP_WARNING,
            0.7,
            ActionHint.ADS_UP,
            f"Impressions fell by {abs(sku.impressions_trend_14d):.0f}%. "
            "Search position is slipping.",
            impressions_trend_14d=sku.impressions_trend_14d,
        ),
    ),
]


def diagnose_rank(sku: SKUData, config: OptimizerConfig) -> DiagnosisResult | None:
    trend = effective_order_trend(sku)
    if not is_known(trend):
        return None
    return first_match(RANK_RULES, sku, config, trend)


# --- Main entry point --- #

ANALYSIS_BLOCKS = (
    ("traffic", diagnose_traffic),
    ("creative", diagnose_creative),
    ("conversion", diagnose_conversion),
    ("price", diagnose_price),
    ("rank", diagnose_rank),
)


def run_diagnostics(sku: SKUData, config: OptimizerConfig) -> list[DiagnosisResult]:
    """
    Run all six diagnostic blocks on a SKU.
    Returns the detected findings (empty if the SKU is healthy); with
    insufficient data only the INSUFFICIENT_DATA finding is returned.
    """
    data_check = run_check("data", check_data_sufficiency, sku, config)
    if data_check is not None:
        return [data_check]
    return collect(ANALYSIS_BLOCKS, sku, config)


# --- Helpers --- #


def get_most_critical_diagnosis(diagnoses: list[DiagnosisResult]) -> DiagnosisResult | None:
    """Top finding by block priority, then by descending confidence."""
    if not diagnoses:
        return None
    ranked = sorted(
        diagnoses,
        key=lambda d: (BLOCK_PRIORITY.index(d.block), -d.confidence),
    )
    return ranked[0]


def has_action_hint(diagnoses: list[DiagnosisResult], action: ActionHint) -> bool:
    return any(d.action_hint == action for d in diagnoses)


def get_diagnoses_by_action(
    diagnoses: list[DiagnosisResult], action: ActionHint
) -> list[DiagnosisResult]:
    return [d for d in diagnoses if d.action_hint == action]
