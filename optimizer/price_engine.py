"""
Price Engine: decides whether a price change is warranted.

Only three triggers change price (CLEAR, LOW_STOCK, OVERPRICED), plus the
mode-forced directions of STOP and high-conversion COW. Everything else is
HOLD. Gold SKUs have every step clamped to the gold maximum.
"""

from config.config import OptimizerConfig
from models.enums import ActionHint, DiagnosisCode, PriceAction, PriceTrigger, SKUMode
from models.optimizer import DiagnosisResult, ExpectedImpact, ModeResult, PriceRecommendation
from models.sku import SKUData, is_known

from .diagnostics import has_action_hint
from .rules import Rule, first_match

# Placeholder price elasticity of demand
DEFAULT_ELASTICITY = -1.5
# Unit margin assumed when cm0 is unknown, as a share of price
FALLBACK_UNIT_MARGIN = 0.3

SCENARIO_DELTAS = (
    (-0.10, "-10%"),
    (-0.05, "-5%"),
    (0.0, "Current"),
    (0.03, "+3%"),
    (0.05, "+5%"),
)


def _signed(action: PriceAction, delta_pct: float) -> float:
    return -delta_pct if action == PriceAction.DOWN else delta_pct


def calculate_price_impact(
    sku: SKUData, delta_pct: float, elasticity: float = DEFAULT_ELASTICITY
) -> dict[str, float]:
    """
    Estimate the order and profit effect of a signed price change
    (``delta_pct`` = -0.05 is a 5% cut) with a fixed elasticity.
    """
    price = sku.current_price
    orders_per_day = sku.orders_per_day if is_known(sku.orders_per_day) else 0.0
    unit_margin = sku.cm0 if is_known(sku.cm0) else price * FALLBACK_UNIT_MARGIN

    new_price = price * (1 + delta_pct)
    orders_delta_pct = delta_pct * elasticity
    new_orders_per_day = orders_per_day * (1 + orders_delta_pct)

    current_profit = orders_per_day * unit_margin
    new_profit = new_orders_per_day * (unit_margin + (new_price - price))
    return {
        "new_price": new_price,
        "expected_orders_delta": new_orders_per_day - orders_per_day,
        "expected_profit_delta": new_profit - current_profit,
    }


def _recommend(
    sku: SKUData,
    config: OptimizerConfig,
    is_gold_sku: bool,
    action: PriceAction,
    delta_pct: float,
    trigger: PriceTrigger,
    ttl_days: int,
    reason: str,
) -> PriceRecommendation:
    """Build a non-HOLD recommendation with gold clamping and expected impact."""
    max_gold_step = config.max_price_step_pct_gold
    if is_gold_sku and abs(delta_pct) > max_gold_step:
        delta_pct = max_gold_step if delta_pct > 0 else -max_gold_step
        reason = f"{reason} [Gold: limited to ±{max_gold_step * 100:.0f}%]"

    impact = calculate_price_impact(sku, _signed(action, delta_pct))
    return PriceRecommendation(
        action=action,
        delta_pct=delta_pct,
        trigger=trigger,
        ttl_days=ttl_days,
        reason=reason,
        expected_impact=ExpectedImpact(
            profit_delta=impact["expected_profit_delta"],
            orders_delta=impact["expected_orders_delta"],
        ),
    )


def _overpriced_signal(sku, mode, diagnoses, config) -> bool:
    flagged = any(d.code == DiagnosisCode.OVERPRICED for d in diagnoses) or has_action_hint(
        diagnoses, ActionHint.PRICE_DOWN
    )
    return (
        flagged
        and is_known(sku.ctr, sku.cr_order)
        and sku.ctr >= config.ctr_benchmark
        and sku.cr_order < config.cr_order_low
    )


def _low_stock(sku, mode, diagnoses, config) -> bool:
    return (
        is_known(sku.stock_cover_days, sku.orders_per_day)
        and sku.stock_cover_days <= config.stock_critical_days
        and sku.orders_per_day > 0
    )


TRIGGER_RULES = [
    Rule(
        "mode_stop",
        lambda sku, mode, diagnoses, cfg: mode.mode == SKUMode.STOP,
        lambda sku, mode, diagnoses, cfg: (
            PriceAction.UP,
            cfg.price_step_low_stock,
            PriceTrigger.MODE_STOP,
            14,
            "STOP mode: loss-making SKU, raising price to get out of the red.",
        ),
    ),
    Rule(
        "clear",
        lambda sku, mode, diagnoses, cfg: mode.mode == SKUMode.CLEAR,
        lambda sku, mode, diagnoses, cfg: (
            PriceAction.DOWN,
            cfg.price_step_clear,
            PriceTrigger.CLEAR,
            7,
            f"Trigger A: overstock ({sku.stock_cover_days:.0f}d). Lowering to speed up sales.",
        ),
    ),
    Rule(
        "low_stock",
        _low_stock,
        lambda sku, mode, diagnoses, cfg: (
            PriceAction.UP,
            cfg.price_step_low_stock,
            PriceTrigger.LOW_STOCK,
            7,
            f"Trigger B: deficit ({sku.stock_cover_days:.0f}d of stock). "
            "Raising price to slow sales down.",
        ),
    ),
    Rule(
        "overpriced",
        _overpriced_signal,
        lambda sku, mode, diagnoses, cfg: (
            PriceAction.DOWN,
            cfg.price_step_overpriced,
            PriceTrigger.OVERPRICED,
            7,
            f"Trigger C: CTR {sku.ctr:.1f}% is fine but CR {sku.cr_order:.1f}% is low. "
            "Testing a price cut.",
        ),
    ),
    Rule(
        "mode_cow_high_conversion",
        lambda sku, mode, diagnoses, cfg: mode.mode == SKUMode.COW
        and is_known(sku.cr_order)
        and sku.cr_order > cfg.cr_order_high,
        # Step is the gold maximum for every SKU
        lambda sku, mode, diagnoses, cfg: (
            PriceAction.UP,
            cfg.max_price_step_pct_gold,
            PriceTrigger.MODE_COW,
            7,
            f"COW with high CR ({sku.cr_order:.1f}%). Careful increase.",
        ),
    ),
]


def evaluate_price(
    sku: SKUData,
    mode: ModeResult,
    diagnoses: list[DiagnosisResult],
    config: OptimizerConfig,
    is_gold_sku: bool = False,
) -> PriceRecommendation:
    """Propose a price action for a SKU; the first matching trigger wins."""
    proposal = first_match(TRIGGER_RULES, sku, mode, diagnoses, config)
    if proposal is None:
        return PriceRecommendation(
            action=PriceAction.HOLD,
            delta_pct=0.0,
            trigger=PriceTrigger.NONE,
            ttl_days=config.ttl_default_days,
            reason="No trigger for a price change. Holding the current price.",
        )
    action, delta_pct, trigger, ttl_days, reason = proposal
    return _recommend(sku, config, is_gold_sku, action, delta_pct, trigger, ttl_days, reason)


# --- Forward-looking scenarios (display only) --- #


def generate_price_scenarios(sku: SKUData, config: OptimizerConfig) -> list[dict]:
    """Expected daily profit for each candidate price change."""
    unit_margin = sku.cm0 if is_known(sku.cm0) else sku.current_price * FALLBACK_UNIT_MARGIN
    orders_per_day = sku.orders_per_day if is_known(sku.orders_per_day) else 0.0
    base_profit = orders_per_day * unit_margin

    scenarios = []
    for delta_pct, label in SCENARIO_DELTAS:
        impact = calculate_price_impact(sku, delta_pct)
        scenarios.append(
            {
                "delta_pct": delta_pct,
                "new_price": impact["new_price"],
                "expected_profit": base_profit + impact["expected_profit_delta"],
                "label": label,
            }
        )
    return scenarios


def find_optimal_scenario(sku: SKUData, config: OptimizerConfig) -> dict[str, float]:
    """Scenario with the highest expected profit; ties keep the current price."""
    scenarios = generate_price_scenarios(sku, config)
    best = next(s for s in scenarios if s["delta_pct"] == 0.0)
    for scenario in scenarios:
        if scenario["expected_profit"] > best["expected_profit"]:
            best = scenario
    return {"delta_pct": best["delta_pct"], "expected_profit": best["expected_profit"]}


# --- Display helpers --- #

PRICE_ACTION_SYMBOLS = {
    PriceAction.UP: "↑",
    PriceAction.DOWN: "↓",
    PriceAction.HOLD: "→",
}


def get_price_action_symbol(action: PriceAction) -> str:
    return PRICE_ACTION_SYMBOLS[action]


def format_price_delta(delta_pct: float, action: PriceAction | None = None) -> str:
    """Render a step as a signed percentage; ``action`` supplies the sign of a magnitude."""
    if action is not None:
        delta_pct = _signed(action, abs(delta_pct))
    if delta_pct == 0:
        return "0%"
    sign = "+" if delta_pct > 0 else ""
    return f"{sign}{delta_pct * 100:.0f}%"
