"""
Safety Guard Bank: nine independent rules that can veto a price direction.

Guards run in a fixed order. Each one that examines the SKU returns a
``GuardResult`` (blocking or not); guards gated on the proposed action, gold
status or family membership are omitted when the gate is closed.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from config.config import OptimizerConfig
from models.enums import BlockDirection, GuardType, PriceAction
from models.optimizer import GuardResult, PriceRecommendation
from models.reference import ChangeHistory, FamilyDefinition
from models.sku import SKUData, is_known
from utils.time_utils import as_utc, whole_days_between

from .diagnostics import effective_order_trend, has_enough_data
from .rules import Rule, always, run_check

logger = logging.getLogger(__name__)

# Ad spend without a single ad order above this amount is a budget leak
SPEND_LEAK_MIN_SPEND = 1000


@dataclass
class GuardOptions:
    """Context looked up by the caller before the guards run."""

    recent_changes: list[ChangeHistory] = field(default_factory=list)
    family: FamilyDefinition | None = None
    family_changes_today: int = 0
    is_gold_sku: bool = False
    is_manual_locked: bool = False
    now: datetime | None = None

    def current_time(self) -> datetime:
        return self.now or datetime.now(timezone.utc)


def _result(guard, blocked, reason, direction=None, **details) -> GuardResult:
    return GuardResult(
        guard=guard,
        blocked=blocked,
        blocks_direction=direction if blocked else None,
        reason=reason,
        details=details,
    )


# --- 1. Manual override --- #


def check_manual_override(sku, rec, config, options) -> GuardResult:
    if options.is_manual_locked:
        return _result(
            GuardType.MANUAL_OVERRIDE,
            True,
            "Manual lock is active. The system does not touch this SKU.",
            BlockDirection.BOTH,
        )
    return _result(GuardType.MANUAL_OVERRIDE, False, "No manual lock.")


# --- 2. Data --- #


def check_data_guard(sku, rec, config, options) -> GuardResult:
    if not has_enough_data(sku, config):
        clicks = sku.clicks if is_known(sku.clicks) else 0
        orders = sku.orders if is_known(sku.orders) else 0
        return _result(
            GuardType.DATA_GUARD,
            True,
            f"Not enough data: {clicks:g}/{config.min_clicks_for_decision} clicks, "
            f"{orders:g}/{config.min_orders_for_decision} orders.",
            BlockDirection.BOTH,
            clicks=clicks,
            orders=orders,
        )
    return _result(GuardType.DATA_GUARD, False, "Enough data to decide.")


# --- 3. Cooldown --- #


def _last_change(
    sku: SKUData, recent_changes: list[ChangeHistory]
) -> tuple[datetime | None, ChangeHistory | None]:
    """Most recent change: the SKU's own timestamp or a matching history entry."""
    candidates: list[tuple[datetime, ChangeHistory | None]] = []
    if sku.last_price_change is not None:
        candidates.append((sku.last_price_change, None))
    candidates.extend((c.timestamp, c) for c in recent_changes if c.sku == sku.sku)
    if not candidates:
        return None, None
    return max(candidates, key=lambda c: as_utc(c[0]))


def check_cooldown_guard(sku, rec, config, options) -> GuardResult:
    cooldown_days = (
        config.cooldown_price_days_gold if options.is_gold_sku else config.cooldown_price_days
    )
    last_at, last_change = _last_change(sku, options.recent_changes)
    if last_at is not None:
        days_since = whole_days_between(options.current_time(), last_at)
        if days_since < cooldown_days:
            reason = f"Cooldown: {days_since}/{cooldown_days} days since the last change"
            if last_change is not None:
                reason += f" ({last_change.action.value} {last_change.delta_pct * 100:.0f}%)"
            return _result(
                GuardType.COOLDOWN_GUARD,
                True,
                f"{reason}.",
                BlockDirection.BOTH,
                days_since_change=days_since,
                cooldown_days=cooldown_days,
            )
    return _result(
        GuardType.COOLDOWN_GUARD, False, f"Cooldown passed ({cooldown_days} days required)."
    )


# --- 4. Minimum margin (DOWN only) --- #


def margin_after_change(sku: SKUData, rec: PriceRecommendation) -> float | None:
    """Margin ratio after the proposed cut, from cost price or the current margin."""
    if not is_known(sku.current_price) or sku.current_price <= 0:
        return None
    new_price = sku.current_price * (1 - rec.delta_pct)
    if new_price <= 0:
        return None
    if is_known(sku.cost_price) and sku.cost_price > 0:
        return (new_price - sku.cost_price) / new_price
    if is_known(sku.margin):
        current_cost = sku.current_price * (1 - sku.margin)
        return (new_price - current_cost) / new_price
    return None


def check_min_margin_guard(sku, rec, config, options) -> GuardResult:
    floor = config.min_margin_pct
    new_margin = margin_after_change(sku, rec)
    if new_margin is not None and new_margin < floor:
        return _result(
            GuardType.MIN_MARGIN_GUARD,
            True,
            f"Margin after the cut would be {new_margin * 100:.0f}% "
            f"< {floor * 100:.0f}% minimum.",
            BlockDirection.DOWN,
            new_margin=new_margin,
            min_margin_pct=floor,
        )
    if is_known(sku.margin) and sku.margin <= floor:
        return _result(
            GuardType.MIN_MARGIN_GUARD,
            True,
            f"Current margin {sku.margin * 100:.0f}% is already at the minimum. "
            "Price cuts are not allowed.",
            BlockDirection.DOWN,
            margin=sku.margin,
            min_margin_pct=floor,
        )
    return _result(GuardType.MIN_MARGIN_GUARD, False, "Margin stays above the minimum.")


# --- 5. Gold protection (gold SKUs only) --- #


def check_gold_protection(sku, rec, config, options) -> GuardResult:
    max_step = config.max_price_step_pct_gold
    if abs(rec.delta_pct) > max_step:
        return _result(
            GuardType.GOLD_PROTECTION,
            True,
            f"Gold SKU: step {abs(rec.delta_pct) * 100:.0f}% exceeds the "
            f"{max_step * 100:.0f}% limit.",
            BlockDirection.BOTH,
            requested=rec.delta_pct,
            max=max_step,
        )
    return _result(
        GuardType.GOLD_PROTECTION, False, f"Gold SKU: step within ±{max_step * 100:.0f}%."
    )


# --- 6. Rank drop (UP only) --- #


def check_rank_drop_guard(sku, rec, config, options) -> GuardResult:
    ratio = effective_order_trend(sku)
    if ratio < config.rank_drop_critical:
        return _result(
            GuardType.RANK_DROP_GUARD,
            True,
            f"Orders fell to {ratio * 100:.0f}% of average. Price increase blocked.",
            BlockDirection.UP,
            effective_ratio=ratio,
            rank_drop_critical=config.rank_drop_critical,
        )
    return _result(GuardType.RANK_DROP_GUARD, False, "Ranking is stable.")


# --- 7. Stock (DOWN only) --- #


def check_stock_guard(sku, rec, config, options) -> GuardResult:
    cover = sku.stock_cover_days
    if is_known(cover) and cover < config.stock_critical_days:
        return _result(
            GuardType.STOCK_GUARD,
            True,
            f"Low stock ({cover:.0f} days). Price cuts and ad scaling are blocked.",
            BlockDirection.DOWN,
            stock_cover_days=cover,
            stock_critical_days=config.stock_critical_days,
        )
    return _result(GuardType.STOCK_GUARD, False, "Stock is sufficient.")


# --- 8. Family (family members, non-HOLD only) --- #


def check_family_guard(sku, rec, config, options) -> GuardResult:
    family = options.family
    changes = options.family_changes_today
    if changes >= config.family_max_changes:
        return _result(
            GuardType.FAMILY_GUARD,
            True,
            f'Family "{family.name or family.family_id}": already '
            f"{changes}/{config.family_max_changes} changes today.",
            BlockDirection.BOTH,
            family=family.family_id,
            family_changes_today=changes,
            family_max_changes=config.family_max_changes,
        )
    # TODO: validate the family price ladder once sibling prices are passed in
    return _result(
        GuardType.FAMILY_GUARD,
        False,
        f'Family "{family.name or family.family_id}": change allowed.',
    )


# --- 9. Spend leak --- #


def check_spend_leak_guard(sku, rec, config, options) -> GuardResult:
    if (
        is_known(sku.ad_spend, sku.ad_orders)
        and sku.ad_spend > SPEND_LEAK_MIN_SPEND
        and sku.ad_orders == 0
    ):
        return _result(
            GuardType.SPEND_LEAK_GUARD,
            True,
            f"Ad spend {sku.ad_spend:.0f} with no orders. Budget leak, audit the campaigns.",
            BlockDirection.BOTH,
            ad_spend=sku.ad_spend,
            ad_orders=sku.ad_orders,
        )
    if (
        is_known(sku.cpo, sku.cm0)
        and sku.cm0 > 0
        and sku.cpo > sku.cm0 * config.spend_spike_multiplier
    ):
        # Warning only
        return _result(
            GuardType.SPEND_LEAK_GUARD,
            False,
            f"CPO ({sku.cpo:.0f}) is {sku.cpo / sku.cm0:.1f}x the unit margin. "
            "Consider reducing ads.",
            cpo=sku.cpo,
            cm0=sku.cm0,
        )
    return _result(GuardType.SPEND_LEAK_GUARD, False, "Ad spend is normal.")


def _action_is(action: PriceAction):
    return lambda sku, rec, config, options: rec.action == action


GUARD_RULES = [
    Rule(GuardType.MANUAL_OVERRIDE.value, always, check_manual_override),
    Rule(GuardType.DATA_GUARD.value, always, check_data_guard),
    Rule(GuardType.COOLDOWN_GUARD.value, always, check_cooldown_guard),
    Rule(GuardType.MIN_MARGIN_GUARD.value, _action_is(PriceAction.DOWN), check_min_margin_guard),
    Rule(
        GuardType.GOLD_PROTECTION.value,
        lambda sku, rec, config, options: options.is_gold_sku,
        check_gold_protection,
    ),
    Rule(GuardType.RANK_DROP_GUARD.value, _action_is(PriceAction.UP), check_rank_drop_guard),
    Rule(GuardType.STOCK_GUARD.value, _action_is(PriceAction.DOWN), check_stock_guard),
    Rule(
        GuardType.FAMILY_GUARD.value,
        lambda sku, rec, config, options: options.family is not None
        and rec.action != PriceAction.HOLD,
        check_family_guard,
    ),
    Rule(GuardType.SPEND_LEAK_GUARD.value, always, check_spend_leak_guard),
]


def run_safety_guards(
    sku: SKUData,
    recommendation: PriceRecommendation,
    config: OptimizerConfig,
    options: GuardOptions | None = None,
) -> list[GuardResult]:
    """Run the guard bank in order and return every guard that was evaluated."""
    options = options or GuardOptions()
    results = []
    for rule in GUARD_RULES:
        if not rule.when(sku, recommendation, config, options):
            continue
        result = run_check(rule.name, rule.then, sku, recommendation, config, options)
        if result is not None:
            results.append(result)
    blocking = [r.guard.value for r in results if r.blocked]
    if blocking:
        logger.debug(f"{sku.sku}: blocked by {', '.join(blocking)}")
    return results


# --- Helpers --- #

GUARD_PRIORITY = {guard: position for position, guard in enumerate(GuardType, start=1)}

GUARD_DISPLAY_INFO = {
    GuardType.MANUAL_OVERRIDE: {"symbol": "🔒", "label": "Manual Lock"},
    GuardType.DATA_GUARD: {"symbol": "📊", "label": "Data Guard"},
    GuardType.COOLDOWN_GUARD: {"symbol": "⏳", "label": "Cooldown"},
    GuardType.MIN_MARGIN_GUARD: {"symbol": "💰", "label": "Min Margin"},
    GuardType.GOLD_PROTECTION: {"symbol": "🏆", "label": "Gold Protection"},
    GuardType.RANK_DROP_GUARD: {"symbol": "📉", "label": "Rank Drop"},
    GuardType.STOCK_GUARD: {"symbol": "📦", "label": "Low Stock"},
    GuardType.FAMILY_GUARD: {"symbol": "👪", "label": "Family Limit"},
    GuardType.SPEND_LEAK_GUARD: {"symbol": "💸", "label": "Spend Leak"},
}


def is_direction_blocked(guards: list[GuardResult], direction: PriceAction | str) -> bool:
    """True if any blocking guard targets ``direction`` or BOTH."""
    action = PriceAction(direction)
    if action == PriceAction.HOLD:
        return False
    direction = BlockDirection(action.value)
    return any(
        g.blocked and g.blocks_direction in (direction, BlockDirection.BOTH) for g in guards
    )


def get_blocking_guards(guards: list[GuardResult]) -> list[GuardResult]:
    return [g for g in guards if g.blocked]


def get_guard_priority(guard: GuardType) -> int:
    """Position in the evaluation order, 1 = first."""
    return GUARD_PRIORITY[guard]


def get_guard_display_info(guard: GuardType) -> dict[str, str]:
    return dict(GUARD_DISPLAY_INFO[guard])
