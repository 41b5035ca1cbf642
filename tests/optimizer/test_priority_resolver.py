import pytest

from models.enums import (
    ActionHint,
    AdsAction,
    BlockDirection,
    DiagnosisBlock,
    DiagnosisCode,
    GuardType,
    PriceAction,
    PriceTrigger,
    SKUMode,
    Urgency,
)
from models.optimizer import (
    DiagnosisResult,
    FinalDecision,
    GuardResult,
    ModeActions,
    ModeResult,
    PriceRecommendation,
)
from optimizer.priority_resolver import (
    calculate_confidence,
    format_decision,
    get_decision_summary,
    get_urgency,
    is_actionable,
    resolve_conflicts,
)
from optimizer.safety_guards import is_direction_blocked

GROWTH = ModeResult(
    mode=SKUMode.GROWTH,
    reason="growth",
    ttl_days=7,
    actions=ModeActions(price=PriceAction.HOLD, ads=AdsAction.ON),
)
STOP = ModeResult(
    mode=SKUMode.STOP,
    reason="stop",
    ttl_days=14,
    actions=ModeActions(price=PriceAction.UP, ads=AdsAction.PAUSE),
)


def rec(action=PriceAction.UP, delta=0.05, trigger=PriceTrigger.LOW_STOCK):
    return PriceRecommendation(action=action, delta_pct=delta, trigger=trigger, ttl_days=7, reason="engine says so")


def block(guard, direction=BlockDirection.BOTH):
    return GuardResult(guard=guard, blocked=True, blocks_direction=direction, reason=f"{guard.value} blocked")


def passed(guard):
    return GuardResult(guard=guard, blocked=False, reason="ok")


# --- Test terminal levels --- #


@pytest.mark.parametrize(
    "guard", [GuardType.MANUAL_OVERRIDE, GuardType.DATA_GUARD, GuardType.COOLDOWN_GUARD]
)
def test_stop_signals_hold_at_level_1(make_sku, config, guard):
    decision = resolve_conflicts(make_sku(), GROWTH, rec(), [], [block(guard)], config)
    assert decision.action == PriceAction.HOLD
    assert decision.delta_pct == 0
    assert decision.priority_level == 1
    assert decision.confidence == 0.95
    assert decision.blocked_by == (guard.value,)
    assert decision.reason_chain[0].startswith("L1 [Stop signal]")


def test_opposite_prohibitions_hold_at_level_2(make_sku, config):
    guards = [
        block(GuardType.MIN_MARGIN_GUARD, BlockDirection.DOWN),
        block(GuardType.RANK_DROP_GUARD, BlockDirection.UP),
    ]
    decision = resolve_conflicts(make_sku(), GROWTH, rec(), [], guards, config)
    assert decision.action == PriceAction.HOLD
    assert decision.priority_level == 2
    assert decision.confidence == 0.9
    assert decision.blocked_by == ("MIN_MARGIN_GUARD→DOWN", "RANK_DROP_GUARD→UP")


@pytest.mark.parametrize("guard", [GuardType.SPEND_LEAK_GUARD, GuardType.GOLD_PROTECTION])
def test_both_direction_prohibitions_hold(make_sku, config, guard):
    decision = resolve_conflicts(make_sku(), GROWTH, rec(), [], [block(guard)], config)
    assert decision.action == PriceAction.HOLD
    assert decision.priority_level == 2


def test_family_limit_holds_at_level_4(make_sku, config):
    decision = resolve_conflicts(make_sku(), GROWTH, rec(), [], [block(GuardType.FAMILY_GUARD)], config)
    assert decision.action == PriceAction.HOLD
    assert decision.priority_level == 4
    assert decision.confidence == 0.85
    assert "FAMILY_GUARD" in decision.blocked_by


# --- Test non-terminal path --- #


def test_engine_proposal_passes_through(make_sku, config):
    guards = [passed(GuardType.MANUAL_OVERRIDE), passed(GuardType.RANK_DROP_GUARD)]
    decision = resolve_conflicts(make_sku(), GROWTH, rec(), [], guards, config)
    assert decision.action == PriceAction.UP
    assert decision.delta_pct == 0.05
    assert decision.priority_level == 6
    assert decision.applied_rules == (
        "L1_PASSED",
        "L2_PASSED",
        "L4_PASSED",
        "MODE_GROWTH",
        "TRIGGER_LOW_STOCK",
    )


def test_reason_chain_follows_level_order(make_sku, config):
    decision = resolve_conflicts(make_sku(), GROWTH, rec(), [], [], config)
    prefixes = [line.split(" ")[0].rstrip(":") for line in decision.reason_chain]
    assert prefixes == ["L1", "L3", "L5", "L6", "L7"]


def test_blocked_direction_downgrades_to_hold(make_sku, config):
    guards = [block(GuardType.STOCK_GUARD, BlockDirection.DOWN)]
    decision = resolve_conflicts(make_sku(), GROWTH, rec(PriceAction.DOWN, 0.03), [], guards, config)
    assert decision.action == PriceAction.HOLD
    assert decision.delta_pct == 0
    assert decision.priority_level == 2
    assert any("blocked → HOLD" in line for line in decision.reason_chain)


def test_unblocked_direction_still_applies(make_sku, config):
    guards = [block(GuardType.STOCK_GUARD, BlockDirection.DOWN)]
    decision = resolve_conflicts(make_sku(), GROWTH, rec(PriceAction.UP, 0.05), [], guards, config)
    assert decision.action == PriceAction.UP
    assert decision.priority_level == 6
    assert decision.blocked_by == ("STOCK_GUARD→DOWN",)


def test_mode_trigger_decides_at_level_5(make_sku, config):
    decision = resolve_conflicts(make_sku(), STOP, rec(trigger=PriceTrigger.MODE_STOP), [], [], config)
    assert decision.action == PriceAction.UP
    assert decision.priority_level == 5
    assert "MODE_STOP" in decision.applied_rules


def test_mode_direction_blocked_is_noted(make_sku, config):
    guards = [block(GuardType.RANK_DROP_GUARD, BlockDirection.UP)]
    decision = resolve_conflicts(make_sku(), STOP, rec(trigger=PriceTrigger.MODE_STOP), [], guards, config)
    assert decision.action == PriceAction.HOLD
    assert any(line.startswith("L5: Mode wants UP") for line in decision.reason_chain)


def test_step_is_clamped_to_max_step(make_sku, config):
    decision = resolve_conflicts(make_sku(), GROWTH, rec(delta=0.08), [], [], config)
    assert decision.delta_pct == config.max_price_step_pct


def test_gold_step_limit(make_sku, config):
    decision = resolve_conflicts(make_sku(), GROWTH, rec(delta=0.05), [], [], config, is_gold_sku=True)
    assert decision.delta_pct == config.max_price_step_pct_gold
    assert "GOLD_STEP_LIMIT" in decision.applied_rules


def test_hold_proposal_stays_hold(make_sku, config):
    decision = resolve_conflicts(make_sku(), GROWTH, rec(PriceAction.HOLD, 0.0, PriceTrigger.NONE), [], [], config)
    assert decision.action == PriceAction.HOLD
    assert decision.priority_level == 6


# --- Test properties --- #


@pytest.mark.parametrize("action", [PriceAction.UP, PriceAction.DOWN])
@pytest.mark.parametrize("guard", list(GuardType))
@pytest.mark.parametrize("direction", [BlockDirection.UP, BlockDirection.DOWN, BlockDirection.BOTH])
def test_blocked_direction_is_never_chosen(make_sku, config, action, guard, direction):
    guards = [block(guard, direction)]
    decision = resolve_conflicts(make_sku(), GROWTH, rec(action, 0.03), [], guards, config)
    for blocked in (PriceAction.UP, PriceAction.DOWN):
        if is_direction_blocked(guards, blocked):
            assert decision.action != blocked


def test_resolution_is_idempotent(make_sku, config):
    guards = [block(GuardType.STOCK_GUARD, BlockDirection.DOWN), passed(GuardType.DATA_GUARD)]
    args = (make_sku(), GROWTH, rec(), [], guards, config)
    assert resolve_conflicts(*args) == resolve_conflicts(*args)


# --- Test confidence --- #


def test_confidence_formula(make_sku):
    diagnosis = DiagnosisResult(
        block=DiagnosisBlock.PRICE,
        code=DiagnosisCode.PRICE_COMPETITIVE,
        confidence=0.8,
        action_hint=ActionHint.HOLD,
        reason="ok",
    )
    sku = make_sku(clicks=600, orders=40)
    guards = [block(GuardType.STOCK_GUARD, BlockDirection.DOWN), passed(GuardType.DATA_GUARD)]
    # 0.7 + 0.05 * 3 + 0.08 - 0.02
    assert calculate_confidence(sku, [diagnosis], guards) == pytest.approx(0.91)


def test_confidence_is_clamped(make_sku):
    guards = [block(GuardType.STOCK_GUARD, BlockDirection.DOWN)] * 40
    assert calculate_confidence(make_sku(clicks=40, orders=10), [], guards) == 0.1


# --- Test helpers --- #


def decision(action, delta, level, blocked_by=()):
    return FinalDecision(
        action=action,
        delta_pct=delta,
        confidence=0.8,
        priority_level=level,
        blocked_by=blocked_by,
        reason_chain=("L1: ok", "L6 [Optimization]: raise", "L7: none"),
    )


def test_is_actionable():
    assert is_actionable(decision(PriceAction.UP, 0.05, 6))
    assert not is_actionable(decision(PriceAction.HOLD, 0.0, 6))
    assert not is_actionable(decision(PriceAction.UP, 0.0, 6))


@pytest.mark.parametrize(
    "action,level,expected",
    [
        (PriceAction.UP, 2, Urgency.CRITICAL),
        (PriceAction.HOLD, 1, Urgency.WARNING),
        (PriceAction.HOLD, 6, Urgency.INFO),
        (PriceAction.UP, 5, Urgency.SUCCESS),
        (PriceAction.DOWN, 6, Urgency.WARNING),
    ],
)
def test_get_urgency(action, level, expected):
    assert get_urgency(decision(action, 0.03, level)) == expected


def test_format_decision():
    assert format_decision(decision(PriceAction.UP, 0.05, 6)) == "⬆ UP 5% (L6, 80%)"
    assert format_decision(decision(PriceAction.HOLD, 0.0, 1)) == "➡ HOLD (L1, 80%)"


def test_get_decision_summary():
    assert get_decision_summary(decision(PriceAction.HOLD, 0.0, 1, ("DATA_GUARD",))) == "Blocked: DATA_GUARD"
    assert get_decision_summary(decision(PriceAction.HOLD, 0.0, 6)) == "No triggers for a change"
    assert get_decision_summary(decision(PriceAction.UP, 0.05, 6)) == "L6 [Optimization]: raise"
