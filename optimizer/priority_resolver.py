"""
Priority Resolver: merges mode, price proposal, diagnoses and guards into
the single final decision.

Priority stack (lower level wins):
1. Stop signals   - manual lock, insufficient data, cooldown -> HOLD
2. Prohibitions   - directional blocks (margin, rank, stock, gold, spend leak)
3. Gold           - bounds the step size
4. Family         - cannibalization protection -> HOLD
5. Mode           - strategic direction
6. Optimization   - the price engine proposal
7. Tactics        - intraday adjustments, not applied yet

Levels 1, 2 and 4 may terminate early; the result is always HOLD there.
"""

from dataclasses import dataclass, field

from config.config import OptimizerConfig
from models.enums import BlockDirection, GuardType, PriceAction, PriceTrigger, Urgency
from models.optimizer import (
    DiagnosisResult,
    FinalDecision,
    GuardResult,
    ModeResult,
    PriceRecommendation,
)
from models.sku import SKUData, is_known

STOP_SIGNAL_GUARDS = (
    GuardType.MANUAL_OVERRIDE,
    GuardType.DATA_GUARD,
    GuardType.COOLDOWN_GUARD,
)
PROHIBITION_GUARDS = (
    GuardType.MIN_MARGIN_GUARD,
    GuardType.GOLD_PROTECTION,
    GuardType.RANK_DROP_GUARD,
    GuardType.STOCK_GUARD,
    GuardType.SPEND_LEAK_GUARD,
)
MODE_TRIGGERS = (PriceTrigger.MODE_STOP, PriceTrigger.MODE_COW)

BASE_CONFIDENCE = 0.7
MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 0.99


@dataclass
class _Resolution:
    """Working state threaded through the levels of one resolution."""

    sku: SKUData
    mode: ModeResult
    price_rec: PriceRecommendation
    diagnoses: list[DiagnosisResult]
    guards: list[GuardResult]
    config: OptimizerConfig
    is_gold_sku: bool
    allowed: set[PriceAction] = field(
        default_factory=lambda: {PriceAction.UP, PriceAction.DOWN, PriceAction.HOLD}
    )
    max_step: float = 0.0
    action: PriceAction = PriceAction.HOLD
    delta_pct: float = 0.0
    deciding_level: int = 6
    reason_chain: list[str] = field(default_factory=list)
    applied_rules: list[str] = field(default_factory=list)
    blocked_by: list[str] = field(default_factory=list)

    def blocking(self, kinds) -> list[GuardResult]:
        return [g for g in self.guards if g.blocked and g.guard in kinds]

    def hold(self, level: int, confidence: float, rule: str) -> FinalDecision:
        return FinalDecision(
            action=PriceAction.HOLD,
            delta_pct=0.0,
            confidence=confidence,
            priority_level=level,
            applied_rules=(*self.applied_rules, rule),
            blocked_by=tuple(self.blocked_by),
            reason_chain=tuple(self.reason_chain),
        )


def _level_1_stop_signals(state: _Resolution) -> FinalDecision | None:
    stops = state.blocking(STOP_SIGNAL_GUARDS)
    if stops:
        state.reason_chain.append(f"L1 [Stop signal]: {stops[0].reason}")
        state.blocked_by.extend(g.guard.value for g in stops)
        return state.hold(1, 0.95, "STOP_SIGNAL")
    state.reason_chain.append("L1: No stop signals")
    state.applied_rules.append("L1_PASSED")
    return None


def _level_2_prohibitions(state: _Resolution) -> FinalDecision | None:
    for guard in state.blocking(PROHIBITION_GUARDS):
        direction = guard.blocks_direction or BlockDirection.BOTH
        if direction == BlockDirection.BOTH:
            state.allowed -= {PriceAction.UP, PriceAction.DOWN}
            label = "UP+DOWN"
        else:
            state.allowed.discard(PriceAction(direction.value))
            label = direction.value
        state.blocked_by.append(f"{guard.guard.value}→{direction.value}")
        state.reason_chain.append(f"L2 [Prohibit {label}]: {guard.reason}")

    if PriceAction.UP not in state.allowed and PriceAction.DOWN not in state.allowed:
        state.reason_chain.append("L2: All directions blocked → HOLD")
        return state.hold(2, 0.9, "L2_PROHIBITIONS")
    state.applied_rules.append("L2_PASSED")
    return None


def _level_3_gold_step(state: _Resolution) -> None:
    if state.is_gold_sku:
        state.max_step = state.config.max_price_step_pct_gold
        state.reason_chain.append(f"L3 [Gold]: max step limited to {state.max_step * 100:.0f}%")
        state.applied_rules.append("GOLD_STEP_LIMIT")
    else:
        state.max_step = state.config.max_price_step_pct
        state.reason_chain.append(f"L3: Not a gold SKU, max step {state.max_step * 100:.0f}%")


def _level_4_family(state: _Resolution) -> FinalDecision | None:
    family = state.blocking((GuardType.FAMILY_GUARD,))
    if family:
        state.reason_chain.append(f"L4 [Family]: {family[0].reason}")
        state.blocked_by.append(GuardType.FAMILY_GUARD.value)
        return state.hold(4, 0.85, "FAMILY_LIMIT")
    state.applied_rules.append("L4_PASSED")
    return None


def _level_5_mode(state: _Resolution) -> None:
    mode = state.mode
    state.reason_chain.append(f"L5 [Mode {mode.mode.value}]: {mode.reason}")
    state.applied_rules.append(f"MODE_{mode.mode.value}")
    preferred = mode.actions.price
    if preferred != PriceAction.HOLD and preferred not in state.allowed:
        state.reason_chain.append(f"L5: Mode wants {preferred.value} but it is blocked → HOLD")


def _level_6_optimization(state: _Resolution) -> None:
    rec = state.price_rec
    if rec.action == PriceAction.HOLD:
        state.action, state.delta_pct = PriceAction.HOLD, 0.0
        return
    if rec.action not in state.allowed:
        state.reason_chain.append(
            f"L6: Price engine recommends {rec.action.value} but it is blocked → HOLD"
        )
        state.action, state.delta_pct = PriceAction.HOLD, 0.0
        state.deciding_level = 2
        return

    state.reason_chain.append(f"L6 [Optimization]: {rec.reason}")
    state.applied_rules.append(f"TRIGGER_{rec.trigger.value}")
    state.action, state.delta_pct = rec.action, rec.delta_pct
    if abs(state.delta_pct) > state.max_step:
        old_delta = state.delta_pct
        state.delta_pct = state.max_step if old_delta > 0 else -state.max_step
        state.reason_chain.append(
            f"L6: Step {old_delta * 100:.0f}% clamped to {state.delta_pct * 100:.0f}%"
        )
    state.deciding_level = 5 if rec.trigger in MODE_TRIGGERS else 6


def _level_7_tactics(state: _Resolution) -> None:
    state.reason_chain.append("L7: No tactical adjustments applied")


TERMINAL_LEVELS = (_level_1_stop_signals, _level_2_prohibitions)
NON_TERMINAL_LEVELS = (_level_5_mode, _level_6_optimization, _level_7_tactics)


def calculate_confidence(
    sku: SKUData, diagnoses: list[DiagnosisResult], guards: list[GuardResult]
) -> float:
    """Decision confidence from data volume, diagnosis strength and blocking guards."""
    confidence = BASE_CONFIDENCE
    clicks = sku.clicks if is_known(sku.clicks) else 0
    orders = sku.orders if is_known(sku.orders) else 0
    if clicks > 100:
        confidence += 0.05
    if orders > 30:
        confidence += 0.05
    if clicks > 500:
        confidence += 0.05

    confidence += max([d.confidence for d in diagnoses] + [0.0]) * 0.1
    confidence -= sum(1 for g in guards if g.blocked) * 0.02
    return min(MAX_CONFIDENCE, max(MIN_CONFIDENCE, confidence))


def resolve_conflicts(
    sku: SKUData,
    mode: ModeResult,
    price_rec: PriceRecommendation,
    diagnoses: list[DiagnosisResult],
    guards: list[GuardResult],
    config: OptimizerConfig,
    is_gold_sku: bool = False,
) -> FinalDecision:
    """Walk the seven priority levels and return the final decision."""
    state = _Resolution(
        sku=sku,
        mode=mode,
        price_rec=price_rec,
        diagnoses=list(diagnoses),
        guards=list(guards),
        config=config,
        is_gold_sku=is_gold_sku,
    )
    for level in TERMINAL_LEVELS:
        decision = level(state)
        if decision is not None:
            return decision
    _level_3_gold_step(state)
    decision = _level_4_family(state)
    if decision is not None:
        return decision
    for level in NON_TERMINAL_LEVELS:
        level(state)

    return FinalDecision(
        action=state.action,
        delta_pct=state.delta_pct,
        confidence=calculate_confidence(sku, state.diagnoses, state.guards),
        priority_level=state.deciding_level,
        applied_rules=tuple(state.applied_rules),
        blocked_by=tuple(state.blocked_by),
        reason_chain=tuple(state.reason_chain),
    )


# --- Helpers --- #

DECISION_SYMBOLS = {
    PriceAction.UP: "⬆",
    PriceAction.DOWN: "⬇",
    PriceAction.HOLD: "➡",
}


def format_decision(decision: FinalDecision) -> str:
    delta = f" {decision.delta_pct * 100:.0f}%" if decision.delta_pct != 0 else ""
    return (
        f"{DECISION_SYMBOLS[decision.action]} {decision.action.value}{delta} "
        f"(L{decision.priority_level}, {decision.confidence * 100:.0f}%)"
    )


def get_decision_summary(decision: FinalDecision) -> str:
    """One line explaining what drove the decision."""
    if decision.blocked_by:
        return f"Blocked: {', '.join(decision.blocked_by)}"
    if decision.action == PriceAction.HOLD:
        return "No triggers for a change"
    optimization = [r for r in decision.reason_chain if r.startswith("L6 [")]
    return optimization[-1] if optimization else "Profit optimization"


def is_actionable(decision: FinalDecision) -> bool:
    return decision.action != PriceAction.HOLD and decision.delta_pct != 0


def get_urgency(decision: FinalDecision) -> Urgency:
    if decision.priority_level <= 2:
        return Urgency.WARNING if decision.action == PriceAction.HOLD else Urgency.CRITICAL
    if decision.action == PriceAction.HOLD:
        return Urgency.INFO
    if decision.action == PriceAction.UP:
        return Urgency.SUCCESS
    return Urgency.WARNING
