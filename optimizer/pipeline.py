"""
Optimizer pipeline: runs every stage for one SKU or a batch.

1. Resolve config (global < category < sku) and reference lookups
2. Diagnostics (6 blocks)
3. Mode (STOP/CLEAR/COW/GROWTH)
4. Price proposal (triggers)
5. Safety guards (9 rules)
6. Priority resolution (7 levels)
7. Summary and urgency
"""

import logging
from datetime import datetime, timezone

from models.enums import PriceAction
from models.optimizer import DiagnosisResult, FinalDecision, ModeResult, OptimizerOutput
from models.reference import ChangeHistory
from models.sku import SKUData

from config.manager import ConfigResolver

from .diagnostics import get_most_critical_diagnosis, run_diagnostics
from .mode_classifier import classify_mode, get_mode_display_info
from .price_engine import evaluate_price, format_price_delta, get_price_action_symbol
from .priority_resolver import get_urgency, is_actionable, resolve_conflicts
from .safety_guards import GuardOptions, run_safety_guards

logger = logging.getLogger(__name__)


def generate_summary(
    mode: ModeResult, decision: FinalDecision, diagnoses: list[DiagnosisResult]
) -> str:
    """Short one-line description of the outcome for dashboards."""
    info = get_mode_display_info(mode.mode)
    summary = f"{info['symbol']} {info['description']}"
    if decision.action != PriceAction.HOLD:
        summary += (
            f" → {get_price_action_symbol(decision.action)} "
            f"{format_price_delta(decision.delta_pct, decision.action)}"
        )

    main = get_most_critical_diagnosis(diagnoses)
    if main is not None:
        summary += f" | {main.reason.split('.')[0]}"

    if decision.blocked_by:
        summary += f" [⛔ {len(decision.blocked_by)} block(s)]"
    return summary


def run_optimizer(
    sku: SKUData,
    resolver: ConfigResolver,
    recent_changes: list[ChangeHistory] | None = None,
    family_changes_today: dict[str, int] | None = None,
    now: datetime | None = None,
) -> OptimizerOutput:
    """Evaluate one SKU end to end and return its full output."""
    timestamp = now or datetime.now(timezone.utc)

    config = resolver.get_config(sku.sku, sku.category)
    is_gold = resolver.is_gold_sku(sku.sku)
    is_locked = resolver.is_manual_locked(sku.sku, timestamp)
    family = resolver.get_family_for_sku(sku.sku)

    diagnoses = run_diagnostics(sku, config)
    mode = classify_mode(sku, config)
    recommendation = evaluate_price(sku, mode, diagnoses, config, is_gold)

    family_changes = 0
    if family is not None and family_changes_today:
        family_changes = family_changes_today.get(family.family_id, 0)
    guards = run_safety_guards(
        sku,
        recommendation,
        config,
        GuardOptions(
            recent_changes=list(recent_changes or []),
            family=family,
            family_changes_today=family_changes,
            is_gold_sku=is_gold,
            is_manual_locked=is_locked,
            now=timestamp,
        ),
    )

    decision = resolve_conflicts(sku, mode, recommendation, diagnoses, guards, config, is_gold)
    logger.debug(
        f"{sku.sku}: mode={mode.mode.value} proposal={recommendation.action.value} "
        f"decision={decision.action.value} L{decision.priority_level}"
    )

    return OptimizerOutput(
        sku=sku.sku,
        nm_id=sku.nm_id,
        timestamp=timestamp,
        mode=mode,
        diagnoses=tuple(diagnoses),
        price_recommendation=recommendation,
        guards=tuple(guards),
        decision=decision,
        summary=generate_summary(mode, decision, diagnoses),
        urgency=get_urgency(decision),
    )


def run_optimizer_batch(
    skus: list[SKUData],
    resolver: ConfigResolver,
    recent_changes: list[ChangeHistory] | None = None,
    now: datetime | None = None,
) -> list[OptimizerOutput]:
    """
    Evaluate SKUs strictly in order. Each actionable decision counts against
    its family's daily change limit for the SKUs that follow it.
    """
    family_changes_today: dict[str, int] = {}
    results = []

    for sku in skus:
        result = run_optimizer(sku, resolver, recent_changes, family_changes_today, now)
        results.append(result)

        if is_actionable(result.decision):
            family = resolver.get_family_for_sku(sku.sku)
            if family is not None:
                family_changes_today[family.family_id] = (
                    family_changes_today.get(family.family_id, 0) + 1
                )

    actionable = sum(1 for r in results if is_actionable(r.decision))
    logger.info(f"Optimizer batch: {len(results)} SKUs, {actionable} actionable")
    return results
