"""
Read-only projections over a batch of optimizer outputs.
"""

from datetime import datetime, timezone

import pandas as pd

from models.enums import GuardType, PriceAction, SKUMode
from models.optimizer import OptimizerOutput

from .priority_resolver import is_actionable

REPORT_COLUMNS = [
    "sku",
    "nm_id",
    "mode",
    "proposed_action",
    "trigger",
    "action",
    "delta_pct",
    "confidence",
    "priority_level",
    "blocked_by",
    "urgency",
    "expected_profit_delta",
    "summary",
]


def group_by_mode(results: list[OptimizerOutput]) -> dict[SKUMode, list[OptimizerOutput]]:
    """Outputs per mode; every mode is present, possibly empty."""
    grouped: dict[SKUMode, list[OptimizerOutput]] = {mode: [] for mode in SKUMode}
    for result in results:
        grouped[result.mode.mode].append(result)
    return grouped


def get_action_stats(results: list[OptimizerOutput]) -> dict[str, int]:
    actions = [r.decision.action for r in results]
    return {
        "total": len(results),
        "up": actions.count(PriceAction.UP),
        "down": actions.count(PriceAction.DOWN),
        "hold": actions.count(PriceAction.HOLD),
        "blocked": sum(1 for r in results if r.decision.blocked_by),
    }


def get_top_priority_items(
    results: list[OptimizerOutput], limit: int = 10
) -> list[OptimizerOutput]:
    """Actionable outputs, most urgent level first, then by confidence."""
    actionable = [r for r in results if is_actionable(r.decision)]
    actionable.sort(key=lambda r: (r.decision.priority_level, -r.decision.confidence))
    return actionable[:limit]


def get_blocked_by_guard(
    results: list[OptimizerOutput], guard: GuardType | str
) -> list[OptimizerOutput]:
    """Outputs whose decision was blocked by exactly ``guard`` (in any direction)."""
    name = guard.value if isinstance(guard, GuardType) else guard
    return [
        r for r in results if any(b.split("→")[0] == name for b in r.decision.blocked_by)
    ]


def calculate_total_impact(results: list[OptimizerOutput]) -> dict[str, float]:
    total = 0.0
    affected = 0
    for result in results:
        impact = result.price_recommendation.expected_impact
        if impact is not None and impact.profit_delta:
            total += impact.profit_delta
            affected += 1
    return {"potential_profit_delta": total, "affected_skus": affected}


def _detail(result: OptimizerOutput) -> dict:
    decision = result.decision
    return {
        "sku": result.sku,
        "nm_id": result.nm_id,
        "mode": {"type": result.mode.mode.value, "reason": result.mode.reason},
        "diagnoses": [
            {
                "block": d.block.value,
                "code": d.code.value,
                "action": d.action_hint.value,
                "reason": d.reason,
            }
            for d in result.diagnoses
        ],
        "recommendation": {
            "action": decision.action.value,
            "delta": decision.delta_pct,
            "trigger": result.price_recommendation.trigger.value,
        },
        "guards": [
            {"type": g.guard.value, "reason": g.reason} for g in result.guards if g.blocked
        ],
        "decision": {
            "action": decision.action.value,
            "delta": decision.delta_pct,
            "confidence": decision.confidence,
            "level": decision.priority_level,
            "blocked": list(decision.blocked_by),
            "chain": list(decision.reason_chain),
        },
        "summary": result.summary,
        "urgency": result.urgency.value,
    }


def build_batch_report(
    results: list[OptimizerOutput],
    period_days: int,
    top_limit: int = 20,
    generated_at: datetime | None = None,
) -> dict:
    """
    Assemble the JSON-ready batch report: action stats, per-mode counts,
    top priorities and the per-SKU detail.
    """
    stats = get_action_stats(results)
    by_mode = group_by_mode(results)
    top = get_top_priority_items(results, top_limit)
    return {
        "timestamp": (generated_at or datetime.now(timezone.utc)).isoformat(),
        "period": period_days,
        "stats": {
            "total": stats["total"],
            "actions": {"up": stats["up"], "down": stats["down"], "hold": stats["hold"]},
            "blocked": stats["blocked"],
        },
        "by_mode": {mode.value: len(items) for mode, items in by_mode.items()},
        "top_priority": [
            {
                "sku": r.sku,
                "nm_id": r.nm_id,
                "mode": r.mode.mode.value,
                "action": r.decision.action.value,
                "delta": r.decision.delta_pct,
                "confidence": r.decision.confidence,
                "summary": r.summary,
                "urgency": r.urgency.value,
                "reason": list(r.decision.reason_chain[-2:]),
            }
            for r in top
        ],
        "results": [_detail(r) for r in results],
    }


def outputs_to_frame(results: list[OptimizerOutput]) -> pd.DataFrame:
    """One row per SKU, for tabular export."""
    rows = []
    for r in results:
        impact = r.price_recommendation.expected_impact
        rows.append(
            {
                "sku": r.sku,
                "nm_id": r.nm_id,
                "mode": r.mode.mode.value,
                "proposed_action": r.price_recommendation.action.value,
                "trigger": r.price_recommendation.trigger.value,
                "action": r.decision.action.value,
                "delta_pct": r.decision.delta_pct,
                "confidence": r.decision.confidence,
                "priority_level": r.decision.priority_level,
                "blocked_by": ", ".join(r.decision.blocked_by),
                "urgency": r.urgency.value,
                "expected_profit_delta": impact.profit_delta if impact else None,
                "summary": r.summary,
            }
        )
    return pd.DataFrame(rows, columns=REPORT_COLUMNS)
