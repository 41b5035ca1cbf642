"""Dynamic pricing optimizer: diagnostics, modes, price triggers, guards and resolution"""

from .diagnostics import (
    run_diagnostics,
    get_most_critical_diagnosis,
    has_action_hint,
    get_diagnoses_by_action,
)
from .mode_classifier import (
    classify_mode,
    get_mode_priority,
    get_mode_display_info,
    get_mode_price_direction,
)
from .price_engine import (
    evaluate_price,
    calculate_price_impact,
    generate_price_scenarios,
    find_optimal_scenario,
    format_price_delta,
    get_price_action_symbol,
)
from .safety_guards import (
    GuardOptions,
    run_safety_guards,
    is_direction_blocked,
    get_blocking_guards,
    get_guard_priority,
    get_guard_display_info,
)
from .priority_resolver import (
    resolve_conflicts,
    format_decision,
    get_decision_summary,
    is_actionable,
    get_urgency,
)
from .pipeline import run_optimizer, run_optimizer_batch
from .reporting import (
    group_by_mode,
    get_action_stats,
    get_top_priority_items,
    get_blocked_by_guard,
    calculate_total_impact,
    build_batch_report,
    outputs_to_frame,
)


__all__ = [
    # Diagnostics
    "run_diagnostics",
    "get_most_critical_diagnosis",
    "has_action_hint",
    "get_diagnoses_by_action",
    # Mode
    "classify_mode",
    "get_mode_priority",
    "get_mode_display_info",
    "get_mode_price_direction",
    # Price
    "evaluate_price",
    "calculate_price_impact",
    "generate_price_scenarios",
    "find_optimal_scenario",
    "format_price_delta",
    "get_price_action_symbol",
    # Guards
    "GuardOptions",
    "run_safety_guards",
    "is_direction_blocked",
    "get_blocking_guards",
    "get_guard_priority",
    "get_guard_display_info",
    # Resolver
    "resolve_conflicts",
    "format_decision",
    "get_decision_summary",
    "is_actionable",
    "get_urgency",
    # Pipeline
    "run_optimizer",
    "run_optimizer_batch",
    # Reporting
    "group_by_mode",
    "get_action_stats",
    "get_top_priority_items",
    "get_blocked_by_guard",
    "calculate_total_impact",
    "build_batch_report",
    "outputs_to_frame",
]
