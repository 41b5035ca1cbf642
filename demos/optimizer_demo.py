"""
Demo script for the pricing optimizer.

Runs a small batch of sample SKUs through the full pipeline using the
shipped YAML config layers, prints each decision and the batch report, and
records the actionable decisions in an in-memory change history.
"""

from connectors.change_history import ChangeHistoryLog
from config.manager import ConfigResolver
from models.sku import SKUData
from optimizer import (
    build_batch_report,
    calculate_total_impact,
    find_optimal_scenario,
    format_decision,
    get_decision_summary,
    is_actionable,
    outputs_to_frame,
    run_optimizer_batch,
)
from utils.logger import get_logger

logger = get_logger(__name__)

PERIOD_DAYS = 14

SAMPLE_SKUS = [
    # Healthy cash cow with strong conversion: careful increase
    {
        "sku": "MX-SHAMPOO-400",
        "nmId": 100401,
        "category": "hair",
        "stockTotal": 900,
        "ordersPerDay": 20,
        "currentPrice": 690,
        "margin": 0.45,
        "cm0": 290,
        "impressions": 40000,
        "clicks": 1200,
        "ctr": 3.0,
        "orders": 280,
        "crCart": 12.0,
        "crOrder": 9.5,
        "buyoutPercent": 88,
    },
    # Almost sold out: raise price to slow sales
    {
        "sku": "MX-CREAM-50",
        "nmId": 100050,
        "category": "face",
        "stockTotal": 30,
        "inTransit": 10,
        "ordersPerDay": 8,
        "currentPrice": 1290,
        "margin": 0.42,
        "impressions": 15000,
        "clicks": 400,
        "ctr": 2.6,
        "orders": 110,
        "crCart": 9.0,
        "crOrder": 4.0,
    },
    # Frozen stock: clearance
    {
        "sku": "MX-SCRUB-200",
        "nmId": 100200,
        "category": "body",
        "stockTotal": 3000,
        "ordersPerDay": 10,
        "currentPrice": 540,
        "margin": 0.35,
        "impressions": 20000,
        "clicks": 600,
        "ctr": 3.0,
        "orders": 140,
        "crCart": 8.0,
        "crOrder": 3.0,
    },
    # Same family as the scrub above: family limit applies
    {
        "sku": "MX-SCRUB-400",
        "nmId": 100400,
        "category": "body",
        "stockTotal": 2600,
        "ordersPerDay": 6,
        "currentPrice": 890,
        "margin": 0.33,
        "impressions": 12000,
        "clicks": 350,
        "ctr": 2.9,
        "orders": 80,
        "crCart": 7.0,
        "crOrder": 2.5,
    },
    # Loss-making
    {
        "sku": "MX-SOAP-BASIC",
        "nmId": 100010,
        "category": "body",
        "stockTotal": 400,
        "ordersPerDay": 15,
        "currentPrice": 150,
        "margin": -0.02,
        "impressions": 25000,
        "clicks": 800,
        "ctr": 3.2,
        "orders": 210,
        "crCart": 10.0,
        "crOrder": 5.0,
    },
    # Too little traffic to decide anything
    {
        "sku": "MX-MASK-NEW",
        "nmId": 100777,
        "category": "face",
        "stockTotal": 200,
        "ordersPerDay": 0.5,
        "currentPrice": 990,
        "margin": 0.5,
        "impressions": 600,
        "clicks": 12,
        "orders": 3,
    },
]


def main():
    resolver = ConfigResolver()
    skus = [SKUData.model_validate(raw) for raw in SAMPLE_SKUS]

    results = run_optimizer_batch(skus, resolver)
    history = ChangeHistoryLog()
    prices = {s.sku: s.current_price for s in skus}

    print("\n--- Decisions ---")
    for result in results:
        print(f"{result.sku:<16} {result.mode.mode.value:<7} {format_decision(result.decision)}")
        print(f"    {result.summary}")
        print(f"    {get_decision_summary(result.decision)}")
        if is_actionable(result.decision):
            history.record(result, prices[result.sku])

    report = build_batch_report(results, PERIOD_DAYS)
    print("\n--- Batch report ---")
    print(f"Stats: {report['stats']}")
    print(f"By mode: {report['by_mode']}")
    print(f"Impact: {calculate_total_impact(results)}")

    print("\n--- Best forward-looking scenario per SKU ---")
    for sku in skus:
        config = resolver.get_config(sku.sku, sku.category)
        best = find_optimal_scenario(sku, config)
        print(f"{sku.sku:<16} {best['delta_pct']:+.0%} -> {best['expected_profit']:.0f}/day")

    print("\n--- Table ---")
    print(outputs_to_frame(results)[["sku", "mode", "action", "delta_pct", "priority_level"]])

    logger.info(f"Recorded {len(history)} price changes")


if __name__ == "__main__":
    main()
