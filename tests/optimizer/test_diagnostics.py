import math

from models.enums import ActionHint, DiagnosisBlock, DiagnosisCode
from optimizer.diagnostics import (
    check_data_sufficiency,
    diagnose_creative,
    diagnose_price,
    diagnose_rank,
    diagnose_traffic,
    effective_order_trend,
    get_diagnoses_by_action,
    get_most_critical_diagnosis,
    has_action_hint,
    run_diagnostics,
)


def codes(diagnoses):
    return [d.code for d in diagnoses]


# --- Test Block 1: Data sufficiency --- #


def test_no_data_returns_only_insufficient_data(make_sku, config):
    sku = make_sku(clicks=0, orders=0, ctr=0.1, cr_order=0.1, ad_spend=5000)
    diagnoses = run_diagnostics(sku, config)
    assert codes(diagnoses) == [DiagnosisCode.INSUFFICIENT_DATA]
    assert diagnoses[0].confidence == 0.1
    assert diagnoses[0].action_hint == ActionHint.HOLD


def test_unknown_counts_are_insufficient(make_sku, config):
    sku = make_sku(clicks=math.nan, orders=60)
    finding = check_data_sufficiency(sku, config)
    assert finding is not None
    assert finding.code == DiagnosisCode.INSUFFICIENT_DATA


def test_enough_data_has_no_data_finding(make_sku, config):
    assert check_data_sufficiency(make_sku(), config) is None


def test_healthy_sku_is_price_competitive_only(make_sku, config):
    assert codes(run_diagnostics(make_sku(), config)) == [DiagnosisCode.PRICE_COMPETITIVE]


# --- Test Block 2: Traffic --- #


def test_traffic_skipped_without_ads(make_sku, config):
    assert diagnose_traffic(make_sku(clicks=1000, orders=1), config) is None


def test_non_target_traffic(make_sku, config):
    finding = diagnose_traffic(make_sku(clicks=1000, orders=2, ad_spend=500), config)
    assert finding.code == DiagnosisCode.TRAFFIC_NON_TARGET_SUSPECTED
    assert finding.action_hint == ActionHint.ADS_DOWN


def test_cpo_above_cm0_is_low_quality_traffic(make_sku, config):
    finding = diagnose_traffic(make_sku(ad_spend=500, cpo=300, cm0=200), config)
    assert finding.code == DiagnosisCode.TRAFFIC_QUALITY_LOW
    assert finding.confidence == 0.8


# --- Test Block 3: Creative --- #


def test_creative_mismatch_on_many_impressions(make_sku, config):
    finding = diagnose_creative(make_sku(impressions=5000, ctr=0.5), config)
    assert finding.code == DiagnosisCode.CREATIVE_MISMATCH_SUSPECTED


def test_ctr_below_benchmark_with_few_impressions(make_sku, config):
    finding = diagnose_creative(make_sku(impressions=300, ctr=0.9), config)
    assert finding.code == DiagnosisCode.CTR_BELOW_BENCHMARK
    assert finding.block == DiagnosisBlock.CREATIVE


def test_creative_skipped_below_min_impressions(make_sku, config):
    assert diagnose_creative(make_sku(impressions=50, ctr=0.1), config) is None


# --- Test Block 4: Conversion --- #


def test_card_conversion_weak_hints_price_down(make_sku, config):
    diagnoses = run_diagnostics(make_sku(cr_cart=2.0, clicks=300), config)
    assert DiagnosisCode.CARD_CONVERSION_WEAK in codes(diagnoses)
    assert has_action_hint(diagnoses, ActionHint.PRICE_DOWN)


def test_checkout_conversion_weak(make_sku, config):
    diagnoses = run_diagnostics(make_sku(cr_order=1.0), config)
    assert DiagnosisCode.CHECKOUT_CONVERSION_WEAK in codes(diagnoses)


# --- Test Block 5: Price --- #


def test_overpriced_with_cheaper_competitor(make_sku, config):
    sku = make_sku(ctr=2.0, cr_order=1.0, competitor_price_min=900, current_price=1000)
    finding = diagnose_price(sku, config)
    assert finding.code == DiagnosisCode.OVERPRICED
    assert finding.confidence == 0.85
    assert finding.action_hint == ActionHint.PRICE_DOWN


def test_overpriced_without_competitor_data(make_sku, config):
    finding = diagnose_price(make_sku(ctr=2.0, cr_order=1.0), config)
    assert finding.code == DiagnosisCode.OVERPRICED
    assert finding.confidence == 0.7


def test_underpriced_on_deficit(make_sku, config):
    finding = diagnose_price(make_sku(stock_total=20, orders_per_day=5, cr_order=1.0, ctr=1.0), config)
    assert finding.code == DiagnosisCode.UNDERPRICED
    assert finding.action_hint == ActionHint.PRICE_UP


def test_price_block_skips_nan_funnel(make_sku, config):
    assert diagnose_price(make_sku(ctr=math.nan, cr_order=math.nan), config) is None


# --- Test Block 6: Rank --- #


def test_effective_trend_prefers_reported_trend(make_sku):
    assert effective_order_trend(make_sku(orders_trend_14d=-40)) == 0.6
    assert effective_order_trend(make_sku(orders_last_7d=35, orders_last_14d=140)) == 0.5
    assert effective_order_trend(make_sku()) == 1.0


def test_rank_drop_levels(make_sku, config):
    assert diagnose_rank(make_sku(orders_trend_14d=-40), config).code == (
        DiagnosisCode.RANK_DROP_CRITICAL
    )
    warning = diagnose_rank(make_sku(orders_trend_14d=-25), config)
    assert warning.code == DiagnosisCode.RANK_DROP_WARNING
    assert warning.confidence == 0.75
    assert diagnose_rank(make_sku(orders_trend_14d=-5), config) is None


def test_impressions_drop_is_rank_warning(make_sku, config):
    finding = diagnose_rank(make_sku(impressions_trend_14d=-30), config)
    assert finding.code == DiagnosisCode.RANK_DROP_WARNING
    assert finding.confidence == 0.7


# --- Test helpers --- #


def test_at_most_one_finding_per_block(make_sku, config):
    sku = make_sku(
        ctr=2.0,
        cr_order=1.0,
        stock_total=20,
        orders_per_day=5,
        orders_trend_14d=-50,
        impressions_trend_14d=-50,
    )
    blocks = [d.block for d in run_diagnostics(sku, config)]
    assert len(blocks) == len(set(blocks))


def test_most_critical_follows_block_priority(make_sku, config):
    sku = make_sku(ctr=2.0, cr_order=1.0, orders_trend_14d=-50)
    diagnoses = run_diagnostics(sku, config)
    assert get_most_critical_diagnosis(diagnoses).code == DiagnosisCode.RANK_DROP_CRITICAL
    assert get_most_critical_diagnosis([]) is None


def test_get_diagnoses_by_action(make_sku, config):
    diagnoses = run_diagnostics(make_sku(ctr=2.0, cr_order=1.0), config)
    price_down = get_diagnoses_by_action(diagnoses, ActionHint.PRICE_DOWN)
    assert [d.code for d in price_down] == [DiagnosisCode.OVERPRICED]
