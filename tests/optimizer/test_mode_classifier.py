import pytest

from models.enums import AdsAction, PriceAction, SKUMode
from optimizer.mode_classifier import (
    classify_mode,
    effective_margin,
    get_mode_display_info,
    get_mode_price_direction,
    get_mode_priority,
)


def test_healthy_sku_is_growth(make_sku, config):
    result = classify_mode(make_sku(), config)
    assert result.mode == SKUMode.GROWTH
    assert result.actions.price == PriceAction.HOLD
    assert result.actions.ads == AdsAction.ON


def test_negative_cm0_is_stop(make_sku, config):
    result = classify_mode(make_sku(cm0=-10), config)
    assert result.mode == SKUMode.STOP
    assert result.ttl_days == 14
    assert result.actions.price == PriceAction.UP
    assert result.actions.ads == AdsAction.PAUSE


def test_negative_margin_is_stop(make_sku, config):
    assert classify_mode(make_sku(margin=-0.02), config).mode == SKUMode.STOP


def test_margin_below_minimum_is_stop(make_sku, config):
    result = classify_mode(make_sku(margin=0.05), config)
    assert result.mode == SKUMode.STOP
    assert "below the minimum" in result.reason


@pytest.mark.parametrize(
    "overrides",
    [
        {"stock_total": 5000, "orders_per_day": 10},  # would be CLEAR
        {"margin": 0.5, "stock_total": 500, "orders_per_day": 10},  # would be COW
    ],
)
def test_stop_wins_over_every_other_mode(make_sku, config, overrides):
    result = classify_mode(make_sku(cm0=0, **overrides), config)
    assert result.mode == SKUMode.STOP


def test_overstock_is_clear(make_sku, config):
    result = classify_mode(make_sku(stock_total=1500, orders_per_day=10), config)
    assert result.mode == SKUMode.CLEAR
    assert result.ttl_days == 5
    assert result.actions.price == PriceAction.DOWN
    # Frozen capital: 1500 units x 1000
    assert "1500K" in result.reason


def test_no_velocity_counts_as_overstock(make_sku, config):
    assert classify_mode(make_sku(orders_per_day=0), config).mode == SKUMode.CLEAR


def test_high_margin_stable_stock_is_cow(make_sku, config):
    result = classify_mode(make_sku(margin=0.35), config)
    assert result.mode == SKUMode.COW
    assert result.actions.ads == AdsAction.SCALE


def test_cow_uses_cm0_margin_when_known(make_sku, config):
    sku = make_sku(margin=0.2, cm0=400, current_price=1000)
    assert effective_margin(sku) == 0.4
    assert classify_mode(sku, config).mode == SKUMode.COW


def test_high_margin_low_stock_is_growth(make_sku, config):
    sku = make_sku(margin=0.35, stock_total=100, orders_per_day=10)
    assert classify_mode(sku, config).mode == SKUMode.GROWTH


def test_mode_helpers():
    assert [get_mode_priority(m) for m in SKUMode] == [1, 2, 3, 4]
    assert get_mode_display_info(SKUMode.CLEAR)["label"] == "CLEAR"
    assert get_mode_price_direction(SKUMode.STOP) == PriceAction.UP
    assert get_mode_price_direction(SKUMode.GROWTH) == PriceAction.HOLD
