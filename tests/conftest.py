import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Ensure project root is on sys.path to allow `import optimizer`, `import models`, etc.
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from config.config import OptimizerConfig  # noqa: E402
from models.sku import SKUData  # noqa: E402

# A healthy GROWTH SKU: enough data, stock for 30 days, competitive funnel
HEALTHY_SKU = {
    "sku": "SKU-1",
    "nm_id": 1001,
    "title": "Test Cream",
    "category": "body",
    "stock_total": 300,
    "in_transit": 0,
    "orders_per_day": 10,
    "current_price": 1000.0,
    "margin": 0.25,
    "impressions": 10000,
    "clicks": 300,
    "ctr": 3.0,
    "cart_adds": 30,
    "cr_cart": 10.0,
    "orders": 60,
    "cr_order": 5.0,
    "buyout_percent": 80.0,
}

FIXED_NOW = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_sku():
    """Factory for SKUData with healthy defaults; keyword overrides win."""

    def _make(**overrides) -> SKUData:
        return SKUData(**{**HEALTHY_SKU, **overrides})

    return _make


@pytest.fixture
def config() -> OptimizerConfig:
    return OptimizerConfig()


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW
