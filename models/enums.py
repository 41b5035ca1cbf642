"""
Centralized Enum definitions for the pricing optimizer.
"""

from enum import Enum


class SKUMode(str, Enum):
    """Strategic posture of a SKU, in cascade order"""

    STOP = "STOP"  # Loss-making
    CLEAR = "CLEAR"  # Overstocked
    COW = "COW"  # Cash cow
    GROWTH = "GROWTH"  # Default


class PriceAction(str, Enum):
    """Direction of a price change"""

    UP = "UP"
    DOWN = "DOWN"
    HOLD = "HOLD"


class AdsAction(str, Enum):
    """Advertising posture suggested by a mode"""

    ON = "ON"
    OFF = "OFF"
    SCALE = "SCALE"
    PAUSE = "PAUSE"


class DiagnosisBlock(str, Enum):
    """The six diagnostic blocks"""

    DATA = "DATA"  # Block 1: Data sufficiency
    TRAFFIC = "TRAFFIC"  # Block 2: Traffic quality
    CREATIVE = "CREATIVE"  # Block 3: Creative/CTR
    CONVERSION = "CONVERSION"  # Block 4: Card conversion
    PRICE = "PRICE"  # Block 5: Price issues
    RANK = "RANK"  # Block 6: Ranking


class DiagnosisCode(str, Enum):
    """Finding codes produced by the diagnostic blocks"""

    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"
    TRAFFIC_NON_TARGET_SUSPECTED = "TRAFFIC_NON_TARGET_SUSPECTED"
    TRAFFIC_QUALITY_LOW = "TRAFFIC_QUALITY_LOW"
    CREATIVE_MISMATCH_SUSPECTED = "CREATIVE_MISMATCH_SUSPECTED"
    CTR_BELOW_BENCHMARK = "CTR_BELOW_BENCHMARK"
    CARD_CONVERSION_WEAK = "CARD_CONVERSION_WEAK"
    CHECKOUT_CONVERSION_WEAK = "CHECKOUT_CONVERSION_WEAK"
    OVERPRICED = "OVERPRICED"
    UNDERPRICED = "UNDERPRICED"
    PRICE_COMPETITIVE = "PRICE_COMPETITIVE"
    RANK_DROP_WARNING = "RANK_DROP_WARNING"
    RANK_DROP_CRITICAL = "RANK_DROP_CRITICAL"


class ActionHint(str, Enum):
    """Suggested follow-up attached to a finding"""

    HOLD = "HOLD"
    PRICE_DOWN = "PRICE_DOWN"
    PRICE_UP = "PRICE_UP"
    ADS_DOWN = "ADS_DOWN"
    ADS_UP = "ADS_UP"
    ADS_PAUSE = "ADS_PAUSE"


class PriceTrigger(str, Enum):
    """Why the price engine proposed its action"""

    CLEAR = "CLEAR"  # Trigger A: overstock
    LOW_STOCK = "LOW_STOCK"  # Trigger B: deficit
    OVERPRICED = "OVERPRICED"  # Trigger C: CTR ok but CR low
    MODE_STOP = "MODE_STOP"
    MODE_COW = "MODE_COW"
    EV_OPTIMIZATION = "EV_OPTIMIZATION"
    NONE = "NONE"


class GuardType(str, Enum):
    """Safety guards, in evaluation order"""

    MANUAL_OVERRIDE = "MANUAL_OVERRIDE"
    DATA_GUARD = "DATA_GUARD"
    COOLDOWN_GUARD = "COOLDOWN_GUARD"
    MIN_MARGIN_GUARD = "MIN_MARGIN_GUARD"
    GOLD_PROTECTION = "GOLD_PROTECTION"
    RANK_DROP_GUARD = "RANK_DROP_GUARD"
    STOCK_GUARD = "STOCK_GUARD"
    FAMILY_GUARD = "FAMILY_GUARD"
    SPEND_LEAK_GUARD = "SPEND_LEAK_GUARD"


class BlockDirection(str, Enum):
    """Which price direction a guard prohibits"""

    UP = "UP"
    DOWN = "DOWN"
    BOTH = "BOTH"


class Urgency(str, Enum):
    """Display urgency of a decision"""

    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"
    SUCCESS = "success"


class ChangeSource(str, Enum):
    """Who applied a recorded price change"""

    AUTO = "auto"
    MANUAL = "manual"
