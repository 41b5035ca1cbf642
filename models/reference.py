"""
Static reference data loaded from configuration (families, locks, overrides)
and the price-change history supplied by callers.
"""

from datetime import date, datetime, time

from pydantic import BaseModel, ConfigDict, Field, field_validator

from utils.time_utils import as_utc

from .enums import ChangeSource, PriceAction, PriceTrigger


class PriceLadderStep(BaseModel):
    model_config = ConfigDict(frozen=True)

    sku: str
    position: int  # 1 = cheapest


class FamilyDefinition(BaseModel):
    """Related SKUs (size/scent variants) whose prices must not all move at once."""

    model_config = ConfigDict(frozen=True)

    family_id: str
    name: str = ""
    skus: tuple[str, ...] = ()
    price_ladder: tuple[PriceLadderStep, ...] | None = None


class ManualLock(BaseModel):
    """A manager's lock on a SKU; active until ``until``."""

    model_config = ConfigDict(frozen=True)

    sku: str
    reason: str = ""
    until: datetime
    locked_by: str = ""

    @field_validator("until", mode="before")
    @classmethod
    def _date_to_datetime(cls, value):
        # Lock files carry bare ISO dates
        if isinstance(value, str) and len(value) == 10:
            value = date.fromisoformat(value)
        if isinstance(value, date) and not isinstance(value, datetime):
            return datetime.combine(value, time.min)
        return value

    def is_active(self, now: datetime) -> bool:
        return as_utc(now) < as_utc(self.until)


class SKUOverride(BaseModel):
    """Per-SKU config layer; any extra key is an ``OptimizerConfig`` field."""

    model_config = ConfigDict(frozen=True, extra="allow")

    sku: str
    reason: str | None = None

    def values(self) -> dict:
        return dict(self.model_extra or {})


class ChangeHistory(BaseModel):
    """One applied price change, as kept by the history collaborator."""

    model_config = ConfigDict(frozen=True)

    sku: str
    timestamp: datetime
    action: PriceAction
    delta_pct: float
    trigger: PriceTrigger = PriceTrigger.NONE
    old_price: float = 0.0
    new_price: float = 0.0
    applied_by: ChangeSource = ChangeSource.AUTO
    metadata: dict[str, str] = Field(default_factory=dict)
