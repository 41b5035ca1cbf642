"""
Per-run result models of the pricing optimizer pipeline.

All of these are created fresh for every evaluation and never mutated.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .enums import (
    ActionHint,
    AdsAction,
    BlockDirection,
    DiagnosisBlock,
    DiagnosisCode,
    GuardType,
    PriceAction,
    PriceTrigger,
    SKUMode,
    Urgency,
)


class DiagnosisResult(BaseModel):
    """A single finding of the diagnostic engine."""

    model_config = ConfigDict(frozen=True)

    block: DiagnosisBlock
    code: DiagnosisCode
    confidence: float = Field(ge=0.0, le=1.0)
    action_hint: ActionHint
    reason: str
    metrics: dict[str, float] = Field(default_factory=dict)


class ModeActions(BaseModel):
    model_config = ConfigDict(frozen=True)

    price: PriceAction
    ads: AdsAction


class ModeResult(BaseModel):
    """Strategic mode of a SKU, exactly one per run."""

    model_config = ConfigDict(frozen=True)

    mode: SKUMode
    reason: str
    ttl_days: int
    actions: ModeActions


class ExpectedImpact(BaseModel):
    model_config = ConfigDict(frozen=True)

    profit_delta: float | None = None
    orders_delta: float | None = None


class PriceRecommendation(BaseModel):
    """Price engine proposal, before guards and priority resolution."""

    model_config = ConfigDict(frozen=True)

    action: PriceAction
    delta_pct: float  # Magnitude, e.g. 0.05 = 5%
    trigger: PriceTrigger
    ttl_days: int
    reason: str
    expected_impact: ExpectedImpact | None = None


class GuardResult(BaseModel):
    """Outcome of one safety guard; non-blocking results are kept for audit."""

    model_config = ConfigDict(frozen=True)

    guard: GuardType
    blocked: bool
    blocks_direction: BlockDirection | None = None
    reason: str
    details: dict[str, Any] = Field(default_factory=dict)


class FinalDecision(BaseModel):
    """The single authoritative decision for a SKU."""

    model_config = ConfigDict(frozen=True)

    action: PriceAction
    delta_pct: float
    confidence: float
    priority_level: int = Field(ge=1, le=7)
    applied_rules: tuple[str, ...] = ()
    blocked_by: tuple[str, ...] = ()
    reason_chain: tuple[str, ...] = ()


class OptimizerOutput(BaseModel):
    """Full pipeline output for one SKU."""

    model_config = ConfigDict(frozen=True)

    sku: str
    nm_id: int
    timestamp: datetime
    mode: ModeResult
    diagnoses: tuple[DiagnosisResult, ...]
    price_recommendation: PriceRecommendation
    guards: tuple[GuardResult, ...]
    decision: FinalDecision
    summary: str
    urgency: Urgency
