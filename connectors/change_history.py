"""
Module: connectors.change_history

In-memory log of applied price changes. Callers pass its entries to the
pipeline for cooldown checks; the optimizer never reads it by itself.
"""

import logging
from datetime import datetime, timedelta, timezone

from models.enums import ChangeSource, PriceAction
from models.optimizer import OptimizerOutput
from models.reference import ChangeHistory
from utils.time_utils import as_utc

logger = logging.getLogger(__name__)


class ChangeHistoryLog:
    """
    Append-only price change history, kept in insertion order.
    """

    def __init__(self, entries: list[ChangeHistory] | None = None):
        self._entries: list[ChangeHistory] = list(entries or [])

    def __len__(self) -> int:
        return len(self._entries)

    def append(self, entry: ChangeHistory) -> None:
        self._entries.append(entry)
        logger.debug(f"Recorded {entry.action.value} {entry.delta_pct:.2%} for {entry.sku}")

    def record(
        self,
        output: OptimizerOutput,
        old_price: float,
        applied_by: ChangeSource = ChangeSource.AUTO,
    ) -> ChangeHistory | None:
        """
        Record the decision of an optimizer output as applied.
        HOLD decisions are not changes and return None.
        """
        decision = output.decision
        if decision.action == PriceAction.HOLD or decision.delta_pct == 0:
            return None
        step = abs(decision.delta_pct)
        signed = step if decision.action == PriceAction.UP else -step
        entry = ChangeHistory(
            sku=output.sku,
            timestamp=output.timestamp,
            action=decision.action,
            delta_pct=step,
            trigger=output.price_recommendation.trigger,
            old_price=old_price,
            new_price=round(old_price * (1 + signed), 2),
            applied_by=applied_by,
            metadata={"mode": output.mode.mode.value},
        )
        self.append(entry)
        return entry

    def for_sku(self, sku: str) -> list[ChangeHistory]:
        return [e for e in self._entries if e.sku == sku]

    def recent(self, days: int, now: datetime | None = None) -> list[ChangeHistory]:
        """Entries newer than ``days`` days before ``now``."""
        cutoff = as_utc(now or datetime.now(timezone.utc)) - timedelta(days=days)
        return [e for e in self._entries if as_utc(e.timestamp) >= cutoff]

    def all(self) -> list[ChangeHistory]:
        return list(self._entries)
