"""
Validation and deduplication gate.

Every detected opportunity passes through here exactly once per poll. The
gate rejects ids it has already accepted within the retention window, then
checks margin and liquidity, and finally writes a processed marker so the
same arb is not notified again until the marker expires.

The read (is_processed) and the write (mark_processed) are separate store
calls. Two scans detecting the same id at the same moment can both be
accepted.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import structlog

from arbseeker.models.schemas import (
    GateDecision,
    Opportunity,
    ProcessedMarker,
    RejectionReason,
)
from arbseeker.storage.kv import KeyValueStore

logger = structlog.get_logger()

PROCESSED_KEY_PREFIX = "processed:"


@dataclass
class GateConfig:
    min_profit_margin: float = 0.02          # 2%
    retention_seconds: float = 2 * 60 * 60   # 2 hours


class OpportunityGate:
    """At-most-once admission over a bounded time window."""

    def __init__(self, store: KeyValueStore, config: Optional[GateConfig] = None):
        self.store = store
        self.config = config or GateConfig()
        self.logger = logger.bind(component="gate")

    @staticmethod
    def _key(opportunity_id: str) -> str:
        return f"{PROCESSED_KEY_PREFIX}{opportunity_id}"

    async def is_processed(self, opportunity_id: str) -> bool:
        return await self.store.get(self._key(opportunity_id)) is not None

    async def mark_processed(self, opportunity: Opportunity) -> None:
        marker = ProcessedMarker(
            opportunity_id=opportunity.id,
            processed_at=datetime.now(timezone.utc).isoformat(),
        )
        await self.store.set(
            self._key(opportunity.id),
            marker.model_dump(),
            ttl=self.config.retention_seconds,
        )

    def validate(self, opportunity: Opportunity) -> GateDecision:
        """Margin and liquidity checks. Does not touch the store."""
        min_margin = self.config.min_profit_margin
        if opportunity.profit_margin < min_margin:
            return GateDecision(
                accepted=False,
                reason=(
                    f"Profit margin {opportunity.profit_margin:.2%} is below "
                    f"minimum {min_margin:.2%}"
                ),
                rejection=RejectionReason.MARGIN_TOO_LOW,
            )

        required = opportunity.required_liquidity
        if opportunity.lay_liquidity < required:
            return GateDecision(
                accepted=False,
                reason=(
                    f"Insufficient liquidity: need ${required:.2f}, "
                    f"have ${opportunity.lay_liquidity:.2f}"
                ),
                rejection=RejectionReason.INSUFFICIENT_LIQUIDITY,
            )

        return GateDecision(accepted=True)

    async def process_opportunity(self, opportunity: Opportunity) -> GateDecision:
        """Dedup, validate, and mark as processed if accepted."""
        if await self.is_processed(opportunity.id):
            return GateDecision(
                accepted=False,
                reason="Already processed",
                rejection=RejectionReason.ALREADY_PROCESSED,
            )

        decision = self.validate(opportunity)
        if not decision.accepted:
            return decision

        await self.mark_processed(opportunity)
        self.logger.info(
            "Opportunity accepted",
            opportunity_id=opportunity.id,
            margin=f"{opportunity.profit_margin:.2%}",
            stake=opportunity.suggested_stake,
        )
        return decision
