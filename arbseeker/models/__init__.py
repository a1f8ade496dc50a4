"""Pipeline data models and schemas."""

from arbseeker.models.schemas import (
    AccountFunds,
    BetfairLoginResponse,
    ExchangeMarket,
    ExchangeRunner,
    GateDecision,
    LayBetResult,
    Opportunity,
    OrderStatus,
    ParsedEvent,
    PriceSize,
    ProcessedMarker,
    Quote,
    RejectionReason,
    SessionRecord,
)

__all__ = [
    "AccountFunds",
    "BetfairLoginResponse",
    "ExchangeMarket",
    "ExchangeRunner",
    "GateDecision",
    "LayBetResult",
    "Opportunity",
    "OrderStatus",
    "ParsedEvent",
    "PriceSize",
    "ProcessedMarker",
    "Quote",
    "RejectionReason",
    "SessionRecord",
]
