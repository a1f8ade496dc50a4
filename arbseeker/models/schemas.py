"""
Data models for the arbitrage pipeline.

Defines:
- Bookmaker quotes flattened from The Odds API
- Betfair runners, price levels and markets
- The Opportunity handed from detector to gate to notifier
- Persisted records (session token, processed marker)
- Results of the gate and of lay bet placement
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Bookmaker side ---

@dataclass(frozen=True)
class Quote:
    """A single bookmaker back price for one outcome of one event."""
    event_id: str
    event_name: str       # "Lakers vs Celtics"
    sport: str            # "Basketball"
    start_time: str       # ISO timestamp as sent by the feed
    bookmaker: str        # "Sportsbet"
    bookmaker_key: str    # "sportsbet"
    market: str           # "h2h"
    outcome: str          # "Lakers"
    price: float          # decimal odds
    point: Optional[float] = None  # spreads/totals line


@dataclass
class ParsedEvent:
    """One feed event with its bookmaker/market/outcome tree flattened to quotes."""
    event_id: str
    sport: str
    sport_key: str
    home_team: str
    away_team: str
    commence_time: str
    quotes: list[Quote] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        return f"{self.home_team} vs {self.away_team}"

    @property
    def commence_datetime(self) -> datetime:
        return datetime.fromisoformat(self.commence_time.replace("Z", "+00:00"))


# --- Exchange side ---

@dataclass(frozen=True)
class PriceSize:
    """One level of the Betfair ladder."""
    price: float
    size: float


@dataclass
class ExchangeRunner:
    """A Betfair selection with its best available prices (best first)."""
    selection_id: int
    runner_name: str
    available_to_back: list[PriceSize] = field(default_factory=list)
    available_to_lay: list[PriceSize] = field(default_factory=list)

    @property
    def best_lay(self) -> Optional[PriceSize]:
        return self.available_to_lay[0] if self.available_to_lay else None

    @property
    def best_back(self) -> Optional[PriceSize]:
        return self.available_to_back[0] if self.available_to_back else None


@dataclass
class ExchangeMarket:
    """Catalogue names merged with live prices for a single market."""
    market_id: str
    runners: list[ExchangeRunner] = field(default_factory=list)
    market_name: str = ""


# --- Opportunity ---

@dataclass
class Opportunity:
    """
    A back/lay arbitrage between a bookmaker and Betfair.

    The id only depends on the event and the outcome/bookmaker discriminator
    so the same arb detected on a later poll collides with the first one.
    suggested_stake is filled in after construction and is not part of the id.
    """
    id: str
    event: str
    sport: str
    start_time: str

    # Back side (bookmaker)
    bookmaker: str
    back_price: float
    bookmaker_url: str

    # Lay side (Betfair)
    market_id: str
    selection_id: int
    lay_price: float
    lay_liquidity: float

    profit_margin: float  # 0.04 = 4%
    suggested_stake: float = 0

    @property
    def required_liquidity(self) -> float:
        return self.suggested_stake * self.back_price

    @property
    def betfair_url(self) -> str:
        return f"https://www.betfair.com.au/exchange/plus/market/{self.market_id}"


# --- Persisted records ---

class SessionRecord(BaseModel):
    """Betfair session token and its absolute expiry (epoch seconds)."""
    token: str
    expires_at: float


class ProcessedMarker(BaseModel):
    """An opportunity id that was accepted by the gate."""
    opportunity_id: str
    processed_at: str  # ISO timestamp


# --- Betfair wire types ---

class BetfairLoginResponse(BaseModel):
    """Body of the identitysso login endpoint."""
    model_config = ConfigDict(extra="ignore")

    token: str = ""
    product: str = ""
    status: str = ""
    error: Optional[str] = None


class AccountFunds(BaseModel):
    """Result of getAccountFunds."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    available_to_bet_balance: float = Field(alias="availableToBetBalance")
    exposure: float = 0.0
    retained_commission: float = Field(default=0.0, alias="retainedCommission")
    exposure_limit: float = Field(default=0.0, alias="exposureLimit")
    wallet: str = ""


# --- Results ---

class RejectionReason(str, Enum):
    """Why the gate turned an opportunity away."""
    ALREADY_PROCESSED = "already_processed"
    MARGIN_TOO_LOW = "margin_too_low"
    INSUFFICIENT_LIQUIDITY = "insufficient_liquidity"


@dataclass
class GateDecision:
    """Outcome of running an opportunity through the gate."""
    accepted: bool
    reason: Optional[str] = None
    rejection: Optional[RejectionReason] = None


class OrderStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


@dataclass
class LayBetResult:
    """Result of a lay bet attempt. Failures are reported here, never raised."""
    status: OrderStatus
    bet_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == OrderStatus.SUCCESS
