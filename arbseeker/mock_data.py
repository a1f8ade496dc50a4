"""
Canned data for MOCK_MODE and tests.

The mock arb is Sportsbet 2.50 against a Betfair lay of 2.30 (~8.7%),
with enough liquidity to cover the largest Grey Man stake (420 * 2.50).
"""

import time
from datetime import datetime, timedelta, timezone
from typing import Optional

from arbseeker.engine.margin import profit_margin
from arbseeker.models.schemas import ExchangeMarket, ExchangeRunner, Opportunity, PriceSize


def _iso_in(hours: float, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return (now + timedelta(hours=hours)).isoformat()


def generate_mock_opportunity() -> Opportunity:
    """A guaranteed-valid opportunity. The id is unique per call."""
    return Opportunity(
        id=f"mock_arb_{int(time.time() * 1000)}",
        event="Lakers vs Celtics",
        sport="Basketball",
        start_time=_iso_in(2),
        bookmaker="Sportsbet",
        back_price=2.50,
        bookmaker_url="https://www.sportsbet.com.au/bet/mock-event",
        market_id="1.234567890",
        selection_id=12345,
        lay_price=2.30,
        lay_liquidity=1100,
        profit_margin=profit_margin(2.50, 2.30),
    )


def mock_odds_response(now: Optional[datetime] = None) -> list[dict]:
    """One NBA event in The Odds API format."""
    return [
        {
            "id": "mock_event_001",
            "sport_key": "basketball_nba",
            "sport_title": "Basketball",
            "commence_time": _iso_in(2, now),
            "home_team": "Lakers",
            "away_team": "Celtics",
            "bookmakers": [
                {
                    "key": "sportsbet",
                    "title": "Sportsbet",
                    "markets": [
                        {
                            "key": "h2h",
                            "outcomes": [
                                {"name": "Lakers", "price": 2.50},
                                {"name": "Celtics", "price": 1.60},
                            ],
                        },
                    ],
                },
            ],
        },
    ]


def mock_betfair_market() -> ExchangeMarket:
    return ExchangeMarket(
        market_id="1.234567890",
        market_name="Match Odds",
        runners=[
            ExchangeRunner(
                selection_id=12345,
                runner_name="Lakers",
                available_to_back=[PriceSize(2.40, 500)],
                available_to_lay=[PriceSize(2.30, 1000)],
            ),
            ExchangeRunner(
                selection_id=67890,
                runner_name="Celtics",
                available_to_back=[PriceSize(1.65, 800)],
                available_to_lay=[PriceSize(1.70, 600)],
            ),
        ],
    )
