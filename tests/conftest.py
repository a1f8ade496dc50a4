"""Shared fixtures for the arb seeker tests."""

from datetime import datetime, timedelta, timezone

import pytest

from arbseeker.models.schemas import (
    ExchangeMarket,
    ExchangeRunner,
    Opportunity,
    ParsedEvent,
    PriceSize,
    Quote,
)
from arbseeker.storage.kv import MemoryStore

# 2026-10-19 is in AEDT (UTC+11)
SYDNEY_MORNING = datetime(2026, 10, 19, 0, 0, tzinfo=timezone.utc)  # 11:00 Sydney
SYDNEY_NIGHT = datetime(2026, 10, 19, 14, 0, tzinfo=timezone.utc)   # 01:00 Sydney


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, start: float = 1_800_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def morning():
    return SYDNEY_MORNING


@pytest.fixture
def night():
    return SYDNEY_NIGHT


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return MemoryStore(clock=clock)


@pytest.fixture
def make_event():
    """
    Build a ParsedEvent from (bookmaker, bookmaker_key, outcome, price) rows.
    """
    def _make(
        rows,
        event_id="evt_1",
        home="Lakers",
        away="Celtics",
        commence_time=None,
        market="h2h",
    ):
        commence_time = commence_time or (SYDNEY_MORNING + timedelta(hours=2)).isoformat()
        quotes = [
            Quote(
                event_id=event_id,
                event_name=f"{home} vs {away}",
                sport="Basketball",
                start_time=commence_time,
                bookmaker=bookmaker,
                bookmaker_key=key,
                market=market,
                outcome=outcome,
                price=price,
            )
            for bookmaker, key, outcome, price in rows
        ]
        return ParsedEvent(
            event_id=event_id,
            sport="Basketball",
            sport_key="basketball_nba",
            home_team=home,
            away_team=away,
            commence_time=commence_time,
            quotes=quotes,
        )
    return _make


@pytest.fixture
def make_market():
    """Two-runner MATCH_ODDS market with a configurable home lay."""
    def _make(home_lay=(2.30, 1000.0), away_lay=(1.70, 600.0), home="Lakers", away="Celtics"):
        return ExchangeMarket(
            market_id="1.234567890",
            market_name="Match Odds",
            runners=[
                ExchangeRunner(
                    selection_id=12345,
                    runner_name=home,
                    available_to_lay=[PriceSize(*home_lay)] if home_lay else [],
                ),
                ExchangeRunner(
                    selection_id=67890,
                    runner_name=away,
                    available_to_lay=[PriceSize(*away_lay)] if away_lay else [],
                ),
            ],
        )
    return _make


@pytest.fixture
def make_opportunity():
    def _make(**overrides):
        fields = dict(
            id="evt_1_sportsbet_home",
            event="Lakers vs Celtics",
            sport="Basketball",
            start_time=(SYDNEY_MORNING + timedelta(hours=2)).isoformat(),
            bookmaker="Sportsbet",
            back_price=2.50,
            bookmaker_url="https://www.sportsbet.com.au/bet/evt_1",
            market_id="1.234567890",
            selection_id=12345,
            lay_price=2.30,
            lay_liquidity=1000.0,
            profit_margin=0.05,
            suggested_stake=300,
        )
        fields.update(overrides)
        return Opportunity(**fields)
    return _make
