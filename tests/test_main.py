"""Tests for the ArbSeeker scan pipeline with fake collaborators."""

import random
from datetime import timedelta

import pytest
from structlog.testing import capture_logs

from arbseeker.errors import QuotaExceeded
from arbseeker.main import DAYTIME_STATE_KEY, MANUAL_LAY_STATUS, ArbSeeker
from arbseeker.mock_data import mock_odds_response
from config.settings import BetfairSettings, OddsAPISettings, Settings, TelegramSettings


class FakeFeed:

    def __init__(self, responses=None):
        # sport_key -> list of events, or an exception to raise
        self.responses = responses or {}
        self.calls = []
        self.closed = False

    async def fetch_odds(self, sport_key, now=None):
        self.calls.append(sport_key)
        response = self.responses.get(sport_key, [])
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self):
        self.closed = True

    def get_metrics(self):
        return {"name": "fake_feed"}


class FakeGateway:

    def __init__(self, market=None, fail_for=()):
        self.market = market
        self.fail_for = set(fail_for)
        self.queries = []

    async def find_market(self, event_type_id, text_query, market_type_code):
        self.queries.append((event_type_id, text_query, market_type_code))
        if text_query in self.fail_for:
            raise RuntimeError("exchange unavailable")
        return self.market

    def get_metrics(self):
        return {"name": "fake_gateway"}


class FakeSession:

    async def close(self):
        pass


class FakeAlerter:

    def __init__(self):
        self.sent = []

    async def send_opportunity(self, opportunity, lay_status):
        self.sent.append((opportunity, lay_status))
        return True

    async def close(self):
        pass


def live_settings(**kwargs):
    return Settings(
        odds_api=OddsAPISettings(api_key="odds-key"),
        betfair=BetfairSettings(app_key="app", username="user", password="secret"),
        telegram=TelegramSettings(bot_token="token", chat_id="chat"),
        **kwargs,
    )


def second_event(now):
    event = mock_odds_response(now)[0]
    return {**event, "id": "mock_event_002", "home_team": "Warriors", "away_team": "Heat"}


@pytest.fixture
def deep_market(make_market):
    # Enough lay liquidity for any Grey Man stake
    return make_market(home_lay=(2.30, 5000.0))


def make_bot(store, feed, gateway, settings=None):
    alerter = FakeAlerter()
    bot = ArbSeeker(
        settings or live_settings(),
        store=store,
        odds_feed=feed,
        session=FakeSession(),
        gateway=gateway,
        alerter=alerter,
        rng=random.Random(7),
    )
    return bot, alerter


@pytest.mark.asyncio
async def test_scan_alerts_home_arb(store, morning, deep_market):
    feed = FakeFeed({"basketball_nba": mock_odds_response(morning)})
    gateway = FakeGateway(deep_market)
    bot, alerter = make_bot(store, feed, gateway)

    await bot.scan(["basketball_nba"], now=morning)

    assert gateway.queries == [("7522", "Lakers Celtics", "MATCH_ODDS")]
    assert len(alerter.sent) == 1
    opportunity, status = alerter.sent[0]
    assert status == MANUAL_LAY_STATUS
    assert opportunity.id == "mock_event_001_sportsbet_home"
    assert 280 <= opportunity.suggested_stake <= 420
    assert opportunity.suggested_stake % 50 != 0
    assert await store.get("processed:mock_event_001_sportsbet_home") is not None


@pytest.mark.asyncio
async def test_repeat_scan_does_not_realert(store, morning, deep_market):
    feed = FakeFeed({"basketball_nba": mock_odds_response(morning)})
    bot, alerter = make_bot(store, feed, FakeGateway(deep_market))

    await bot.scan(["basketball_nba"], now=morning)
    await bot.scan(["basketball_nba"], now=morning)

    assert len(alerter.sent) == 1
    assert bot.get_metrics()["detected"] == 2
    assert bot.get_metrics()["accepted"] == 1


@pytest.mark.asyncio
async def test_scan_skipped_at_night(store, night, deep_market):
    feed = FakeFeed({"basketball_nba": mock_odds_response(night)})
    bot, alerter = make_bot(store, feed, FakeGateway(deep_market))

    await bot.scan(["basketball_nba"], now=night)

    assert feed.calls == []
    assert alerter.sent == []


@pytest.mark.asyncio
async def test_quota_exhaustion_does_not_stop_other_sports(store, morning, deep_market):
    feed = FakeFeed({
        "basketball_nba": QuotaExceeded("quota"),
        "aussierules_afl": mock_odds_response(morning),
    })
    gateway = FakeGateway(deep_market)
    bot, alerter = make_bot(store, feed, gateway)

    await bot.scan(["basketball_nba", "aussierules_afl"], now=morning)

    assert feed.calls == ["basketball_nba", "aussierules_afl"]
    assert gateway.queries == [("61420", "Lakers Celtics", "MATCH_ODDS")]
    assert len(alerter.sent) == 1


@pytest.mark.asyncio
async def test_failing_event_does_not_stop_the_next(store, morning, deep_market):
    feed = FakeFeed({"basketball_nba": [second_event(morning), *mock_odds_response(morning)]})
    gateway = FakeGateway(deep_market, fail_for={"Warriors Heat"})
    bot, alerter = make_bot(store, feed, gateway)

    with capture_logs() as logs:
        await bot.scan(["basketball_nba"], now=morning)

    assert len(gateway.queries) == 2
    assert [o.id for o, _ in alerter.sent] == ["mock_event_001_sportsbet_home"]

    errors = [entry for entry in logs if entry["log_level"] == "error"]
    assert len(errors) == 1
    assert errors[0]["event"] == "Error scanning event"
    assert errors[0]["event_name"] == "Warriors vs Heat"
    assert errors[0]["error"] == "exchange unavailable"


@pytest.mark.asyncio
async def test_events_beyond_lookahead_skipped(store, morning, deep_market):
    event = mock_odds_response(morning)[0]
    event["commence_time"] = (morning + timedelta(hours=30)).isoformat()
    gateway = FakeGateway(deep_market)
    bot, _ = make_bot(store, FakeFeed({"basketball_nba": [event]}), gateway)

    await bot.scan(["basketball_nba"], now=morning)

    assert gateway.queries == []


@pytest.mark.asyncio
async def test_sport_without_betfair_event_type(store, morning, deep_market):
    gateway = FakeGateway(deep_market)
    bot, _ = make_bot(store, FakeFeed({"soccer_epl": mock_odds_response(morning)}), gateway)

    await bot.scan(["soccer_epl"], now=morning)

    assert gateway.queries == []


@pytest.mark.asyncio
async def test_no_market_means_no_alert(store, morning):
    bot, alerter = make_bot(store, FakeFeed({"basketball_nba": mock_odds_response(morning)}), FakeGateway(None))

    await bot.scan(["basketball_nba"], now=morning)

    assert alerter.sent == []


@pytest.mark.asyncio
async def test_low_margin_opportunity_not_alerted(store, make_opportunity):
    bot, alerter = make_bot(store, FakeFeed(), FakeGateway())

    decision = await bot.process_opportunity(make_opportunity(profit_margin=0.01, lay_liquidity=10_000.0))

    assert not decision.accepted
    assert alerter.sent == []


@pytest.mark.asyncio
async def test_mock_mode_scan(store, morning):
    settings = Settings(mock_mode=True)
    feed = FakeFeed()
    bot, alerter = make_bot(store, feed, FakeGateway(), settings=settings)

    await bot.scan(["basketball_nba"], now=morning)

    assert feed.calls == []
    assert len(alerter.sent) == 1
    assert alerter.sent[0][0].id.startswith("mock_arb_")


@pytest.mark.asyncio
async def test_daytime_state_persisted(store, morning, night):
    bot, _ = make_bot(store, FakeFeed(), FakeGateway())

    assert await bot.check_daytime_transition(morning) is True
    assert await store.get(DAYTIME_STATE_KEY) is True

    assert await bot.check_daytime_transition(night) is False
    assert await store.get(DAYTIME_STATE_KEY) is False


def test_missing_credentials_rejected(store, monkeypatch):
    for name in ("ODDS_API_KEY", "BETFAIR_APP_KEY", "TELEGRAM_BOT_TOKEN"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings(
        odds_api=OddsAPISettings(api_key=""),
        betfair=BetfairSettings(app_key="", username="", password=""),
        telegram=TelegramSettings(bot_token="", chat_id=""),
    )

    with pytest.raises(ValueError, match="ODDS_API_KEY"):
        make_bot(store, FakeFeed(), FakeGateway(), settings=settings)


@pytest.mark.asyncio
async def test_accepted_arb_logged_and_alerted(store, make_opportunity):
    bot, alerter = make_bot(store, FakeFeed(), FakeGateway())

    with capture_logs() as logs:
        decision = await bot.process_opportunity(make_opportunity(lay_liquidity=10_000.0))

    assert decision.accepted
    assert len(alerter.sent) == 1
    found = [entry for entry in logs if entry["event"] == "🎯 Arb found"]
    assert found[0]["event_name"] == "Lakers vs Celtics"
    assert found[0]["liability"] == pytest.approx(alerter.sent[0][0].suggested_stake * 1.30, abs=0.01)


def test_injected_empty_store_is_kept(store):
    bot, _ = make_bot(store, FakeFeed(), FakeGateway())
    assert bot.store is store


@pytest.mark.asyncio
async def test_mock_opportunity_gets_grey_man_stake(store, morning):
    bot, alerter = make_bot(store, FakeFeed(), FakeGateway(), settings=Settings(mock_mode=True))

    await bot.scan(["basketball_nba"], now=morning)

    stake = alerter.sent[0][0].suggested_stake
    assert 280 <= stake <= 420
    assert stake % 50 != 0
