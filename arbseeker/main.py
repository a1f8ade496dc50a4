"""
Arb Seeker - Main Entry Point.

Runs the tiered scan loops:
1. Fetch bookmaker odds for the tier's sports (The Odds API)
2. Find the matching Betfair MATCH_ODDS market for each game
3. Detect a back/lay arb on the home team
4. Assign a Grey Man stake, dedup/validate, and alert via Telegram

Tiers:
    TIER_1  every 2 minutes   NBA, AFL, NRL
    TIER_2  every 10 minutes  Cricket, Rugby Union
    TIER_3  every 6 hours     Futures/Outrights (not implemented)

Scans only run during Sydney daytime (7am-11pm). Lay bets are never placed
automatically: every alert asks for a manual lay.

Usage:
    python -m arbseeker.main

Environment Variables:
    ODDS_API_KEY, BETFAIR_APP_KEY, BETFAIR_USERNAME, BETFAIR_PASSWORD,
    TELEGRAM_BOT_TOKEN, TELEGRAM_CHAT_ID  - Required unless MOCK_MODE=true
    GREY_MAN_MIN_STAKE / GREY_MAN_MAX_STAKE - Stake range (default 280-420)
    MOCK_MODE                               - Use a canned opportunity
"""

import asyncio
import random
import signal
import sys
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from dotenv import load_dotenv

from arbseeker.engine.detector import DetectorConfig, OpportunityDetector
from arbseeker.engine.gate import GateConfig, OpportunityGate
from arbseeker.engine.margin import grey_man_stake, liability
from arbseeker.errors import QuotaExceeded
from arbseeker.exchange.gateway import BetfairGateway
from arbseeker.exchange.session import SessionManager
from arbseeker.feeds.odds_api import OddsAPIFeed, parse_events
from arbseeker.mock_data import generate_mock_opportunity
from arbseeker.models.schemas import GateDecision, Opportunity, ParsedEvent
from arbseeker.storage.kv import KeyValueStore, SqliteStore
from arbseeker.utils.alerts import TelegramAlerter
from arbseeker.utils.logging import setup_logging
from arbseeker.utils.time_filter import is_sydney_daytime
from config.settings import (
    POLLING_INTERVALS,
    Settings,
    SportTier,
    get_betfair_event_type_id,
    sports_for_tier,
)

logger = structlog.get_logger()

DAYTIME_STATE_KEY = "daytime_state"
MARKET_TYPE_CODE = "MATCH_ODDS"
MANUAL_LAY_STATUS = "⚠️ Manual Lay Required"


class ArbSeeker:
    """
    Bookmaker vs Betfair arbitrage scanner.

    Owns the store, the Betfair session and every pipeline component; each
    collaborator can be injected for tests.
    """

    def __init__(
        self,
        settings: Settings,
        store: Optional[KeyValueStore] = None,
        odds_feed: Optional[OddsAPIFeed] = None,
        session: Optional[SessionManager] = None,
        gateway: Optional[BetfairGateway] = None,
        alerter: Optional[TelegramAlerter] = None,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings
        self.logger = logger.bind(component="arb_seeker")

        if not settings.mock_mode:
            settings.validate_required()

        # Injected collaborators are checked against None: an empty MemoryStore is falsy
        self.store = store if store is not None else SqliteStore(settings.store_path)

        self.odds_feed = odds_feed if odds_feed is not None else OddsAPIFeed(
            api_key=settings.odds_api.api_key,
            base_url=settings.odds_api.base_url,
            regions=settings.odds_api.regions,
            markets=settings.odds_api.markets,
            lookahead_hours=settings.odds_api.lookahead_hours,
        )

        self.session = session if session is not None else SessionManager(
            store=self.store,
            app_key=settings.betfair.app_key,
            username=settings.betfair.username,
            password=settings.betfair.password,
            login_url=settings.betfair.login_url,
            session_lifetime_seconds=settings.betfair.session_lifetime_seconds,
            refresh_margin_seconds=settings.betfair.refresh_margin_seconds,
        )
        self.gateway = gateway if gateway is not None else BetfairGateway(
            session=self.session,
            app_key=settings.betfair.app_key,
            betting_url=settings.betfair.betting_url,
            account_url=settings.betfair.account_url,
        )

        self.detector = OpportunityDetector(
            DetectorConfig(
                max_implied_probability=settings.detector.max_implied_probability,
                min_lay_liquidity=settings.detector.min_lay_liquidity,
            )
        )
        self.gate = OpportunityGate(
            self.store,
            GateConfig(
                min_profit_margin=settings.gate.min_profit_margin,
                retention_seconds=settings.gate.retention_seconds,
            ),
        )

        self.alerter = alerter if alerter is not None else TelegramAlerter(
            bot_token=settings.telegram.bot_token,
            chat_id=settings.telegram.chat_id,
        )
        self._rng = rng if rng is not None else random.Random()

        # Control
        self._running = False
        self._shutdown_event = asyncio.Event()

        # Stats
        self._opportunities_detected = 0
        self._opportunities_accepted = 0

    # =========================================================================
    # Pipeline
    # =========================================================================

    async def process_opportunity(self, opportunity: Opportunity) -> GateDecision:
        """Assign a Grey Man stake, run the gate, and alert if accepted."""
        self._opportunities_detected += 1
        opportunity.suggested_stake = grey_man_stake(
            self.settings.stake.min_stake,
            self.settings.stake.max_stake,
            self._rng,
        )

        decision = await self.gate.process_opportunity(opportunity)
        if not decision.accepted:
            self.logger.info(
                "Skipping opportunity",
                opportunity_id=opportunity.id,
                reason=decision.reason,
            )
            return decision

        self._opportunities_accepted += 1

        # Amount needed on Betfair to cover the lay if the selection wins.
        # Auto-lay is disabled, so this is only reported.
        liability_needed = liability(opportunity.suggested_stake, opportunity.lay_price)
        self.logger.info(
            "🎯 Arb found",
            opportunity_id=opportunity.id,
            event_name=opportunity.event,
            bookmaker=opportunity.bookmaker,
            back=opportunity.back_price,
            lay=opportunity.lay_price,
            margin=f"{opportunity.profit_margin:.2%}",
            stake=opportunity.suggested_stake,
            liability=round(liability_needed, 2),
        )

        sent = await self.alerter.send_opportunity(opportunity, MANUAL_LAY_STATUS)
        if not sent:
            self.logger.warning("Opportunity processed but notification failed", opportunity_id=opportunity.id)

        return decision

    async def scan(self, sport_keys: list[str], now: Optional[datetime] = None) -> None:
        """Scan each sport in order. A failing sport never stops the others."""
        now = now or datetime.now(timezone.utc)
        if not is_sydney_daytime(now):
            return

        for sport_key in sport_keys:
            try:
                if self.settings.mock_mode:
                    await self.process_opportunity(generate_mock_opportunity())
                else:
                    await self._scan_sport(sport_key, now)
            except QuotaExceeded as e:
                self.logger.warning("Odds API quota exhausted, skipping sport", sport=sport_key, error=str(e))
            except Exception as e:
                self.logger.error("Error scanning sport", sport=sport_key, error=str(e))

    async def _scan_sport(self, sport_key: str, now: datetime) -> None:
        events = await self.odds_feed.fetch_odds(sport_key, now)
        if not events:
            return

        event_type_id = get_betfair_event_type_id(sport_key)
        if not event_type_id:
            self.logger.info("No Betfair event type for sport", sport=sport_key)
            return

        horizon = now + timedelta(hours=self.settings.odds_api.lookahead_hours)
        for game in parse_events(events):
            try:
                if game.commence_datetime > horizon:
                    continue
                await self._scan_game(game, event_type_id)
            except Exception as e:
                self.logger.error("Error scanning event", event_name=game.display_name, error=str(e))

    async def _scan_game(self, game: ParsedEvent, event_type_id: str) -> None:
        market = await self.gateway.find_market(
            event_type_id=event_type_id,
            text_query=f"{game.home_team} {game.away_team}",
            market_type_code=MARKET_TYPE_CODE,
        )
        if market is None:
            self.logger.debug("No Betfair market", event_name=game.display_name)
            return

        opportunity = self.detector.detect_single_side(game, market)
        if opportunity:
            await self.process_opportunity(opportunity)

    async def check_daytime_transition(self, now: Optional[datetime] = None) -> bool:
        """Persist the daytime flag and log morning/evening transitions."""
        current = is_sydney_daytime(now)
        previous = await self.store.get(DAYTIME_STATE_KEY)

        if previous is None:
            if current:
                self.logger.info("Good morning - resuming bot")
        elif previous and not current:
            self.logger.info("Reached end of daytime - bot stopped")
        elif not previous and current:
            self.logger.info("Good morning - resuming bot")

        await self.store.set(DAYTIME_STATE_KEY, current)
        return current

    # =========================================================================
    # Main Loops
    # =========================================================================

    async def start(self) -> None:
        """Run every tier loop until shutdown."""
        self.logger.info("Arb Seeker started", mock_mode=self.settings.mock_mode)
        self._running = True

        if await self.check_daytime_transition():
            if self.settings.mock_mode:
                self.logger.info("Running in MOCK_MODE - using test data")
                await self.process_opportunity(generate_mock_opportunity())
        else:
            self.logger.info("Outside Sydney daytime (7am-11pm) - skipping initial scan")

        try:
            await asyncio.gather(
                self._tier_loop(SportTier.TIER_1),
                self._tier_loop(SportTier.TIER_2),
                self._tier_loop(SportTier.TIER_3),
            )
        except asyncio.CancelledError:
            self.logger.info("Bot cancelled")

        await self.stop()

    async def stop(self) -> None:
        self._running = False
        await self.odds_feed.close()
        await self.session.close()
        await self.alerter.close()
        await self.store.close()
        self.logger.info(
            "Arb Seeker stopped",
            detected=self._opportunities_detected,
            accepted=self._opportunities_accepted,
        )

    def shutdown(self) -> None:
        """Trigger graceful shutdown."""
        self._running = False
        self._shutdown_event.set()

    async def _tier_loop(self, tier: SportTier) -> None:
        interval = POLLING_INTERVALS[tier]
        while self._running:
            # First scan waits one interval; startup already ran the daytime check
            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=interval)
                break
            except asyncio.TimeoutError:
                pass

            try:
                if not await self.check_daytime_transition():
                    continue
                if tier == SportTier.TIER_3:
                    self.logger.info("Tier 3 scan (Futures/Outrights) - not yet implemented")
                    continue
                await self.scan(sports_for_tier(tier))
            except asyncio.CancelledError:
                break
            except Exception as e:
                self.logger.error("Tier loop error", tier=tier.value, error=str(e))

    def get_metrics(self) -> dict:
        return {
            "detected": self._opportunities_detected,
            "accepted": self._opportunities_accepted,
            "odds_api": self.odds_feed.get_metrics(),
            "betfair": self.gateway.get_metrics(),
            "detector": self.detector.get_metrics(),
        }


def main():
    """Main entry point."""
    load_dotenv()
    settings = Settings()
    setup_logging(settings.log_level, json_logs=settings.log_json)

    try:
        bot = ArbSeeker(settings)
    except ValueError as e:
        print(f"❌ Configuration error: {e}")
        sys.exit(1)

    def signal_handler(sig, frame):
        print("\n🛑 Shutdown requested...")
        bot.shutdown()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        asyncio.run(bot.start())
    except KeyboardInterrupt:
        print("\n⚠️ Interrupted")


if __name__ == "__main__":
    main()
