"""
The Odds API Feed.

Bookmaker back prices for Australian books (regions=au, markets=h2h).
Free tier: 500 requests/month, so sports are only polled during their
active hours and every response's quota headers are tracked.

API Docs: https://the-odds-api.com/liveapi/guides/v4/

Quota handling: a 429, or an x-requests-remaining header that is "0" or
missing, raises QuotaExceeded. The scan aborts that sport and tries again on
the next cycle.
"""

import asyncio
import ssl
import time
from datetime import datetime, timedelta, timezone
from typing import Optional

import certifi
import httpx
import structlog

from arbseeker.errors import OddsAPIError, QuotaExceeded
from arbseeker.models.schemas import ParsedEvent, Quote
from arbseeker.utils.time_filter import is_active_hours

logger = structlog.get_logger()


def _parse_iso(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def parse_events(events: list[dict]) -> list[ParsedEvent]:
    """Flatten event -> bookmaker -> market -> outcome into quotes per event."""
    parsed = []
    for event in events:
        home_team = event.get("home_team", "")
        away_team = event.get("away_team", "")
        event_id = event.get("id", "")
        sport = event.get("sport_title", "")
        commence_time = event.get("commence_time", "")

        quotes = [
            Quote(
                event_id=event_id,
                event_name=f"{home_team} vs {away_team}",
                sport=sport,
                start_time=commence_time,
                bookmaker=bookmaker.get("title", ""),
                bookmaker_key=bookmaker.get("key", ""),
                market=market.get("key", ""),
                outcome=outcome.get("name", ""),
                price=float(outcome.get("price", 0)),
                point=outcome.get("point"),
            )
            for bookmaker in event.get("bookmakers", [])
            for market in bookmaker.get("markets", [])
            for outcome in market.get("outcomes", [])
        ]

        parsed.append(ParsedEvent(
            event_id=event_id,
            sport=sport,
            sport_key=event.get("sport_key", ""),
            home_team=home_team,
            away_team=away_team,
            commence_time=commence_time,
            quotes=quotes,
        ))
    return parsed


class OddsAPIFeed:
    """
    Bookmaker odds from The Odds API.

    Usage:
        feed = OddsAPIFeed(api_key="your_key")
        events = await feed.fetch_odds("basketball_nba")
        parsed = parse_events(events)
        await feed.close()
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.the-odds-api.com/v4",
        regions: Optional[list[str]] = None,
        markets: Optional[list[str]] = None,
        lookahead_hours: float = 24.0,
        requests_per_minute: int = 10,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.regions = regions or ["au"]
        self.markets = markets or ["h2h"]
        self.lookahead = timedelta(hours=lookahead_hours)
        self.requests_per_minute = requests_per_minute

        self.logger = logger.bind(feed="odds_api")

        self._http_client = http_client
        self._owns_client = http_client is None

        # Rate limiting
        self._request_timestamps: list[float] = []
        self._requests_remaining: Optional[int] = None
        self._requests_used: int = 0

        # Health
        self._error_count: int = 0
        self._last_success_ms: int = 0

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            ssl_context = ssl.create_default_context(cafile=certifi.where())
            self._http_client = httpx.AsyncClient(
                verify=ssl_context,
                timeout=15.0,
                headers={"Accept": "application/json"},
            )
        return self._http_client

    async def close(self) -> None:
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    # =========================================================================
    # Rate Limiting
    # =========================================================================

    async def _wait_for_rate_limit(self) -> None:
        """Wait if we're hitting rate limits."""
        now = time.time()

        # Clean old timestamps (older than 1 minute)
        self._request_timestamps = [
            ts for ts in self._request_timestamps
            if now - ts < 60
        ]

        if len(self._request_timestamps) >= self.requests_per_minute:
            wait_time = 60 - (now - self._request_timestamps[0])
            if wait_time > 0:
                self.logger.debug("Rate limit reached, waiting", seconds=wait_time)
                await asyncio.sleep(wait_time)

    def _track_usage(self, response: httpx.Response) -> None:
        self._request_timestamps.append(time.time())
        remaining = response.headers.get("x-requests-remaining")
        used = response.headers.get("x-requests-used")
        if remaining is not None:
            try:
                self._requests_remaining = int(float(remaining))
            except ValueError:
                pass
        if used is not None:
            try:
                self._requests_used = int(float(used))
            except ValueError:
                pass

    # =========================================================================
    # API Calls
    # =========================================================================

    async def fetch_odds(
        self,
        sport_key: str,
        now: Optional[datetime] = None,
    ) -> list[dict]:
        """
        Events for sport_key starting within the look-ahead window.

        Returns [] outside the sport's active hours and for unknown sport keys.

        Raises:
            QuotaExceeded: request allowance used up
            OddsAPIError: any other non-success status
        """
        now = now or datetime.now(timezone.utc)

        if not is_active_hours(sport_key, now):
            self.logger.debug("Skipping sport outside active hours", sport=sport_key)
            return []

        await self._wait_for_rate_limit()

        response = await self.http_client.get(
            f"{self.base_url}/sports/{sport_key}/odds",
            params={
                "apiKey": self.api_key,
                "regions": ",".join(self.regions),
                "markets": ",".join(self.markets),
                "dateFormat": "iso",
                "oddsFormat": "decimal",
            },
        )
        self._track_usage(response)

        # Quota is checked before the status: an exhausted key can answer
        # with other errors too.
        remaining = response.headers.get("x-requests-remaining")
        if response.status_code == 429 or remaining is None or remaining.strip() == "0":
            self._error_count += 1
            raise QuotaExceeded(f"Odds API quota exhausted (sport={sport_key})")

        if response.status_code == 404:
            self.logger.info("Sport key not found", sport=sport_key)
            return []

        if response.status_code != 200:
            self._error_count += 1
            raise OddsAPIError(
                f"Odds API error: {response.status_code} {response.reason_phrase}"
            )

        self._last_success_ms = int(time.time() * 1000)
        data = response.json()
        if not isinstance(data, list):
            raise OddsAPIError(f"Unexpected Odds API payload for {sport_key}")

        horizon = now + self.lookahead
        events = []
        for event in data:
            try:
                start = _parse_iso(event.get("commence_time", ""))
            except ValueError:
                self.logger.debug("Skipping event with bad commence_time", event_id=event.get("id"))
                continue
            if now <= start <= horizon:
                events.append(event)

        self.logger.info(
            "Fetched odds",
            sport=sport_key,
            events=len(events),
            total=len(data),
            requests_remaining=self._requests_remaining,
        )
        return events

    # =========================================================================
    # Metrics
    # =========================================================================

    def get_metrics(self) -> dict:
        """Get feed health metrics."""
        return {
            "name": "odds_api",
            "requests_remaining": self._requests_remaining,
            "requests_used": self._requests_used,
            "error_count": self._error_count,
            "age_seconds": (int(time.time() * 1000) - self._last_success_ms) / 1000 if self._last_success_ms else 0,
        }
