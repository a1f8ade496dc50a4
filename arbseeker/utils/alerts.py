"""
Telegram alerting for accepted opportunities.

Sends an HTML message with deep-link buttons to the bookmaker and to the
Betfair market. Uses a persistent HTTP client and retries transient
connection errors; a failed alert is logged and reported as False, never
raised, so the scan loop keeps going.
"""

import asyncio
import html
import time
from datetime import datetime
from typing import Optional

import httpx
import structlog

from arbseeker.models.schemas import Opportunity
from arbseeker.utils.time_filter import SYDNEY_TZ

logger = structlog.get_logger()

TELEGRAM_API_URL = "https://api.telegram.org"


def format_start_time(start_time: str) -> str:
    """ISO timestamp as short Sydney local time, e.g. 19/10/26 14:30."""
    try:
        dt = datetime.fromisoformat(start_time.replace("Z", "+00:00"))
    except ValueError:
        return start_time
    return dt.astimezone(SYDNEY_TZ).strftime("%d/%m/%y %H:%M")


def format_opportunity(opportunity: Opportunity, lay_status: str) -> str:
    """HTML body of the opportunity alert."""
    return (
        f"🚨 <b>ARB FOUND: {opportunity.profit_margin * 100:.2f}%</b>\n\n"
        f"Strategy: Back <b>${opportunity.suggested_stake:g}</b> on "
        f"{html.escape(opportunity.bookmaker)} @ {opportunity.back_price}\n"
        f"Betfair Status: {html.escape(lay_status)}\n\n"
        f"🏆 <b>{html.escape(opportunity.event)}</b>\n"
        f"📅 {format_start_time(opportunity.start_time)}\n"
    )


def build_keyboard(opportunity: Opportunity) -> dict:
    return {
        "inline_keyboard": [
            [{"text": f"📲 OPEN {opportunity.bookmaker.upper()}", "url": opportunity.bookmaker_url}],
            [{"text": "🔄 OPEN BETFAIR", "url": opportunity.betfair_url}],
        ],
    }


class TelegramAlerter:
    """
    Telegram bot alerter.

    Usage:
        alerter = TelegramAlerter(bot_token, chat_id)
        await alerter.send_opportunity(opportunity, "⚠️ Manual Lay Required")
        await alerter.close()
    """

    # Retry settings
    MAX_RETRIES = 3
    RETRY_DELAYS = [1.0, 2.0, 5.0]  # Progressive backoff

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        http_client: Optional[httpx.AsyncClient] = None,
        api_url: str = TELEGRAM_API_URL,
    ):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.api_url = api_url
        self.logger = logger.bind(component="telegram_alerter")

        self._client = http_client
        self._owns_client = http_client is None
        self._consecutive_failures = 0
        self._last_success_time: float = 0
        self._sent = 0

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(connect=15.0, read=20.0, write=15.0, pool=15.0),
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def _method_url(self, method: str) -> str:
        return f"{self.api_url}/bot{self.bot_token}/{method}"

    # ==========================================================================
    # Core Methods
    # ==========================================================================

    async def _send_with_retry(self, payload: dict) -> bool:
        """POST sendMessage, retrying connection-level failures."""
        if not self.bot_token or not self.chat_id:
            return False

        for attempt in range(self.MAX_RETRIES):
            try:
                response = await self._get_client().post(
                    self._method_url("sendMessage"),
                    json=payload,
                )
            except (httpx.ConnectTimeout, httpx.ReadTimeout, httpx.ConnectError, httpx.PoolTimeout) as e:
                self._consecutive_failures += 1
                self.logger.debug(
                    "Telegram send failed",
                    error_type=type(e).__name__,
                    attempt=attempt + 1,
                )
                if attempt < self.MAX_RETRIES - 1:
                    await asyncio.sleep(self.RETRY_DELAYS[attempt])
                continue
            except httpx.HTTPError as e:
                self._consecutive_failures += 1
                self.logger.error("Telegram send error", error=str(e))
                return False

            if response.status_code == 200:
                self._consecutive_failures = 0
                self._last_success_time = time.time()
                self._sent += 1
                return True

            self._consecutive_failures += 1
            self.logger.error(
                "Telegram API error",
                status=response.status_code,
                body=response.text[:200],
            )
            return False

        self.logger.warning("Telegram connectivity issues", failures=self._consecutive_failures)
        return False

    async def send_message(self, text: str) -> bool:
        return await self._send_with_retry({
            "chat_id": self.chat_id,
            "text": text,
            "parse_mode": "HTML",
        })

    async def send_opportunity(self, opportunity: Opportunity, lay_status: str) -> bool:
        """Alert for an accepted opportunity, with bookmaker/Betfair buttons."""
        sent = await self._send_with_retry({
            "chat_id": self.chat_id,
            "text": format_opportunity(opportunity, lay_status),
            "parse_mode": "HTML",
            "reply_markup": build_keyboard(opportunity),
        })
        if sent:
            self.logger.info("Telegram alert sent", opportunity_id=opportunity.id)
        return sent

    async def get_me(self) -> dict:
        """Bot identity (used by diagnostics). Raises on HTTP failure."""
        response = await self._get_client().get(self._method_url("getMe"))
        response.raise_for_status()
        return response.json()
