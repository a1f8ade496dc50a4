"""
Betfair Exchange JSON-RPC gateway.

Every call goes through call(), which attaches the current session token and
recovers from INVALID_SESSION by invalidating the session and retrying the
same request. The retry is capped at MAX_SESSION_RETRIES so credentials that
Betfair keeps rejecting cannot loop forever.

Operations:
- find_market: catalogue search + best-offer price book, merged by selection
- get_account_funds: wallet balance
- place_lay_bet: single LIMIT LAY order, never raises (returns LayBetResult)

API Docs: https://docs.developer.betfair.com/display/1smk3cen4v3lu3yomq5qye0ni/API+Overview
"""

from typing import Any, Optional

import httpx
import structlog

from arbseeker.engine.margin import lay_stake
from arbseeker.errors import ExchangeError, InvalidSession
from arbseeker.exchange.session import SessionManager
from arbseeker.models.schemas import (
    AccountFunds,
    ExchangeMarket,
    ExchangeRunner,
    LayBetResult,
    OrderStatus,
    PriceSize,
)

logger = structlog.get_logger()

BETFAIR_BETTING_URL = "https://api.betfair.com/exchange/betting/json-rpc/v1"
BETFAIR_ACCOUNT_URL = "https://api.betfair.com/exchange/account/json-rpc/v1"

BETTING_NAMESPACE = "SportsAPING/v1.0/"
ACCOUNT_NAMESPACE = "AccountAPING/v1.0/"

# One refresh-and-retry per call after INVALID_SESSION
MAX_SESSION_RETRIES = 1

INVALID_SESSION_MARKER = "INVALID_SESSION"


def is_session_error(error: dict) -> bool:
    """True if a JSON-RPC error object reports an invalid/expired session."""
    if INVALID_SESSION_MARKER in str(error.get("message", "")):
        return True
    data = error.get("data")
    if isinstance(data, dict):
        for exception in data.values():
            if isinstance(exception, dict):
                if INVALID_SESSION_MARKER in str(exception.get("errorCode", "")):
                    return True
    return False


def _parse_levels(levels: Optional[list]) -> list[PriceSize]:
    return [
        PriceSize(price=float(level["price"]), size=float(level["size"]))
        for level in levels or []
    ]


class BetfairGateway:
    """
    Authenticated access to the Betfair betting and account APIs.

    Usage:
        gateway = BetfairGateway(session, app_key)
        market = await gateway.find_market("7522", "Lakers Celtics", "MATCH_ODDS")
    """

    def __init__(
        self,
        session: SessionManager,
        app_key: str,
        http_client: Optional[httpx.AsyncClient] = None,
        betting_url: str = BETFAIR_BETTING_URL,
        account_url: str = BETFAIR_ACCOUNT_URL,
    ):
        self.session = session
        self.app_key = app_key
        self.betting_url = betting_url
        self.account_url = account_url
        self._http_client = http_client

        self.logger = logger.bind(component="betfair_gateway")

        # Stats
        self._calls = 0
        self._session_retries = 0
        self._errors = 0

    @property
    def http_client(self) -> httpx.AsyncClient:
        return self._http_client or self.session.http_client

    # =========================================================================
    # JSON-RPC
    # =========================================================================

    async def _post(self, url: str, method: str, params: dict, token: str) -> dict:
        self._calls += 1
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": 1,
        }
        response = await self.http_client.post(
            url,
            json=payload,
            headers={
                "Content-Type": "application/json",
                "X-Application": self.app_key,
                "X-Authentication": token,
            },
        )
        if response.status_code >= 400:
            self._errors += 1
            raise ExchangeError(
                f"Betfair API error: {response.status_code} {response.reason_phrase}",
                code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as e:
            self._errors += 1
            raise ExchangeError(f"Betfair API returned non-JSON body for {method}") from e
        if not isinstance(data, dict):
            self._errors += 1
            raise ExchangeError(f"Unexpected Betfair response for {method}")
        return data

    async def call(self, url: str, method: str, params: dict) -> Any:
        """
        Run a JSON-RPC method and return its result.

        Raises:
            InvalidSession: if the session is still rejected after the retry
            ExchangeError: for any other API or HTTP failure
        """
        for attempt in range(MAX_SESSION_RETRIES + 1):
            token = await self.session.get_token()
            data = await self._post(url, method, params, token)

            error = data.get("error")
            if error and is_session_error(error):
                if attempt < MAX_SESSION_RETRIES:
                    self._session_retries += 1
                    self.logger.info("Session rejected, refreshing", method=method)
                    await self.session.invalidate()
                    continue
                raise InvalidSession(f"Betfair rejected a fresh session for {method}")

            if error:
                self._errors += 1
                raise ExchangeError(
                    f"Betfair API error: {error.get('message', 'unknown')}",
                    code=error.get("code"),
                )

            result = data.get("result")
            if result is None:
                self._errors += 1
                raise ExchangeError(f"Betfair API returned no result for {method}")
            return result

        # Unreachable: the loop either returns or raises
        raise InvalidSession(f"Betfair session retries exhausted for {method}")

    # =========================================================================
    # Markets
    # =========================================================================

    async def find_market(
        self,
        event_type_id: str,
        text_query: str,
        market_type_code: str,
    ) -> Optional[ExchangeMarket]:
        """
        Find a pre-match market and its best prices.

        Returns None when either the catalogue or the price book comes back
        empty, or when Betfair errors out (the scan just skips the event).
        """
        try:
            catalogue = await self.call(
                self.betting_url,
                f"{BETTING_NAMESPACE}listMarketCatalogue",
                {
                    "filter": {
                        "eventTypeIds": [event_type_id],
                        "textQuery": text_query,
                        "marketTypeCodes": [market_type_code],
                        "marketBettingTypes": ["ODDS"],
                        "turnInPlayEnabled": False,
                    },
                    "maxResults": 1,
                    "marketProjection": ["RUNNER_METADATA", "MARKET_START_TIME"],
                },
            )
            if not catalogue:
                return None
            summary = catalogue[0]

            books = await self.call(
                self.betting_url,
                f"{BETTING_NAMESPACE}listMarketBook",
                {
                    "marketIds": [summary["marketId"]],
                    "priceProjection": {
                        "priceData": ["EX_BEST_OFFERS"],
                        "exBestOffersOverrides": {"bestPricesDepth": 1},
                    },
                },
            )
            if not books:
                return None

        except (ExchangeError, InvalidSession, httpx.HTTPError) as e:
            self.logger.warning("Market lookup failed", query=text_query, error=str(e))
            return None

        names = {r["selectionId"]: r.get("runnerName", "Unknown") for r in summary.get("runners", [])}

        runners = []
        for book_runner in books[0].get("runners", []):
            selection_id = book_runner["selectionId"]
            ex = book_runner.get("ex") or {}
            runners.append(ExchangeRunner(
                selection_id=selection_id,
                runner_name=names.get(selection_id, "Unknown"),
                available_to_back=_parse_levels(ex.get("availableToBack")),
                available_to_lay=_parse_levels(ex.get("availableToLay")),
            ))

        return ExchangeMarket(
            market_id=summary["marketId"],
            market_name=summary.get("marketName", ""),
            runners=runners,
        )

    # =========================================================================
    # Account & orders
    # =========================================================================

    async def get_account_funds(self) -> AccountFunds:
        result = await self.call(self.account_url, f"{ACCOUNT_NAMESPACE}getAccountFunds", {})
        return AccountFunds.model_validate(result)

    async def place_lay_bet(
        self,
        market_id: str,
        selection_id: int,
        liability_needed: float,
        lay_price: float,
    ) -> LayBetResult:
        """
        Lay a selection for a target liability.

        Never raises: any failure comes back as a FAILED result so the caller
        can report "manual lay required" and keep scanning.
        """
        try:
            size = round(lay_stake(liability_needed, lay_price), 2)

            funds = await self.get_account_funds()
            if funds.available_to_bet_balance < liability_needed:
                return LayBetResult(
                    status=OrderStatus.FAILED,
                    error=(
                        f"Insufficient balance: need ${liability_needed:.2f}, "
                        f"have ${funds.available_to_bet_balance:.2f}"
                    ),
                )

            result = await self.call(
                self.betting_url,
                f"{BETTING_NAMESPACE}placeOrders",
                {
                    "marketId": market_id,
                    "instructions": [{
                        "selectionId": selection_id,
                        "side": "LAY",
                        "orderType": "LIMIT",
                        "limitOrder": {
                            "size": size,
                            "price": lay_price,
                            "persistenceType": "LAPSE",
                        },
                    }],
                },
            )

            reports = result.get("instructionReports") or []
            if result.get("status") == "SUCCESS" and reports:
                report = reports[0]
                if report.get("status") == "SUCCESS" and report.get("betId"):
                    self.logger.info("Lay bet placed", market_id=market_id, bet_id=report["betId"])
                    return LayBetResult(status=OrderStatus.SUCCESS, bet_id=report["betId"])
                return LayBetResult(
                    status=OrderStatus.FAILED,
                    error=report.get("errorCode") or "Unknown error placing bet",
                )

            return LayBetResult(
                status=OrderStatus.FAILED,
                error=result.get("errorCode") or "Failed to place bet",
            )

        except Exception as e:
            self.logger.error("Lay bet failed", market_id=market_id, error=str(e))
            return LayBetResult(status=OrderStatus.FAILED, error=str(e) or "Unknown error")

    def get_metrics(self) -> dict:
        return {
            "name": "betfair_gateway",
            "calls": self._calls,
            "session_retries": self._session_retries,
            "errors": self._errors,
        }
