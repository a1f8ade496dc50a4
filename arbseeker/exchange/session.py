"""
Betfair session management.

Betfair's JSON-RPC API authenticates every call with a session token from
the identitysso login endpoint. Tokens last 24 hours here; we refresh once
a stored token is within an hour of expiry, and on demand when the gateway
sees INVALID_SESSION.

States:
    no session -> logging in -> valid -> (near expiry | invalidated) -> logging in

The token lives in the key/value store, not in this object, so every process
sharing the store shares the session. Concurrent cold-cache calls may each
log in; whichever write lands last wins and both tokens are usable.
"""

import ssl
import time
from typing import Callable, Optional

import certifi
import httpx
import structlog
from pydantic import ValidationError

from arbseeker.errors import AuthenticationError
from arbseeker.models.schemas import BetfairLoginResponse, SessionRecord
from arbseeker.storage.kv import KeyValueStore

logger = structlog.get_logger()

BETFAIR_LOGIN_URL = "https://identitysso.betfair.com/api/login"
SESSION_KEY = "betfair:session"


def create_http_client(timeout: float = 15.0) -> httpx.AsyncClient:
    """HTTP client with certifi roots, shared by the Betfair components."""
    ssl_context = ssl.create_default_context(cafile=certifi.where())
    return httpx.AsyncClient(
        verify=ssl_context,
        timeout=timeout,
        headers={"Accept": "application/json"},
    )


class SessionManager:
    """
    Acquires, caches and refreshes the Betfair session token.

    Usage:
        session = SessionManager(store, app_key, username, password)
        token = await session.get_token()
        ...
        await session.invalidate()  # after INVALID_SESSION
    """

    def __init__(
        self,
        store: KeyValueStore,
        app_key: str,
        username: str,
        password: str,
        http_client: Optional[httpx.AsyncClient] = None,
        login_url: str = BETFAIR_LOGIN_URL,
        session_lifetime_seconds: float = 24 * 60 * 60,
        refresh_margin_seconds: float = 60 * 60,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.app_key = app_key
        self.username = username
        self.password = password
        self.login_url = login_url
        self.session_lifetime_seconds = session_lifetime_seconds
        self.refresh_margin_seconds = refresh_margin_seconds
        self._clock = clock

        self._http_client = http_client
        self._owns_client = http_client is None

        self.logger = logger.bind(component="betfair_session")
        self._login_count = 0

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = create_http_client()
        return self._http_client

    async def close(self) -> None:
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    # =========================================================================
    # Token lifecycle
    # =========================================================================

    async def get_token(self) -> str:
        """Cached token if it is not due for refresh, otherwise a fresh login."""
        record = await self._load_record()
        if record and record.expires_at > self._clock() + self.refresh_margin_seconds:
            return record.token

        token = await self._login()
        record = SessionRecord(
            token=token,
            expires_at=self._clock() + self.session_lifetime_seconds,
        )
        await self.store.set(
            SESSION_KEY,
            record.model_dump(),
            ttl=self.session_lifetime_seconds,
        )
        return token

    async def invalidate(self) -> None:
        """Drop the cached session so the next get_token() logs in again."""
        await self.store.delete(SESSION_KEY)
        self.logger.info("Session invalidated")

    async def refresh(self) -> str:
        await self.invalidate()
        return await self.get_token()

    async def _load_record(self) -> Optional[SessionRecord]:
        raw = await self.store.get(SESSION_KEY)
        if raw is None:
            return None
        try:
            return SessionRecord.model_validate(raw)
        except ValidationError:
            self.logger.warning("Discarding malformed session record")
            return None

    # =========================================================================
    # Login
    # =========================================================================

    async def _login(self) -> str:
        """POST credentials to identitysso and return the session token."""
        self._login_count += 1
        try:
            response = await self.http_client.post(
                self.login_url,
                data={"username": self.username, "password": self.password},
                headers={
                    "Accept": "application/json",
                    "X-Application": self.app_key,
                },
            )
        except httpx.HTTPError as e:
            raise AuthenticationError(f"Betfair login request failed: {e}") from e

        if response.status_code >= 400:
            raise AuthenticationError(
                f"Betfair login failed: {response.status_code} - {response.text[:200]}"
            )

        # Betfair answers some credential problems with an HTML page
        try:
            body = BetfairLoginResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise AuthenticationError(
                f"Betfair login returned a non-JSON response: {response.text[:100]!r}"
            ) from e

        if body.status != "SUCCESS" or not body.token:
            raise AuthenticationError(f"Betfair login failed: {body.error or 'Unknown error'}")

        self.logger.info("Logged in to Betfair", logins=self._login_count)
        return body.token

    def get_metrics(self) -> dict:
        return {
            "name": "betfair_session",
            "logins": self._login_count,
        }
