"""
Betfair Exchange access.

- session: login, token caching and refresh
- gateway: authenticated JSON-RPC calls with a single session retry
"""

from arbseeker.exchange.gateway import BetfairGateway, MAX_SESSION_RETRIES
from arbseeker.exchange.session import SessionManager

__all__ = [
    "BetfairGateway",
    "MAX_SESSION_RETRIES",
    "SessionManager",
]
