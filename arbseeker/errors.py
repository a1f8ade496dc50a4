"""
Error taxonomy for the arbitrage pipeline.

Expected absences (no market, no matching runner) are returned as None and
rejected opportunities as a GateDecision, so only genuine failures live here.
"""


class ArbSeekerError(Exception):
    """Base class for all pipeline errors."""


class InvalidArgument(ArbSeekerError, ValueError):
    """A calculation was called with arguments it cannot handle."""


class AuthenticationError(ArbSeekerError):
    """Betfair rejected the login or returned something that isn't a session."""


class InvalidSession(ArbSeekerError):
    """Betfair kept reporting INVALID_SESSION after the session was refreshed."""


class ExchangeError(ArbSeekerError):
    """A Betfair JSON-RPC call failed for a reason other than the session."""

    def __init__(self, message: str, code: object = None):
        super().__init__(message)
        self.code = code


class OddsAPIError(ArbSeekerError):
    """The Odds API answered with an unexpected status."""


class QuotaExceeded(OddsAPIError):
    """The Odds API request allowance is used up."""
