"""
Arbitrage Opportunity Detection.

Compares bookmaker back prices against Betfair lay prices.

Two strategies:
- detect_all: every quote is matched to a runner on its own and kept when
  the back price beats the best lay price (profit_margin > 0).
- detect_single_side: the home team's best price per bookmaker is compared
  to the home runner's best lay. The first bookmaker (in feed order) that
  clears the implied probability cutoff and the liquidity floor wins. This
  is "first acceptable", not "best across bookmakers".

Rejections (no runner, empty lay book, no edge, thin liquidity) are not
errors. They are counted and the scan moves on.
"""

from collections import Counter
from dataclasses import dataclass
from typing import Optional, Sequence

import structlog

from arbseeker.engine.margin import (
    arb_margin,
    generate_opportunity_id,
    implied_probability,
    profit_margin,
)
from arbseeker.engine.matcher import match_runner
from arbseeker.models.schemas import (
    ExchangeMarket,
    ExchangeRunner,
    Opportunity,
    ParsedEvent,
    Quote,
)

logger = structlog.get_logger()


def bookmaker_url(bookmaker_key: str, event_id: str) -> str:
    """Deep link into the bookmaker's site for an event."""
    return f"https://www.{bookmaker_key.lower()}.com.au/bet/{event_id}"


@dataclass
class DetectorConfig:
    """Thresholds for single-side detection."""
    max_implied_probability: float = 0.98  # ~2.04% guaranteed margin
    min_lay_liquidity: float = 20.0        # currency units at best lay
    market_key: str = "h2h"


class OpportunityDetector:
    """
    Builds Opportunity candidates from bookmaker quotes and a Betfair market.

    Usage:
        detector = OpportunityDetector()
        opportunity = detector.detect_single_side(event, market)
        candidates = detector.detect_all(quotes, market)
    """

    def __init__(self, config: Optional[DetectorConfig] = None):
        self.config = config or DetectorConfig()
        self.logger = logger.bind(component="detector")
        self._rejection_counts: Counter = Counter()

    # =========================================================================
    # Multi-outcome detection
    # =========================================================================

    def build_opportunity(
        self,
        quote: Quote,
        runner: ExchangeRunner,
        market_id: str,
    ) -> Optional[Opportunity]:
        """Opportunity for one quote against an already matched runner."""
        best_lay = runner.best_lay
        if best_lay is None:
            self._reject("empty_lay_book")
            return None

        margin = profit_margin(quote.price, best_lay.price)
        if margin <= 0:
            self._reject("no_edge")
            return None

        return Opportunity(
            id=generate_opportunity_id(quote.event_id, quote.outcome),
            event=quote.event_name,
            sport=quote.sport,
            start_time=quote.start_time,
            bookmaker=quote.bookmaker,
            back_price=quote.price,
            bookmaker_url=bookmaker_url(quote.bookmaker_key, quote.event_id),
            market_id=market_id,
            selection_id=runner.selection_id,
            lay_price=best_lay.price,
            # Approximate: backer's stake available at the best lay level
            lay_liquidity=best_lay.size * best_lay.price,
            profit_margin=margin,
        )

    def detect_all(
        self,
        quotes: Sequence[Quote],
        market: ExchangeMarket,
    ) -> list[Opportunity]:
        """Every quote whose matched runner can be laid below its back price."""
        opportunities = []
        for quote in quotes:
            runner = match_runner(quote.outcome, market.runners)
            if runner is None:
                self._reject("no_runner_match")
                continue

            opportunity = self.build_opportunity(quote, runner, market.market_id)
            if opportunity:
                opportunities.append(opportunity)

        return opportunities

    # =========================================================================
    # Single-side detection
    # =========================================================================

    def best_home_prices(self, event: ParsedEvent) -> dict[str, Quote]:
        """
        Best home-team quote per bookmaker, in first-seen bookmaker order.

        A later quote only replaces an earlier one when strictly greater.
        """
        best: dict[str, Quote] = {}
        for quote in event.quotes:
            if quote.market != self.config.market_key or quote.outcome != event.home_team:
                continue
            existing = best.get(quote.bookmaker)
            if existing is None or quote.price > existing.price:
                best[quote.bookmaker] = quote
        return best

    def detect_single_side(
        self,
        event: ParsedEvent,
        market: ExchangeMarket,
    ) -> Optional[Opportunity]:
        """First bookmaker whose home price arbs against the Betfair home lay."""
        home_runner = match_runner(event.home_team, market.runners)
        if home_runner is None:
            self._reject("no_runner_match")
            return None

        best_lay = home_runner.best_lay
        if best_lay is None:
            self._reject("empty_lay_book")
            return None

        for bookmaker, quote in self.best_home_prices(event).items():
            implied = implied_probability(quote.price, best_lay.price)

            if implied >= self.config.max_implied_probability:
                self._reject("no_edge")
                continue
            if best_lay.size <= self.config.min_lay_liquidity:
                self._reject("thin_liquidity")
                continue

            self.logger.debug(
                "Arb candidate",
                event_name=event.display_name,
                bookmaker=bookmaker,
                back=quote.price,
                lay=best_lay.price,
                implied=round(implied, 4),
            )

            return Opportunity(
                id=generate_opportunity_id(event.event_id, f"{quote.bookmaker_key}_home"),
                event=event.display_name,
                sport=event.sport,
                start_time=event.commence_time,
                bookmaker=bookmaker,
                back_price=quote.price,
                bookmaker_url=bookmaker_url(quote.bookmaker_key, event.event_id),
                market_id=market.market_id,
                selection_id=home_runner.selection_id,
                lay_price=best_lay.price,
                lay_liquidity=best_lay.size,
                profit_margin=arb_margin(quote.price, best_lay.price),
            )

        return None

    # =========================================================================
    # Metrics
    # =========================================================================

    def _reject(self, reason: str) -> None:
        self._rejection_counts[reason] += 1

    def get_metrics(self) -> dict:
        return {
            "name": "detector",
            "rejections": dict(self._rejection_counts),
        }
