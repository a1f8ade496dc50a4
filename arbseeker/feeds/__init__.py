"""
Bookmaker price feeds.

- The Odds API: aggregated Australian bookmaker odds
"""

from arbseeker.feeds.odds_api import OddsAPIFeed, parse_events

__all__ = [
    "OddsAPIFeed",
    "parse_events",
]
