"""
Arb Seeker: bookmaker vs Betfair back/lay arbitrage alerts.

Polls Australian bookmaker odds (The Odds API), finds the matching Betfair
market, and alerts via Telegram when backing at the bookmaker and laying on
the exchange locks in a profit.

Layout:
- feeds/: bookmaker odds
- exchange/: Betfair session and JSON-RPC gateway
- engine/: matching, margin math, detection, dedup gate
- storage/: key/value store with TTL
- utils/: logging, alerts, time filters
"""

__version__ = "0.1.0"
