"""
Arbitrage detection engine.

Pipeline:
1. Match bookmaker outcomes to Betfair runners (matcher)
2. Price the back/lay pair (margin)
3. Build candidate opportunities (detector)
4. Dedup and validate before notifying (gate)
"""

from arbseeker.engine.detector import DetectorConfig, OpportunityDetector
from arbseeker.engine.gate import GateConfig, OpportunityGate
from arbseeker.engine.matcher import match_runner

__all__ = [
    "DetectorConfig",
    "OpportunityDetector",
    "GateConfig",
    "OpportunityGate",
    "match_runner",
]
