"""
Time-of-day filtering for scans.

The bot only runs during Sydney daytime (7am-11pm local, AEST/AEDT handled
by the tz database), and each sport is only polled during the hours its
games usually have prices worth checking. Skipping the rest saves Odds API
quota.
"""

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

import structlog

logger = structlog.get_logger()

SYDNEY_TZ = ZoneInfo("Australia/Sydney")

DAYTIME_START_HOUR = 7
DAYTIME_END_HOUR = 23

# Sydney local hours, [start, end). start > end wraps past midnight.
ACTIVE_HOURS: dict[str, tuple[int, int]] = {
    "basketball_nba": (8, 14),
    "aussierules_afl": (12, 22),
    "rugbyleague_nrl": (16, 22),
    "cricket": (10, 20),
    "rugbyunion": (18, 23),
}


def sydney_hour(now: Optional[datetime] = None) -> int:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(SYDNEY_TZ).hour


def is_sydney_daytime(now: Optional[datetime] = None) -> bool:
    """True between 7am and 11pm Sydney time."""
    hour = sydney_hour(now)
    return DAYTIME_START_HOUR <= hour < DAYTIME_END_HOUR


def is_active_hours(sport_key: str, now: Optional[datetime] = None) -> bool:
    """True if sport_key is inside its active window. Unknown sports are always active."""
    hours = ACTIVE_HOURS.get(sport_key)
    if hours is None:
        return True

    start, end = hours
    hour = sydney_hour(now)
    if start > end:
        return hour >= start or hour < end
    return start <= hour < end
