"""
Bookmaker outcome to Betfair runner matching.

Bookmakers and Betfair label the same team differently ("Lakers" vs
"Los Angeles Lakers"). Matching is exact-or-substring on normalized names and
takes the first candidate in list order. There is no fuzzy matching, so a
typo ("Celtis") does not match, and an ambiguous fragment ("United") takes
whichever runner comes first.
"""

from typing import Optional, Sequence

from arbseeker.models.schemas import ExchangeRunner


def normalize_name(name: str) -> str:
    return name.casefold().strip()


def names_match(a: str, b: str) -> bool:
    """Equal after normalization, or one contains the other."""
    a_norm = normalize_name(a)
    b_norm = normalize_name(b)
    if not a_norm or not b_norm:
        return False
    return a_norm == b_norm or a_norm in b_norm or b_norm in a_norm


def match_runner(
    outcome_name: str,
    runners: Sequence[ExchangeRunner],
) -> Optional[ExchangeRunner]:
    """Return the first runner whose name matches outcome_name, or None."""
    for runner in runners:
        if names_match(outcome_name, runner.runner_name):
            return runner
    return None
