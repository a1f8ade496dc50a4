"""Tests for bookmaker outcome to Betfair runner matching."""

from arbseeker.engine.matcher import match_runner, names_match
from arbseeker.models.schemas import ExchangeRunner


def runners(*names):
    return [ExchangeRunner(selection_id=i, runner_name=name) for i, name in enumerate(names, start=1)]


def test_exact_match():
    assert match_runner("Lakers", runners("Celtics", "Lakers")).selection_id == 2


def test_case_insensitive():
    assert match_runner("LAKERS", runners("lakers")).selection_id == 1


def test_outcome_contained_in_runner():
    assert match_runner("Lakers", runners("Los Angeles Lakers")).selection_id == 1


def test_runner_contained_in_outcome():
    assert match_runner("Los Angeles Lakers", runners("Lakers")).selection_id == 1


def test_typo_does_not_match():
    assert match_runner("Celtis", runners("Boston Celtics")) is None


def test_ambiguous_fragment_takes_first_runner():
    matched = match_runner("United", runners("Manchester United", "Newcastle United"))
    assert matched.runner_name == "Manchester United"


def test_no_runners():
    assert match_runner("Lakers", []) is None


def test_empty_names_never_match():
    assert not names_match("", "Lakers")
    assert not names_match("Lakers", "  ")


def test_typo_against_exact_name():
    assert match_runner("Celtis", runners("Celtics")) is None
