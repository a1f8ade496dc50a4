"""Tests for the back/lay margin math."""

import random

import pytest

from arbseeker.engine.margin import (
    arb_margin,
    generate_opportunity_id,
    grey_man_stake,
    implied_probability,
    is_round_stake,
    lay_stake,
    liability,
    profit_margin,
)
from arbseeker.errors import InvalidArgument

PRICES = [1.01, 1.25, 1.5, 1.8, 2.0, 2.05, 2.1, 2.3, 2.5, 3.2, 4.2, 7.5, 15.0, 90.0]
STAKES = [1, 5.5, 100, 281, 333, 419, 1000]

PRICE_PAIRS = [(back, lay) for back in PRICES for lay in PRICES]


class TestMargins:

    def test_profit_margin_price_gap(self):
        assert profit_margin(2.10, 2.05) == pytest.approx(0.02439, abs=1e-5)

    def test_profit_margin_no_edge(self):
        assert profit_margin(2.0, 2.0) == 0
        assert profit_margin(1.9, 2.0) < 0

    def test_profit_margin_zero_lay(self):
        assert profit_margin(2.0, 0) == 0.0

    def test_implied_probability(self):
        assert implied_probability(2.50, 2.30) == pytest.approx(0.4 + 1 / 2.3)

    def test_arb_margin(self):
        implied = implied_probability(2.50, 2.30)
        assert arb_margin(2.50, 2.30) == pytest.approx(1 / implied - 1)
        assert arb_margin(2.50, 2.30) == pytest.approx(0.1979, abs=1e-4)

    def test_arb_margin_negative_without_arb(self):
        assert arb_margin(1.50, 1.60) < 0


class TestMarginProperties:

    @pytest.mark.parametrize("back, lay", PRICE_PAIRS)
    def test_margin_sign_follows_price_gap(self, back, lay):
        margin = profit_margin(back, lay)
        if back > lay:
            assert margin > 0
        else:
            assert margin <= 0

    @pytest.mark.parametrize("back, lay", PRICE_PAIRS)
    def test_arb_iff_implied_below_one(self, back, lay):
        assert (arb_margin(back, lay) > 0) == (implied_probability(back, lay) < 1)

    @pytest.mark.parametrize("stake", STAKES)
    @pytest.mark.parametrize("lay", PRICES)
    def test_lay_stake_inverts_liability_across_prices(self, stake, lay):
        assert lay_stake(liability(stake, lay), lay) == pytest.approx(stake)


class TestLiability:

    def test_liability(self):
        assert liability(300, 2.30) == pytest.approx(390.0)

    def test_lay_stake_inverts_liability(self):
        assert lay_stake(390.0, 2.30) == pytest.approx(300.0)

    @pytest.mark.parametrize("lay_price", [1.0, 0.5, 0])
    def test_lay_stake_rejects_price_at_or_below_one(self, lay_price):
        with pytest.raises(InvalidArgument):
            lay_stake(100, lay_price)

    def test_invalid_argument_is_value_error(self):
        with pytest.raises(ValueError):
            lay_stake(100, 1.0)


class TestGreyManStake:

    def test_stakes_in_range_and_not_round(self):
        rng = random.Random(42)
        for _ in range(1000):
            stake = grey_man_stake(280, 420, rng)
            assert 280 <= stake <= 420
            assert stake % 50 != 0
            assert stake % 100 != 0

    def test_single_value_range(self):
        assert grey_man_stake(301, 301) == 301

    def test_range_of_only_round_values_fails_fast(self):
        with pytest.raises(InvalidArgument):
            grey_man_stake(300, 300)

    def test_inverted_range(self):
        with pytest.raises(InvalidArgument):
            grey_man_stake(420, 280)

    def test_is_round_stake(self):
        assert is_round_stake(350)
        assert is_round_stake(400)
        assert not is_round_stake(351)


def test_opportunity_id_is_stable():
    first = generate_opportunity_id("evt_1", "sportsbet_home")
    second = generate_opportunity_id("evt_1", "sportsbet_home")
    assert first == second == "evt_1_sportsbet_home"
    assert generate_opportunity_id("evt_1", "tab_home") != first


def test_bookmaker_gap_scenario():
    assert profit_margin(2.50, 2.30) == pytest.approx(0.0870, abs=1e-4)


def test_narrow_single_side_scenario():
    assert implied_probability(2.10, 2.05) == pytest.approx(0.9640, abs=1e-3)
    assert arb_margin(2.10, 2.05) == pytest.approx(0.0373, abs=1e-3)
