"""
Back/lay arbitrage math.

All prices are decimal odds. Margins are fractions (0.04 = 4%).

Two margin definitions are used:
- profit_margin: (back - lay) / lay, the price gap relative to the lay price
- arb_margin: 1 / implied_probability - 1, the guaranteed return of a
  balanced back/lay position
"""

import random
from typing import Optional

from arbseeker.errors import InvalidArgument

# Grey Man stakes avoid these round multiples
ROUND_STAKE_DIVISORS = (50, 100)


def profit_margin(back_price: float, lay_price: float) -> float:
    """Price gap between bookmaker and exchange. <= 0 means no arb."""
    if lay_price <= 0:
        return 0.0
    return (back_price - lay_price) / lay_price


def implied_probability(back_price: float, lay_price: float) -> float:
    """Sum of 1/price for the back and lay legs. Below 1.0 is an arb."""
    return (1 / back_price) + (1 / lay_price)


def arb_margin(back_price: float, lay_price: float) -> float:
    """Guaranteed return implied by the two prices."""
    return (1 / implied_probability(back_price, lay_price)) - 1


def liability(stake: float, lay_price: float) -> float:
    """Exchange exposure if the laid selection wins."""
    return stake * (lay_price - 1)


def lay_stake(liability_amount: float, lay_price: float) -> float:
    """Lay stake that produces the given liability at lay_price."""
    if lay_price <= 1:
        raise InvalidArgument(f"Lay price must be greater than 1, got {lay_price}")
    return liability_amount / (lay_price - 1)


def is_round_stake(stake: int) -> bool:
    return any(stake % divisor == 0 for divisor in ROUND_STAKE_DIVISORS)


def grey_man_stake(
    min_stake: int,
    max_stake: int,
    rng: Optional[random.Random] = None,
) -> int:
    """
    Random stake in [min_stake, max_stake] that is not a multiple of 50 or 100.

    Round stakes are a common bot-detection signal at bookmakers.

    Raises:
        InvalidArgument: if the range is inverted or holds no qualifying stake
    """
    if min_stake > max_stake:
        raise InvalidArgument(f"Empty stake range [{min_stake}, {max_stake}]")

    # Any 50 consecutive integers include a qualifying one, so only short
    # ranges need the exhaustive check.
    if max_stake - min_stake < 50 and all(
        is_round_stake(s) for s in range(min_stake, max_stake + 1)
    ):
        raise InvalidArgument(
            f"No stake in [{min_stake}, {max_stake}] avoids multiples of 50/100"
        )

    rng = rng or random
    while True:
        stake = rng.randint(min_stake, max_stake)
        if not is_round_stake(stake):
            return stake


def generate_opportunity_id(event_id: str, discriminator: str) -> str:
    """Stable id for an arb: same event and discriminator, same id."""
    return f"{event_id}_{discriminator}"
