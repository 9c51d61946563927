"""
Static seed data for the tradable instruments.

The default catalog is a handful of thinly traded small caps, each with
its own volatility, float and short interest. A session's instrument set
is built from a catalog by init_session().
"""

import math
from dataclasses import dataclass, replace
from typing import Mapping, Sequence

from market.types import Stock, StockFloat, VolumeProfile, new_id

SECTORS = ("Technology", "Finance", "Energy", "Healthcare", "Consumer")


@dataclass(frozen=True)
class StockSeed:
    """Seed row for one instrument."""

    ticker: str
    name: str
    price: float
    volatility: float
    sector: str
    float_shares: int
    total_shares: int
    short_interest_pct: float  # fraction of float


STOCK_SEEDS: tuple[StockSeed, ...] = (
    StockSeed(
        ticker="NXRA",
        name="Nexara Therapeutics",
        price=3.42,
        volatility=0.06,
        sector="Healthcare",
        float_shares=8_500_000,
        total_shares=24_000_000,
        short_interest_pct=0.32,
    ),
    StockSeed(
        ticker="VLTX",
        name="VoltX Energy Corp",
        price=1.87,
        volatility=0.08,
        sector="Energy",
        float_shares=5_200_000,
        total_shares=18_000_000,
        short_interest_pct=0.18,
    ),
    StockSeed(
        ticker="CRDL",
        name="Cordell AI Systems",
        price=7.15,
        volatility=0.05,
        sector="Technology",
        float_shares=12_000_000,
        total_shares=35_000_000,
        short_interest_pct=0.22,
    ),
    StockSeed(
        ticker="MBRA",
        name="Mombra Financial",
        price=0.84,
        volatility=0.10,
        sector="Finance",
        float_shares=3_800_000,
        total_shares=15_000_000,
        short_interest_pct=0.41,
    ),
    StockSeed(
        ticker="PLSR",
        name="Pulsar Brands Inc",
        price=4.58,
        volatility=0.04,
        sector="Consumer",
        float_shares=6_700_000,
        total_shares=20_000_000,
        short_interest_pct=0.14,
    ),
)


def create_stock(seed: StockSeed, volatility_multiplier: float = 1.0) -> Stock:
    """Build a fresh Stock at its opening state from a seed row."""
    return Stock(
        id=new_id(),
        ticker=seed.ticker,
        name=seed.name,
        sector=seed.sector,
        price=seed.price,
        previous_close=seed.price,
        open=seed.price,
        high=seed.price,
        low=seed.price,
        price_history=[seed.price],
        volatility=seed.volatility * volatility_multiplier,
        float_profile=StockFloat(
            total_shares=seed.total_shares,
            float_shares=seed.float_shares,
            short_interest=math.floor(seed.float_shares * seed.short_interest_pct),
        ),
        volume=VolumeProfile(),
    )


def init_session(
    catalog: Sequence[StockSeed] = STOCK_SEEDS,
    volatility_multiplier: float = 1.0,
    carry_prices: Mapping[str, float] | None = None,
) -> list[Stock]:
    """
    Build the initial instrument set for a session.

    Args:
        catalog: Seed rows (defaults to the built-in small-cap set)
        volatility_multiplier: Difficulty scaling applied to every seed's volatility
        carry_prices: Optional ticker -> last price from a previous round; the
            carried price becomes the new session's open and previous close

    Returns:
        One Stock per seed, in catalog order
    """
    stocks = []
    for seed in catalog:
        if carry_prices and seed.ticker in carry_prices:
            seed = replace(seed, price=carry_prices[seed.ticker])
        stocks.append(create_stock(seed, volatility_multiplier))
    return stocks
