# tests/conftest.py
"""Minimal shared fixtures for test suite."""

import pytest

from market.catalog import init_session
from market.rng import RandomSource
from market.types import OrderBook, OrderBookLevel, Stock, StockFloat


@pytest.fixture
def seed():
    """Fixed seed for reproducibility."""
    return 42


@pytest.fixture
def rng(seed):
    """Engine random source with fixed seed."""
    return RandomSource(seed)


@pytest.fixture
def stocks():
    """Fresh default instrument set."""
    return init_session()


class FixedClock:
    """Deterministic wall clock that advances one second per call."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        self.now += 1.0
        return self.now


@pytest.fixture
def clock():
    return FixedClock()


def make_stock(
    stock_id: str = "s1",
    ticker: str = "TEST",
    price: float = 5.0,
    bid: float | None = None,
    ask: float | None = None,
    sector: str = "Technology",
    history: list[float] | None = None,
    halted: bool = False,
) -> Stock:
    """Build a Stock with a one-level book so fills are predictable."""
    bids = (OrderBookLevel(bid, 1_000),) if bid is not None else ()
    asks = (OrderBookLevel(ask, 1_000),) if ask is not None else ()
    spread = (ask - bid) if bid is not None and ask is not None else 0.0
    return Stock(
        id=stock_id,
        ticker=ticker,
        name=f"{ticker} Corp",
        sector=sector,
        price=price,
        previous_close=price,
        open=price,
        high=price,
        low=price,
        price_history=list(history) if history is not None else [price],
        volatility=0.05,
        float_profile=StockFloat(
            total_shares=20_000_000, float_shares=5_000_000, short_interest=1_000_000
        ),
        order_book=OrderBook(bids=bids, asks=asks, spread=spread, spread_percent=0.0),
        halted=halted,
    )


@pytest.fixture
def stock_factory():
    """Factory for single-instrument fixtures with an explicit one-level book."""
    return make_stock
