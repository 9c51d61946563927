# tests/unit/market/test_catalog.py
"""Tests for instrument seeding."""

import math

import pytest

from market.catalog import SECTORS, STOCK_SEEDS, create_stock, init_session


class TestCatalog:
    def test_default_catalog(self):
        assert [s.ticker for s in STOCK_SEEDS] == ["NXRA", "VLTX", "CRDL", "MBRA", "PLSR"]
        assert all(s.sector in SECTORS for s in STOCK_SEEDS)

    def test_create_stock_opening_state(self):
        seed = STOCK_SEEDS[0]
        stock = create_stock(seed)

        assert stock.price == seed.price
        assert stock.open == stock.high == stock.low == stock.previous_close == seed.price
        assert stock.price_history == [seed.price]
        assert stock.momentum == 0.0
        assert stock.catalyst_multiplier == 1.0
        assert not stock.halted
        assert stock.order_book.is_empty
        assert stock.float_profile.short_interest == math.floor(
            seed.float_shares * seed.short_interest_pct
        )

    def test_volatility_multiplier(self):
        seed = STOCK_SEEDS[1]
        stock = create_stock(seed, volatility_multiplier=2.0)
        assert stock.volatility == pytest.approx(seed.volatility * 2.0)


class TestInitSession:
    def test_one_stock_per_seed_in_order(self):
        stocks = init_session()
        assert [s.ticker for s in stocks] == [s.ticker for s in STOCK_SEEDS]

    def test_ids_unique_per_session(self):
        a = init_session()
        b = init_session()
        ids = [s.id for s in a + b]
        assert len(set(ids)) == len(ids)

    def test_carry_prices(self):
        stocks = init_session(carry_prices={"NXRA": 9.99})
        nxra = next(s for s in stocks if s.ticker == "NXRA")
        assert nxra.price == 9.99
        assert nxra.previous_close == 9.99
        assert nxra.price_history == [9.99]

        vltx = next(s for s in stocks if s.ticker == "VLTX")
        assert vltx.price == 1.87, "Tickers without a carried price keep the seed price"

    def test_custom_catalog(self):
        stocks = init_session(STOCK_SEEDS[:2])
        assert len(stocks) == 2
