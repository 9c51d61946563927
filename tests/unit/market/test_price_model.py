# tests/unit/market/test_price_model.py
"""Tests for the per-tick price model."""

import pytest

from market.price_model import (
    MOMENTUM_LIMIT,
    apply_price_update,
    compute_anchor,
    compute_next_price,
    decay_catalyst,
    round_price,
    time_of_day_volume,
    PriceUpdate,
)
from market.rng import RandomSource
from market.types import MIN_PRICE, PRICE_HISTORY_LIMIT, VOLUME_HISTORY_LIMIT


class TestHelpers:
    def test_round_price_cents_above_dollar(self):
        assert round_price(5.12345) == 5.12

    def test_round_price_four_decimals_below_dollar(self):
        assert round_price(0.123456) == 0.1235

    def test_anchor_empty(self):
        assert compute_anchor([]) == 0.0

    def test_anchor_uses_trailing_window(self):
        history = [100.0] * 10 + [1.0] * 60
        assert compute_anchor(history) == pytest.approx(1.0)

    def test_time_of_day_u_shape(self):
        assert time_of_day_volume(0) == pytest.approx(1.5)
        assert time_of_day_volume(389) == pytest.approx(1.5)
        midday = time_of_day_volume(195)
        assert midday < 0.51
        assert midday < time_of_day_volume(50)

    def test_time_of_day_follows_session_length(self):
        assert time_of_day_volume(0, 120) == pytest.approx(1.5)
        assert time_of_day_volume(119, 120) == pytest.approx(1.5), "Short sessions still ramp into the close"
        assert time_of_day_volume(119, 120) > time_of_day_volume(119)

    def test_time_of_day_degenerate_length(self):
        assert time_of_day_volume(0, 1) == 1.5

    def test_catalyst_neutral_unchanged(self):
        assert decay_catalyst(1.0, 0.0) == (1.0, 0.0)

    def test_catalyst_decays_toward_one(self):
        mult, decay = decay_catalyst(1.5, 0.1)
        assert mult == pytest.approx(1.45)
        assert decay == 0.1

    def test_catalyst_snaps_when_close(self):
        assert decay_catalyst(1.0005, 0.1) == (1.0, 0.0)


class TestComputeNextPrice:
    def test_halted_stock_frozen(self, stock_factory, rng):
        stock = stock_factory(price=4.0, halted=True)
        stock.momentum = 0.2
        update = compute_next_price(stock, 10, rng)
        assert update.price == 4.0
        assert update.momentum == 0.2
        assert update.volume == 0

    def test_deterministic_for_seed(self, stock_factory):
        stock = stock_factory(price=3.0)
        a = compute_next_price(stock, 5, RandomSource(11))
        b = compute_next_price(stock, 5, RandomSource(11))
        assert a == b

    def test_closing_volume_uses_session_length(self, stock_factory):
        stock = stock_factory(price=3.0)
        short = compute_next_price(stock, 119, RandomSource(11), session_length=120)
        full = compute_next_price(stock, 119, RandomSource(11))
        assert short.price == full.price
        assert short.volume > full.volume

    def test_does_not_mutate_input(self, stock_factory, rng):
        stock = stock_factory(price=3.0)
        before = stock.clone()
        compute_next_price(stock, 1, rng)
        assert stock == before

    def test_floor_and_momentum_bounds(self, stock_factory, rng):
        stock = stock_factory(price=MIN_PRICE)
        stock.volatility = 0.9
        stock.momentum = 0.5
        for tick in range(200):
            update = compute_next_price(stock, tick, rng)
            assert update.price >= MIN_PRICE
            assert -MOMENTUM_LIMIT <= update.momentum <= MOMENTUM_LIMIT
            assert update.volume >= 0
            stock = apply_price_update(stock, update)

    def test_zero_float_does_not_raise(self, stock_factory, rng):
        stock = stock_factory(price=2.0)
        stock.float_profile.float_shares = 0
        update = compute_next_price(stock, 1, rng)
        assert update.volume == 0
        updated = apply_price_update(stock, update)
        assert updated.float_profile.float_rotation == 0.0


class TestApplyPriceUpdate:
    def test_updates_stats(self, stock_factory):
        stock = stock_factory(price=5.0)
        update = PriceUpdate(price=6.0, momentum=0.1, catalyst_multiplier=1.2,
                             catalyst_decay=0.05, volume=1000)
        s = apply_price_update(stock, update)

        assert s.price == 6.0
        assert s.high == 6.0
        assert s.low == 5.0
        assert s.price_history == [5.0, 6.0]
        assert s.momentum == 0.1
        assert s.catalyst_multiplier == 1.2
        assert s.volume.current == 1000
        assert s.volume.average == 1000
        assert s.volume.relative_volume == 1.0
        assert s.float_profile.day_volume == 1000
        assert s.float_profile.float_rotation == pytest.approx(1000 / 5_000_000)

        assert stock.price == 5.0, "Input stock must not be modified"
        assert stock.price_history == [5.0]

    def test_history_limits(self, stock_factory):
        stock = stock_factory(price=5.0, history=[5.0] * PRICE_HISTORY_LIMIT)
        stock.volume.history = [10] * VOLUME_HISTORY_LIMIT
        update = PriceUpdate(price=5.5, momentum=0.0, catalyst_multiplier=1.0,
                             catalyst_decay=0.0, volume=20)
        s = apply_price_update(stock, update)
        assert len(s.price_history) == PRICE_HISTORY_LIMIT
        assert s.price_history[-1] == 5.5
        assert len(s.volume.history) == VOLUME_HISTORY_LIMIT
        assert s.volume.history[-1] == 20

    def test_rvol_defaults_with_zero_average(self, stock_factory):
        stock = stock_factory()
        update = PriceUpdate(price=5.0, momentum=0.0, catalyst_multiplier=1.0,
                             catalyst_decay=0.0, volume=0)
        assert apply_price_update(stock, update).volume.relative_volume == 1.0
