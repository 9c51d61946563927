# tests/unit/market/test_engine.py
"""
Tests for the tick step function and the session state machine.

Focus on the contract: inputs are never mutated, halts freeze instruments,
and the session completes exactly at its configured length.
"""

import pytest

from market.catalog import init_session
from market.errors import SessionStateError
from market.market import (
    EngineState,
    MarketEngine,
    SessionPhase,
    TickResult,
    _update_stock,
    apply_tick_result,
    create_engine_state,
    execute_tick,
)
from market.rng import RandomSource
from market.types import SESSION_LENGTH_TICKS, MarketEvent, MarketEventType


def halt_event(stock_id: str, tick: int = 1) -> MarketEvent:
    return MarketEvent(
        id="halt",
        type=MarketEventType.SEC_HALT,
        title="TRADING HALTED",
        description="",
        affected_stock_ids=(stock_id,),
        price_impact=1.2,
        volume_impact=10.0,
        duration=40,
        timestamp=0.0,
        tick=tick,
    )


# =============================================================================
# Step function
# =============================================================================


class TestExecuteTick:
    def test_advances_tick(self, stocks, rng):
        state = create_engine_state(stocks)
        result = execute_tick(state, rng)
        assert result.tick == 1
        assert len(result.stocks) == len(stocks)
        assert not result.session_complete

    def test_does_not_mutate_state(self, stocks, rng):
        state = create_engine_state(stocks)
        prices = [s.price for s in stocks]
        histories = [list(s.price_history) for s in stocks]

        result = execute_tick(state, rng)

        assert state.tick == 0
        assert [s.price for s in state.stocks] == prices
        assert [s.price_history for s in state.stocks] == histories
        assert all(a is not b for a, b in zip(state.stocks, result.stocks))

    def test_books_populated_after_tick(self, stocks, rng):
        result = execute_tick(create_engine_state(stocks), rng)
        for stock in result.stocks:
            if not stock.halted:
                assert stock.order_book.asks, f"{stock.ticker} should have an ask side"

    def test_same_seed_same_prices(self):
        a = create_engine_state(init_session())
        b = create_engine_state(init_session())
        rng_a, rng_b = RandomSource(99), RandomSource(99)
        for _ in range(50):
            ra, rb = execute_tick(a, rng_a), execute_tick(b, rng_b)
            a, b = apply_tick_result(a, ra), apply_tick_result(b, rb)
        assert [s.price for s in a.stocks] == [s.price for s in b.stocks]
        assert [e.type for e in a.events] == [e.type for e in b.events]

    def test_volume_shape_follows_state_session_length(self):
        short = EngineState(tick=118, stocks=init_session(), session_length=120)
        full = EngineState(tick=118, stocks=init_session())
        r_short = execute_tick(short, RandomSource(5))
        r_full = execute_tick(full, RandomSource(5))

        assert [s.price for s in r_short.stocks] == [s.price for s in r_full.stocks]
        assert sum(s.volume.current for s in r_short.stocks) > sum(
            s.volume.current for s in r_full.stocks
        ), "Closing ramp should land on the last tick of a short session"


class TestApplyTickResult:
    def test_records_cooldown_and_events(self, stocks, rng):
        state = create_engine_state(stocks)
        result = execute_tick(state, rng)
        event = halt_event(stocks[2].id, tick=1)
        result = TickResult(stocks=result.stocks, new_events=[event], tick=1, session_complete=False)

        new_state = apply_tick_result(state, result)

        assert new_state.tick == 1
        assert new_state.events == [event]
        assert new_state.last_event_ticks == {stocks[2].id: 1}
        assert state.events == [], "Original state keeps its own event log"


class TestHalts:
    def test_halt_event_freezes_stock(self, stock_factory, rng):
        stock = stock_factory(stock_id="h1", price=4.0, bid=3.99, ask=4.01)
        updated = _update_stock(stock, 1, [halt_event("h1")], rng)

        assert updated.halted
        assert 1 <= updated.halt_ticks_remaining < 30
        assert updated.order_book.is_empty
        assert updated.price == 4.0
        assert updated.catalyst_multiplier == 1.2
        assert updated.catalyst_decay == pytest.approx(1 / 40)
        assert not stock.halted, "Input stock must not be modified"

    def test_halted_stock_counts_down_then_resumes(self, stock_factory, rng):
        stock = stock_factory(stock_id="h1", price=4.0)
        stock.halted = True
        stock.halt_ticks_remaining = 3

        s1 = _update_stock(stock, 1, [], rng)
        assert s1.halted and s1.halt_ticks_remaining == 2
        assert s1.price == 4.0
        assert s1.price_history == stock.price_history

        s2 = _update_stock(s1, 2, [], rng)
        assert s2.halted and s2.halt_ticks_remaining == 1

        s3 = _update_stock(s2, 3, [], rng)
        assert not s3.halted
        assert s3.halt_ticks_remaining == 0
        assert len(s3.price_history) == len(stock.price_history) + 1
        assert s3.order_book.asks, "Book comes back on resume"

    def test_event_on_other_stock_ignored(self, stock_factory, rng):
        stock = stock_factory(stock_id="a", price=4.0)
        updated = _update_stock(stock, 1, [halt_event("b")], rng)
        assert not updated.halted
        assert updated.catalyst_multiplier == 1.0


# =============================================================================
# State machine
# =============================================================================


class TestMarketEngine:
    def test_initial_phase(self, stocks, rng):
        engine = MarketEngine(stocks, rng)
        assert engine.phase is SessionPhase.IDLE
        assert engine.tick == 0
        assert engine.session_progress() == 0.0

    def test_start_pause_resume(self, stocks, rng):
        engine = MarketEngine(stocks, rng)
        engine.start()
        assert engine.is_running
        engine.pause()
        assert engine.phase is SessionPhase.PAUSED
        engine.resume()
        assert engine.phase is SessionPhase.RUNNING

    def test_illegal_transitions(self, stocks, rng):
        engine = MarketEngine(stocks, rng)
        with pytest.raises(SessionStateError):
            engine.pause()
        with pytest.raises(SessionStateError):
            engine.resume()
        with pytest.raises(SessionStateError):
            engine.step()
        engine.start()
        with pytest.raises(SessionStateError):
            engine.start()
        with pytest.raises(SessionStateError):
            engine.reset(stocks)

    def test_paused_engine_does_not_tick(self, stocks, rng):
        engine = MarketEngine(stocks, rng)
        engine.start()
        engine.step()
        engine.pause()
        with pytest.raises(SessionStateError):
            engine.step()
        assert engine.tick == 1

    def test_session_completes_at_length(self, stocks, rng):
        engine = MarketEngine(stocks, rng)
        engine.start()
        for expected_tick in range(1, SESSION_LENGTH_TICKS):
            result = engine.step()
            assert result.tick == expected_tick
            assert not result.session_complete

        final = engine.step()
        assert final.tick == SESSION_LENGTH_TICKS
        assert final.session_complete
        assert engine.phase is SessionPhase.SESSION_COMPLETE
        assert engine.session_progress() == 1.0

        with pytest.raises(SessionStateError):
            engine.step()

    def test_reset_after_complete(self, rng):
        engine = MarketEngine(init_session(), rng, session_length=3)
        engine.start()
        for _ in range(3):
            engine.step()
        fresh = init_session()
        engine.reset(fresh)
        assert engine.phase is SessionPhase.IDLE
        assert engine.tick == 0
        assert engine.events == []
        assert engine.stocks == fresh

    def test_lookups(self, stocks, rng):
        engine = MarketEngine(stocks, rng)
        assert engine.stock_by_ticker("nxra").ticker == "NXRA"
        assert engine.stock_by_id(stocks[1].id) is stocks[1]
        assert engine.stock_by_id("missing") is None
        assert engine.recent_events(5) == []

    def test_recent_events_window(self, stocks, rng):
        engine = MarketEngine(stocks, rng)
        events = [halt_event(stocks[0].id, tick=i) for i in range(1, 6)]
        engine.state = EngineState(tick=5, stocks=stocks, events=events)
        assert engine.recent_events(2) == events[-2:]
        assert engine.recent_events(0) == []
