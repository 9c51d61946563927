"""
Tick scheduler for the market simulation.

execute_tick() is the single deterministic step function: it takes an
EngineState and a RandomSource and returns a TickResult without touching
its inputs. apply_tick_result() folds that result into a new EngineState.

MarketEngine wraps the step function in the session state machine:

    IDLE --start--> RUNNING <--pause/resume--> PAUSED
    RUNNING --tick == session length--> SESSION_COMPLETE
    SESSION_COMPLETE / PAUSED --reset--> IDLE

The engine does not own a timer. Whoever drives it (MarketSession, a
fixed-step loop, or a test) calls step() and reacts to session_complete.
"""

import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Sequence

from market.errors import SessionStateError
from market.events import event_halt_duration, is_halt_event, maybe_generate_event
from market.orderbook import generate_order_book, skew_order_book
from market.price_model import apply_price_update, compute_next_price
from market.rng import RandomSource
from market.types import SESSION_LENGTH_TICKS, MarketEvent, OrderBook, Stock

logger = logging.getLogger(__name__)


class SessionPhase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    SESSION_COMPLETE = "session_complete"


@dataclass(frozen=True)
class TickResult:
    """Outcome of one simulated tick."""

    stocks: list[Stock]
    new_events: list[MarketEvent]
    tick: int
    session_complete: bool


@dataclass
class EngineState:
    """
    Everything the step function reads.

    Attributes:
        tick: Ticks elapsed this session
        stocks: Current instrument set
        events: Append-only session event log
        last_event_ticks: Stock id -> tick of its last event (cooldown)
        session_length: Ticks per session
    """

    tick: int = 0
    stocks: list[Stock] = field(default_factory=list)
    events: list[MarketEvent] = field(default_factory=list)
    last_event_ticks: dict[str, int] = field(default_factory=dict)
    session_length: int = SESSION_LENGTH_TICKS


def create_engine_state(stocks: Sequence[Stock], session_length: int = SESSION_LENGTH_TICKS) -> EngineState:
    return EngineState(stocks=list(stocks), session_length=session_length)


def _update_stock(
    stock: Stock,
    tick: int,
    new_events: Sequence[MarketEvent],
    rng: RandomSource,
    session_length: int = SESSION_LENGTH_TICKS,
) -> Stock:
    """Advance one instrument by one tick, returning a new Stock."""
    s = stock.clone()

    if s.halted:
        s.halt_ticks_remaining -= 1
        if s.halt_ticks_remaining <= 0:
            s.halted = False
            s.halt_ticks_remaining = 0
        else:
            s.order_book = OrderBook.empty()
            return s

    for event in new_events:
        if s.id not in event.affected_stock_ids:
            continue
        s.catalyst_multiplier = event.price_impact
        s.catalyst_decay = 1 / max(1, event.duration)
        if is_halt_event(event.type):
            s.halted = True
            s.halt_ticks_remaining = max(1, event_halt_duration(event, rng))
            s.order_book = OrderBook.empty()
            return s

    update = compute_next_price(s, tick, rng, session_length)
    s = apply_price_update(s, update)
    s.order_book = skew_order_book(generate_order_book(s, rng), s.momentum)
    return s


def execute_tick(
    state: EngineState,
    rng: RandomSource,
    clock: Callable[[], float] = time.time,
) -> TickResult:
    """
    Advance the market by one tick.

    Never raises on degenerate numeric state; the price model and book
    synthesizer floor or default instead.

    Args:
        state: Engine state before the tick (not modified)
        rng: Random source for events, prices and books
        clock: Wall-clock used to timestamp events

    Returns:
        TickResult with the new instrument set and any event fired
    """
    tick = state.tick + 1
    new_events = []

    event = maybe_generate_event(state.stocks, tick, state.last_event_ticks, rng, clock)
    if event is not None:
        new_events.append(event)

    stocks = [
        _update_stock(stock, tick, new_events, rng, state.session_length)
        for stock in state.stocks
    ]

    return TickResult(
        stocks=stocks,
        new_events=new_events,
        tick=tick,
        session_complete=tick >= state.session_length,
    )


def apply_tick_result(state: EngineState, result: TickResult) -> EngineState:
    """Fold a TickResult into a new EngineState, recording event cooldowns."""
    last_event_ticks = dict(state.last_event_ticks)
    for event in result.new_events:
        for stock_id in event.affected_stock_ids:
            last_event_ticks[stock_id] = result.tick

    return replace(
        state,
        tick=result.tick,
        stocks=result.stocks,
        events=[*state.events, *result.new_events],
        last_event_ticks=last_event_ticks,
    )


class MarketEngine:
    """
    Session state machine around the tick step function.

    Attributes:
        state: Current EngineState
        phase: Current SessionPhase
        rng: Random source shared by every tick of this engine
    """

    def __init__(
        self,
        stocks: Sequence[Stock],
        rng: RandomSource | None = None,
        session_length: int = SESSION_LENGTH_TICKS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.rng = rng if rng is not None else RandomSource()
        self.session_length = session_length
        self.clock = clock
        self.state = create_engine_state(stocks, session_length)
        self.phase = SessionPhase.IDLE

    @property
    def tick(self) -> int:
        return self.state.tick

    @property
    def stocks(self) -> list[Stock]:
        return self.state.stocks

    @property
    def events(self) -> list[MarketEvent]:
        return self.state.events

    @property
    def is_running(self) -> bool:
        return self.phase is SessionPhase.RUNNING

    def _require(self, *phases: SessionPhase) -> None:
        if self.phase not in phases:
            allowed = ", ".join(p.value for p in phases)
            raise SessionStateError(f"engine is {self.phase.value}; expected one of: {allowed}")

    def start(self) -> None:
        self._require(SessionPhase.IDLE)
        self.phase = SessionPhase.RUNNING
        logger.info(f"Session started with {len(self.stocks)} instruments")

    def pause(self) -> None:
        self._require(SessionPhase.RUNNING)
        self.phase = SessionPhase.PAUSED
        logger.info(f"Session paused at tick {self.tick}")

    def resume(self) -> None:
        self._require(SessionPhase.PAUSED)
        self.phase = SessionPhase.RUNNING
        logger.info(f"Session resumed at tick {self.tick}")

    def step(self) -> TickResult:
        """Run one tick; moves to SESSION_COMPLETE when the session length is hit."""
        self._require(SessionPhase.RUNNING)
        result = execute_tick(self.state, self.rng, self.clock)
        self.state = apply_tick_result(self.state, result)
        if result.session_complete:
            self.phase = SessionPhase.SESSION_COMPLETE
            logger.info(f"Session complete after {result.tick} ticks")
        return result

    def reset(self, stocks: Sequence[Stock]) -> None:
        """Return to IDLE with a fresh instrument set."""
        self._require(SessionPhase.IDLE, SessionPhase.PAUSED, SessionPhase.SESSION_COMPLETE)
        self.state = create_engine_state(stocks, self.session_length)
        self.phase = SessionPhase.IDLE

    def session_progress(self) -> float:
        if self.session_length <= 0:
            return 1.0
        return min(1.0, self.tick / self.session_length)

    def recent_events(self, n: int = 10) -> list[MarketEvent]:
        return self.events[-n:] if n > 0 else []

    def stock_by_id(self, stock_id: str) -> Stock | None:
        return next((s for s in self.stocks if s.id == stock_id), None)

    def stock_by_ticker(self, ticker: str) -> Stock | None:
        ticker = ticker.upper()
        return next((s for s in self.stocks if s.ticker == ticker), None)
