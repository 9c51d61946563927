"""
Session driver: owns the engine, the players and the tick timer.

Every mutating operation (tick, trade, pause/resume, speed change, new
round, reset) runs under one re-entrant lock, so a trade always fills
against the book as it stood before the next tick and a pause or speed
change can never interleave with an in-flight tick.

Ticks are driven by a background worker thread that waits on a stop
event for the effective interval. Replacing the timer bumps a generation
counter under the lock; a worker whose generation is stale exits without
ticking, so a speed change never double-fires a tick.
"""

import logging
import threading
import time
from typing import Callable, Sequence

import pandas as pd
from omegaconf import DictConfig

from ledger.challenges import ChallengeProgress, evaluate_challenges
from ledger.execution import TradeRejection, execute_trade
from ledger.player import Player, Trade, TradeAction, add_player, reset_player
from ledger.report import leaderboard as build_leaderboard
from ledger.scoring import PlayerScore, compute_score, get_level_config
from market.catalog import STOCK_SEEDS, StockSeed, init_session
from market.config import load_config, tick_interval_seconds, validate_speed
from market.errors import UnknownPlayerError, UnknownStockError
from market.event_logger import EventLogger
from market.market import MarketEngine, SessionPhase, TickResult
from market.rng import RandomSource
from market.types import MarketEvent, Stock

logger = logging.getLogger(__name__)


class MarketSession:
    """
    A multi-round trading game around one MarketEngine.

    Attributes:
        config: Session configuration (see market.config)
        engine: The tick state machine
        players: Player id -> Player
        round: Current round, 1-based, capped at max_rounds
        speed: Current speed multiplier
    """

    def __init__(
        self,
        config: DictConfig | None = None,
        catalog: Sequence[StockSeed] = STOCK_SEEDS,
        rng: RandomSource | None = None,
        clock: Callable[[], float] = time.time,
        event_logger: EventLogger | None = None,
    ) -> None:
        self.config = config if config is not None else load_config()
        self.catalog = tuple(catalog)
        self.rng = rng if rng is not None else RandomSource(self.config.experiment.seed)
        self.clock = clock
        self.event_logger = event_logger

        self.round = 1
        self.max_rounds = int(self.config.game.max_rounds)
        self.starting_cash = float(self.config.game.starting_cash)
        self.level = int(self.config.game.level)
        self.speed = self.config.session.speed
        self.players: dict[str, Player] = {}

        self.engine = MarketEngine(
            self._fresh_stocks(),
            rng=self.rng,
            session_length=int(self.config.session.length_ticks),
            clock=clock,
        )

        self._lock = threading.RLock()
        self._generation = 0
        self._stop_event: threading.Event | None = None
        self._worker: threading.Thread | None = None
        self._subscribers: list[Callable[[TickResult], None]] = []

    # =========================================================================
    # Read-only views
    # =========================================================================

    @property
    def phase(self) -> SessionPhase:
        return self.engine.phase

    @property
    def tick(self) -> int:
        return self.engine.tick

    @property
    def stocks(self) -> list[Stock]:
        return self.engine.stocks

    @property
    def events(self) -> list[MarketEvent]:
        return self.engine.events

    @property
    def timer_active(self) -> bool:
        return self._stop_event is not None and not self._stop_event.is_set()

    def session_progress(self) -> float:
        return self.engine.session_progress()

    def recent_events(self, n: int = 10) -> list[MarketEvent]:
        return self.engine.recent_events(n)

    def stock_by_ticker(self, ticker: str) -> Stock | None:
        return self.engine.stock_by_ticker(ticker)

    def interval_seconds(self) -> float:
        scale = get_level_config(self.level).tick_speed_multiplier
        return tick_interval_seconds(self.config, self.speed, scale)

    def on_tick(self, callback: Callable[[TickResult], None]) -> None:
        """Register a callback invoked (under the session lock) after every tick."""
        self._subscribers.append(callback)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self, run_timer: bool = True) -> None:
        """Start the session; with run_timer=False the caller drives step()."""
        with self._lock:
            self.engine.start()
            if run_timer:
                self._start_timer_locked()

    def pause(self) -> None:
        with self._lock:
            self.engine.pause()
            self._stop_timer_locked()

    def resume(self, run_timer: bool = True) -> None:
        with self._lock:
            self.engine.resume()
            if run_timer:
                self._start_timer_locked()

    def set_speed(self, multiplier: float) -> None:
        """Swap the timer for one at the new speed without skipping or doubling a tick."""
        validate_speed(self.config, multiplier)
        with self._lock:
            self.speed = multiplier
            if self.timer_active:
                self._stop_timer_locked()
                self._start_timer_locked()
            logger.info(f"Speed set to {multiplier}x ({self.interval_seconds() * 1000:.0f}ms/tick)")

    def step(self) -> TickResult:
        """Advance one tick manually (the engine must be running)."""
        with self._lock:
            return self._step_locked()

    def run_to_completion(self, trader: Callable[["MarketSession", TickResult], None] | None = None) -> list[TickResult]:
        """
        Step synchronously until the session completes.

        Args:
            trader: Optional callback run after each tick that leaves the market
                open, e.g. to place trades

        Returns:
            Every TickResult produced
        """
        results = []
        with self._lock:
            if self.phase is SessionPhase.IDLE:
                self.engine.start()
            while self.phase is SessionPhase.RUNNING:
                result = self._step_locked()
                results.append(result)
                if trader is not None and not result.session_complete:
                    trader(self, result)
        return results

    def shutdown(self, timeout: float | None = 5.0) -> None:
        """Stop the timer and wait for its worker to exit; engine state is kept."""
        with self._lock:
            worker = self._stop_timer_locked()
        # The worker needs the lock to notice it is stale, so join outside it
        if worker is not None and worker is not threading.current_thread():
            worker.join(timeout)
        if self.event_logger is not None:
            self.event_logger.flush()

    def new_round(self, level: int | None = None) -> None:
        """
        Move to the next round.

        Prices carry over from the closing marks, the event log and
        cooldowns are cleared and every player's ledger is reset.
        """
        with self._lock:
            if self.phase is SessionPhase.RUNNING:
                self.engine.pause()
            self._stop_timer_locked()
            if level is not None:
                self.level = level
            carry = {s.ticker: s.price for s in self.stocks}
            self.engine.reset(self._fresh_stocks(carry))
            self.round = min(self.round + 1, self.max_rounds)
            for player in self.players.values():
                reset_player(player, self.starting_cash)
            logger.info(f"Round {self.round}/{self.max_rounds} ready (level {self.level})")

    def reset(self) -> None:
        """Start a new game: round 1, catalog prices, fresh ledgers."""
        with self._lock:
            if self.phase is SessionPhase.RUNNING:
                self.engine.pause()
            self._stop_timer_locked()
            self.round = 1
            self.level = int(self.config.game.level)
            self.engine.reset(self._fresh_stocks())
            for player in self.players.values():
                reset_player(player, self.starting_cash)
            logger.info("Game reset")

    # =========================================================================
    # Players and trades
    # =========================================================================

    def add_player(self, name: str) -> Player:
        with self._lock:
            player = add_player(name, self.starting_cash)
            self.players[player.id] = player
            logger.info(f"Player {name} joined ({player.id})")
            return player

    def get_player(self, player_id: str) -> Player:
        try:
            return self.players[player_id]
        except KeyError:
            raise UnknownPlayerError(player_id) from None

    def get_stock(self, stock_id: str) -> Stock:
        stock = self.engine.stock_by_id(stock_id)
        if stock is None:
            raise UnknownStockError(stock_id)
        return stock

    def execute_trade(
        self,
        player_id: str,
        stock_id: str,
        action: TradeAction | str,
        quantity: int,
    ) -> Trade | TradeRejection:
        """
        Fill a trade against the current book snapshot.

        Raises:
            UnknownPlayerError: player_id is not in this session
            UnknownStockError: stock_id is not in the current instrument set
        """
        with self._lock:
            player = self.get_player(player_id)
            stock = self.get_stock(stock_id)
            result = execute_trade(
                player, stock, action, quantity,
                stocks=self.stocks, tick=self.tick, clock=self.clock,
            )
            if isinstance(result, TradeRejection):
                logger.warning(
                    f"Trade rejected for {player.name}: {action} {quantity} "
                    f"{stock.ticker} ({result.reason.value})"
                )
            elif self.event_logger is not None:
                self.event_logger.log_trade(result)
            return result

    def evaluate_challenges(self, player_id: str) -> list[ChallengeProgress]:
        with self._lock:
            return evaluate_challenges(self.get_player(player_id), self.stocks, self.clock)

    def compute_score(self, player_id: str) -> PlayerScore:
        with self._lock:
            player = self.get_player(player_id)
            progress = evaluate_challenges(player, self.stocks, self.clock)
            return compute_score(
                player, self.stocks, self.round, self.max_rounds, progress, self.starting_cash
            )

    def leaderboard(self) -> pd.DataFrame:
        """Ranked standings of every player, scored against this session's starting cash."""
        with self._lock:
            return build_leaderboard(
                list(self.players.values()),
                self.stocks,
                self.round,
                self.max_rounds,
                starting_cash=self.starting_cash,
                clock=self.clock,
            )

    # =========================================================================
    # Internals (caller holds the lock)
    # =========================================================================

    def _fresh_stocks(self, carry: dict[str, float] | None = None) -> list[Stock]:
        level = get_level_config(self.level)
        return init_session(self.catalog, level.volatility_multiplier, carry)

    def _step_locked(self) -> TickResult:
        result = self.engine.step()
        if self.event_logger is not None:
            for event in result.new_events:
                self.event_logger.log_market_event(event)
            self.event_logger.log_tick(result)
        for callback in self._subscribers:
            callback(result)
        if result.session_complete:
            self._stop_timer_locked()
            if self.event_logger is not None:
                self.event_logger.log_session_end(self.round, result.tick, result.stocks)
        return result

    def _start_timer_locked(self) -> None:
        self._stop_timer_locked()
        self._generation += 1
        stop_event = threading.Event()
        self._stop_event = stop_event
        self._worker = threading.Thread(
            target=self._timer_loop,
            args=(self._generation, stop_event, self.interval_seconds()),
            name=f"market-tick-{self._generation}",
            daemon=True,
        )
        self._worker.start()

    def _stop_timer_locked(self) -> threading.Thread | None:
        """Retire the current worker and return it so the caller may join it."""
        worker = self._worker
        if self._stop_event is not None:
            self._stop_event.set()
        self._stop_event = None
        self._worker = None
        self._generation += 1
        return worker

    def _timer_loop(self, generation: int, stop_event: threading.Event, interval: float) -> None:
        while not stop_event.wait(interval):
            with self._lock:
                if generation != self._generation or not self.engine.is_running:
                    return
                result = self._step_locked()
            if result.session_complete:
                return
