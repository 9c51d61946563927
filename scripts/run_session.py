#!/usr/bin/env python3
"""
Headless session runner.

Steps a seeded market session tick by tick with a couple of scripted
traders and prints the closing leaderboard.

Usage:
    python scripts/run_session.py --seed 42
    python scripts/run_session.py --seed 7 --rounds 3 --event-log logs/session.jsonl
    python scripts/run_session.py --set session.length_ticks=120 --set game.level=3
"""

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from ledger.player import TradeAction
from market.config import load_config
from market.event_logger import EventLogger, load_events
from market.market import TickResult
from market.session import MarketSession

logger = logging.getLogger(__name__)

MOMENTUM_ENTRY = 0.05
DIP_DROP = 0.03
LOT_FRACTION = 0.2  # share of cash committed per entry


def lot_size(cash: float, price: float) -> int:
    if price <= 0:
        return 0
    return int(cash * LOT_FRACTION // price)


def make_momentum_trader(player_id: str):
    """Buy strength, sell as soon as momentum turns."""

    def trade(session: MarketSession, result: TickResult) -> None:
        player = session.players[player_id]
        for stock in result.stocks:
            if stock.halted:
                continue
            held = player.position(stock.id)
            if held == 0 and stock.momentum > MOMENTUM_ENTRY:
                quantity = lot_size(player.cash, stock.price)
                if quantity > 0:
                    session.execute_trade(player_id, stock.id, TradeAction.BUY, quantity)
            elif held > 0 and stock.momentum < 0:
                session.execute_trade(player_id, stock.id, TradeAction.SELL, held)

    return trade


def make_dip_buyer(player_id: str):
    """Buy sharp one-tick drops, take profit on any bounce above cost."""
    entries: dict[str, float] = {}

    def trade(session: MarketSession, result: TickResult) -> None:
        player = session.players[player_id]
        for stock in result.stocks:
            if stock.halted or len(stock.price_history) < 2:
                continue
            held = player.position(stock.id)
            prev = stock.price_history[-2]
            if held == 0 and prev > 0 and (prev - stock.price) / prev >= DIP_DROP:
                quantity = lot_size(player.cash, stock.price)
                if quantity > 0:
                    fill = session.execute_trade(player_id, stock.id, TradeAction.BUY, quantity)
                    if fill:
                        entries[stock.id] = fill.price
            elif held > 0 and stock.price > entries.get(stock.id, float("inf")):
                if session.execute_trade(player_id, stock.id, TradeAction.SELL, held):
                    entries.pop(stock.id, None)

    return trade


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Run a headless market session")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument("--rounds", type=int, default=1, help="Rounds to play")
    parser.add_argument("--config", type=str, default=None, help="Optional YAML config")
    parser.add_argument(
        "--set",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Config override in dotlist form (repeatable)",
    )
    parser.add_argument("--event-log", type=str, default=None, help="JSONL event log path")
    parser.add_argument("--log-ticks", action="store_true", help="Log a summary line per tick")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    args = parser.parse_args()

    config = load_config([f"experiment.seed={args.seed}", *args.set], path=args.config)
    if args.event_log is not None:
        config.logging.event_log = args.event_log

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.logging.level,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    event_logger = None
    if config.logging.event_log:
        event_logger = EventLogger(Path(config.logging.event_log), log_ticks=args.log_ticks)

    session = MarketSession(config=config, event_logger=event_logger)
    momentum = session.add_player("momentum")
    dipper = session.add_player("dip-buyer")
    traders = [make_momentum_trader(momentum.id), make_dip_buyer(dipper.id)]

    def run_traders(s: MarketSession, result: TickResult) -> None:
        for trader in traders:
            trader(s, result)

    logger.info("=" * 60)
    logger.info(f"Market session (seed={args.seed}, rounds={args.rounds})")
    logger.info("=" * 60)

    rounds = max(1, min(args.rounds, session.max_rounds))
    try:
        for round_index in range(rounds):
            if round_index > 0:
                session.new_round()
            session.run_to_completion(run_traders)

            board = session.leaderboard()
            closes = ", ".join(f"{s.ticker} {s.price:.4g}" for s in session.stocks)
            logger.info(f"Round {session.round} closed: {closes}")
            logger.info(f"{len(session.events)} market events this round")
            print(board[["rank", "name", "total_score", "level", "pnl", "win_rate", "num_trades"]].to_string(index=False))
    finally:
        session.shutdown()
        if event_logger is not None:
            event_logger.close()
            trades = load_events(event_logger.output_path, event_type="trade")
            logger.info(f"Event log written to {config.logging.event_log} ({len(trades)} trades)")


if __name__ == "__main__":
    main()
