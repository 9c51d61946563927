"""
Tabular views over players and trades.
"""

import time
from typing import Callable, Sequence

import pandas as pd

from ledger.challenges import evaluate_challenges
from ledger.fifo import compute_pnl
from ledger.player import Player
from ledger.scoring import compute_score
from market.config import STARTING_CASH
from market.types import Stock

TRADE_COLUMNS = ["trade_id", "tick", "timestamp", "ticker", "action", "quantity", "price", "notional"]


def trades_frame(player: Player, stocks: Sequence[Stock] = ()) -> pd.DataFrame:
    """Trade blotter for one player, in execution order."""
    tickers = {s.id: s.ticker for s in stocks}
    rows = [
        {
            "trade_id": t.id,
            "tick": t.tick,
            "timestamp": t.timestamp,
            "ticker": tickers.get(t.stock_id, t.stock_id),
            "action": t.action.value,
            "quantity": t.quantity,
            "price": t.price,
            "notional": t.notional,
        }
        for t in player.trade_history
    ]
    return pd.DataFrame(rows, columns=TRADE_COLUMNS)


def leaderboard(
    players: Sequence[Player],
    stocks: Sequence[Stock],
    rounds_used: int,
    max_rounds: int,
    starting_cash: float = STARTING_CASH,
    clock: Callable[[], float] = time.time,
) -> pd.DataFrame:
    """
    Rank players by total score (ties broken by total PnL).

    starting_cash must match the cash players were funded with, otherwise
    PnL, drawdown and badges are measured against the wrong baseline.

    Returns:
        DataFrame with one row per player and a 1-based rank column
    """
    rows = []
    for player in players:
        progress = evaluate_challenges(player, stocks, clock)
        score = compute_score(player, stocks, rounds_used, max_rounds, progress, starting_cash)
        pnl = compute_pnl(player, stocks)
        rows.append({
            "player_id": player.id,
            "name": player.name,
            "total_score": score.total_score,
            "level": score.level,
            "pnl": score.pnl,
            "realized_pnl": pnl.realized,
            "unrealized_pnl": pnl.unrealized,
            "max_drawdown": score.max_drawdown,
            "win_rate": score.win_rate,
            "num_trades": len(player.trade_history),
            "badges": [b.value for b in score.badges],
        })

    df = pd.DataFrame(rows)
    if df.empty:
        return df
    df = df.sort_values(["total_score", "pnl"], ascending=False, kind="stable").reset_index(drop=True)
    df.insert(0, "rank", range(1, len(df) + 1))
    return df
