"""
Challenge evaluation.

Pure functions over a player's trade history and the current stock set;
neither input is modified. Detection windows use each instrument's
trailing RECENT_TICKS prices at evaluation time.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Sequence

from ledger.fifo import analyze_closed_trades
from ledger.player import Player, Trade, TradeAction
from market.types import Stock

PARABOLIC_RISE = 0.30
CAPITULATION_DROP = 0.25
RECENT_TICKS = 5
SCALP_STREAK = 10
KNIFE_BOTTOM_TOLERANCE = 0.05


class ChallengeId(str, Enum):
    SHORT_THE_TOP = "short-the-top"
    CATCH_THE_KNIFE = "catch-the-knife"
    SCALP_MASTER = "scalp-master"


@dataclass(frozen=True)
class ChallengeDefinition:
    id: ChallengeId
    name: str
    description: str
    reward: int


@dataclass(frozen=True)
class ChallengeProgress:
    challenge_id: ChallengeId
    player_id: str
    completed: bool
    progress: float  # 0-1
    completed_at: float | None


CHALLENGES: tuple[ChallengeDefinition, ...] = (
    ChallengeDefinition(
        id=ChallengeId.SHORT_THE_TOP,
        name="Short the Top",
        description="Sell a stock that has gone parabolic (30%+ rise in 5 ticks)",
        reward=500,
    ),
    ChallengeDefinition(
        id=ChallengeId.CATCH_THE_KNIFE,
        name="Catch the Knife",
        description="Buy a capitulating stock near its bottom",
        reward=500,
    ),
    ChallengeDefinition(
        id=ChallengeId.SCALP_MASTER,
        name="Scalp Master",
        description="Complete 10 consecutive profitable trades",
        reward=750,
    ),
)


def recent_prices(stock: Stock) -> list[float]:
    return stock.price_history[-RECENT_TICKS:]


def is_parabolic(stock: Stock) -> bool:
    """Trailing window rose at least PARABOLIC_RISE from its first price."""
    recent = recent_prices(stock)
    if len(recent) < 2:
        return False
    start, end = recent[0], recent[-1]
    return start > 0 and (end - start) / start >= PARABOLIC_RISE


def is_capitulating(stock: Stock) -> bool:
    """Trailing window fell at least CAPITULATION_DROP from its first price."""
    recent = recent_prices(stock)
    if len(recent) < 2:
        return False
    start, end = recent[0], recent[-1]
    return start > 0 and (start - end) / start >= CAPITULATION_DROP


def is_near_bottom(buy_price: float, stock: Stock) -> bool:
    recent = recent_prices(stock)
    if not recent:
        return False
    low = min(recent)
    return low > 0 and abs(buy_price - low) / low <= KNIFE_BOTTOM_TOLERANCE


def profitable_streak(trades: Iterable[Trade]) -> int:
    """Length of the current run of profitable FIFO closes, counted from the latest."""
    streak = 0
    for closed in reversed(analyze_closed_trades(trades)):
        if not closed.profitable:
            break
        streak += 1
    return streak


def _progress(challenge_id: ChallengeId, player: Player, progress: float, now: float) -> ChallengeProgress:
    completed = progress >= 1
    return ChallengeProgress(
        challenge_id=challenge_id,
        player_id=player.id,
        completed=completed,
        progress=progress,
        completed_at=now if completed else None,
    )


def evaluate_challenges(
    player: Player,
    stocks: Sequence[Stock],
    clock: Callable[[], float] = time.time,
) -> list[ChallengeProgress]:
    """Progress on every challenge in CHALLENGES, in catalog order."""
    stock_map = {s.id: s for s in stocks}
    now = clock()

    shorted_top = any(
        t.action is TradeAction.SELL
        and t.stock_id in stock_map
        and is_parabolic(stock_map[t.stock_id])
        for t in player.trade_history
    )

    caught_knife = any(
        t.action is TradeAction.BUY
        and t.stock_id in stock_map
        and is_capitulating(stock_map[t.stock_id])
        and is_near_bottom(t.price, stock_map[t.stock_id])
        for t in player.trade_history
    )

    streak = profitable_streak(player.trade_history)

    return [
        _progress(ChallengeId.SHORT_THE_TOP, player, 1.0 if shorted_top else 0.0, now),
        _progress(ChallengeId.CATCH_THE_KNIFE, player, 1.0 if caught_knife else 0.0, now),
        _progress(ChallengeId.SCALP_MASTER, player, min(streak / SCALP_STREAK, 1.0), now),
    ]


def get_challenge(challenge_id: ChallengeId | str) -> ChallengeDefinition | None:
    return next((c for c in CHALLENGES if c.id == challenge_id), None)


def total_challenge_bonus(progress: Iterable[ChallengeProgress]) -> int:
    """Sum of rewards for completed challenges."""
    total = 0
    for p in progress:
        if not p.completed:
            continue
        definition = get_challenge(p.challenge_id)
        if definition is not None:
            total += definition.reward
    return total
