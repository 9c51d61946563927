"""
Composite player scoring.

The score is the non-negative sum of five weighted parts:

    pnl       linear in total profit (35 points per $100)
    risk      100 - 200 x max drawdown, scaled by RISK_WEIGHT, floored at 0
    accuracy  FIFO win rate x 200, scaled by ACCURACY_WEIGHT
    speed     fewer rounds used scores higher, scaled by SPEED_WEIGHT
    bonus     rewards for completed challenges

Every function here is read-only over its inputs.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence

from ledger.challenges import ChallengeProgress, total_challenge_bonus
from ledger.fifo import ClosedTrade, analyze_closed_trades, chronological, win_rate
from ledger.player import Player, TradeAction, player_value
from market.config import STARTING_CASH
from market.types import Stock

PNL_SCALE = 35
RISK_WEIGHT = 25
ACCURACY_WEIGHT = 25
SPEED_WEIGHT = 15

POINTS_PER_LEVEL = 500
MAX_LEVEL = 6

DIAMOND_HANDS_DRAWDOWN = 0.20
PAPER_HANDS_MAX_LOSS = 0.03
BIG_SHORT_FRACTION = 0.5
DIVERSIFIED_SECTORS = 3


class BadgeId(str, Enum):
    DIAMOND_HANDS = "diamond-hands"
    PAPER_HANDS = "paper-hands"
    THE_BIG_SHORT = "the-big-short"
    FIRST_BLOOD = "first-blood"
    DIVERSIFIED = "diversified"
    SPEED_DEMON = "speed-demon"


@dataclass(frozen=True)
class Badge:
    id: BadgeId
    name: str
    description: str


ALL_BADGES: tuple[Badge, ...] = (
    Badge(BadgeId.DIAMOND_HANDS, "Diamond Hands", "Held through 20%+ drawdown and recovered to profit"),
    Badge(BadgeId.PAPER_HANDS, "Paper Hands", "Sold within 3% drawdown of buy price"),
    Badge(BadgeId.THE_BIG_SHORT, "The Big Short", "50%+ of starting cash earned from profitable sells"),
    Badge(BadgeId.FIRST_BLOOD, "First Blood", "Completed first profitable trade"),
    Badge(BadgeId.DIVERSIFIED, "Diversified", "Held positions in 3+ sectors simultaneously"),
    Badge(BadgeId.SPEED_DEMON, "Speed Demon", "Finished in under half the max rounds"),
)


@dataclass(frozen=True)
class LevelConfig:
    """Difficulty knobs for the next round at a given level."""

    level: int
    label: str
    volatility_multiplier: float
    tick_speed_multiplier: float
    black_swan_chance: float


LEVEL_CONFIGS: tuple[LevelConfig, ...] = (
    LevelConfig(1, "Intern", 1.0, 1.0, 0.0),
    LevelConfig(2, "Analyst", 1.2, 0.9, 0.05),
    LevelConfig(3, "Associate", 1.4, 0.8, 0.10),
    LevelConfig(4, "VP", 1.7, 0.7, 0.15),
    LevelConfig(5, "Director", 2.0, 0.6, 0.20),
    LevelConfig(6, "Managing Dir", 2.5, 0.5, 0.30),
)


@dataclass(frozen=True)
class PlayerScore:
    player_id: str
    pnl: float
    pnl_score: float
    max_drawdown: float
    risk_score: float
    win_rate: float
    accuracy_score: float
    rounds_used: int
    speed_score: float
    challenge_bonus: int
    total_score: float
    level: int
    badges: list[BadgeId]


def calculate_level(total_score: float) -> int:
    return min(math.floor(total_score / POINTS_PER_LEVEL) + 1, MAX_LEVEL)


def get_level_config(level: int) -> LevelConfig:
    return LEVEL_CONFIGS[min(max(level, 1), MAX_LEVEL) - 1]


def calculate_max_drawdown(
    player: Player,
    stocks: Sequence[Stock],
    starting_cash: float = STARTING_CASH,
) -> float:
    """
    Largest peak-to-trough equity decline, as a fraction of the peak.

    Replays trades in timestamp order from starting cash. After each fill,
    holdings are marked at the latest fill price seen for their instrument;
    a final point marks what is still held at current stock prices.
    """
    trades = chronological(player.trade_history)
    if not trades:
        return 0.0

    current_prices = {s.id: s.price for s in stocks}
    cash = starting_cash
    holdings: dict[str, int] = {}
    marks: dict[str, float] = {}
    peak = starting_cash
    max_dd = 0.0

    def observe(equity: float) -> None:
        nonlocal peak, max_dd
        peak = max(peak, equity)
        if peak > 0:
            max_dd = max(max_dd, (peak - equity) / peak)

    for trade in trades:
        if trade.action is TradeAction.BUY:
            cash -= trade.notional
            holdings[trade.stock_id] = holdings.get(trade.stock_id, 0) + trade.quantity
        else:
            cash += trade.notional
            holdings[trade.stock_id] = holdings.get(trade.stock_id, 0) - trade.quantity
            if holdings[trade.stock_id] <= 0:
                del holdings[trade.stock_id]
        marks[trade.stock_id] = trade.price
        observe(cash + sum(marks[sid] * qty for sid, qty in holdings.items()))

    observe(cash + sum(current_prices.get(sid, marks[sid]) * qty for sid, qty in holdings.items()))
    return max_dd


def evaluate_badges(
    player: Player,
    stocks: Sequence[Stock],
    closed: Sequence[ClosedTrade],
    max_drawdown: float,
    rounds_used: int,
    max_rounds: int,
    starting_cash: float = STARTING_CASH,
) -> list[BadgeId]:
    """Every badge whose rule holds."""
    badges = []
    stock_map = {s.id: s for s in stocks}

    if any(c.profitable for c in closed):
        badges.append(BadgeId.FIRST_BLOOD)

    if max_drawdown >= DIAMOND_HANDS_DRAWDOWN and player_value(player, stocks) > starting_cash:
        badges.append(BadgeId.DIAMOND_HANDS)

    def small_loss(c: ClosedTrade) -> bool:
        if c.buy_price <= 0:
            return False
        loss = (c.buy_price - c.sell_price) / c.buy_price
        return 0 < loss <= PAPER_HANDS_MAX_LOSS

    if any(small_loss(c) for c in closed):
        badges.append(BadgeId.PAPER_HANDS)

    profit_from_wins = sum(c.pnl for c in closed if c.profitable)
    if profit_from_wins >= starting_cash * BIG_SHORT_FRACTION:
        badges.append(BadgeId.THE_BIG_SHORT)

    sectors = {
        stock_map[stock_id].sector
        for stock_id, quantity in player.portfolio.items()
        if quantity > 0 and stock_id in stock_map
    }
    if len(sectors) >= DIVERSIFIED_SECTORS:
        badges.append(BadgeId.DIVERSIFIED)

    if 0 < rounds_used < max_rounds / 2:
        badges.append(BadgeId.SPEED_DEMON)

    return badges


def pnl_score(pnl: float) -> float:
    return pnl / 100 * PNL_SCALE


def risk_score(max_drawdown: float) -> float:
    return max(0.0, 100 - max_drawdown * 200) * (RISK_WEIGHT / 100)


def accuracy_score(rate: float) -> float:
    return rate * 200 * (ACCURACY_WEIGHT / 100)


def speed_score(rounds_used: int, max_rounds: int) -> float:
    if max_rounds <= 1:
        return SPEED_WEIGHT * 2
    ratio = 1 - (rounds_used - 1) / (max_rounds - 1)
    return ratio * 200 * (SPEED_WEIGHT / 100)


def compute_score(
    player: Player,
    stocks: Sequence[Stock],
    rounds_used: int,
    max_rounds: int,
    challenge_progress: Iterable[ChallengeProgress] = (),
    starting_cash: float = STARTING_CASH,
) -> PlayerScore:
    """
    Score a player from their ledger, current prices and round usage.

    A player with no trade history scores zero PnL, zero drawdown and a
    zero win rate.
    """
    closed = analyze_closed_trades(player.trade_history)
    pnl = player_value(player, stocks) - starting_cash
    max_drawdown = calculate_max_drawdown(player, stocks, starting_cash)
    rate = win_rate(closed)

    pnl_points = pnl_score(pnl)
    risk_points = risk_score(max_drawdown)
    accuracy_points = accuracy_score(rate)
    speed_points = speed_score(rounds_used, max_rounds)
    bonus = total_challenge_bonus(challenge_progress)

    total = max(0.0, pnl_points + risk_points + accuracy_points + speed_points + bonus)

    return PlayerScore(
        player_id=player.id,
        pnl=pnl,
        pnl_score=pnl_points,
        max_drawdown=max_drawdown,
        risk_score=risk_points,
        win_rate=rate,
        accuracy_score=accuracy_points,
        rounds_used=rounds_used,
        speed_score=speed_points,
        challenge_bonus=bonus,
        total_score=total,
        level=calculate_level(total),
        badges=evaluate_badges(
            player, stocks, closed, max_drawdown, rounds_used, max_rounds, starting_cash
        ),
    )
