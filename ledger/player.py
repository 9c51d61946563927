"""
Player accounts and trade records.

A Player is mutated only by ledger.execution.execute_trade() (and reset
between rounds). Its trade history is the single source of truth for
cost basis, realized PnL, badges and challenges.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from market.config import STARTING_CASH
from market.types import Stock, new_id


class TradeAction(str, Enum):
    BUY = "buy"
    SELL = "sell"


@dataclass(frozen=True)
class Trade:
    """An immutable fill appended to a player's history."""

    id: str
    player_id: str
    stock_id: str
    action: TradeAction
    quantity: int
    price: float
    timestamp: float  # wall-clock seconds
    tick: int = 0  # session tick the fill happened at

    @property
    def notional(self) -> float:
        return self.price * self.quantity


@dataclass
class Player:
    """
    A trading account.

    Attributes:
        id: Unique identifier
        name: Display name
        cash: Cash balance
        portfolio: Stock id -> share quantity (zero entries are removed)
        total_value: Cash plus mark-to-market of open positions, as of the last fill
        trade_history: Every fill, in execution order
    """

    id: str
    name: str
    cash: float = STARTING_CASH
    portfolio: dict[str, int] = field(default_factory=dict)
    total_value: float = STARTING_CASH
    trade_history: list[Trade] = field(default_factory=list)

    def position(self, stock_id: str) -> int:
        return self.portfolio.get(stock_id, 0)


def add_player(name: str, starting_cash: float = STARTING_CASH) -> Player:
    """Create a fresh account with the starting cash balance."""
    return Player(id=new_id(), name=name, cash=starting_cash, total_value=starting_cash)


def reset_player(player: Player, starting_cash: float = STARTING_CASH) -> None:
    """Wipe a player's ledger for a new round or game, keeping identity."""
    player.cash = starting_cash
    player.portfolio = {}
    player.total_value = starting_cash
    player.trade_history = []


def last_fill_prices(trades: Iterable[Trade]) -> dict[str, float]:
    """Most recent fill price per stock id."""
    prices: dict[str, float] = {}
    for trade in trades:
        prices[trade.stock_id] = trade.price
    return prices


def mark_to_market(
    cash: float,
    portfolio: dict[str, int],
    stocks: Iterable[Stock],
    fallback_prices: dict[str, float] | None = None,
) -> float:
    """
    Cash plus the value of every open position at current stock prices.

    Positions in instruments missing from stocks are valued at
    fallback_prices (typically the last fill), or zero.
    """
    prices = {s.id: s.price for s in stocks}
    fallback_prices = fallback_prices or {}
    value = cash
    for stock_id, quantity in portfolio.items():
        price = prices.get(stock_id, fallback_prices.get(stock_id, 0.0))
        value += price * quantity
    return value


def player_value(player: Player, stocks: Iterable[Stock]) -> float:
    """Current total value of a player's account (does not mutate it)."""
    return mark_to_market(
        player.cash, player.portfolio, stocks, last_fill_prices(player.trade_history)
    )
