"""
FIFO cost-basis accounting.

One matcher serves every consumer: scoring (win rate, badges), the
challenge evaluator (profitable streaks) and the position/PnL views.
Trades are replayed in timestamp order per instrument; each buy opens a
lot and each sell consumes the oldest open lots first, emitting one
ClosedTrade per matched chunk.
"""

from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from ledger.player import Player, Trade, TradeAction, last_fill_prices
from market.types import Stock


@dataclass(frozen=True)
class ClosedTrade:
    """A matched chunk of a closing trade against one open lot."""

    stock_id: str
    buy_price: float
    sell_price: float
    quantity: int
    profitable: bool

    @property
    def pnl(self) -> float:
        return (self.sell_price - self.buy_price) * self.quantity


@dataclass
class OpenLot:
    price: float
    remaining: int


@dataclass
class FifoBook:
    """Result of replaying a trade history."""

    closed: list[ClosedTrade] = field(default_factory=list)
    open_lots: dict[str, list[OpenLot]] = field(default_factory=dict)


@dataclass(frozen=True)
class Position:
    """Open position view for one instrument."""

    stock_id: str
    ticker: str
    quantity: int
    avg_cost: float
    market_price: float
    unrealized_pnl: float
    unrealized_pct: float


@dataclass(frozen=True)
class PnLSummary:
    realized: float
    unrealized: float
    total: float


def chronological(trades: Iterable[Trade]) -> list[Trade]:
    """Trades sorted by timestamp; ties keep execution order."""
    return sorted(trades, key=lambda t: t.timestamp)


def match_trades(trades: Iterable[Trade]) -> FifoBook:
    """
    Replay trades through per-instrument FIFO lot queues.

    Sells beyond the open quantity have nothing left to match and are
    ignored by the matcher.
    """
    queues: dict[str, deque[OpenLot]] = defaultdict(deque)
    closed: list[ClosedTrade] = []

    for trade in chronological(trades):
        queue = queues[trade.stock_id]
        if trade.action is TradeAction.BUY:
            queue.append(OpenLot(price=trade.price, remaining=trade.quantity))
            continue

        remaining = trade.quantity
        while remaining > 0 and queue:
            front = queue[0]
            filled = min(remaining, front.remaining)
            closed.append(
                ClosedTrade(
                    stock_id=trade.stock_id,
                    buy_price=front.price,
                    sell_price=trade.price,
                    quantity=filled,
                    profitable=trade.price > front.price,
                )
            )
            front.remaining -= filled
            remaining -= filled
            if front.remaining <= 0:
                queue.popleft()

    open_lots = {stock_id: list(queue) for stock_id, queue in queues.items() if queue}
    return FifoBook(closed=closed, open_lots=open_lots)


def analyze_closed_trades(trades: Iterable[Trade]) -> list[ClosedTrade]:
    return match_trades(trades).closed


def average_cost(lots: Sequence[OpenLot]) -> float:
    """Quantity-weighted cost of the remaining open lots."""
    quantity = sum(lot.remaining for lot in lots)
    if quantity <= 0:
        return 0.0
    return sum(lot.price * lot.remaining for lot in lots) / quantity


def realized_pnl(closed: Iterable[ClosedTrade]) -> float:
    return sum(c.pnl for c in closed)


def win_rate(closed: Sequence[ClosedTrade]) -> float:
    if not closed:
        return 0.0
    return sum(1 for c in closed if c.profitable) / len(closed)


def positions(player: Player, stocks: Iterable[Stock]) -> list[Position]:
    """Per-instrument open quantity, FIFO average cost and unrealized PnL."""
    stock_map = {s.id: s for s in stocks}
    fallback = last_fill_prices(player.trade_history)
    book = match_trades(player.trade_history)

    views = []
    for stock_id, lots in book.open_lots.items():
        quantity = sum(lot.remaining for lot in lots)
        if quantity <= 0:
            continue
        cost = average_cost(lots)
        stock = stock_map.get(stock_id)
        price = stock.price if stock is not None else fallback.get(stock_id, cost)
        unrealized = (price - cost) * quantity
        views.append(
            Position(
                stock_id=stock_id,
                ticker=stock.ticker if stock is not None else stock_id,
                quantity=quantity,
                avg_cost=cost,
                market_price=price,
                unrealized_pnl=unrealized,
                unrealized_pct=(price - cost) / cost * 100 if cost > 0 else 0.0,
            )
        )
    return views


def compute_pnl(player: Player, stocks: Iterable[Stock]) -> PnLSummary:
    """Realized, unrealized and total PnL from the trade history."""
    stocks = list(stocks)
    realized = realized_pnl(analyze_closed_trades(player.trade_history))
    unrealized = sum(p.unrealized_pnl for p in positions(player, stocks))
    return PnLSummary(realized=realized, unrealized=unrealized, total=realized + unrealized)
