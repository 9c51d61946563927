"""
Trade execution against the synthesized book.

Fills are synthetic: a buy lifts the best ask, a sell hits the best bid,
and an empty side falls back to the last price. There is no matching
between players. Invalid requests come back as a TradeRejection value;
the player is only mutated when every check has passed.
"""

import logging
import numbers
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable

from ledger.player import (
    Player,
    Trade,
    TradeAction,
    last_fill_prices,
    mark_to_market,
)
from market.types import Stock, new_id

logger = logging.getLogger(__name__)


class RejectReason(str, Enum):
    HALTED = "halted"
    INVALID_QUANTITY = "invalid_quantity"
    INSUFFICIENT_CASH = "insufficient_cash"
    INSUFFICIENT_SHARES = "insufficient_shares"
    UNSUPPORTED_ACTION = "unsupported_action"


@dataclass(frozen=True)
class TradeRejection:
    """Why a trade request was refused."""

    reason: RejectReason
    message: str = ""

    def __bool__(self) -> bool:
        return False


def fill_price(stock: Stock, action: TradeAction) -> float:
    """Best opposing level, or the last price when that side is empty."""
    book = stock.order_book
    if action is TradeAction.BUY:
        return book.best_ask if book.best_ask is not None else stock.price
    return book.best_bid if book.best_bid is not None else stock.price


def _is_positive_int(quantity: object) -> bool:
    if isinstance(quantity, bool) or not isinstance(quantity, numbers.Integral):
        return False
    return quantity > 0


def _reject(player: Player, stock: Stock, reason: RejectReason, message: str) -> TradeRejection:
    logger.debug(f"Rejected {player.name} on {stock.ticker}: {reason.value} ({message})")
    return TradeRejection(reason, message)


def execute_trade(
    player: Player,
    stock: Stock,
    action: TradeAction | str,
    quantity: int,
    stocks: Iterable[Stock] = (),
    tick: int = 0,
    clock: Callable[[], float] = time.time,
) -> Trade | TradeRejection:
    """
    Execute a buy or sell for a player against the stock's current book.

    Args:
        player: Account to debit/credit (mutated on success only)
        stock: Instrument snapshot whose book provides the fill
        action: "buy" or "sell"
        quantity: Positive whole number of shares
        stocks: Full instrument set used to re-mark total value
        tick: Session tick recorded on the Trade
        clock: Wall-clock used for the trade timestamp

    Returns:
        The new Trade, or a TradeRejection (falsy) explaining the refusal
    """
    try:
        action = TradeAction(action)
    except ValueError:
        return _reject(player, stock, RejectReason.UNSUPPORTED_ACTION, f"action {action!r}")

    if stock.halted:
        return _reject(player, stock, RejectReason.HALTED, f"{stock.ticker} is halted")
    if not _is_positive_int(quantity):
        return _reject(player, stock, RejectReason.INVALID_QUANTITY, f"quantity {quantity!r}")

    quantity = int(quantity)
    price = fill_price(stock, action)
    notional = price * quantity
    held = player.position(stock.id)

    if action is TradeAction.BUY:
        if notional > player.cash:
            return _reject(
                player, stock, RejectReason.INSUFFICIENT_CASH,
                f"needs {notional:.2f}, has {player.cash:.2f}",
            )
        new_cash = player.cash - notional
        new_quantity = held + quantity
    else:
        if held < quantity:
            return _reject(
                player, stock, RejectReason.INSUFFICIENT_SHARES,
                f"holds {held}, selling {quantity}",
            )
        new_cash = player.cash + notional
        new_quantity = held - quantity

    trade = Trade(
        id=new_id(),
        player_id=player.id,
        stock_id=stock.id,
        action=action,
        quantity=quantity,
        price=price,
        timestamp=clock(),
        tick=tick,
    )

    portfolio = dict(player.portfolio)
    if new_quantity == 0:
        portfolio.pop(stock.id, None)
    else:
        portfolio[stock.id] = new_quantity

    # The traded stock's snapshot wins over any stale copy in stocks
    marks = [s for s in stocks if s.id != stock.id] + [stock]
    fallback = last_fill_prices(player.trade_history)
    total_value = mark_to_market(new_cash, portfolio, marks, fallback)

    player.cash = new_cash
    player.portfolio = portfolio
    player.total_value = total_value
    player.trade_history.append(trade)

    logger.debug(
        f"{player.name} {action.value} {quantity} {stock.ticker} @ {price:.4f} "
        f"(cash {new_cash:.2f})"
    )
    return trade
