"""
Synthetic depth-of-book for thinly traded small caps.

There is no resting-order matching here: each tick the book is redrawn
around the current price. Spreads widen with volatility and low prices,
sizes are lumpy and grow away from the inside, and the ask side
occasionally carries a resistance wall (a large passive seller).

Prices are built in integer tick units so bid levels are strictly
decreasing and ask levels strictly increasing.
"""

import math

from market.rng import RandomSource
from market.types import OrderBook, OrderBookLevel, Stock

BOOK_DEPTH = 8  # levels each side
BASE_SIZE_FRACTION = 0.0005  # base level size as fraction of float
SPREAD_VOLATILITY_FACTOR = 0.3
MAX_STEP_TICKS = 4

WALL_PROBABILITY = 0.12
WALL_MIN_MULT = 3.0
WALL_MAX_MULT = 8.0

SKEW_THRESHOLD = 0.02
SKEW_SENSITIVITY = 3
MAX_SKEW = 0.8  # up to 80% thinning
THICKEN_RATIO = 0.5
MIN_LEVEL_SIZE = 100


def tick_size_for(price: float) -> float:
    return 0.01 if price >= 1 else 0.0001


def _to_price(ticks: int, tick_size: float) -> float:
    return round(ticks * tick_size, 4)


def generate_order_book(stock: Stock, rng: RandomSource) -> OrderBook:
    """
    Draw a fresh book snapshot around the stock's current price.

    Args:
        stock: Instrument to quote (price, volatility, float are read)
        rng: Random source for level spacing, sizes and walls

    Returns:
        OrderBook with up to BOOK_DEPTH levels per side
    """
    price = stock.price
    if price <= 0:
        return OrderBook.empty()

    base_spread = 0.005 if price < 1 else 0.01
    volatility_spread = stock.volatility * SPREAD_VOLATILITY_FACTOR * price
    half_spread = (base_spread + volatility_spread) / 2

    tick_size = tick_size_for(price)
    best_bid_ticks = round((price - half_spread) / tick_size)
    best_ask_ticks = round((price + half_spread) / tick_size)
    if best_ask_ticks <= best_bid_ticks:
        best_ask_ticks = best_bid_ticks + 1

    base_size = math.floor(stock.float_profile.float_shares * BASE_SIZE_FRACTION)

    bids = []
    level_ticks = best_bid_ticks
    for i in range(BOOK_DEPTH):
        if i > 0:
            level_ticks -= rng.randint(1, MAX_STEP_TICKS)
        if level_ticks <= 0:
            break
        depth_multiplier = 1 + i * 0.3
        size = math.floor(base_size * depth_multiplier * (0.3 + rng.random() * 1.4))
        bids.append(OrderBookLevel(price=_to_price(level_ticks, tick_size), size=size))

    asks = []
    level_ticks = best_ask_ticks
    for i in range(BOOK_DEPTH):
        if i > 0:
            level_ticks += rng.randint(1, MAX_STEP_TICKS)
        wall_multiplier = 1.0
        if rng.random() < WALL_PROBABILITY:
            wall_multiplier = rng.uniform(WALL_MIN_MULT, WALL_MAX_MULT)
        depth_multiplier = 1 + i * 0.25
        size = math.floor(
            base_size * depth_multiplier * wall_multiplier * (0.3 + rng.random() * 1.4)
        )
        asks.append(OrderBookLevel(price=_to_price(level_ticks, tick_size), size=size))

    best_bid = bids[0].price if bids else 0.0
    best_ask = asks[0].price
    spread = best_ask - best_bid if bids else 0.0
    spread_percent = spread / price * 100

    return OrderBook(
        bids=tuple(bids),
        asks=tuple(asks),
        spread=round(spread, 4),
        spread_percent=round(spread_percent, 2),
    )


def _thin(levels: tuple[OrderBookLevel, ...], factor: float) -> tuple[OrderBookLevel, ...]:
    return tuple(
        OrderBookLevel(level.price, max(MIN_LEVEL_SIZE, math.floor(level.size * (1 - factor))))
        for level in levels
    )


def _thicken(levels: tuple[OrderBookLevel, ...], factor: float) -> tuple[OrderBookLevel, ...]:
    return tuple(
        OrderBookLevel(level.price, math.floor(level.size * (1 + factor * THICKEN_RATIO)))
        for level in levels
    )


def skew_order_book(book: OrderBook, momentum: float) -> OrderBook:
    """
    Thin the side being consumed by momentum and thicken the other.

    Bullish momentum eats the asks; bearish momentum eats the bids.
    """
    if abs(momentum) < SKEW_THRESHOLD:
        return book

    factor = min(abs(momentum) * SKEW_SENSITIVITY, MAX_SKEW)
    if momentum > 0:
        return OrderBook(
            bids=_thicken(book.bids, factor),
            asks=_thin(book.asks, factor),
            spread=book.spread,
            spread_percent=book.spread_percent,
        )
    return OrderBook(
        bids=_thin(book.bids, factor),
        asks=_thicken(book.asks, factor),
        spread=book.spread,
        spread_percent=book.spread_percent,
    )
