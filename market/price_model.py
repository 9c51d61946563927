"""
Per-tick price dynamics for a single instrument.

Models micro-cap behavior: a Gaussian random walk scaled by volatility,
exponentially smoothed momentum, parabolic volatility expansion, sudden
reversals when momentum runs hot, a weak pull toward the recent mean and
a decaying catalyst multiplier injected by market events.

compute_next_price() is pure given its RandomSource; apply_price_update()
returns a new Stock and leaves its input untouched.
"""

import math
from dataclasses import dataclass

from market.rng import RandomSource
from market.types import (
    MIN_PRICE,
    PRICE_HISTORY_LIMIT,
    SESSION_LENGTH_TICKS,
    VOLUME_HISTORY_LIMIT,
    Stock,
)

MOMENTUM_DECAY = 0.92  # momentum carries ~92% per tick
MOMENTUM_SENSITIVITY = 0.4  # how much new returns feed into momentum
MOMENTUM_RETURN_WEIGHT = 0.3  # momentum contribution to the tick return
MOMENTUM_LIMIT = 0.5
MEAN_REVERSION_STRENGTH = 0.002
MEAN_REVERSION_WINDOW = 60  # ticks used for the anchor price

CATALYST_SNAP_TOLERANCE = 0.001

PARABOLIC_THRESHOLD = 0.15
PARABOLIC_VOLATILITY_MULT = 2.5
CRASH_PROBABILITY_BASE = 0.003
CRASH_MOMENTUM_FACTOR = 8

BASE_VOLUME_FRACTION = 0.002  # ~0.2% of float per tick
RETURN_VOLUME_FACTOR = 40
PARABOLIC_VOLUME_BOOST = 3
CATALYST_VOLUME_BOOST = 2


@dataclass(frozen=True)
class PriceUpdate:
    """Result of one tick of the price model."""

    price: float
    momentum: float
    catalyst_multiplier: float
    catalyst_decay: float
    volume: int


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def round_price(price: float) -> float:
    """Round to cents at or above $1, to four decimals below."""
    if price >= 1:
        return round(price * 100) / 100
    return round(price * 10000) / 10000


def compute_anchor(price_history: list[float]) -> float:
    """Mean of the last MEAN_REVERSION_WINDOW prices (0 for empty history)."""
    window = price_history[-MEAN_REVERSION_WINDOW:]
    if not window:
        return 0.0
    return sum(window) / len(window)


def time_of_day_volume(session_tick: int, session_length: int = SESSION_LENGTH_TICKS) -> float:
    """
    U-shaped intraday volume multiplier.

    0.5 + 4 * (x - 0.5)^2 over normalized session position x, giving
    1.5 at the open and close and 0.5 at midday.
    """
    if session_length <= 1:
        return 1.5
    normalized = session_tick / (session_length - 1)
    return 0.5 + 4 * (normalized - 0.5) ** 2


def decay_catalyst(multiplier: float, decay: float) -> tuple[float, float]:
    """Relax a catalyst multiplier toward 1, snapping once within tolerance."""
    if multiplier == 1:
        return multiplier, decay
    multiplier = 1 + (multiplier - 1) * (1 - decay)
    if abs(multiplier - 1) < CATALYST_SNAP_TOLERANCE:
        return 1.0, 0.0
    return multiplier, decay


def compute_next_price(
    stock: Stock,
    tick: int,
    rng: RandomSource,
    session_length: int = SESSION_LENGTH_TICKS,
) -> PriceUpdate:
    """
    Compute the next price, momentum, catalyst state and tick volume.

    Args:
        stock: Current instrument state (not modified)
        tick: Global tick index, used for time-of-day volume shaping
        rng: Random source for the shock, reversal and volume noise
        session_length: Ticks per session, sets the span of the volume U-shape

    Returns:
        PriceUpdate with price >= MIN_PRICE and momentum in [-0.5, 0.5]
    """
    if stock.halted:
        return PriceUpdate(
            price=stock.price,
            momentum=stock.momentum,
            catalyst_multiplier=stock.catalyst_multiplier,
            catalyst_decay=stock.catalyst_decay,
            volume=0,
        )

    catalyst_mult, catalyst_dec = decay_catalyst(stock.catalyst_multiplier, stock.catalyst_decay)

    base_return = rng.gaussian() * stock.volatility

    momentum = stock.momentum * MOMENTUM_DECAY + base_return * MOMENTUM_SENSITIVITY

    is_parabolic = abs(momentum) > PARABOLIC_THRESHOLD
    vol_multiplier = PARABOLIC_VOLATILITY_MULT if is_parabolic else 1.0

    # Failed squeeze / blow-off: flip and dampen momentum
    if is_parabolic:
        crash_odds = CRASH_PROBABILITY_BASE * (1 + abs(momentum) * CRASH_MOMENTUM_FACTOR)
        if rng.random() < crash_odds:
            momentum = -momentum * (0.6 + rng.random() * 0.4)

    price = stock.price if stock.price > 0 else MIN_PRICE
    anchor = compute_anchor(stock.price_history)
    reversion_pull = 0.0
    if anchor > 0:
        reversion_pull = (anchor - price) / price * MEAN_REVERSION_STRENGTH

    total_return = (
        base_return * vol_multiplier * catalyst_mult
        + momentum * MOMENTUM_RETURN_WEIGHT
        + reversion_pull
    )

    new_price = max(MIN_PRICE, round_price(max(MIN_PRICE, price * (1 + total_return))))

    base_volume = stock.float_profile.float_shares * BASE_VOLUME_FRACTION
    vol_factor = 1 + abs(total_return) * RETURN_VOLUME_FACTOR
    parabolic_boost = PARABOLIC_VOLUME_BOOST if is_parabolic else 1
    catalyst_boost = CATALYST_VOLUME_BOOST if catalyst_mult != 1 else 1
    tick_volume = math.floor(
        base_volume * vol_factor * parabolic_boost * catalyst_boost * (0.5 + rng.random())
    )

    momentum = clamp(momentum, -MOMENTUM_LIMIT, MOMENTUM_LIMIT)

    session_tick = tick % session_length if session_length > 0 else 0
    volume = max(0, math.floor(tick_volume * time_of_day_volume(session_tick, session_length)))

    return PriceUpdate(
        price=new_price,
        momentum=momentum,
        catalyst_multiplier=catalyst_mult,
        catalyst_decay=catalyst_dec,
        volume=volume,
    )


def apply_price_update(stock: Stock, update: PriceUpdate) -> Stock:
    """
    Fold a PriceUpdate into a copy of the stock.

    Updates price, session high/low, bounded price and volume histories,
    RVOL and float rotation.
    """
    s = stock.clone()

    s.price_history.append(update.price)
    if len(s.price_history) > PRICE_HISTORY_LIMIT:
        del s.price_history[: len(s.price_history) - PRICE_HISTORY_LIMIT]

    history = s.volume.history
    history.append(update.volume)
    if len(history) > VOLUME_HISTORY_LIMIT:
        del history[: len(history) - VOLUME_HISTORY_LIMIT]
    average = sum(history) / len(history)

    s.price = update.price
    s.high = max(s.high, update.price)
    s.low = min(s.low, update.price)
    s.momentum = update.momentum
    s.catalyst_multiplier = update.catalyst_multiplier
    s.catalyst_decay = update.catalyst_decay

    s.volume.current = update.volume
    s.volume.average = average
    s.volume.relative_volume = update.volume / average if average > 0 else 1.0

    s.float_profile.day_volume += update.volume
    float_shares = s.float_profile.float_shares
    s.float_profile.float_rotation = (
        s.float_profile.day_volume / float_shares if float_shares > 0 else 0.0
    )
    return s
