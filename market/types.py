"""
Data model for the market simulation.

Stocks are plain mutable dataclasses owned by the tick scheduler; the
scheduler never mutates a Stock it was handed but builds a fresh copy per
tick, so a snapshot handed to the ledger stays consistent. Order books and
market events are frozen once created.
"""

import uuid
from dataclasses import dataclass, field, replace
from enum import Enum

# Penny floor for any simulated price
MIN_PRICE = 0.01

# Bounded history lengths
PRICE_HISTORY_LIMIT = 500
VOLUME_HISTORY_LIMIT = 60

# 6.5 hours of one-minute bars
SESSION_LENGTH_TICKS = 390


def new_id() -> str:
    """Generate an opaque identifier for stocks, events, players and trades."""
    return uuid.uuid4().hex[:12]


@dataclass(frozen=True)
class OrderBookLevel:
    """A single price level on one side of the book."""

    price: float
    size: int


@dataclass(frozen=True)
class OrderBook:
    """
    Depth-of-book snapshot.

    Bids are sorted descending by price, asks ascending.
    """

    bids: tuple[OrderBookLevel, ...] = ()
    asks: tuple[OrderBookLevel, ...] = ()
    spread: float = 0.0
    spread_percent: float = 0.0

    @classmethod
    def empty(cls) -> "OrderBook":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.bids and not self.asks

    @property
    def best_bid(self) -> float | None:
        return self.bids[0].price if self.bids else None

    @property
    def best_ask(self) -> float | None:
        return self.asks[0].price if self.asks else None


@dataclass
class StockFloat:
    """Share structure and liquidity state."""

    total_shares: int
    float_shares: int  # freely tradeable shares
    short_interest: int  # shares sold short
    day_volume: int = 0  # cumulative volume this session
    float_rotation: float = 0.0  # day_volume / float_shares


@dataclass
class VolumeProfile:
    """Per-tick volume with a bounded rolling history."""

    current: int = 0
    average: float = 0.0
    history: list[int] = field(default_factory=list)
    relative_volume: float = 1.0  # RVOL = current / average


@dataclass
class Stock:
    """A tradable instrument and its full simulation state."""

    id: str
    ticker: str
    name: str
    sector: str
    price: float
    previous_close: float
    open: float
    high: float
    low: float
    price_history: list[float]
    volatility: float
    float_profile: StockFloat
    volume: VolumeProfile = field(default_factory=VolumeProfile)
    order_book: OrderBook = field(default_factory=OrderBook)
    halted: bool = False
    halt_ticks_remaining: int = 0
    momentum: float = 0.0  # bounded to [-0.5, 0.5]
    catalyst_multiplier: float = 1.0
    catalyst_decay: float = 0.0

    def clone(self) -> "Stock":
        """Copy with independent history lists and profiles."""
        return replace(
            self,
            price_history=list(self.price_history),
            float_profile=replace(self.float_profile),
            volume=replace(self.volume, history=list(self.volume.history)),
        )


class MarketEventType(str, Enum):
    """Catalog of market catalysts."""

    EARNINGS_SURPRISE = "earnings_surprise"
    EARNINGS_MISS = "earnings_miss"
    SEC_HALT = "sec_halt"
    DILUTION = "dilution"
    SHORT_SQUEEZE = "short_squeeze"
    INSIDER_BUYING = "insider_buying"
    FDA_APPROVAL = "fda_approval"
    CONTRACT_WIN = "contract_win"
    OFFERING_ANNOUNCED = "offering_announced"
    REDDIT_MOMENTUM = "reddit_momentum"


@dataclass(frozen=True)
class MarketEvent:
    """An immutable catalyst emitted by the event generator."""

    id: str
    type: MarketEventType
    title: str
    description: str
    affected_stock_ids: tuple[str, ...]
    price_impact: float  # multiplier, e.g. 1.1 = +10%, 0.85 = -15%
    volume_impact: float
    duration: int  # ticks the catalyst lasts
    timestamp: float  # wall-clock seconds
    tick: int
