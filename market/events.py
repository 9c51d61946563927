"""
Randomized market catalysts.

Each tick a single gate draw decides whether any event fires. On a hit a
template is chosen by weight, a target instrument is picked among the
eligible ones (not halted, outside the per-stock cooldown, optionally
biased toward the template's sectors) and the event's impact, volume
multiplier and duration are drawn from the template's ranges.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Mapping, Sequence

from market.rng import RandomSource
from market.types import MarketEvent, MarketEventType, Stock, new_id

logger = logging.getLogger(__name__)

# Tuned so events land every ~40-80 ticks
BASE_EVENT_PROBABILITY = 0.018
# Minimum ticks between events on the same stock
PER_STOCK_COOLDOWN = 25
SECTOR_BIAS_PROBABILITY = 0.7


@dataclass(frozen=True)
class EventTemplate:
    """Blueprint for one category of market event."""

    type: MarketEventType
    titles: tuple[str, ...]
    descriptions: tuple[str, ...]
    price_impact_range: tuple[float, float]
    volume_impact_range: tuple[float, float]
    duration_range: tuple[int, int]
    halts: bool
    halt_duration: tuple[int, int]
    weight: int
    sector_bias: tuple[str, ...] = ()


EVENT_TEMPLATES: tuple[EventTemplate, ...] = (
    EventTemplate(
        type=MarketEventType.EARNINGS_SURPRISE,
        titles=(
            "{ticker} Crushes Earnings Estimates",
            "{ticker} Reports Blowout Quarter",
            "{ticker} Revenue Beats by 40%",
        ),
        descriptions=(
            "{name} reported EPS of $0.12 vs. consensus of -$0.05. Revenue up 120% YoY.",
            "{name} surprised Wall Street with its first profitable quarter. Short sellers scrambling.",
            "Massive beat on top and bottom line. Guidance raised for full year.",
        ),
        price_impact_range=(1.15, 1.60),
        volume_impact_range=(4, 12),
        duration_range=(20, 60),
        halts=False,
        halt_duration=(0, 0),
        weight=10,
    ),
    EventTemplate(
        type=MarketEventType.EARNINGS_MISS,
        titles=(
            "{ticker} Misses Earnings Badly",
            "{ticker} Reports Wider-Than-Expected Loss",
            "{ticker} Revenue Falls Short",
        ),
        descriptions=(
            "{name} posted a loss of -$0.22 vs. expected -$0.08. Cash burn accelerating.",
            "Disappointing results across the board. Management lowered guidance.",
            "{name} missed revenue estimates by 30%. Customer churn increasing.",
        ),
        price_impact_range=(0.55, 0.85),
        volume_impact_range=(3, 8),
        duration_range=(15, 45),
        halts=False,
        halt_duration=(0, 0),
        weight=10,
    ),
    EventTemplate(
        type=MarketEventType.SEC_HALT,
        titles=(
            "TRADING HALTED: {ticker} Pending News",
            "{ticker} Halted: Volatility Circuit Breaker",
            "LULD Halt on {ticker}",
        ),
        descriptions=(
            "Trading in {name} has been halted pending a company announcement.",
            "Circuit breaker triggered on {ticker} after rapid price movement.",
            "Limit Up/Limit Down halt on {ticker}. Trading to resume shortly.",
        ),
        # can resolve either way on resume
        price_impact_range=(0.70, 1.40),
        volume_impact_range=(8, 20),
        duration_range=(30, 90),
        halts=True,
        halt_duration=(10, 30),
        weight=5,
    ),
    EventTemplate(
        type=MarketEventType.DILUTION,
        titles=(
            "{ticker} Announces Shelf Offering",
            "{ticker} Files ATM Offering: Dilution Alert",
            "{ticker} Prices Secondary Offering",
        ),
        descriptions=(
            "{name} filed to sell up to $15M in shares at market prices. Dilution risk.",
            "Direct offering priced at 15% discount to market. Shares outstanding increase 20%.",
            "{name} registered 8M new shares for sale. Float expanding significantly.",
        ),
        price_impact_range=(0.60, 0.82),
        volume_impact_range=(5, 15),
        duration_range=(30, 80),
        halts=False,
        halt_duration=(0, 0),
        weight=8,
    ),
    EventTemplate(
        type=MarketEventType.SHORT_SQUEEZE,
        titles=(
            "{ticker} Short Squeeze Developing",
            "Shorts Trapped in {ticker}: Squeeze Alert",
            "{ticker} Borrow Rate Spikes to 300%",
        ),
        descriptions=(
            "Short interest at {si}% of float. Borrow fees skyrocketing. Forced covering imminent.",
            "No shares available to borrow on {ticker}. Short sellers getting margin called.",
            "Massive buy volume on {ticker} as shorts scramble to cover. Float locked up.",
        ),
        price_impact_range=(1.25, 2.20),
        volume_impact_range=(10, 25),
        duration_range=(15, 50),
        halts=False,
        halt_duration=(0, 0),
        weight=6,
        sector_bias=("Healthcare", "Technology"),
    ),
    EventTemplate(
        type=MarketEventType.INSIDER_BUYING,
        titles=(
            "{ticker} CEO Buys $500K in Open Market",
            "Insider Cluster Buying in {ticker}",
        ),
        descriptions=(
            "{name} CEO purchased 150,000 shares at market price. First insider buy in 2 years.",
            "Three insiders at {name} bought shares this week. Total insider purchases: $1.2M.",
        ),
        price_impact_range=(1.08, 1.25),
        volume_impact_range=(2, 5),
        duration_range=(30, 60),
        halts=False,
        halt_duration=(0, 0),
        weight=5,
    ),
    EventTemplate(
        type=MarketEventType.FDA_APPROVAL,
        titles=(
            "{ticker} Receives FDA Fast Track Designation",
            "FDA Approves {ticker} Lead Candidate",
        ),
        descriptions=(
            "{name} granted Fast Track for its lead compound. Phase 3 trial expected next quarter.",
            "FDA approval for {name}'s flagship drug. Addressable market estimated at $2B.",
        ),
        price_impact_range=(1.30, 2.50),
        volume_impact_range=(10, 30),
        duration_range=(20, 60),
        halts=False,
        halt_duration=(0, 0),
        weight=4,
        sector_bias=("Healthcare",),
    ),
    EventTemplate(
        type=MarketEventType.CONTRACT_WIN,
        titles=(
            "{ticker} Awarded $50M Government Contract",
            "{ticker} Lands Major Partnership Deal",
        ),
        descriptions=(
            "{name} won a multi-year government contract worth $50M. Revenue visibility greatly improved.",
            "Strategic partnership announced between {name} and a Fortune 500 company.",
        ),
        price_impact_range=(1.12, 1.45),
        volume_impact_range=(3, 8),
        duration_range=(20, 50),
        halts=False,
        halt_duration=(0, 0),
        weight=6,
        sector_bias=("Technology", "Energy"),
    ),
    EventTemplate(
        type=MarketEventType.OFFERING_ANNOUNCED,
        titles=(
            "{ticker} Announces Warrant Exercise",
            "{ticker} Converts Preferred Shares",
        ),
        descriptions=(
            "Warrants exercised at $0.50 on {ticker}. 5M new shares entering the float.",
            "{name} converting preferred shares to common. Float expected to increase 25%.",
        ),
        price_impact_range=(0.70, 0.88),
        volume_impact_range=(4, 10),
        duration_range=(20, 50),
        halts=False,
        halt_duration=(0, 0),
        weight=6,
    ),
    EventTemplate(
        type=MarketEventType.REDDIT_MOMENTUM,
        titles=(
            "{ticker} Trending on Social Media",
            "{ticker} Going Viral: Retail Pile-In",
        ),
        descriptions=(
            "{ticker} mentions up 500% on social media. Retail traders piling in.",
            '{name} trending #1 on stock forums. "Diamond hands" sentiment dominant.',
        ),
        price_impact_range=(1.10, 1.80),
        volume_impact_range=(8, 20),
        duration_range=(10, 40),
        halts=False,
        halt_duration=(0, 0),
        weight=7,
    ),
)

_TEMPLATES_BY_TYPE = {template.type: template for template in EVENT_TEMPLATES}


def get_template(event_type: MarketEventType) -> EventTemplate | None:
    return _TEMPLATES_BY_TYPE.get(event_type)


def pick_weighted_template(rng: RandomSource) -> EventTemplate:
    """Weighted draw over EVENT_TEMPLATES."""
    total_weight = sum(t.weight for t in EVENT_TEMPLATES)
    roll = rng.random() * total_weight
    for template in EVENT_TEMPLATES:
        roll -= template.weight
        if roll <= 0:
            return template
    return EVENT_TEMPLATES[0]


def format_event_text(text: str, stock: Stock) -> str:
    """Substitute {ticker}, {name} and {si} (short interest % of float)."""
    float_shares = stock.float_profile.float_shares
    si_pct = stock.float_profile.short_interest / float_shares * 100 if float_shares > 0 else 0.0
    return (
        text.replace("{ticker}", stock.ticker)
        .replace("{name}", stock.name)
        .replace("{si}", f"{si_pct:.0f}")
    )


def eligible_stocks(
    stocks: Sequence[Stock],
    template: EventTemplate,
    tick: int,
    last_event_ticks: Mapping[str, int],
    rng: RandomSource,
) -> list[Stock]:
    """
    Filter targets for a template.

    Halted stocks and stocks inside the cooldown window are excluded. For
    sector-biased templates each out-of-sector stock is dropped with
    SECTOR_BIAS_PROBABILITY.
    """
    eligible = []
    for stock in stocks:
        if stock.halted:
            continue
        last = last_event_ticks.get(stock.id)
        if last is not None and tick - last < PER_STOCK_COOLDOWN:
            continue
        if template.sector_bias:
            if rng.random() < SECTOR_BIAS_PROBABILITY and stock.sector not in template.sector_bias:
                continue
        eligible.append(stock)
    return eligible


def maybe_generate_event(
    stocks: Sequence[Stock],
    tick: int,
    last_event_ticks: Mapping[str, int],
    rng: RandomSource,
    clock: Callable[[], float] = time.time,
) -> MarketEvent | None:
    """
    Possibly emit one market event for this tick.

    Args:
        stocks: Current instrument set (not modified)
        tick: Tick the event would fire at
        last_event_ticks: Stock id -> tick of that stock's last event
        rng: Random source for every draw
        clock: Wall-clock used for the event timestamp

    Returns:
        A new MarketEvent, or None if the gate missed or nothing was eligible
    """
    if rng.random() > BASE_EVENT_PROBABILITY:
        return None

    template = pick_weighted_template(rng)
    candidates = eligible_stocks(stocks, template, tick, last_event_ticks, rng)
    if not candidates:
        return None

    stock = rng.choice(candidates)

    price_impact = rng.uniform(*template.price_impact_range)
    volume_impact = rng.uniform(*template.volume_impact_range)
    min_dur, max_dur = template.duration_range
    duration = max(1, int(min_dur + rng.random() * (max_dur - min_dur)))

    event = MarketEvent(
        id=new_id(),
        type=template.type,
        title=format_event_text(rng.choice(template.titles), stock),
        description=format_event_text(rng.choice(template.descriptions), stock),
        affected_stock_ids=(stock.id,),
        price_impact=price_impact,
        volume_impact=volume_impact,
        duration=duration,
        timestamp=clock(),
        tick=tick,
    )
    logger.info(f"Tick {tick}: {event.type.value} on {stock.ticker} ({event.title})")
    return event


def event_halt_duration(event: MarketEvent, rng: RandomSource) -> int:
    """Sample a halt length in ticks (0 for non-halting categories)."""
    template = get_template(event.type)
    if template is None or not template.halts:
        return 0
    low, high = template.halt_duration
    return int(low + rng.random() * (high - low))


def is_halt_event(event_type: MarketEventType) -> bool:
    """True when this category forces a trading halt."""
    template = get_template(event_type)
    return template.halts if template is not None else False
