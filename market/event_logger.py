"""
Session event logger.

Writes market events, trades and per-tick summaries to JSONL for
post-hoc analysis and replay visualization. The log is an export
artifact only; nothing reads it back to restore a session.
"""

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import TextIO


@dataclass
class MarketEventRecord:
    """A catalyst fired by the event generator."""

    tick: int
    event_id: str
    type: str
    title: str
    stock_ids: list[str]
    price_impact: float
    volume_impact: float
    duration: int


@dataclass
class TradeRecord:
    """A filled trade."""

    tick: int
    trade_id: str
    player_id: str
    stock_id: str
    action: str  # "buy" or "sell"
    quantity: int
    price: float


@dataclass
class TickSummaryRecord:
    """Prices and halt flags after one tick."""

    tick: int
    prices: dict[str, float]
    halted: list[str]


@dataclass
class SessionEndRecord:
    """Final marks when the session completes."""

    round: int
    tick: int
    closing_prices: dict[str, float]


class EventLogger:
    """
    Logs session activity to JSONL format.

    Usage:
        with EventLogger(Path("logs/session_events.jsonl")) as log:
            log.log_market_event(event)
            log.log_trade(trade)
    """

    def __init__(self, output_path: Path, log_ticks: bool = False):
        """
        Initialize the event logger.

        Args:
            output_path: Path to write JSONL file
            log_ticks: Also write a summary line for every tick
        """
        self.output_path = Path(output_path)
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self.log_ticks = log_ticks
        self._file: TextIO | None = None
        self._open()

    def _open(self) -> None:
        self._file = open(self.output_path, "w")

    def log_market_event(self, event) -> None:
        """Log a MarketEvent."""
        record = MarketEventRecord(
            tick=event.tick,
            event_id=event.id,
            type=event.type.value,
            title=event.title,
            stock_ids=list(event.affected_stock_ids),
            price_impact=event.price_impact,
            volume_impact=event.volume_impact,
            duration=event.duration,
        )
        self._write_event(record)

    def log_trade(self, trade) -> None:
        """Log a filled Trade."""
        record = TradeRecord(
            tick=trade.tick,
            trade_id=trade.id,
            player_id=trade.player_id,
            stock_id=trade.stock_id,
            action=trade.action.value,
            quantity=trade.quantity,
            price=trade.price,
        )
        self._write_event(record)

    def log_tick(self, result) -> None:
        """Log a TickResult summary (only when log_ticks is enabled)."""
        if not self.log_ticks:
            return
        record = TickSummaryRecord(
            tick=result.tick,
            prices={s.ticker: s.price for s in result.stocks},
            halted=[s.ticker for s in result.stocks if s.halted],
        )
        self._write_event(record)

    def log_session_end(self, round: int, tick: int, stocks) -> None:
        record = SessionEndRecord(
            round=round,
            tick=tick,
            closing_prices={s.ticker: s.price for s in stocks},
        )
        self._write_event(record)

    def _write_event(
        self, event: MarketEventRecord | TradeRecord | TickSummaryRecord | SessionEndRecord
    ) -> None:
        """Write an event to the JSONL file."""
        if self._file is None:
            return

        data = asdict(event)
        if isinstance(event, MarketEventRecord):
            data["event_type"] = "market_event"
        elif isinstance(event, TradeRecord):
            data["event_type"] = "trade"
        elif isinstance(event, TickSummaryRecord):
            data["event_type"] = "tick_summary"
        else:
            data["event_type"] = "session_end"
        self._file.write(json.dumps(data) + "\n")

    def flush(self) -> None:
        """Push buffered lines to disk so a running session can be tailed."""
        if self._file is not None:
            self._file.flush()

    def close(self) -> None:
        """Close the file; later log calls are dropped."""
        if self._file is None:
            return
        self._file.close()
        self._file = None

    def __enter__(self) -> "EventLogger":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


def load_events(log_path: Path, event_type: str | None = None) -> list[dict[str, object]]:
    """
    Read a session log back as dictionaries, in write order.

    Args:
        log_path: Path to the JSONL file
        event_type: Keep only records with this tag ("market_event", "trade",
            "tick_summary" or "session_end"); None keeps everything
    """
    with open(log_path) as f:
        records = [json.loads(line) for line in f if line.strip()]
    if event_type is None:
        return records
    return [r for r in records if r["event_type"] == event_type]
