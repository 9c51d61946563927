# tests/unit/market/test_event_logger.py
"""Tests for the JSONL session event logger."""

from market.event_logger import EventLogger, load_events
from market.market import TickResult
from market.types import MarketEvent, MarketEventType

from ledger.player import Trade, TradeAction


def sample_event() -> MarketEvent:
    return MarketEvent(
        id="ev1",
        type=MarketEventType.SHORT_SQUEEZE,
        title="NXRA Short Squeeze Developing",
        description="",
        affected_stock_ids=("s1",),
        price_impact=1.5,
        volume_impact=12.0,
        duration=30,
        timestamp=0.0,
        tick=17,
    )


def sample_trade() -> Trade:
    return Trade(
        id="t1",
        player_id="p1",
        stock_id="s1",
        action=TradeAction.BUY,
        quantity=100,
        price=5.0,
        timestamp=1.0,
        tick=18,
    )


class TestEventLogger:
    def test_writes_jsonl(self, tmp_path, stock_factory):
        path = tmp_path / "logs" / "events.jsonl"
        stock = stock_factory(ticker="NXRA", price=3.5)
        with EventLogger(path, log_ticks=True) as log:
            log.log_market_event(sample_event())
            log.log_trade(sample_trade())
            log.log_tick(TickResult(stocks=[stock], new_events=[], tick=18, session_complete=False))
            log.log_session_end(2, 390, [stock])

        events = load_events(path)
        assert [e["event_type"] for e in events] == [
            "market_event", "trade", "tick_summary", "session_end",
        ]

        market_event, trade, tick, end = events
        assert market_event["type"] == "short_squeeze"
        assert market_event["stock_ids"] == ["s1"]
        assert trade["action"] == "buy"
        assert trade["quantity"] == 100
        assert tick["prices"] == {"NXRA": 3.5}
        assert tick["halted"] == []
        assert end["round"] == 2
        assert end["closing_prices"] == {"NXRA": 3.5}

    def test_tick_summaries_off_by_default(self, tmp_path, stock_factory):
        path = tmp_path / "events.jsonl"
        with EventLogger(path) as log:
            log.log_tick(TickResult(stocks=[stock_factory()], new_events=[], tick=1, session_complete=False))
        assert load_events(path) == []

    def test_writes_after_close_ignored(self, tmp_path):
        path = tmp_path / "events.jsonl"
        log = EventLogger(path)
        log.log_trade(sample_trade())
        log.close()
        log.log_trade(sample_trade())
        log.close()
        assert len(load_events(path)) == 1

    def test_load_events_filters_by_type(self, tmp_path, stock_factory):
        path = tmp_path / "events.jsonl"
        with EventLogger(path) as log:
            log.log_trade(sample_trade())
            log.log_market_event(sample_event())
            log.log_trade(sample_trade())
            log.log_session_end(1, 390, [stock_factory()])

        trades = load_events(path, event_type="trade")
        assert len(trades) == 2
        assert all(t["trade_id"] == "t1" for t in trades)
        assert load_events(path, event_type="tick_summary") == []
        assert len(load_events(path)) == 4
