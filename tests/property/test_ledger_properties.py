# tests/property/test_ledger_properties.py
"""
Property-based tests for ledger invariants using Hypothesis.

Random order flow against a fixed book must never drive cash or shares
negative, and the cash balance must always equal starting cash minus
buys plus sells.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from ledger.execution import execute_trade
from ledger.fifo import match_trades
from ledger.player import TradeAction, add_player
from market.types import OrderBook, OrderBookLevel, Stock, StockFloat

# =============================================================================
# Strategies for generating test data
# =============================================================================


def quoted_stock(bid: float, ask: float) -> Stock:
    return Stock(
        id="s1",
        ticker="PROP",
        name="Property Test Inc",
        sector="Technology",
        price=(bid + ask) / 2,
        previous_close=bid,
        open=bid,
        high=ask,
        low=bid,
        price_history=[bid],
        volatility=0.05,
        float_profile=StockFloat(total_shares=10_000_000, float_shares=5_000_000, short_interest=0),
        order_book=OrderBook(
            bids=(OrderBookLevel(bid, 1_000),),
            asks=(OrderBookLevel(ask, 1_000),),
            spread=ask - bid,
            spread_percent=0.0,
        ),
    )


@st.composite
def quotes(draw):
    bid = draw(st.floats(min_value=0.01, max_value=200.0))
    spread = draw(st.floats(min_value=0.0, max_value=2.0))
    return bid, bid + spread


orders = st.lists(
    st.tuples(
        st.sampled_from([TradeAction.BUY, TradeAction.SELL]),
        st.integers(min_value=-5, max_value=2_000),
        quotes(),
    ),
    max_size=40,
)


# =============================================================================
# Property Tests: cash and share conservation
# =============================================================================


class TestLedgerInvariants:
    @given(orders)
    @settings(max_examples=150, deadline=None)
    def test_cash_and_shares_conserved(self, flow):
        """Cash = start - buys + sells; balances never go negative."""
        player = add_player("prop", starting_cash=10_000)
        expected_cash = 10_000.0
        expected_shares = 0

        for ts, (action, quantity, (bid, ask)) in enumerate(flow):
            result = execute_trade(
                player, quoted_stock(bid, ask), action, quantity, clock=lambda t=ts: float(t)
            )
            if result:
                if action is TradeAction.BUY:
                    expected_cash -= result.notional
                    expected_shares += quantity
                else:
                    expected_cash += result.notional
                    expected_shares -= quantity

            assert player.cash >= -1e-6
            assert player.position("s1") >= 0
            assert player.position("s1") == expected_shares
            assert abs(player.cash - expected_cash) < 1e-6
            assert "s1" in player.portfolio or expected_shares == 0

    @given(orders)
    @settings(max_examples=100, deadline=None)
    def test_fifo_open_quantity_matches_portfolio(self, flow):
        """Open FIFO lots always sum to the held position."""
        player = add_player("prop", starting_cash=10_000)
        for ts, (action, quantity, (bid, ask)) in enumerate(flow):
            execute_trade(player, quoted_stock(bid, ask), action, quantity, clock=lambda t=ts: float(t))

        book = match_trades(player.trade_history)
        open_quantity = sum(lot.remaining for lot in book.open_lots.get("s1", []))
        assert open_quantity == player.position("s1")
        assert sum(c.quantity for c in book.closed) == sum(
            t.quantity for t in player.trade_history if t.action is TradeAction.SELL
        )
