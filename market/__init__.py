"""
market - Core Market Simulation (Trader Arena)

This package contains the tick-driven simulation of a small, illiquid
equities market. Every stochastic function draws from an injectable
RandomSource so a seeded session is exactly reproducible.

Modules:
    catalog: Static seed data and initial instrument set
    price_model: Per-tick price, momentum and volume dynamics
    orderbook: Synthetic depth-of-book snapshots
    events: Randomized market catalysts and halts
    market: The tick step function and engine state machine
    session: Threaded driver that owns the timer and serializes writers
"""

__version__ = "1.0.0"
