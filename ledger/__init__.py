"""
ledger - Player Accounts, Trade Execution and Scoring

Modules:
    player: Player and Trade records
    execution: Fills trades against the current book snapshot
    fifo: FIFO lot matching, cost basis and PnL (shared by scoring and challenges)
    challenges: Challenge detection over trade history
    scoring: Drawdown, badges, levels and the composite player score
    report: pandas views (trade blotter, leaderboard)
"""
