"""PnL layer - Realized profit and loss per market and category."""

from polymarket_recommender.pnl.engine import MarketPnl, PnlCase, compute_market_pnl

__all__ = [
    "MarketPnl",
    "PnlCase",
    "compute_market_pnl",
]
