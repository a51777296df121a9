"""Polymarket Recommender - personalized prediction-market recommendations.

Combines per-wallet trading history with semantic market embeddings to rank
markets for a wallet, and computes realized PnL per market and category.
"""

__version__ = "0.1.0"
