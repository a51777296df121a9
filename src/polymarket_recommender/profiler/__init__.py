"""Wallet profiling layer - Interest vectors and profile views."""

from polymarket_recommender.profiler.interest import build_interest_vector, interest_weight

__all__ = [
    "build_interest_vector",
    "interest_weight",
]
