"""Allow ``python -m polymarket_recommender``."""

from polymarket_recommender.cli import main

main()
