"""Test that the project setup is working correctly."""

import polymarket_recommender


def test_version() -> None:
    """Test that version is defined."""
    assert polymarket_recommender.__version__ == "0.1.0"


def test_import_modules() -> None:
    """Test that all submodules can be imported."""
    from polymarket_recommender import embedding
    from polymarket_recommender import ingestor
    from polymarket_recommender import pnl
    from polymarket_recommender import profiler
    from polymarket_recommender import recommend
    from polymarket_recommender import storage

    # Just verify imports work
    assert embedding is not None
    assert ingestor is not None
    assert pnl is not None
    assert profiler is not None
    assert recommend is not None
    assert storage is not None
