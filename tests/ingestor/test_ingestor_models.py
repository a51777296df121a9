"""Tests for ingestor data models."""

from datetime import UTC, datetime

import pytest

from polymarket_recommender.ingestor.models import DomeActivity, DomeMarket, DomeOrder


class TestDomeOrder:
    """Tests for DomeOrder."""

    def test_from_dict(self) -> None:
        order = DomeOrder.from_dict(
            {
                "market_slug": "will-btc-hit-100k",
                "side": "buy",
                "price": "0.42",
                "shares": 10_000_000,
                "shares_normalized": 10,
                "timestamp": 1735689600,
                "token_id": 123456,
                "order_hash": "0xorder",
                "title": "Will BTC hit $100k?",
            }
        )

        assert order.side == "BUY"
        assert order.price == 0.42
        assert order.token_id == "123456"
        assert order.timestamp == datetime(2025, 1, 1, tzinfo=UTC)
        assert order.volume_usd == pytest.approx(4.2)
        assert order.tx_hash is None

    def test_iso_timestamp(self) -> None:
        order = DomeOrder.from_dict({"market_slug": "m", "timestamp": "2025-01-01T00:00:00Z"})

        assert order.timestamp == datetime(2025, 1, 1, tzinfo=UTC)

    def test_missing_timestamp(self) -> None:
        with pytest.raises(ValueError):
            DomeOrder.from_dict({"market_slug": "m"})


class TestDomeMarket:
    """Tests for DomeMarket."""

    def test_resolved_market(self) -> None:
        market = DomeMarket.from_dict(
            {
                "market_slug": "m",
                "title": "Market",
                "tags": ["Crypto", "Bitcoin"],
                "status": "closed",
                "side_a": {"id": "yes-token", "label": "Yes"},
                "side_b": {"id": "no-token", "label": "No"},
                "winning_side": {"id": "yes-token", "label": "Yes"},
                "volume_total": "1234.5",
                "end_time": 1735689600,
                "image": "https://img.test/m.png",
            }
        )

        assert market.tags == ("Crypto", "Bitcoin")
        assert market.winning_side == "yes-token"
        assert market.side_a_id == "yes-token"
        assert market.side_b_id == "no-token"
        assert market.volume_total == 1234.5
        assert market.end_time == datetime(2025, 1, 1, tzinfo=UTC)
        assert market.image_url == "https://img.test/m.png"
        assert [o.to_dict() for o in market.outcomes] == [
            {"id": "yes-token", "label": "Yes"},
            {"id": "no-token", "label": "No"},
        ]

    def test_defaults(self) -> None:
        market = DomeMarket.from_dict({"market_slug": "m", "volume_total": -5})

        assert market.status == "open"
        assert market.winning_side is None
        assert market.volume_total == 0.0
        assert market.tags == ()
        assert market.image_url is None
        assert market.outcomes == ()

    def test_requires_slug(self) -> None:
        with pytest.raises(KeyError):
            DomeMarket.from_dict({"title": "No slug"})


class TestDomeActivity:
    """Tests for DomeActivity."""

    def test_from_dict(self) -> None:
        activity = DomeActivity.from_dict(
            {"side": "REDEEM", "market_slug": "m", "timestamp": 1735689600, "shares_normalized": 3}
        )

        assert activity.side == "REDEEM"
        assert activity.shares_normalized == 3.0
