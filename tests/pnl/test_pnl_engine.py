"""Tests for realized PnL computation."""

from dataclasses import dataclass

import pytest

from polymarket_recommender.pnl.engine import (
    PnlCase,
    compute_market_pnl,
    net_shares_by_side,
)

WIN = "token-yes"
LOSE = "token-no"


@dataclass
class Trade:
    side: str
    token_id: str | None
    shares_normalized: float


def pnl_for(trades: list[Trade], *, buy: float, sell: float, status: str = "closed"):
    net = sum(t.shares_normalized if t.side == "BUY" else -t.shares_normalized for t in trades)
    return compute_market_pnl(
        status=status,
        winning_token_id=WIN,
        transactions=trades,
        total_volume_buy=buy,
        total_volume_sell=sell,
        net_shares=net,
    )


class TestNetSharesBySide:
    """Tests for net_shares_by_side."""

    def test_splits_by_token(self) -> None:
        trades = [
            Trade("BUY", WIN, 10),
            Trade("SELL", WIN, 3),
            Trade("BUY", LOSE, 5),
            Trade("buy", None, 1),
        ]

        assert net_shares_by_side(trades, WIN) == (7.0, 6.0)

    def test_no_winning_token(self) -> None:
        assert net_shares_by_side([Trade("BUY", WIN, 2)], None) == (0.0, 2.0)


class TestComputeMarketPnl:
    """Tests for compute_market_pnl."""

    def test_holds_winning_shares(self) -> None:
        """10 winning shares bought for $4 settle at $10."""
        result = pnl_for([Trade("BUY", WIN, 10)], buy=4.0, sell=0.0)

        assert result is not None
        assert result.pnl == pytest.approx(6.0)
        assert result.case is PnlCase.HOLDS_WINNING
        assert result.winning_side_held is True

    def test_fully_closed_position(self) -> None:
        """Bought for $5, sold everything for $7."""
        result = pnl_for([Trade("BUY", WIN, 10), Trade("SELL", WIN, 10)], buy=5.0, sell=7.0)

        assert result is not None
        assert result.pnl == pytest.approx(2.0)
        assert result.case is PnlCase.CLOSED_OUT
        assert result.winning_side_held is False

    def test_float_residue_counts_as_closed(self) -> None:
        """0.1 + 0.2 - 0.3 leaves ~5.5e-17 shares; the position is closed."""
        trades = [Trade("BUY", WIN, 0.1), Trade("BUY", WIN, 0.2), Trade("SELL", WIN, 0.3)]

        result = pnl_for(trades, buy=0.15, sell=0.2)

        assert result is not None
        assert result.case is PnlCase.CLOSED_OUT
        assert result.winning_side_held is False
        assert result.net_winning_shares == 0.0
        assert result.pnl == pytest.approx(0.05)

    def test_losing_position(self) -> None:
        result = pnl_for([Trade("BUY", LOSE, 10)], buy=6.0, sell=0.0)

        assert result is not None
        assert result.pnl == pytest.approx(-6.0)
        assert result.case is PnlCase.LOSING_POSITION
        assert result.winning_side_held is False
        assert result.net_losing_shares == 10.0

    def test_partial_exit_of_winning_side(self) -> None:
        trades = [Trade("BUY", WIN, 10), Trade("SELL", WIN, 4)]

        result = pnl_for(trades, buy=5.0, sell=3.0)

        assert result is not None
        assert result.pnl == pytest.approx(6.0 - 5.0 + 3.0)
        assert result.net_winning_shares == 6.0

    def test_open_market_has_no_pnl(self) -> None:
        assert pnl_for([Trade("BUY", WIN, 10)], buy=4.0, sell=0.0, status="open") is None

    def test_closed_without_winner_has_no_pnl(self) -> None:
        result = compute_market_pnl(
            status="closed",
            winning_token_id=None,
            transactions=[Trade("BUY", WIN, 10)],
            total_volume_buy=4.0,
            total_volume_sell=0.0,
            net_shares=10.0,
        )

        assert result is None

    def test_no_transactions(self) -> None:
        assert pnl_for([], buy=0.0, sell=0.0) is None
