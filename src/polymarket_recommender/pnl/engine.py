"""Realized PnL for one wallet in one finalized market.

Pure computation: callers supply the market's resolution state, the wallet's
transactions in that market and its aggregate buy/sell volumes. Settled
winning shares are valued at $1.00; losing shares settle worthless.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

WINNING_SHARE_VALUE = 1.0
# Net share counts within this of zero are treated as zero (float residue).
SHARE_EPSILON = 1e-9


class TradeLike(Protocol):
    side: str
    token_id: str | None
    shares_normalized: float


class PnlCase(str, Enum):
    """Which settlement rule produced a PnL value."""

    HOLDS_WINNING = "holds_winning"
    CLOSED_OUT = "closed_out"
    LOSING_POSITION = "losing_position"


@dataclass(frozen=True)
class MarketPnl:
    """Result of a PnL computation.

    Attributes:
        pnl: Realized profit and loss in USD.
        winning_side_held: True when the wallet ends holding winning shares.
        case: Settlement rule that applied.
        net_winning_shares: Net shares of the winning outcome token.
        net_losing_shares: Net shares of any other outcome token.
    """

    pnl: float
    winning_side_held: bool
    case: PnlCase
    net_winning_shares: float
    net_losing_shares: float


def net_shares_by_side(
    transactions: Iterable[TradeLike], winning_token_id: str | None
) -> tuple[float, float]:
    """Net (BUY minus SELL) shares on the winning token and on everything else."""
    winning = 0.0
    losing = 0.0
    for tx in transactions:
        signed = tx.shares_normalized if tx.side.upper() == "BUY" else -tx.shares_normalized
        if winning_token_id is not None and tx.token_id == winning_token_id:
            winning += signed
        else:
            losing += signed
    return winning, losing


def _snap(shares: float) -> float:
    return 0.0 if abs(shares) < SHARE_EPSILON else shares


def compute_market_pnl(
    *,
    status: str,
    winning_token_id: str | None,
    transactions: Iterable[TradeLike],
    total_volume_buy: float,
    total_volume_sell: float,
    net_shares: float,
) -> MarketPnl | None:
    """Compute realized PnL, or None when the market is not finalized.

    The three settlement cases are evaluated in order. The closed-out and
    losing-position cases share a formula; they are reported separately so
    ``case`` tells them apart.
    """
    if status != "closed" or not winning_token_id:
        return None

    txs = list(transactions)
    if not txs:
        return None

    net_winning, net_losing = net_shares_by_side(txs, winning_token_id)
    net_winning = _snap(net_winning)
    net_losing = _snap(net_losing)
    net_shares = _snap(net_shares)

    if net_winning > 0:
        pnl = net_winning * WINNING_SHARE_VALUE - total_volume_buy + total_volume_sell
        case = PnlCase.HOLDS_WINNING
    elif net_winning == 0 and net_shares == 0:
        pnl = total_volume_sell - total_volume_buy
        case = PnlCase.CLOSED_OUT
    else:
        pnl = total_volume_sell - total_volume_buy
        case = PnlCase.LOSING_POSITION

    return MarketPnl(
        pnl=pnl,
        winning_side_held=net_winning > 0,
        case=case,
        net_winning_shares=net_winning,
        net_losing_shares=net_losing,
    )
