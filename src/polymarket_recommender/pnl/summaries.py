"""Summary builders: transactions -> market summaries -> category summaries."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from polymarket_recommender.storage.repos import (
    CategorySummaryDTO,
    MarketSummaryDTO,
    TransactionDTO,
)

UNCATEGORIZED = "Uncategorized"


def build_market_summaries(transactions: Iterable[TransactionDTO]) -> list[MarketSummaryDTO]:
    """Replay transactions into one summary per (wallet, market).

    PnL fields are left unset; they are filled by the PnL recompute.
    """
    summaries: dict[tuple[str, str], MarketSummaryDTO] = {}
    for tx in transactions:
        wallet = tx.wallet_address.lower()
        key = (wallet, tx.market_slug)
        summary = summaries.get(key)
        if summary is None:
            summary = MarketSummaryDTO(
                wallet_address=wallet,
                market_slug=tx.market_slug,
                first_interaction=tx.timestamp,
                last_interaction=tx.timestamp,
            )
            summaries[key] = summary

        volume = tx.volume_usd or 0.0
        shares = tx.shares_normalized or 0.0
        if tx.side.upper() == "BUY":
            summary.total_volume_buy += volume
            summary.net_shares += shares
        else:
            summary.total_volume_sell += volume
            summary.net_shares -= shares
        summary.total_volume += volume
        summary.total_interactions += 1

        if summary.first_interaction is None or tx.timestamp < summary.first_interaction:
            summary.first_interaction = tx.timestamp
        if summary.last_interaction is None or tx.timestamp > summary.last_interaction:
            summary.last_interaction = tx.timestamp

    return list(summaries.values())


@dataclass
class _CategoryTotals:
    volume: float = 0.0
    interactions: int = 0
    pnl: float = 0.0
    finalized: int = 0
    open: int = 0


def build_category_summaries(
    wallet_address: str,
    market_summaries: Iterable[MarketSummaryDTO],
    categories: Mapping[str, str | None],
) -> list[CategorySummaryDTO]:
    """Group a wallet's market summaries by market category.

    Volume and interactions are always summed. PnL and the finalized count
    only include summaries that are finalized with a PnL value; every other
    summary counts as open.
    """
    totals: dict[str, _CategoryTotals] = {}
    for summary in market_summaries:
        category = categories.get(summary.market_slug) or UNCATEGORIZED
        bucket = totals.setdefault(category, _CategoryTotals())
        bucket.volume += summary.total_volume or 0.0
        bucket.interactions += summary.total_interactions or 0
        if summary.is_finalized and summary.pnl is not None:
            bucket.pnl += summary.pnl
            bucket.finalized += 1
        else:
            bucket.open += 1

    wallet = wallet_address.lower()
    return [
        CategorySummaryDTO(
            wallet_address=wallet,
            category=category,
            total_volume=bucket.volume,
            total_interactions=bucket.interactions,
            pnl=bucket.pnl,
            finalized_markets_count=bucket.finalized,
            open_markets_count=bucket.open,
        )
        for category, bucket in sorted(totals.items())
    ]
