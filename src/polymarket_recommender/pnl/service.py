"""PnL recomputation against storage.

One wallet is processed sequentially: every market's PnL is written before
the category rollup reads it back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from polymarket_recommender.pnl.engine import compute_market_pnl
from polymarket_recommender.pnl.summaries import build_category_summaries, build_market_summaries
from polymarket_recommender.storage.repos import (
    CategorySummaryRepository,
    MarketRepository,
    MarketSummaryRepository,
    TransactionRepository,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from contextlib import AbstractAsyncContextManager

    from sqlalchemy.ext.asyncio import AsyncSession

    SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WalletPnlResult:
    wallet_address: str
    markets_seen: int
    markets_finalized: int
    total_pnl: float
    categories: int


@dataclass(frozen=True)
class PnlRunStats:
    wallets_processed: int
    wallets_failed: int


class PnlService:
    """Computes and persists per-market PnL and category rollups."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self._markets = MarketRepository(session)
        self._transactions = TransactionRepository(session)
        self._summaries = MarketSummaryRepository(session)
        self._categories = CategorySummaryRepository(session)

    async def compute_market_pnl(self, wallet_address: str, market_slug: str) -> float | None:
        """Compute and persist PnL for one wallet in one market.

        Returns None when the market is unknown or not finalized, or the
        wallet has no summary or transactions there.
        """
        wallet = wallet_address.lower()
        summary = await self._summaries.get(wallet, market_slug)
        if summary is None:
            return None
        market = await self._markets.get(market_slug)
        if market is None:
            return None

        transactions = await self._transactions.list_for_wallet_market(wallet, market_slug)
        result = compute_market_pnl(
            status=market.status,
            winning_token_id=market.winning_token_id,
            transactions=transactions,
            total_volume_buy=summary.total_volume_buy,
            total_volume_sell=summary.total_volume_sell,
            net_shares=summary.net_shares,
        )
        if result is None:
            return None

        await self._summaries.set_pnl(
            wallet,
            market_slug,
            pnl=result.pnl,
            winning_side_held=result.winning_side_held,
        )
        logger.debug(
            "PnL %s/%s = %.4f (%s)", wallet, market_slug, result.pnl, result.case.value
        )
        return result.pnl

    async def rebuild_category_summaries(self, wallet_address: str) -> int:
        """Rebuild every category row for the wallet; stale categories are deleted."""
        wallet = wallet_address.lower()
        summaries = await self._summaries.list_for_wallet(wallet)
        categories = await self._markets.get_categories(s.market_slug for s in summaries)
        rows = build_category_summaries(wallet, summaries, categories)
        for row in rows:
            await self._categories.upsert(row)
        deleted = await self._categories.delete_other_categories(
            wallet, [row.category for row in rows]
        )
        if deleted:
            logger.info("Removed %d stale category rows for %s", deleted, wallet)
        return len(rows)

    async def recompute_wallet_pnl_and_categories(self, wallet_address: str) -> WalletPnlResult:
        wallet = wallet_address.lower()
        summaries = await self._summaries.list_for_wallet(wallet)
        finalized = 0
        total = 0.0
        for summary in summaries:
            pnl = await self.compute_market_pnl(wallet, summary.market_slug)
            if pnl is not None:
                finalized += 1
                total += pnl
        categories = await self.rebuild_category_summaries(wallet)
        return WalletPnlResult(
            wallet_address=wallet,
            markets_seen=len(summaries),
            markets_finalized=finalized,
            total_pnl=total,
            categories=categories,
        )

    async def rebuild_wallet_market_summaries(self, wallet_address: str) -> int:
        """Replay the wallet's transaction log into market summaries."""
        transactions = await self._transactions.list_for_wallet(wallet_address)
        summaries = build_market_summaries(transactions)
        await self._summaries.upsert_volumes(summaries)
        return len(summaries)


async def recompute_all_wallets(
    session_factory: SessionFactory, *, wallets: list[str] | None = None
) -> PnlRunStats:
    """Recompute PnL and categories wallet by wallet, one transaction each.

    A failing wallet is logged and skipped.
    """
    if wallets is None:
        async with session_factory() as session:
            wallets = await MarketSummaryRepository(session).list_wallets()
    processed = 0
    failed = 0
    for wallet in wallets:
        try:
            async with session_factory() as session:
                result = await PnlService(session).recompute_wallet_pnl_and_categories(wallet)
        except Exception as e:
            failed += 1
            logger.error("PnL recompute failed for %s: %s", wallet, e)
            continue
        processed += 1
        logger.info(
            "PnL %s: %d/%d finalized, total=%.2f, categories=%d",
            wallet,
            result.markets_finalized,
            result.markets_seen,
            result.total_pnl,
            result.categories,
        )
    return PnlRunStats(wallets_processed=processed, wallets_failed=failed)


async def rebuild_all_market_summaries(
    session_factory: SessionFactory, *, wallets: list[str] | None = None
) -> PnlRunStats:
    """Rebuild market summaries from the transaction log for every wallet."""
    if wallets is None:
        async with session_factory() as session:
            wallets = await TransactionRepository(session).list_wallets()
    processed = 0
    failed = 0
    for wallet in wallets:
        try:
            async with session_factory() as session:
                count = await PnlService(session).rebuild_wallet_market_summaries(wallet)
        except Exception as e:
            failed += 1
            logger.error("Summary rebuild failed for %s: %s", wallet, e)
            continue
        processed += 1
        logger.info("Rebuilt %d market summaries for %s", count, wallet)
    return PnlRunStats(wallets_processed=processed, wallets_failed=failed)
