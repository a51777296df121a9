"""Repository pattern implementations for data access.

Repositories take an ``AsyncSession`` and return dataclass DTOs. Wallet
addresses are lower-cased on the way in; embeddings are decoded through the
vector codec on the way out. Upserts are keyed by natural primary keys so
repeated jobs converge instead of duplicating rows.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from polymarket_recommender.embedding.codec import decode_vector, encode_vector, to_vector_literal
from polymarket_recommender.embedding.similarity import cosine, top_k
from polymarket_recommender.storage.models import (
    MarketModel,
    WalletCategorySummaryModel,
    WalletInterestProfileModel,
    WalletMarketSummaryModel,
    WalletTransactionModel,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def _insert(session: AsyncSession, model: type[Any]) -> Any:
    """Dialect-specific INSERT supporting ON CONFLICT."""
    if session.get_bind().dialect.name == "postgresql":
        return pg_insert(model)
    return sqlite_insert(model)


# ============================================================================
# Markets
# ============================================================================


@dataclass
class MarketDTO:
    """Data transfer object for markets."""

    market_slug: str
    title: str = ""
    category: str | None = None
    tags: list[str] = field(default_factory=list)
    status: str = "open"
    volume_total: float = 0.0
    condition_id: str | None = None
    winning_side: str | None = None
    side_a_id: str | None = None
    side_b_id: str | None = None
    end_time: datetime | None = None
    image_url: str | None = None
    outcomes: list[dict[str, Any]] = field(default_factory=list)
    embedding: list[float] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_finalized(self) -> bool:
        return self.status == "closed" and bool(self.winning_side)

    @property
    def winning_token_id(self) -> str | None:
        if not self.winning_side:
            return None
        if self.winning_side == "side_a":
            return self.side_a_id
        if self.winning_side == "side_b":
            return self.side_b_id
        return self.winning_side

    @classmethod
    def from_model(cls, model: MarketModel) -> MarketDTO:
        return cls(
            market_slug=model.market_slug,
            title=model.title or "",
            category=model.category,
            tags=list(model.tags or []),
            status=model.status,
            volume_total=float(model.volume_total or 0.0),
            condition_id=model.condition_id,
            winning_side=model.winning_side,
            side_a_id=model.side_a_id,
            side_b_id=model.side_b_id,
            end_time=model.end_time,
            image_url=model.image_url,
            outcomes=list(model.outcomes or []),
            embedding=decode_vector(model.embedding),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


class MarketRepository:
    """Repository for market metadata and embeddings."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, market_slug: str) -> MarketDTO | None:
        result = await self.session.execute(
            select(MarketModel).where(MarketModel.market_slug == market_slug)
        )
        model = result.scalar_one_or_none()
        return MarketDTO.from_model(model) if model else None

    async def get_many(self, market_slugs: Iterable[str]) -> list[MarketDTO]:
        slugs = list(dict.fromkeys(market_slugs))
        if not slugs:
            return []
        result = await self.session.execute(
            select(MarketModel).where(MarketModel.market_slug.in_(slugs))
        )
        return [MarketDTO.from_model(m) for m in result.scalars().all()]

    async def get_embeddings(self, market_slugs: Iterable[str]) -> dict[str, list[float]]:
        """Decoded embeddings for the given slugs; markets without one are absent."""
        slugs = list(dict.fromkeys(market_slugs))
        if not slugs:
            return {}
        result = await self.session.execute(
            select(MarketModel.market_slug, MarketModel.embedding).where(
                MarketModel.market_slug.in_(slugs) & MarketModel.embedding.is_not(None)
            )
        )
        out: dict[str, list[float]] = {}
        for slug, raw in result.all():
            vector = decode_vector(raw)
            if vector:
                out[slug] = vector
        return out

    async def get_categories(self, market_slugs: Iterable[str]) -> dict[str, str | None]:
        slugs = list(dict.fromkeys(market_slugs))
        if not slugs:
            return {}
        result = await self.session.execute(
            select(MarketModel.market_slug, MarketModel.category).where(
                MarketModel.market_slug.in_(slugs)
            )
        )
        return {slug: category for slug, category in result.all()}

    async def list_all(self) -> list[MarketDTO]:
        result = await self.session.execute(select(MarketModel).order_by(MarketModel.market_slug))
        return [MarketDTO.from_model(m) for m in result.scalars().all()]

    async def list_popular_open(self, *, limit: int) -> list[MarketDTO]:
        """Open markets by descending total volume."""
        result = await self.session.execute(
            select(MarketModel)
            .where(MarketModel.status == "open")
            .order_by(MarketModel.volume_total.desc(), MarketModel.market_slug)
            .limit(limit)
        )
        return [MarketDTO.from_model(m) for m in result.scalars().all()]

    async def list_missing_embeddings(self, *, limit: int | None = None) -> list[MarketDTO]:
        stmt = (
            select(MarketModel)
            .where(MarketModel.embedding.is_(None))
            .order_by(MarketModel.market_slug)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return [MarketDTO.from_model(m) for m in result.scalars().all()]

    async def upsert(self, dto: MarketDTO, *, now: datetime | None = None) -> None:
        """Upsert market metadata.

        An empty ``dto.embedding`` never clears a stored embedding.
        """
        now = now or datetime.now(UTC)
        values = {
            "market_slug": dto.market_slug,
            "title": dto.title,
            "condition_id": dto.condition_id,
            "category": dto.category,
            "tags": list(dto.tags),
            "status": dto.status,
            "winning_side": dto.winning_side,
            "side_a_id": dto.side_a_id,
            "side_b_id": dto.side_b_id,
            "volume_total": dto.volume_total,
            "end_time": dto.end_time,
            "image_url": dto.image_url,
            "outcomes": list(dto.outcomes),
            "embedding": encode_vector(dto.embedding) if dto.embedding else None,
        }
        stmt = _insert(self.session, MarketModel).values(**values, created_at=now, updated_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=["market_slug"],
            set_={
                "title": stmt.excluded.title,
                "condition_id": stmt.excluded.condition_id,
                "category": stmt.excluded.category,
                "tags": stmt.excluded.tags,
                "status": stmt.excluded.status,
                "winning_side": stmt.excluded.winning_side,
                "side_a_id": stmt.excluded.side_a_id,
                "side_b_id": stmt.excluded.side_b_id,
                "volume_total": stmt.excluded.volume_total,
                "end_time": stmt.excluded.end_time,
                "image_url": stmt.excluded.image_url,
                "outcomes": stmt.excluded.outcomes,
                "embedding": sa.func.coalesce(stmt.excluded.embedding, MarketModel.embedding),
                "updated_at": now,
            },
        )
        await self.session.execute(stmt)
        await self.session.flush()

    async def cache_embedding(
        self,
        *,
        market_slug: str,
        title: str,
        embedding: list[float],
        now: datetime | None = None,
    ) -> None:
        """Store an embedding fetched on demand, creating a stub market if needed."""
        now = now or datetime.now(UTC)
        stmt = _insert(self.session, MarketModel).values(
            market_slug=market_slug,
            title=title,
            tags=[],
            status="open",
            outcomes=[],
            volume_total=0.0,
            embedding=encode_vector(embedding),
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["market_slug"],
            set_={"embedding": stmt.excluded.embedding, "updated_at": now},
        )
        await self.session.execute(stmt)
        await self.session.flush()

    async def set_embedding(self, market_slug: str, embedding: list[float]) -> None:
        await self.session.execute(
            update(MarketModel)
            .where(MarketModel.market_slug == market_slug)
            .values(embedding=encode_vector(embedding), updated_at=datetime.now(UTC))
        )
        await self.session.flush()

    async def set_category(self, market_slug: str, category: str) -> None:
        await self.session.execute(
            update(MarketModel)
            .where(MarketModel.market_slug == market_slug)
            .values(category=category, updated_at=datetime.now(UTC))
        )
        await self.session.flush()

    async def match_markets(
        self,
        *,
        query_embedding: list[float],
        match_threshold: float,
        match_count: int,
    ) -> list[tuple[MarketDTO, float]]:
        """Markets whose cosine similarity to the query exceeds the threshold.

        Uses pgvector on PostgreSQL; elsewhere scans embedded markets and ranks
        them in Python with the same threshold and top-k contract.
        """
        if match_count <= 0 or not query_embedding:
            return []

        bind = self.session.get_bind()
        if bind.dialect.name == "postgresql":
            # Query vector is passed as a pgvector literal and cast in SQL.
            distance = sa.text("embedding <=> (:q)::vector")
            stmt = (
                select(MarketModel)
                .where(MarketModel.embedding.is_not(None))
                .where(sa.text("1 - (embedding <=> (:q)::vector) > :threshold"))
                .order_by(distance)
                .limit(match_count)
                .params(q=to_vector_literal(query_embedding), threshold=match_threshold)
            )
            result = await self.session.execute(stmt)
            markets = [MarketDTO.from_model(m) for m in result.scalars().all()]
            return [(m, cosine(query_embedding, m.embedding)) for m in markets]

        result = await self.session.execute(
            select(MarketModel)
            .where(MarketModel.embedding.is_not(None))
            .order_by(MarketModel.market_slug)
        )
        markets = [MarketDTO.from_model(m) for m in result.scalars().all()]
        candidates = [(m, m.embedding) for m in markets if m.embedding]
        return top_k(query_embedding, candidates, threshold=match_threshold, limit=match_count)


# ============================================================================
# Transactions
# ============================================================================


@dataclass
class TransactionDTO:
    """Data transfer object for wallet transactions."""

    wallet_address: str
    market_slug: str
    side: str
    price: float
    shares: float
    shares_normalized: float
    volume_usd: float
    timestamp: datetime
    token_id: str | None = None
    condition_id: str | None = None
    tx_hash: str | None = None
    order_hash: str | None = None

    @property
    def transaction_key(self) -> str:
        if self.order_hash:
            return f"order:{self.order_hash}:{self.wallet_address.lower()}"
        raw = "|".join(
            str(x)
            for x in (
                self.wallet_address.lower(),
                self.market_slug,
                self.side,
                self.token_id,
                self.tx_hash,
                self.price,
                self.shares_normalized,
                self.timestamp.isoformat(),
            )
        )
        return "tx:" + hashlib.sha256(raw.encode()).hexdigest()

    @classmethod
    def from_model(cls, model: WalletTransactionModel) -> TransactionDTO:
        return cls(
            wallet_address=model.wallet_address,
            market_slug=model.market_slug,
            side=model.side,
            price=model.price,
            shares=model.shares,
            shares_normalized=model.shares_normalized,
            volume_usd=model.volume_usd,
            timestamp=model.timestamp,
            token_id=model.token_id,
            condition_id=model.condition_id,
            tx_hash=model.tx_hash,
            order_hash=model.order_hash,
        )


class TransactionRepository:
    """Repository for the append-only wallet transaction log."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def insert_many(self, dtos: list[TransactionDTO]) -> int:
        """Append transactions, ignoring ones already recorded.

        Returns:
            Number of rows submitted (duplicates are silently skipped).
        """
        if not dtos:
            return 0
        rows = [
            {
                "transaction_key": dto.transaction_key,
                "wallet_address": dto.wallet_address.lower(),
                "market_slug": dto.market_slug,
                "side": dto.side,
                "price": dto.price,
                "shares": dto.shares,
                "shares_normalized": dto.shares_normalized,
                "volume_usd": dto.volume_usd,
                "token_id": dto.token_id,
                "condition_id": dto.condition_id,
                "tx_hash": dto.tx_hash,
                "order_hash": dto.order_hash,
                "timestamp": dto.timestamp,
                "created_at": datetime.now(UTC),
            }
            for dto in dtos
        ]
        stmt = _insert(self.session, WalletTransactionModel).values(rows)
        stmt = stmt.on_conflict_do_nothing(index_elements=["transaction_key"])
        await self.session.execute(stmt)
        await self.session.flush()
        return len(rows)

    async def list_for_wallet(self, wallet_address: str) -> list[TransactionDTO]:
        result = await self.session.execute(
            select(WalletTransactionModel)
            .where(WalletTransactionModel.wallet_address == wallet_address.lower())
            .order_by(WalletTransactionModel.timestamp, WalletTransactionModel.id)
        )
        return [TransactionDTO.from_model(m) for m in result.scalars().all()]

    async def list_for_wallet_market(
        self, wallet_address: str, market_slug: str
    ) -> list[TransactionDTO]:
        result = await self.session.execute(
            select(WalletTransactionModel)
            .where(
                (WalletTransactionModel.wallet_address == wallet_address.lower())
                & (WalletTransactionModel.market_slug == market_slug)
            )
            .order_by(WalletTransactionModel.timestamp, WalletTransactionModel.id)
        )
        return [TransactionDTO.from_model(m) for m in result.scalars().all()]

    async def list_wallets(self) -> list[str]:
        result = await self.session.execute(
            select(WalletTransactionModel.wallet_address)
            .distinct()
            .order_by(WalletTransactionModel.wallet_address)
        )
        return list(result.scalars().all())


# ============================================================================
# Market summaries
# ============================================================================


@dataclass
class MarketSummaryDTO:
    """Data transfer object for wallet x market summaries."""

    wallet_address: str
    market_slug: str
    total_volume_buy: float = 0.0
    total_volume_sell: float = 0.0
    total_volume: float = 0.0
    total_interactions: int = 0
    net_shares: float = 0.0
    first_interaction: datetime | None = None
    last_interaction: datetime | None = None
    pnl: float | None = None
    is_finalized: bool = False
    winning_side_held: bool | None = None

    @classmethod
    def from_model(cls, model: WalletMarketSummaryModel) -> MarketSummaryDTO:
        return cls(
            wallet_address=model.wallet_address,
            market_slug=model.market_slug,
            total_volume_buy=model.total_volume_buy,
            total_volume_sell=model.total_volume_sell,
            total_volume=model.total_volume,
            total_interactions=model.total_interactions,
            net_shares=model.net_shares,
            first_interaction=model.first_interaction,
            last_interaction=model.last_interaction,
            pnl=model.pnl,
            is_finalized=model.is_finalized,
            winning_side_held=model.winning_side_held,
        )


class MarketSummaryRepository:
    """Repository for wallet x market summaries."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, wallet_address: str, market_slug: str) -> MarketSummaryDTO | None:
        result = await self.session.execute(
            select(WalletMarketSummaryModel).where(
                (WalletMarketSummaryModel.wallet_address == wallet_address.lower())
                & (WalletMarketSummaryModel.market_slug == market_slug)
            )
        )
        model = result.scalar_one_or_none()
        return MarketSummaryDTO.from_model(model) if model else None

    async def list_for_wallet(self, wallet_address: str) -> list[MarketSummaryDTO]:
        result = await self.session.execute(
            select(WalletMarketSummaryModel)
            .where(WalletMarketSummaryModel.wallet_address == wallet_address.lower())
            .order_by(WalletMarketSummaryModel.market_slug)
        )
        return [MarketSummaryDTO.from_model(m) for m in result.scalars().all()]

    async def list_wallets(self) -> list[str]:
        result = await self.session.execute(
            select(WalletMarketSummaryModel.wallet_address)
            .distinct()
            .order_by(WalletMarketSummaryModel.wallet_address)
        )
        return list(result.scalars().all())

    async def upsert_volumes(self, dtos: list[MarketSummaryDTO]) -> None:
        """Upsert replayed volume/interaction fields, leaving PnL fields intact."""
        if not dtos:
            return
        now = datetime.now(UTC)
        rows = [
            {
                "wallet_address": dto.wallet_address.lower(),
                "market_slug": dto.market_slug,
                "total_volume_buy": dto.total_volume_buy,
                "total_volume_sell": dto.total_volume_sell,
                "total_volume": dto.total_volume,
                "total_interactions": dto.total_interactions,
                "net_shares": dto.net_shares,
                "first_interaction": dto.first_interaction,
                "last_interaction": dto.last_interaction,
                "is_finalized": False,
                "updated_at": now,
            }
            for dto in dtos
        ]
        stmt = _insert(self.session, WalletMarketSummaryModel).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=["wallet_address", "market_slug"],
            set_={
                "total_volume_buy": stmt.excluded.total_volume_buy,
                "total_volume_sell": stmt.excluded.total_volume_sell,
                "total_volume": stmt.excluded.total_volume,
                "total_interactions": stmt.excluded.total_interactions,
                "net_shares": stmt.excluded.net_shares,
                "first_interaction": stmt.excluded.first_interaction,
                "last_interaction": stmt.excluded.last_interaction,
                "updated_at": now,
            },
        )
        await self.session.execute(stmt)
        await self.session.flush()

    async def set_pnl(
        self,
        wallet_address: str,
        market_slug: str,
        *,
        pnl: float,
        winning_side_held: bool,
    ) -> None:
        await self.session.execute(
            update(WalletMarketSummaryModel)
            .where(
                (WalletMarketSummaryModel.wallet_address == wallet_address.lower())
                & (WalletMarketSummaryModel.market_slug == market_slug)
            )
            .values(
                pnl=pnl,
                is_finalized=True,
                winning_side_held=winning_side_held,
                updated_at=datetime.now(UTC),
            )
        )
        await self.session.flush()


# ============================================================================
# Category summaries
# ============================================================================


@dataclass
class CategorySummaryDTO:
    """Data transfer object for wallet x category summaries."""

    wallet_address: str
    category: str
    total_volume: float = 0.0
    total_interactions: int = 0
    pnl: float = 0.0
    finalized_markets_count: int = 0
    open_markets_count: int = 0
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, model: WalletCategorySummaryModel) -> CategorySummaryDTO:
        return cls(
            wallet_address=model.wallet_address,
            category=model.category,
            total_volume=model.total_volume,
            total_interactions=model.total_interactions,
            pnl=model.pnl,
            finalized_markets_count=model.finalized_markets_count,
            open_markets_count=model.open_markets_count,
            updated_at=model.updated_at,
        )


class CategorySummaryRepository:
    """Repository for wallet x category summaries."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_for_wallet(self, wallet_address: str) -> list[CategorySummaryDTO]:
        result = await self.session.execute(
            select(WalletCategorySummaryModel)
            .where(WalletCategorySummaryModel.wallet_address == wallet_address.lower())
            .order_by(WalletCategorySummaryModel.category)
        )
        return [CategorySummaryDTO.from_model(m) for m in result.scalars().all()]

    async def upsert(self, dto: CategorySummaryDTO) -> None:
        now = datetime.now(UTC)
        values = {
            "wallet_address": dto.wallet_address.lower(),
            "category": dto.category,
            "total_volume": dto.total_volume,
            "total_interactions": dto.total_interactions,
            "pnl": dto.pnl,
            "finalized_markets_count": dto.finalized_markets_count,
            "open_markets_count": dto.open_markets_count,
            "updated_at": now,
        }
        stmt = _insert(self.session, WalletCategorySummaryModel).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["wallet_address", "category"],
            set_={
                "total_volume": stmt.excluded.total_volume,
                "total_interactions": stmt.excluded.total_interactions,
                "pnl": stmt.excluded.pnl,
                "finalized_markets_count": stmt.excluded.finalized_markets_count,
                "open_markets_count": stmt.excluded.open_markets_count,
                "updated_at": now,
            },
        )
        await self.session.execute(stmt)
        await self.session.flush()

    async def delete_other_categories(self, wallet_address: str, keep: Iterable[str]) -> int:
        """Delete the wallet's category rows not listed in ``keep``."""
        keep_list = list(keep)
        stmt = delete(WalletCategorySummaryModel).where(
            WalletCategorySummaryModel.wallet_address == wallet_address.lower()
        )
        if keep_list:
            stmt = stmt.where(WalletCategorySummaryModel.category.not_in(keep_list))
        result = await self.session.execute(stmt)
        await self.session.flush()
        return int(result.rowcount or 0)


# ============================================================================
# Interest profiles
# ============================================================================


@dataclass
class InterestProfileDTO:
    """Data transfer object for wallet interest profiles."""

    wallet_address: str
    interest_vector: list[float]
    last_updated: datetime

    @classmethod
    def from_model(cls, model: WalletInterestProfileModel) -> InterestProfileDTO:
        return cls(
            wallet_address=model.wallet_address,
            interest_vector=decode_vector(model.interest_vector),
            last_updated=model.last_updated,
        )


class InterestProfileRepository:
    """Repository for wallet interest vectors."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, wallet_address: str) -> InterestProfileDTO | None:
        result = await self.session.execute(
            select(WalletInterestProfileModel).where(
                WalletInterestProfileModel.wallet_address == wallet_address.lower()
            )
        )
        model = result.scalar_one_or_none()
        return InterestProfileDTO.from_model(model) if model else None

    async def upsert(
        self,
        wallet_address: str,
        interest_vector: list[float],
        *,
        now: datetime | None = None,
    ) -> InterestProfileDTO:
        """Replace the wallet's interest vector wholesale."""
        now = now or datetime.now(UTC)
        values = {
            "wallet_address": wallet_address.lower(),
            "interest_vector": encode_vector(interest_vector),
            "last_updated": now,
        }
        stmt = _insert(self.session, WalletInterestProfileModel).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["wallet_address"],
            set_={
                "interest_vector": stmt.excluded.interest_vector,
                "last_updated": stmt.excluded.last_updated,
            },
        )
        await self.session.execute(stmt)
        await self.session.flush()
        return InterestProfileDTO(
            wallet_address=wallet_address.lower(),
            interest_vector=encode_vector(interest_vector),
            last_updated=now,
        )
