"""SQLAlchemy models for persistent storage.

This module defines the database schema for markets, the append-only wallet
transaction log, and the summaries and interest profiles derived from it.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from polymarket_recommender.storage.vector import Vector


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class MarketModel(Base):
    """Market metadata, resolution state and (lazily filled) title embedding."""

    __tablename__ = "markets"

    market_slug: Mapped[str] = mapped_column(String(255), primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    condition_id: Mapped[str | None] = mapped_column(String(80), nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    status: Mapped[str] = mapped_column(String(10), nullable=False, default="open")
    # "side_a" / "side_b" (or a raw outcome token id) once the market resolves.
    winning_side: Mapped[str | None] = mapped_column(String(100), nullable=True)
    side_a_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    side_b_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    volume_total: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    # [{"id": token_id, "label": "Yes"}, ...] for side_a then side_b.
    outcomes: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    embedding: Mapped[object | None] = mapped_column(Vector(), nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    __table_args__ = (
        Index("idx_markets_status_volume", "status", "volume_total"),
        Index("idx_markets_category", "category"),
    )


class WalletTransactionModel(Base):
    """Executed wallet trades (append-only, never updated)."""

    __tablename__ = "wallet_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Natural identity of a trade so repeated backfills do not duplicate rows.
    transaction_key: Mapped[str] = mapped_column(String(200), nullable=False)

    wallet_address: Mapped[str] = mapped_column(String(42), nullable=False)
    market_slug: Mapped[str] = mapped_column(String(255), nullable=False)
    side: Mapped[str] = mapped_column(String(4), nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    shares: Mapped[float] = mapped_column(Float, nullable=False)
    shares_normalized: Mapped[float] = mapped_column(Float, nullable=False)
    volume_usd: Mapped[float] = mapped_column(Float, nullable=False)
    token_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    condition_id: Mapped[str | None] = mapped_column(String(80), nullable=True)
    tx_hash: Mapped[str | None] = mapped_column(String(80), nullable=True)
    order_hash: Mapped[str | None] = mapped_column(String(80), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    __table_args__ = (
        UniqueConstraint("transaction_key", name="uq_wallet_transactions_key"),
        Index("idx_wallet_transactions_wallet_market", "wallet_address", "market_slug"),
        Index("idx_wallet_transactions_market", "market_slug"),
    )


class WalletMarketSummaryModel(Base):
    """Per wallet x market aggregates replayed from the transaction log."""

    __tablename__ = "wallet_market_summary"

    wallet_address: Mapped[str] = mapped_column(String(42), primary_key=True)
    market_slug: Mapped[str] = mapped_column(String(255), primary_key=True)

    total_volume_buy: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_volume_sell: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_volume: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_interactions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    net_shares: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    first_interaction: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_interaction: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    pnl: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_finalized: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    winning_side_held: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    __table_args__ = (Index("idx_wallet_market_summary_market", "market_slug"),)


class WalletCategorySummaryModel(Base):
    """Per wallet x category rollup of market summaries."""

    __tablename__ = "wallet_category_summary"

    wallet_address: Mapped[str] = mapped_column(String(42), primary_key=True)
    category: Mapped[str] = mapped_column(String(100), primary_key=True)

    total_volume: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_interactions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pnl: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    finalized_markets_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    open_markets_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )


class WalletInterestProfileModel(Base):
    """Volume-weighted centroid of the embeddings of markets a wallet traded."""

    __tablename__ = "wallet_interest_profiles"

    wallet_address: Mapped[str] = mapped_column(String(42), primary_key=True)
    interest_vector: Mapped[object] = mapped_column(Vector(), nullable=False)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
