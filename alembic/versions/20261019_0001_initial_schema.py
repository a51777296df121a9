"""Initial schema: markets, wallet transactions, summaries and interest profiles.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000+00:00
"""

import os
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

from polymarket_recommender.config import DEFAULT_EMBEDDING_DIM
from polymarket_recommender.storage.vector import Vector

revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

EMBEDDING_DIM = int(os.environ.get("EMBEDDING_DIM", DEFAULT_EMBEDDING_DIM))


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    op.create_table(
        "markets",
        sa.Column("market_slug", sa.String(255), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("condition_id", sa.String(80), nullable=True),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(10), nullable=False, server_default="open"),
        sa.Column("winning_side", sa.String(100), nullable=True),
        sa.Column("side_a_id", sa.String(100), nullable=True),
        sa.Column("side_b_id", sa.String(100), nullable=True),
        sa.Column("volume_total", sa.Float(), nullable=False, server_default="0"),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("outcomes", sa.JSON(), nullable=False),
        sa.Column("embedding", Vector(EMBEDDING_DIM), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("market_slug"),
    )
    op.create_index("idx_markets_status_volume", "markets", ["status", "volume_total"])
    op.create_index("idx_markets_category", "markets", ["category"])
    op.execute(
        "CREATE INDEX idx_markets_embedding_cosine ON markets "
        "USING hnsw (embedding vector_cosine_ops)"
    )

    op.create_table(
        "wallet_transactions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("transaction_key", sa.String(200), nullable=False),
        sa.Column("wallet_address", sa.String(42), nullable=False),
        sa.Column("market_slug", sa.String(255), nullable=False),
        sa.Column("side", sa.String(4), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("shares", sa.Float(), nullable=False),
        sa.Column("shares_normalized", sa.Float(), nullable=False),
        sa.Column("volume_usd", sa.Float(), nullable=False),
        sa.Column("token_id", sa.String(100), nullable=True),
        sa.Column("condition_id", sa.String(80), nullable=True),
        sa.Column("tx_hash", sa.String(80), nullable=True),
        sa.Column("order_hash", sa.String(80), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("transaction_key", name="uq_wallet_transactions_key"),
    )
    op.create_index(
        "idx_wallet_transactions_wallet_market",
        "wallet_transactions",
        ["wallet_address", "market_slug"],
    )
    op.create_index("idx_wallet_transactions_market", "wallet_transactions", ["market_slug"])

    op.create_table(
        "wallet_market_summary",
        sa.Column("wallet_address", sa.String(42), nullable=False),
        sa.Column("market_slug", sa.String(255), nullable=False),
        sa.Column("total_volume_buy", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_volume_sell", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_volume", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_interactions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("net_shares", sa.Float(), nullable=False, server_default="0"),
        sa.Column("first_interaction", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_interaction", sa.DateTime(timezone=True), nullable=True),
        sa.Column("pnl", sa.Float(), nullable=True),
        sa.Column("is_finalized", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("winning_side_held", sa.Boolean(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("wallet_address", "market_slug"),
    )
    op.create_index("idx_wallet_market_summary_market", "wallet_market_summary", ["market_slug"])

    op.create_table(
        "wallet_category_summary",
        sa.Column("wallet_address", sa.String(42), nullable=False),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("total_volume", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_interactions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("pnl", sa.Float(), nullable=False, server_default="0"),
        sa.Column("finalized_markets_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("open_markets_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("wallet_address", "category"),
    )

    op.create_table(
        "wallet_interest_profiles",
        sa.Column("wallet_address", sa.String(42), nullable=False),
        sa.Column("interest_vector", Vector(EMBEDDING_DIM), nullable=False),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("wallet_address"),
    )


def downgrade() -> None:
    op.drop_table("wallet_interest_profiles")
    op.drop_table("wallet_category_summary")
    op.drop_index("idx_wallet_market_summary_market", table_name="wallet_market_summary")
    op.drop_table("wallet_market_summary")
    op.drop_index("idx_wallet_transactions_market", table_name="wallet_transactions")
    op.drop_index("idx_wallet_transactions_wallet_market", table_name="wallet_transactions")
    op.drop_table("wallet_transactions")
    op.execute("DROP INDEX IF EXISTS idx_markets_embedding_cosine")
    op.drop_index("idx_markets_category", table_name="markets")
    op.drop_index("idx_markets_status_volume", table_name="markets")
    op.drop_table("markets")
    # Do not drop the extension, as other tables may depend on it.
