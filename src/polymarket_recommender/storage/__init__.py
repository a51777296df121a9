"""Storage layer - Database schemas and repositories."""

from polymarket_recommender.storage.database import (
    DatabaseManager,
    create_async_db_engine,
    create_async_session_factory,
    init_async_db,
)
from polymarket_recommender.storage.models import (
    Base,
    MarketModel,
    WalletCategorySummaryModel,
    WalletInterestProfileModel,
    WalletMarketSummaryModel,
    WalletTransactionModel,
)
from polymarket_recommender.storage.repos import (
    CategorySummaryDTO,
    CategorySummaryRepository,
    InterestProfileDTO,
    InterestProfileRepository,
    MarketDTO,
    MarketRepository,
    MarketSummaryDTO,
    MarketSummaryRepository,
    TransactionDTO,
    TransactionRepository,
)

__all__ = [
    "Base",
    "CategorySummaryDTO",
    "CategorySummaryRepository",
    "DatabaseManager",
    "InterestProfileDTO",
    "InterestProfileRepository",
    "MarketDTO",
    "MarketModel",
    "MarketRepository",
    "MarketSummaryDTO",
    "MarketSummaryRepository",
    "TransactionDTO",
    "TransactionRepository",
    "WalletCategorySummaryModel",
    "WalletInterestProfileModel",
    "WalletMarketSummaryModel",
    "WalletTransactionModel",
    "create_async_db_engine",
    "create_async_session_factory",
    "init_async_db",
]
