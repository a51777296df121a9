"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
Polymarket Recommender, loading and validating environment variables
at startup.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_FILE = ".env"
_ENV_FILE_ENCODING = "utf-8"

DEFAULT_EMBEDDING_DIM = 768


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str = Field(
        alias="DATABASE_URL",
        description="PostgreSQL connection string",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v.startswith(("postgresql://", "postgresql+asyncpg://")):
            raise ValueError("DATABASE_URL must be a PostgreSQL connection string")
        return v


class DomeSettings(BaseSettings):
    """Trading-data provider (Dome API) settings."""

    model_config = SettingsConfigDict(env_prefix="DOME_", extra="ignore")

    api_key: SecretStr | None = Field(
        default=None,
        alias="DOME_API_KEY",
        description="Dome API key (required for backfill and discover)",
    )
    base_url: str = Field(
        default="https://api.domeapi.io/v1",
        alias="DOME_BASE_URL",
        description="Dome API base URL",
    )
    requests_per_second: float = Field(
        default=1 / 1.1,
        alias="DOME_REQUESTS_PER_SECOND",
        gt=0.0,
        le=100.0,
        description="Client-side request rate (free tier allows ~1 req/s)",
    )
    rate_limit_backoff_seconds: float = Field(
        default=2.0,
        alias="DOME_RATE_LIMIT_BACKOFF_SECONDS",
        ge=0.0,
        le=60.0,
        description="Fixed wait before the single retry after a rate-limit response",
    )
    page_size: int = Field(
        default=100,
        alias="DOME_PAGE_SIZE",
        ge=1,
        le=1000,
        description="Items requested per page",
    )
    max_orders_per_wallet: int = Field(
        default=500,
        alias="DOME_MAX_ORDERS_PER_WALLET",
        ge=1,
        le=100_000,
        description="Hard cap on orders fetched per wallet during backfill",
    )
    discover_markets: int = Field(
        default=3,
        alias="DOME_DISCOVER_MARKETS",
        ge=1,
        le=1000,
        description="Top markets by volume used to discover wallets",
    )
    discover_min_volume: float = Field(
        default=1000.0,
        alias="DOME_DISCOVER_MIN_VOLUME",
        ge=0.0,
        description="Minimum market volume considered during discovery",
    )
    max_orders_per_market: int = Field(
        default=100,
        alias="DOME_MAX_ORDERS_PER_MARKET",
        ge=1,
        le=100_000,
        description="Orders scanned per market for wallet discovery",
    )
    max_activities_per_wallet: int = Field(
        default=100,
        alias="DOME_MAX_ACTIVITIES_PER_WALLET",
        ge=1,
        le=100_000,
        description="Activity events (redeem, merge, split) fetched per discovered wallet",
    )
    timeout_seconds: float = Field(
        default=15.0,
        alias="DOME_TIMEOUT_SECONDS",
        gt=0.0,
        le=300.0,
        description="HTTP timeout per request",
    )

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("DOME_BASE_URL must be an HTTP(S) endpoint")
        return v.rstrip("/")


class EmbeddingSettings(BaseSettings):
    """Text-embedding provider settings."""

    model_config = SettingsConfigDict(env_prefix="EMBEDDING_", extra="ignore")

    model: str | None = Field(
        default=None,
        alias="EMBEDDING_MODEL",
        description="Embedding model identifier/path (sentence-transformers)",
    )
    dim: int = Field(
        default=DEFAULT_EMBEDDING_DIM,
        alias="EMBEDDING_DIM",
        ge=1,
        le=16_000,
        description="Embedding vector dimensionality for pgvector (must match the model)",
    )
    device: Literal["cpu", "cuda", "mps"] = Field(
        default="cpu",
        alias="EMBEDDING_DEVICE",
        description="Device to run embeddings on",
    )
    batch_size: int = Field(
        default=64,
        alias="EMBEDDING_BATCH_SIZE",
        ge=1,
        le=4096,
        description="Texts per embedding batch in the indexer",
    )
    timeout_seconds: float = Field(
        default=10.0,
        alias="EMBEDDING_TIMEOUT_SECONDS",
        gt=0.0,
        le=300.0,
        description="Timeout for request-path embedding fetches",
    )
    max_retries: int = Field(
        default=1,
        alias="EMBEDDING_MAX_RETRIES",
        ge=0,
        le=5,
        description="Retries for request-path embedding fetches",
    )


class RecommendSettings(BaseSettings):
    """Recommendation ranking settings."""

    model_config = SettingsConfigDict(env_prefix="RECOMMEND_", extra="ignore")

    match_threshold: float = Field(
        default=0.1,
        alias="RECOMMEND_MATCH_THRESHOLD",
        ge=-1.0,
        le=1.0,
        description="Minimum cosine similarity for a market to be recommended",
    )
    default_limit: int = Field(
        default=10,
        alias="RECOMMEND_DEFAULT_LIMIT",
        ge=1,
        le=500,
        description="Recommendations returned when no limit is given",
    )
    profile_top_markets: int = Field(
        default=5,
        alias="RECOMMEND_PROFILE_TOP_MARKETS",
        ge=0,
        le=100,
        description="Closest markets shown on the wallet profile view",
    )


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from polymarket_recommender.config import get_settings

        settings = get_settings()
        print(settings.database.url)
        print(settings.embedding.dim)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding=_ENV_FILE_ENCODING,
        extra="ignore",
    )

    # NOTE: Each nested BaseSettings must be given the same env_file, otherwise it
    # will only read from the process environment (and ignore `.env`).
    database: DatabaseSettings = Field(
        default_factory=lambda: DatabaseSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    dome: DomeSettings = Field(
        default_factory=lambda: DomeSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    embedding: EmbeddingSettings = Field(
        default_factory=lambda: EmbeddingSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    recommend: RecommendSettings = Field(
        default_factory=lambda: RecommendSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted."""
        return {
            "database_url": self._redact_url(self.database.url),
            "dome": {
                "base_url": self.dome.base_url,
                "api_key": "***" if self.dome.api_key else "(not set)",
                "requests_per_second": f"{self.dome.requests_per_second:.2f}",
                "max_orders_per_wallet": str(self.dome.max_orders_per_wallet),
            },
            "embedding": {
                "model": self.embedding.model or "(not set)",
                "dim": str(self.embedding.dim),
                "device": self.embedding.device,
            },
            "recommend": {
                "match_threshold": str(self.recommend.match_threshold),
                "default_limit": str(self.recommend.default_limit),
            },
            "log_level": self.log_level,
        }

    def validate_requirements(
        self, *, command: Literal["backfill", "discover", "embed", "rank", "recommend"]
    ) -> None:
        """Validate command-specific requirements.

        If a capability is required for a command and not configured, the
        application refuses to run. Partner ranking works without an
        embedding model; markets with no stored embedding then rank as neutral.
        """
        if command in ("backfill", "discover") and not self.dome.api_key:
            raise ValueError(f"DOME_API_KEY is required for {command}")
        if command == "embed" and not self.embedding.model:
            raise ValueError("EMBEDDING_MODEL is required for embedding generation")

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            protocol_end = url.index("://") + 3
            at_pos = url.index("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Raises:
        ValidationError: If required environment variables are missing
            or have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
