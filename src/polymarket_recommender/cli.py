"""Polymarket Recommender command-line entry point.

Every command loads ``Settings``, configures logging once, runs one async
unit of work against the database and prints its result::

    polymarket-recommender init-db
    polymarket-recommender backfill 0xabc... 0xdef...
    polymarket-recommender discover --markets 5
    polymarket-recommender embed
    polymarket-recommender pnl
    polymarket-recommender profiles
    polymarket-recommender recommend 0xabc... --limit 10
    polymarket-recommender rank 0xabc... markets.json
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TYPE_CHECKING, Optional, TypeVar

import typer

from polymarket_recommender.config import Settings, get_settings

if TYPE_CHECKING:
    from polymarket_recommender.ingestor.dome_client import DomeClient

T = TypeVar("T")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

app = typer.Typer(
    name="polymarket-recommender",
    help="Prediction-market recommendations from wallet trading history.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────


def configure_logging(level: int) -> None:
    """Configure the root logger. Library modules never call this."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.basicConfig(level=level, handlers=[handler], force=True)
    for noisy in ("sqlalchemy.engine", "urllib3", "sentence_transformers"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _load_settings_or_exit() -> Settings:
    try:
        settings = get_settings()
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    configure_logging(settings.get_logging_level())
    return settings


def _require(settings: Settings, command: str) -> None:
    try:
        settings.validate_requirements(command=command)  # type: ignore[arg-type]
    except ValueError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _run_with_db(settings: Settings, work: Callable[..., Awaitable[T]]) -> T:
    from polymarket_recommender.storage.database import DatabaseManager

    async def runner() -> T:
        db = DatabaseManager(settings.database.url)
        try:
            return await work(db)
        finally:
            await db.dispose()

    return asyncio.run(runner())


def _dome_client(settings: Settings) -> DomeClient:
    from polymarket_recommender.ingestor.dome_client import DomeClient

    api_key = settings.dome.api_key
    if api_key is None:
        typer.echo("[ERROR] DOME_API_KEY is not set.", err=True)
        raise typer.Exit(code=1)
    return DomeClient(
        api_key=api_key.get_secret_value(),
        base_url=settings.dome.base_url,
        requests_per_second=settings.dome.requests_per_second,
        rate_limit_backoff_seconds=settings.dome.rate_limit_backoff_seconds,
        page_size=settings.dome.page_size,
        timeout_seconds=settings.dome.timeout_seconds,
    )


def _service(db, settings: Settings):  # type: ignore[no-untyped-def]
    from polymarket_recommender.service import RecommenderService

    return RecommenderService.from_settings(db, settings)


def _echo_json(payload: object) -> None:
    typer.echo(json.dumps(payload, indent=2, default=str))


def _read_wallets(wallets: list[str], wallets_file: Optional[Path]) -> list[str]:
    out = list(wallets)
    if wallets_file is not None:
        for line in wallets_file.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if line and not line.startswith("#"):
                out.append(line)
    return out


# ── Commands ──────────────────────────────────────────────────────────────────


@app.command("show-config")
def show_config() -> None:
    """Print the effective configuration with secrets redacted."""
    settings = _load_settings_or_exit()
    _echo_json(settings.redacted_summary())


@app.command("init-db")
def init_db() -> None:
    """Create the vector extension (PostgreSQL) and all tables."""
    settings = _load_settings_or_exit()

    async def work(db) -> None:  # type: ignore[no-untyped-def]
        await db.init_schema()

    _run_with_db(settings, work)
    typer.echo("[OK] Database ready.")


@app.command("backfill")
def backfill(
    wallets: list[str] = typer.Argument(None, help="Wallet addresses to backfill."),
    wallets_file: Optional[Path] = typer.Option(
        None, "--wallets-file", help="File with one wallet address per line."
    ),
) -> None:
    """Fetch wallets' trade history and the markets they traded."""
    from polymarket_recommender.ingestor.backfill import BackfillJob

    settings = _load_settings_or_exit()
    _require(settings, "backfill")
    targets = _read_wallets(wallets or [], wallets_file)
    if not targets:
        typer.echo("[ERROR] No wallets given.", err=True)
        raise typer.Exit(code=1)

    with _dome_client(settings) as client:

        async def work(db):  # type: ignore[no-untyped-def]
            job = BackfillJob(
                client=client,
                session_factory=db.session,
                max_orders_per_wallet=settings.dome.max_orders_per_wallet,
            )
            return await job.run(targets)

        stats = _run_with_db(settings, work)
    typer.echo(
        f"[OK] {stats.wallets_processed} wallets, {stats.transactions} transactions, "
        f"{stats.markets} markets ({stats.wallets_skipped} skipped, {stats.wallets_failed} failed)"
    )


@app.command("discover")
def discover(
    markets: Optional[int] = typer.Option(
        None, "--markets", min=1, help="Top markets by volume to scan (default from settings)."
    ),
) -> None:
    """Discover wallets from top markets, then backfill their trades and activity."""
    from polymarket_recommender.ingestor.backfill import BackfillJob
    from polymarket_recommender.ingestor.discovery import DiscoveryJob

    settings = _load_settings_or_exit()
    _require(settings, "discover")

    with _dome_client(settings) as client:

        async def work(db):  # type: ignore[no-untyped-def]
            job = DiscoveryJob(
                client=client,
                backfill=BackfillJob(
                    client=client,
                    session_factory=db.session,
                    max_orders_per_wallet=settings.dome.max_orders_per_wallet,
                ),
                num_markets=markets or settings.dome.discover_markets,
                min_volume=settings.dome.discover_min_volume,
                max_orders_per_market=settings.dome.max_orders_per_market,
                max_activities_per_wallet=settings.dome.max_activities_per_wallet,
            )
            return await job.run()

        stats = _run_with_db(settings, work)
    typer.echo(
        f"[OK] {stats.markets_scanned} markets scanned, "
        f"{stats.wallets_discovered} wallets discovered, "
        f"{stats.backfill.transactions} transactions, {stats.activities} activities "
        f"({stats.activity_markets} markets from activity)"
    )


@app.command("summaries")
def summaries() -> None:
    """Rebuild wallet x market summaries from the transaction log."""
    from polymarket_recommender.pnl.service import rebuild_all_market_summaries

    settings = _load_settings_or_exit()
    stats = _run_with_db(settings, lambda db: rebuild_all_market_summaries(db.session))
    typer.echo(f"[OK] {stats.wallets_processed} wallets rebuilt, {stats.wallets_failed} failed")


@app.command("categorize")
def categorize() -> None:
    """Re-derive market categories from titles and tags."""
    settings = _load_settings_or_exit()
    changed = _run_with_db(settings, lambda db: _service(db, settings).recategorize_markets())
    typer.echo(f"[OK] {changed} markets recategorized")


@app.command("embed")
def embed(
    limit: Optional[int] = typer.Option(None, "--limit", help="Embed at most N markets."),
) -> None:
    """Embed titles of markets that have no embedding yet."""
    from polymarket_recommender.embedding.indexer import (
        MarketEmbeddingIndexer,
        MarketEmbeddingIndexerConfig,
    )
    from polymarket_recommender.embedding.provider import (
        EmbeddingConfig,
        SentenceTransformerEmbeddingProvider,
    )

    settings = _load_settings_or_exit()
    _require(settings, "embed")
    model = settings.embedding.model
    if model is None:
        typer.echo("[ERROR] EMBEDDING_MODEL is not set.", err=True)
        raise typer.Exit(code=1)
    provider = SentenceTransformerEmbeddingProvider(
        config=EmbeddingConfig(
            model_name_or_path=model,
            device=settings.embedding.device,
            expected_dim=settings.embedding.dim,
        )
    )

    async def work(db):  # type: ignore[no-untyped-def]
        indexer = MarketEmbeddingIndexer(
            embedder=provider,
            session_factory=db.session,
            config=MarketEmbeddingIndexerConfig(
                batch_size=settings.embedding.batch_size, limit=limit
            ),
        )
        return await indexer.run_once()

    stats = _run_with_db(settings, work)
    typer.echo(f"[OK] {stats.embedded}/{stats.candidates} markets embedded, {stats.failed} failed")


@app.command("pnl")
def pnl(
    wallets: list[str] = typer.Argument(None, help="Wallets to recompute (default: all)."),
) -> None:
    """Recompute PnL and category summaries."""
    from polymarket_recommender.pnl.service import recompute_all_wallets

    settings = _load_settings_or_exit()
    stats = _run_with_db(
        settings, lambda db: recompute_all_wallets(db.session, wallets=wallets or None)
    )
    typer.echo(f"[OK] {stats.wallets_processed} wallets recomputed, {stats.wallets_failed} failed")


@app.command("profiles")
def profiles(
    wallets: list[str] = typer.Argument(None, help="Wallets to profile (default: all)."),
) -> None:
    """Regenerate wallet interest vectors."""
    from polymarket_recommender.profiler.interest import generate_profiles

    settings = _load_settings_or_exit()
    stats = _run_with_db(
        settings,
        lambda db: generate_profiles(
            db.session, dim=settings.embedding.dim, wallets=wallets or None
        ),
    )
    typer.echo(f"[OK] {stats.built} built, {stats.skipped} skipped, {stats.failed} failed")


@app.command("recommend")
def recommend(
    wallet: str = typer.Argument(..., help="Wallet address."),
    limit: Optional[int] = typer.Option(None, "--limit", min=1, help="Number of markets."),
    bookmarks: list[str] = typer.Option(
        None, "--bookmark", help="Also list these market slugs as bookmarks."
    ),
) -> None:
    """Recommend markets for a wallet."""
    settings = _load_settings_or_exit()

    async def work(db):  # type: ignore[no-untyped-def]
        service = _service(db, settings)
        recs = await service.rank_recommendations(wallet, limit=limit)
        marked = await service.markets_by_slugs(bookmarks or [])
        return recs, marked

    recs, marked = _run_with_db(settings, work)
    _echo_json(
        {
            "wallet_address": wallet,
            "recommendations": [r.to_dict() for r in recs],
            "bookmarks": [r.to_dict() for r in marked],
        }
    )


@app.command("rank")
def rank(
    wallet: str = typer.Argument(..., help="Wallet address."),
    markets_file: Path = typer.Argument(
        ..., exists=True, readable=True, help="JSON list of {slug, title, ...} objects."
    ),
) -> None:
    """Rank a partner-supplied market list for one wallet."""
    from polymarket_recommender.recommend.models import PartnerMarketInput
    from polymarket_recommender.recommend.partner import WalletProfileNotFoundError

    settings = _load_settings_or_exit()
    try:
        raw = json.loads(markets_file.read_text(encoding="utf-8"))
        if not isinstance(raw, list):
            raise ValueError("markets file must contain a JSON list")
        markets = [PartnerMarketInput.from_dict(item) for item in raw]
    except ValueError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1) from exc

    async def work(db):  # type: ignore[no-untyped-def]
        service = _service(db, settings)
        try:
            return await service.rank_for_partner(wallet, markets)
        finally:
            await service.drain_background()

    try:
        ranking = _run_with_db(settings, work)
    except WalletProfileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=2) from exc
    _echo_json(ranking.to_dict())


@app.command("wallet-profile")
def wallet_profile(wallet: str = typer.Argument(..., help="Wallet address.")) -> None:
    """Show a wallet's category rollups and closest markets."""
    settings = _load_settings_or_exit()
    profile = _run_with_db(settings, lambda db: _service(db, settings).wallet_profile(wallet))
    _echo_json(profile.to_dict())


def main() -> None:
    app()


if __name__ == "__main__":
    main()
