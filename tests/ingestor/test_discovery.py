"""Tests for market-first wallet discovery."""

from unittest.mock import MagicMock

import pytest
import requests

from polymarket_recommender.ingestor import dome_client as dome_module
from polymarket_recommender.ingestor.backfill import BackfillJob, MarketCache
from polymarket_recommender.ingestor.discovery import DiscoveryJob
from polymarket_recommender.ingestor.dome_client import DomeClient
from polymarket_recommender.storage.repos import MarketRepository, TransactionRepository

ALICE = "0x00000000000000000000000000000000000000a1"
BOB = "0x00000000000000000000000000000000000000b0"
T0 = 1735689600


def make_response(status_code: int = 200, payload: object = None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.text = ""
    response.json.return_value = payload if payload is not None else {}
    return response


def market_item(slug: str, title: str, tags: list[str], volume: float) -> dict:
    return {
        "market_slug": slug,
        "title": title,
        "tags": tags,
        "status": "open",
        "side_a": {"id": f"{slug}-yes", "label": "Yes"},
        "side_b": {"id": f"{slug}-no", "label": "No"},
        "volume_total": volume,
        "image": f"https://img.test/{slug}.png",
    }


def order_item(slug: str, user: str | None, n: int) -> dict:
    return {
        "market_slug": slug,
        "side": "BUY",
        "price": 0.5,
        "shares": n * 1_000_000,
        "shares_normalized": n,
        "timestamp": T0 + n,
        "token_id": f"{slug}-yes",
        "order_hash": f"0x{slug}-{user}-{n}",
        "user": user,
    }


TOP_MARKETS = [
    market_item("btc", "Bitcoin above 100k?", ["Crypto"], 5000.0),
    market_item("nba", "NBA Finals winner", ["Sports"], 3000.0),
]
LOOKUP_MARKETS = {
    "eth": market_item("eth", "Ethereum above 5k?", ["Crypto"], 800.0),
    "election": market_item("election", "Election night", ["Politics"], 100.0),
}
MARKET_ORDERS = {
    "btc": [order_item("btc", ALICE.upper().replace("0X", "0x"), 1), order_item("btc", BOB, 2)],
    "nba": [order_item("nba", ALICE, 3), order_item("nba", None, 4)],
}
WALLET_ORDERS = {
    ALICE: [order_item("btc", ALICE, 1), order_item("eth", ALICE, 5)],
    BOB: [order_item("btc", BOB, 2)],
}
ACTIVITY = {
    ALICE: [
        {"side": "REDEEM", "market_slug": "election", "timestamp": T0 + 9, "shares_normalized": 4},
        {"side": "MERGE", "market_slug": "btc", "timestamp": T0 + 10, "shares_normalized": 1},
    ],
    BOB: [],
}


class FakeDomeApi:
    """Routes DomeClient GETs to canned payloads by path and filter."""

    def __init__(self, *, top_markets: list[dict], failing_markets: set[str] | None = None) -> None:
        self.top_markets = top_markets
        self.failing_markets = failing_markets or set()
        self.paths: list[str] = []

    def __call__(self, url: str, params: dict, timeout: float) -> MagicMock:
        path = url.split("/v1", 1)[1]
        self.paths.append(path)
        if path == "/polymarket/markets":
            if "market_slug" in params:
                slugs = params["market_slug"]
                return make_response(
                    payload={"markets": [LOOKUP_MARKETS[s] for s in slugs if s in LOOKUP_MARKETS]}
                )
            return make_response(payload={"markets": self.top_markets})
        if path == "/polymarket/orders":
            if "market_slug" in params:
                slug = params["market_slug"]
                if slug in self.failing_markets:
                    return make_response(status_code=503)
                return make_response(payload={"orders": MARKET_ORDERS.get(slug, [])})
            return make_response(payload={"orders": WALLET_ORDERS.get(params["user"], [])})
        if path == "/polymarket/activity":
            return make_response(payload={"activities": ACTIVITY.get(params["user"], [])})
        return make_response(status_code=404)


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch) -> None:
    monkeypatch.setattr(dome_module.time, "sleep", lambda seconds: None)


def make_client(api: FakeDomeApi) -> DomeClient:
    http = MagicMock(spec=requests.Session)
    http.headers = {}
    http.get.side_effect = api
    return DomeClient(
        api_key="test-key",
        base_url="https://dome.test/v1",
        requests_per_second=1000,
        page_size=100,
        session=http,
    )


def make_job(db, client) -> DiscoveryJob:
    return DiscoveryJob(
        client=client,
        backfill=BackfillJob(client=client, session_factory=db.session),
        num_markets=2,
        min_volume=1000.0,
        max_orders_per_market=50,
        max_activities_per_wallet=50,
    )


class TestDiscoveryJob:
    """Tests for DiscoveryJob."""

    async def test_discovers_wallets_and_stores_markets(self, db) -> None:
        api = FakeDomeApi(top_markets=TOP_MARKETS)

        stats = await make_job(db, make_client(api)).run()

        assert stats.markets_scanned == 2
        assert stats.wallets_discovered == 2
        assert stats.backfill.wallets_processed == 2
        assert stats.backfill.transactions == 3
        assert stats.activities == 2
        assert stats.activity_markets == 1
        assert stats.activity_failures == 0

        async with db.session() as session:
            markets = {m.market_slug: m for m in await MarketRepository(session).list_all()}
            alice_txs = await TransactionRepository(session).list_for_wallet(ALICE)
        assert set(markets) == {"btc", "nba", "eth", "election"}
        assert markets["election"].category == "Politics"
        assert markets["btc"].image_url == "https://img.test/btc.png"
        assert markets["btc"].outcomes == [
            {"id": "btc-yes", "label": "Yes"},
            {"id": "btc-no", "label": "No"},
        ]
        assert {t.market_slug for t in alice_txs} == {"btc", "eth"}

    async def test_wallets_are_lowercased_and_deduplicated(self, db) -> None:
        client = make_client(FakeDomeApi(top_markets=TOP_MARKETS))
        job = make_job(db, client)
        markets = await job.top_markets(MarketCache())

        wallets = await job.discover_wallets(markets)

        assert wallets == [ALICE, BOB]

    async def test_failing_market_is_skipped(self, db) -> None:
        api = FakeDomeApi(top_markets=TOP_MARKETS, failing_markets={"btc"})

        stats = await make_job(db, make_client(api)).run()

        # Only ALICE trades the nba market.
        assert stats.wallets_discovered == 1
        assert stats.backfill.wallets_processed == 1

    async def test_no_markets(self, db) -> None:
        api = FakeDomeApi(top_markets=[])

        stats = await make_job(db, make_client(api)).run()

        assert stats.markets_scanned == 0
        assert stats.wallets_discovered == 0
        assert api.paths == ["/polymarket/markets"]
        async with db.session() as session:
            assert await MarketRepository(session).list_all() == []

    async def test_activity_failure_is_counted(self, db) -> None:
        client = make_client(FakeDomeApi(top_markets=TOP_MARKETS))
        backfill = BackfillJob(client=client, session_factory=db.session)
        flaky = MagicMock(wraps=client)
        flaky.get_all_wallet_activity.side_effect = RuntimeError("boom")
        job = DiscoveryJob(client=flaky, backfill=backfill, num_markets=2)

        stats = await job.run()

        assert stats.wallets_discovered == 2
        assert stats.activity_failures == 2
        assert stats.activities == 0
        assert stats.backfill.wallets_processed == 2
