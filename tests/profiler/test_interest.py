"""Tests for wallet interest vectors."""

import math

import pytest

from polymarket_recommender.profiler.interest import (
    InterestProfileService,
    build_interest_vector,
    generate_profiles,
    interest_weight,
)
from polymarket_recommender.storage.repos import (
    InterestProfileRepository,
    MarketDTO,
    MarketRepository,
    MarketSummaryDTO,
    MarketSummaryRepository,
)

WALLET = "0x00000000000000000000000000000000000000bb"


def summary(slug: str, volume: float) -> MarketSummaryDTO:
    return MarketSummaryDTO(wallet_address=WALLET, market_slug=slug, total_volume=volume)


class TestInterestWeight:
    """Tests for interest_weight."""

    def test_floor_of_one(self) -> None:
        assert interest_weight(0) == 1.0

    def test_formula(self) -> None:
        assert interest_weight(100) == pytest.approx(10 / 5 + math.log10(101) + 1)

    def test_monotonic(self) -> None:
        weights = [interest_weight(v) for v in (0, 1, 10, 100, 10_000, 1_000_000)]
        assert weights == sorted(weights)
        assert len(set(weights)) == len(weights)

    def test_sub_linear(self) -> None:
        assert interest_weight(10_000) < 100 * interest_weight(100)

    def test_negative_volume_treated_as_zero(self) -> None:
        assert interest_weight(-50) == 1.0


class TestBuildInterestVector:
    """Tests for build_interest_vector."""

    def test_weighted_centroid(self) -> None:
        embeddings = {"a": [1.0, 0.0, 0.0], "b": [0.0, 1.0, 0.0]}
        w = interest_weight(100)

        vector = build_interest_vector([summary("a", 0), summary("b", 100)], embeddings, dim=3)

        assert vector == pytest.approx([1 / (1 + w), w / (1 + w), 0.0])

    def test_single_market_is_its_embedding(self) -> None:
        vector = build_interest_vector([summary("a", 42)], {"a": [0.2, 0.4, 0.6]}, dim=3)

        assert vector == pytest.approx([0.2, 0.4, 0.6])

    def test_markets_without_embedding_do_not_contribute(self) -> None:
        vector = build_interest_vector(
            [summary("a", 1), summary("unembedded", 1_000_000)], {"a": [1.0, 2.0, 3.0]}, dim=3
        )

        assert vector == pytest.approx([1.0, 2.0, 3.0])

    def test_nan_component_keeps_weight(self) -> None:
        embeddings = {"a": [math.nan, 1.0, 0.0], "b": [1.0, 1.0, 0.0]}

        vector = build_interest_vector([summary("a", 0), summary("b", 0)], embeddings, dim=3)

        assert vector == pytest.approx([0.5, 1.0, 0.0])

    def test_wrong_length_is_skipped(self) -> None:
        embeddings = {"a": [1.0, 0.0], "b": [0.0, 0.0, 1.0]}

        vector = build_interest_vector([summary("a", 0), summary("b", 0)], embeddings, dim=3)

        assert vector == pytest.approx([0.0, 0.0, 1.0])

    def test_no_history_is_none(self) -> None:
        assert build_interest_vector([], {}, dim=3) is None
        assert build_interest_vector([summary("a", 10)], {}, dim=3) is None


async def seed(session) -> None:
    markets = MarketRepository(session)
    await markets.upsert(MarketDTO(market_slug="a", title="A", embedding=[1.0, 0.0, 0.0]))
    await markets.upsert(MarketDTO(market_slug="b", title="B", embedding=[0.0, 1.0, 0.0]))
    await markets.upsert(MarketDTO(market_slug="c", title="C"))
    await MarketSummaryRepository(session).upsert_volumes(
        [summary("a", 0), summary("b", 100), summary("c", 5)]
    )


class TestInterestProfileService:
    """Tests for InterestProfileService."""

    async def test_builds_and_stores(self, async_session) -> None:
        await seed(async_session)
        service = InterestProfileService(async_session, dim=3)

        profile = await service.build_interest_vector(WALLET.upper().replace("0X", "0x"))

        assert profile is not None
        assert profile.wallet_address == WALLET
        stored = await InterestProfileRepository(async_session).get(WALLET)
        assert stored is not None
        assert stored.interest_vector == pytest.approx(profile.interest_vector)

    async def test_regeneration_is_idempotent(self, async_session) -> None:
        await seed(async_session)
        service = InterestProfileService(async_session, dim=3)

        first = await service.build_interest_vector(WALLET)
        second = await service.build_interest_vector(WALLET)

        assert first is not None and second is not None
        assert first.interest_vector == second.interest_vector

    async def test_no_summaries(self, async_session) -> None:
        service = InterestProfileService(async_session, dim=3)

        assert await service.build_interest_vector(WALLET) is None
        assert await InterestProfileRepository(async_session).get(WALLET) is None

    async def test_no_embedded_markets_leaves_profile_untouched(self, async_session) -> None:
        await MarketRepository(async_session).upsert(MarketDTO(market_slug="c", title="C"))
        await MarketSummaryRepository(async_session).upsert_volumes([summary("c", 5)])
        await InterestProfileRepository(async_session).upsert(WALLET, [0.3, 0.3, 0.3])

        result = await InterestProfileService(async_session, dim=3).build_interest_vector(WALLET)

        assert result is None
        stored = await InterestProfileRepository(async_session).get(WALLET)
        assert stored is not None
        assert stored.interest_vector == [0.3, 0.3, 0.3]


class TestGenerateProfiles:
    """Tests for generate_profiles."""

    async def test_counts(self, db) -> None:
        async with db.session() as session:
            await seed(session)
            await MarketSummaryRepository(session).upsert_volumes(
                [MarketSummaryDTO(wallet_address="0xcc", market_slug="c", total_volume=1)]
            )

        stats = await generate_profiles(db.session, dim=3)

        assert (stats.built, stats.skipped, stats.failed) == (1, 1, 0)
