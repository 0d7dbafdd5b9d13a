import asyncio

import httpx
import pytest

from app.errors import DataUnavailable, FetchFailure
from app.providers import opensea
from app.schemas.collections import NFTCollection, Snapshot, Token
from app.validation.validated_cache import ValidatedCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def nfts(*slugs: str) -> list[NFTCollection]:
    # Earlier slugs get larger market caps so order is predictable.
    return [
        NFTCollection(name=slug, slug=slug, market_cap=float(100 - index))
        for index, slug in enumerate(slugs)
    ]


def tokens(*symbols: str) -> list[Token]:
    return [
        Token(name=symbol, symbol=symbol, market_cap=float(100 - index))
        for index, symbol in enumerate(symbols)
    ]


def returning(value):
    async def _fetch():
        return value

    return _fetch


def failing(message: str = "boom"):
    async def _fetch():
        raise FetchFailure("test", message, retryable=True)

    return _fetch


def make_cache(clock: FakeClock | None = None, ttl_seconds: float = 300.0) -> ValidatedCache:
    return ValidatedCache(
        reference_nfts=["A", "B", "C", "D"],
        reference_tokens=["T1", "T2", "T3", "T4"],
        ttl_seconds=ttl_seconds,
        clock=clock or FakeClock(),
    )


def test_valid_fetch_updates_cache() -> None:
    cache = make_cache()
    result = asyncio.run(cache.refresh_cycle(returning(nfts("A", "B", "C")), returning(tokens("T1", "T2", "T3", "T4"))))

    assert result.nft_validation.valid is True
    assert result.token_validation.valid is True
    assert result.using_cache is False
    assert result.error is False
    assert [item.slug for item in cache.snapshot.nfts] == ["A", "B", "C"]


def test_invalid_fetch_merges_reference_items_from_cache() -> None:
    cache = make_cache()
    full_tokens = returning(tokens("T1", "T2", "T3", "T4"))
    asyncio.run(cache.refresh_cycle(returning(nfts("A", "B", "C")), full_tokens))
    seeded = cache.snapshot

    result = asyncio.run(cache.refresh_cycle(returning(nfts("A", "B")), full_tokens))

    assert result.nft_validation.valid is False
    assert result.nft_validation.missing == ["C", "D"]
    assert result.using_cache is True
    assert [item.slug for item in result.nfts] == ["A", "B", "C"]
    # Merged results are served but never replace the accepted snapshot.
    assert cache.snapshot is seeded


def test_cold_start_caches_even_invalid_data() -> None:
    cache = make_cache()
    result = asyncio.run(cache.refresh_cycle(returning(nfts("A")), returning(tokens())))

    assert result.nft_validation.valid is False
    assert result.token_validation.valid is False
    assert [item.slug for item in result.nfts] == ["A"]
    assert cache.snapshot is not None
    assert [item.slug for item in cache.snapshot.nfts] == ["A"]


def test_cold_start_with_failing_fetch_raises_data_unavailable() -> None:
    cache = make_cache()
    with pytest.raises(DataUnavailable):
        asyncio.run(cache.refresh_cycle(failing(), returning(tokens("T1"))))
    assert cache.snapshot is None


def test_fetch_failure_serves_cached_snapshot_unchanged() -> None:
    cache = make_cache()
    asyncio.run(cache.refresh_cycle(returning(nfts("A", "B", "C")), returning(tokens("T1", "T2", "T3"))))
    seeded = cache.snapshot

    result = asyncio.run(cache.refresh_cycle(returning(nfts("Z")), failing()))

    assert result.error is True
    assert result.from_cache is True
    assert result.nfts == seeded.nfts
    assert result.tokens == seeded.tokens
    assert result.last_updated == seeded.captured_at
    assert cache.snapshot is seeded


def test_get_serves_last_result_within_ttl() -> None:
    clock = FakeClock()
    cache = make_cache(clock, ttl_seconds=300)
    calls = {"nfts": 0}

    async def fetch_nfts():
        calls["nfts"] += 1
        return nfts("A", "B", "C", "D")

    fetch_tokens = returning(tokens("T1", "T2", "T3", "T4"))

    first = asyncio.run(cache.get(fetch_nfts, fetch_tokens))
    clock.now += 299
    second = asyncio.run(cache.get(fetch_nfts, fetch_tokens))
    clock.now += 2
    asyncio.run(cache.get(fetch_nfts, fetch_tokens))

    assert second is first
    assert calls["nfts"] == 2


def test_concurrent_gets_share_one_refresh() -> None:
    cache = make_cache()
    calls = {"count": 0}

    async def slow_nfts():
        calls["count"] += 1
        await asyncio.sleep(0.01)
        return nfts("A", "B", "C", "D")

    async def main():
        return await asyncio.gather(
            *(cache.get(slow_nfts, returning(tokens("T1", "T2", "T3", "T4"))) for _ in range(5))
        )

    results = asyncio.run(main())

    assert calls["count"] == 1
    assert all(result is results[0] for result in results)


def test_reference_scenario() -> None:
    cache = ValidatedCache(reference_nfts=["A", "B", "C", "D"], reference_tokens=[])
    no_tokens = returning([])

    first = asyncio.run(cache.refresh_cycle(returning(nfts("A", "B", "C")), no_tokens))
    assert first.nft_validation.valid is True
    assert [item.slug for item in cache.snapshot.nfts] == ["A", "B", "C"]

    second = asyncio.run(cache.refresh_cycle(returning(nfts("A", "B")), no_tokens))
    assert second.nft_validation.valid is False
    assert sorted(item.slug for item in second.nfts) == ["A", "B", "C"]


def rejected_api_key(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/simple/price"):
        return httpx.Response(200, json={"ethereum": {"usd": 2000}})
    return httpx.Response(401, json={"detail": "invalid api key"})


def refresh_with_unauthorized_opensea(cache: ValidatedCache, fresh_tokens: list[Token]):
    async def main():
        async with httpx.AsyncClient(transport=httpx.MockTransport(rejected_api_key)) as client:
            return await cache.refresh_cycle(
                lambda: opensea.fetch_abstract_nfts(client),
                returning(fresh_tokens),
            )

    return asyncio.run(main())


def test_nft_outage_on_cold_start_keeps_fresh_tokens() -> None:
    cache = make_cache()

    result = refresh_with_unauthorized_opensea(cache, tokens("T1", "T2", "T3", "T4"))

    assert result.error is False
    assert result.nfts == ()
    assert [token.symbol for token in result.tokens] == ["T1", "T2", "T3", "T4"]
    assert result.nft_validation.valid is False
    assert result.token_validation.valid is True
    assert cache.snapshot.tokens == result.tokens


def test_nft_outage_with_warm_cache_merges_cached_collections() -> None:
    cache = make_cache()
    cached = Snapshot(nfts=tuple(nfts("A", "B", "C", "D")), tokens=tuple(tokens("T1", "T2", "T3", "T4")))
    cache.seed(cached)

    result = refresh_with_unauthorized_opensea(cache, tokens("T1", "T2", "T3", "T5"))

    assert result.error is False
    assert result.from_cache is False
    assert result.using_cache is True
    assert [item.slug for item in result.nfts] == ["A", "B", "C", "D"]
    assert {token.symbol for token in result.tokens} == {"T1", "T2", "T3", "T4", "T5"}
    assert cache.snapshot is cached
