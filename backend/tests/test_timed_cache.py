import asyncio

import pytest

from app.cache import TimedCache
from app.errors import DataUnavailable, FetchFailure


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class CountingFetch:
    def __init__(self, *values) -> None:
        self.values = list(values)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        value = self.values.pop(0)
        if isinstance(value, Exception):
            raise value
        return value


def test_fresh_entry_is_served_without_fetching() -> None:
    clock = FakeClock()
    cache = TimedCache("prices", ttl_seconds=60, clock=clock)
    fetch = CountingFetch(["btc"], ["eth"])

    first = asyncio.run(cache.get(fetch))
    clock.now = 59
    second = asyncio.run(cache.get(fetch))

    assert first.value == ["btc"]
    assert second is first
    assert fetch.calls == 1


def test_expired_entry_is_refetched() -> None:
    clock = FakeClock()
    cache = TimedCache("prices", ttl_seconds=60, clock=clock)
    fetch = CountingFetch(["btc"], ["eth"])

    asyncio.run(cache.get(fetch))
    clock.now = 60
    refreshed = asyncio.run(cache.get(fetch))

    assert refreshed.value == ["eth"]
    assert refreshed.stale is False
    assert refreshed.fetched_at == 60
    assert fetch.calls == 2


def test_failure_serves_stale_value() -> None:
    clock = FakeClock()
    cache = TimedCache("tvl", ttl_seconds=60, clock=clock)
    fetch = CountingFetch([1, 2], FetchFailure("defillama", "HTTP 502", 502, True))

    asyncio.run(cache.get(fetch))
    clock.now = 120
    served = asyncio.run(cache.get(fetch))

    assert served.value == [1, 2]
    assert served.stale is True
    assert served.error is True
    assert served.fetched_at == 0


def test_cold_failure_raises_data_unavailable() -> None:
    cache = TimedCache("tvl", ttl_seconds=60)
    fetch = CountingFetch(RuntimeError("connection reset"))

    with pytest.raises(DataUnavailable) as excinfo:
        asyncio.run(cache.get(fetch))

    assert excinfo.value.name == "tvl"
    assert isinstance(excinfo.value.__cause__, RuntimeError)


def test_rejected_value_keeps_previous_entry() -> None:
    clock = FakeClock()
    cache = TimedCache("funding", ttl_seconds=10, validator=bool, clock=clock)
    fetch = CountingFetch(["BTC"], [])

    asyncio.run(cache.get(fetch))
    clock.now = 11
    served = asyncio.run(cache.get(fetch))

    assert served.value == ["BTC"]
    assert served.stale is True
    assert served.error is False
    assert cache.peek().value == ["BTC"]


def test_rejected_value_is_cached_on_cold_start() -> None:
    cache = TimedCache("funding", ttl_seconds=10, validator=bool)
    served = asyncio.run(cache.get(CountingFetch([])))
    assert served.value == []
    assert cache.peek() is served


def test_keys_are_cached_independently() -> None:
    cache = TimedCache("history", ttl_seconds=600)
    fetch = CountingFetch("seven", "thirty")

    week = asyncio.run(cache.get(fetch, key="7"))
    month = asyncio.run(cache.get(fetch, key="30"))
    week_again = asyncio.run(cache.get(fetch, key="7"))

    assert (week.value, month.value, week_again.value) == ("seven", "thirty", "seven")
    assert fetch.calls == 2


def test_concurrent_callers_share_one_fetch() -> None:
    cache = TimedCache("global", ttl_seconds=60)
    calls = {"count": 0}

    async def slow_fetch():
        calls["count"] += 1
        await asyncio.sleep(0.01)
        return {"total_market_cap": 1}

    async def main():
        return await asyncio.gather(*(cache.get(slow_fetch) for _ in range(4)))

    results = asyncio.run(main())

    assert calls["count"] == 1
    assert {id(result) for result in results} == {id(results[0])}


def test_invalidate_forces_refetch() -> None:
    cache = TimedCache("sectors", ttl_seconds=600)
    fetch = CountingFetch("a", "b")

    asyncio.run(cache.get(fetch))
    cache.invalidate()
    assert cache.peek() is None
    assert asyncio.run(cache.get(fetch)).value == "b"
