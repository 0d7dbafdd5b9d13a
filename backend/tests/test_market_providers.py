import asyncio

import httpx
import pytest

from app.providers import binance, coingecko, defillama, etherscan, feargreed, selector
from app.schemas.market import FearGreed, GasPrices

DAY = 86_400


def run_with(handler, coro_factory):
    async def main():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await coro_factory(client)

    return asyncio.run(main())


def test_build_protocols_filters_and_ranks() -> None:
    entries = [
        {"id": "1", "name": "Small", "tvl": 10},
        {"id": "2", "name": "Zero", "tvl": 0},
        {"id": "3", "name": "Big", "tvl": 1000, "category": "Dexs", "change_1d": 1.2},
        {"id": "4", "name": "Missing"},
    ]
    protocols = defillama.build_protocols(entries, limit=20)
    assert [protocol.name for protocol in protocols] == ["Big", "Small"]
    assert protocols[0].category == "Dexs"
    assert protocols[0].change_1d == 1.2


def test_build_chains_uses_gecko_id_or_lowercase_name() -> None:
    entries = [
        {"name": "Ethereum", "gecko_id": "ethereum", "tvl": 50, "tokenSymbol": "ETH", "chainId": 1},
        {"name": "Abstract", "gecko_id": None, "tvl": 5},
    ]
    chains = defillama.build_chains(entries)
    assert [chain.id for chain in chains] == ["ethereum", "abstract"]
    assert chains[1].symbol == ""


@pytest.mark.parametrize(("days", "rate"), [("1", 1), ("7", 1), ("30", 2), ("90", 4)])
def test_sample_rate(days: str, rate: int) -> None:
    assert defillama.sample_rate(days) == rate


def test_tvl_history_window_and_sampling() -> None:
    entries = [{"date": day * DAY, "tvl": float(day)} for day in range(100)]

    points = defillama.build_tvl_history(entries, "30", now=100 * DAY)

    # Days 70..99 are in range, every 2nd is kept plus the last point.
    assert len(points) == 16
    assert points[0].timestamp == 70 * DAY * 1000
    assert points[-1].timestamp == 99 * DAY * 1000
    assert points[-2].timestamp == 98 * DAY * 1000


def test_tvl_history_max_keeps_everything_in_window() -> None:
    entries = [{"date": day * DAY, "tvl": 1.0} for day in range(9)]
    points = defillama.build_tvl_history(entries, "max", now=9 * DAY)
    assert [point.timestamp for point in points] == [0, 4 * DAY * 1000, 8 * DAY * 1000]


def test_build_sectors_maps_priority_categories() -> None:
    categories = [
        {"id": "meme-token", "name": "Meme", "market_cap": 50, "top_3_coins": ["a"]},
        {"id": "layer-1", "name": "Layer 1 (L1)", "market_cap": 500, "market_cap_change_24h": 1.5},
        {"id": "random-category", "name": "Random", "market_cap": 9999},
        {"id": "gaming", "name": "Gaming", "market_cap": 0},
    ]
    sectors = coingecko.build_sectors(categories)
    assert [(sector.id, sector.name) for sector in sectors] == [
        ("layer-1", "Layer 1"),
        ("meme-token", "Memecoins"),
    ]
    assert sectors[0].change_24h == 1.5
    assert sectors[1].top_coins == ["a"]


def test_normalize_prices_to_percent_change() -> None:
    points = coingecko.normalize_prices([[1, 100.0], [2, 110.0], [3, 90.0]])
    assert [(point.timestamp, point.price) for point in points] == [
        (1, 0.0),
        (2, pytest.approx(10.0)),
        (3, pytest.approx(-10.0)),
    ]
    assert coingecko.normalize_prices([]) == []
    assert coingecko.normalize_prices([[1, 0.0], [2, 5.0]]) == []


def test_eth_price_falls_back_when_unavailable() -> None:
    price = run_with(lambda request: httpx.Response(429), coingecko.get_eth_price)
    assert price == 2500.0


def test_fear_greed_history_lookup() -> None:
    entries = [{"value": str(day), "value_classification": "Greed"} for day in range(60, 29, -1)]
    summary = feargreed.build_fear_greed(entries)
    assert summary.value == "60"
    assert summary.yesterday == "59"
    assert summary.last_week == "53"
    assert summary.last_month == "30"


def test_fear_greed_short_history_repeats_current_value() -> None:
    summary = feargreed.build_fear_greed([{"value": "12", "value_classification": "Extreme Fear"}])
    assert (summary.yesterday, summary.last_week, summary.last_month) == ("12", "12", "12")
    assert feargreed.build_fear_greed([]) == FearGreed()


def test_gas_defaults_when_result_is_not_an_object() -> None:
    gas = run_with(
        lambda request: httpx.Response(200, json={"status": "0", "result": "Missing API key"}),
        etherscan.fetch_gas,
    )
    assert gas == GasPrices()


def test_global_overview_combines_sources() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "api.coingecko.com":
            return httpx.Response(200, json={"data": {"active_cryptocurrencies": 10}})
        if request.url.host == "api.alternative.me":
            return httpx.Response(500)
        return httpx.Response(
            200,
            json={"result": {"SafeGasPrice": "1", "ProposeGasPrice": "2", "FastGasPrice": "3"}},
        )

    overview = run_with(handler, selector.fetch_global_overview)

    assert overview.global_ == {"active_cryptocurrencies": 10}
    assert overview.fear_greed == FearGreed()
    assert overview.gas == GasPrices(low=1, average=2, fast=3)
    assert overview.model_dump(by_alias=True)["fearGreed"]["lastWeek"] == "50"


def test_funding_rates_sorted_by_magnitude() -> None:
    rates = {"BTCUSDT": "0.0001", "ETHUSDT": "-0.0005"}

    def handler(request: httpx.Request) -> httpx.Response:
        symbol = request.url.params["symbol"]
        if symbol not in rates:
            return httpx.Response(500)
        if request.url.path.endswith("/fundingRate"):
            return httpx.Response(200, json=[{"symbol": symbol, "fundingRate": rates[symbol]}])
        return httpx.Response(200, json={"symbol": symbol, "lastFundingRate": "0.0002"})

    result = run_with(
        handler,
        lambda client: binance.fetch_funding_rates(client, ["BTCUSDT", "ETHUSDT", "SOLUSDT"]),
    )

    assert [rate.symbol for rate in result] == ["ETH", "BTC"]
    assert result[0].rate == pytest.approx(-0.05)
    assert result[1].predicted_rate == pytest.approx(0.02)
    assert result[1].exchange == "Binance"
