from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from app.config.settings import settings
from app.errors import FetchFailure
from app.providers.http import get_json, to_float
from app.schemas.market import CoinHistory, PricePoint, Sector

logger = logging.getLogger(__name__)

_PROVIDER = "coingecko"

MAJOR_COINS: list[dict[str, str]] = [
    {"id": "bitcoin", "symbol": "BTC", "color": "#F7931A"},
    {"id": "ethereum", "symbol": "ETH", "color": "#627EEA"},
    {"id": "solana", "symbol": "SOL", "color": "#00FFA3"},
    {"id": "binancecoin", "symbol": "BNB", "color": "#F3BA2F"},
    {"id": "ripple", "symbol": "XRP", "color": "#23292F"},
    {"id": "cardano", "symbol": "ADA", "color": "#0033AD"},
    {"id": "dogecoin", "symbol": "DOGE", "color": "#C2A633"},
    {"id": "avalanche-2", "symbol": "AVAX", "color": "#E84142"},
    {"id": "polkadot", "symbol": "DOT", "color": "#E6007A"},
    {"id": "chainlink", "symbol": "LINK", "color": "#375BD2"},
    {"id": "matic-network", "symbol": "MATIC", "color": "#8247E5"},
    {"id": "sui", "symbol": "SUI", "color": "#6FBCF0"},
]

PRIORITY_SECTORS: dict[str, str] = {
    "layer-1": "Layer 1",
    "layer-2": "Layer 2",
    "decentralized-finance-defi": "DeFi",
    "meme-token": "Memecoins",
    "stablecoins": "Stablecoins",
    "non-fungible-tokens-nft": "NFTs",
    "gaming": "Gaming",
    "artificial-intelligence": "AI",
    "real-world-assets-rwa": "RWA",
    "decentralized-exchange": "DEX",
    "lending-borrowing": "Lending",
    "liquid-staking-tokens": "Liquid Staking",
    "oracle": "Oracles",
    "privacy-coins": "Privacy",
    "infrastructure": "Infrastructure",
    "storage": "Storage",
    "bridge": "Bridges",
    "governance": "Governance",
    "metaverse": "Metaverse",
    "yield-farming": "Yield",
}


def _url(path: str) -> str:
    return f"{settings.providers.coingecko_base_url.rstrip('/')}{path}"


async def get_eth_price(client: httpx.AsyncClient) -> float:
    fallback = settings.abstract.eth_price_fallback_usd
    try:
        payload = await get_json(
            client,
            _PROVIDER,
            _url("/simple/price"),
            params={"ids": "ethereum", "vs_currencies": "usd"},
        )
    except FetchFailure as exc:
        logger.warning("ETH price unavailable, using %.0f: %s", fallback, exc)
        return fallback
    if not isinstance(payload, dict):
        return fallback
    price = to_float((payload.get("ethereum") or {}).get("usd"))
    return price or fallback


async def fetch_global(client: httpx.AsyncClient) -> dict[str, Any]:
    payload = await get_json(client, _PROVIDER, _url("/global"))
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), dict):
        raise FetchFailure(_PROVIDER, "unexpected /global payload")
    return payload["data"]


async def fetch_markets(client: httpx.AsyncClient) -> list[dict[str, Any]]:
    payload = await get_json(
        client,
        _PROVIDER,
        _url("/coins/markets"),
        params={
            "vs_currency": "usd",
            "order": "market_cap_desc",
            "per_page": "100",
            "page": "1",
            "sparkline": "true",
            "price_change_percentage": "1h,24h,7d,14d,30d",
        },
    )
    if not isinstance(payload, list):
        raise FetchFailure(_PROVIDER, "unexpected /coins/markets payload")
    return payload


def build_sectors(categories: list[dict[str, Any]], limit: int = 15) -> list[Sector]:
    picked = [
        category
        for category in categories
        if isinstance(category, dict)
        and category.get("id") in PRIORITY_SECTORS
        and to_float(category.get("market_cap")) > 0
    ]
    picked.sort(key=lambda category: to_float(category.get("market_cap")), reverse=True)
    return [
        Sector(
            id=category["id"],
            name=PRIORITY_SECTORS.get(category["id"]) or category.get("name", category["id"]),
            market_cap=to_float(category.get("market_cap")),
            change_24h=to_float(category.get("market_cap_change_24h")),
            volume_24h=to_float(category.get("volume_24h")),
            top_coins=category.get("top_3_coins") or [],
        )
        for category in picked[:limit]
    ]


async def fetch_sectors(client: httpx.AsyncClient) -> list[Sector]:
    payload = await get_json(
        client, _PROVIDER, _url("/coins/categories"), params={"order": "market_cap_desc"}
    )
    if not isinstance(payload, list):
        raise FetchFailure(_PROVIDER, "unexpected /coins/categories payload")
    return build_sectors(payload)


def normalize_prices(raw: list[list[float]]) -> list[PricePoint]:
    """Convert [timestamp, price] pairs to percent change from the first price."""
    points = [pair for pair in raw if isinstance(pair, (list, tuple)) and len(pair) >= 2]
    if not points:
        return []
    start = to_float(points[0][1])
    if start == 0:
        return []
    return [
        PricePoint(timestamp=int(ts), price=(to_float(price) - start) / start * 100)
        for ts, price, *_ in points
    ]


async def fetch_price_history(
    client: httpx.AsyncClient, days: str, delay_seconds: float = 0.1
) -> list[CoinHistory]:
    results: list[CoinHistory] = []
    for coin in MAJOR_COINS:
        try:
            payload = await get_json(
                client,
                _PROVIDER,
                _url(f"/coins/{coin['id']}/market_chart"),
                params={"vs_currency": "usd", "days": days},
            )
        except FetchFailure as exc:
            logger.warning("price history for %s unavailable: %s", coin["id"], exc)
            payload = None
        if isinstance(payload, dict):
            prices = normalize_prices(payload.get("prices") or [])
            if prices:
                results.append(CoinHistory(**coin, prices=prices))
        # Spread requests out to stay under the public rate limit
        await asyncio.sleep(delay_seconds)
    return results
