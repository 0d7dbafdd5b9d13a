from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

import httpx

from app.config.settings import settings
from app.errors import FetchFailure
from app.providers import coingecko
from app.providers.http import get_json, to_float, to_int
from app.providers.retry import retry_fetch
from app.schemas.collections import NFTCollection
from app.validation.validator import nft_key, rank_collection

logger = logging.getLogger(__name__)

_PROVIDER = "opensea"


def _url(path: str) -> str:
    return f"{settings.providers.opensea_base_url.rstrip('/')}{path}"


def _headers() -> dict[str, str]:
    return {
        "Accept": "application/json",
        "X-API-KEY": settings.providers.opensea_api_key or "",
    }


def _interval(stats: dict[str, Any] | None, name: str) -> dict[str, Any]:
    for entry in (stats or {}).get("intervals") or []:
        if isinstance(entry, dict) and entry.get("interval") == name:
            return entry
    return {}


def estimate_market_cap(
    floor_price: float,
    supply: int,
    volume_7d: float,
    volume_1d: float,
    owners: int,
    eth_price: float,
) -> float:
    """Market cap in USD, degrading through cruder estimates as data thins out."""
    if floor_price > 0 and supply > 0:
        return floor_price * supply * eth_price
    if volume_7d > 0:
        return volume_7d * 30 * eth_price
    if volume_1d > 0:
        return volume_1d * 200 * eth_price
    if owners > 0 and floor_price > 0:
        return owners * floor_price * 2 * eth_price
    if owners > 0:
        return owners * 50
    # Keeps the collection listed at the bottom
    return 1000


def resolve_supply(slug: str, stats: dict[str, Any] | None, collection: dict[str, Any]) -> int:
    total = (stats or {}).get("total") or {}
    supply = (
        settings.abstract.supply_overrides.get(slug)
        or to_int(total.get("supply"))
        or to_int(collection.get("total_supply"))
    )
    owners = to_int(total.get("num_owners"))
    if supply == 0 and owners > 0:
        # Typical supply/owner ratio sits between 1.5 and 3
        supply = round(owners * 2.5)
    return supply


def build_collection(
    collection: dict[str, Any], stats: dict[str, Any] | None, eth_price: float
) -> NFTCollection | None:
    slug = collection.get("collection") or ""
    name = collection.get("name") or slug
    if not name or not slug:
        return None

    one_day = _interval(stats, "one_day")
    seven_day = _interval(stats, "seven_day")
    thirty_day = _interval(stats, "one_month")
    volume_1d = to_float(one_day.get("volume"))
    volume_7d = to_float(seven_day.get("volume"))
    volume_30d = to_float(thirty_day.get("volume"))

    avg_daily_7d = volume_7d / 7
    avg_daily_30d = volume_30d / 30
    change_24h = (volume_1d - avg_daily_7d) / avg_daily_7d * 100 if avg_daily_7d > 0 else 0.0
    change_7d = (avg_daily_7d - avg_daily_30d) / avg_daily_30d * 100 if avg_daily_30d > 0 else 0.0
    change_30d = to_float(one_day.get("volume_change")) or to_float(seven_day.get("volume_change"))

    total = (stats or {}).get("total") or {}
    floor_price = to_float(total.get("floor_price"))
    owners = to_int(total.get("num_owners"))
    supply = resolve_supply(slug, stats, collection)

    return NFTCollection(
        name=name,
        slug=slug,
        image=collection.get("image_url") or "",
        floor_price=floor_price,
        floor_price_usd=floor_price * eth_price,
        market_cap=estimate_market_cap(floor_price, supply, volume_7d, volume_1d, owners, eth_price),
        volume_24h=volume_1d,
        volume_change_24h=round(change_24h, 1),
        volume_change_7d=round(change_7d, 1),
        volume_change_30d=round(change_30d, 1),
        sales_24h=to_int(one_day.get("sales")),
        owners=owners,
        supply=supply,
    )


async def _fetch_stats(client: httpx.AsyncClient, slug: str) -> dict[str, Any] | None:
    try:
        payload = await get_json(
            client, _PROVIDER, _url(f"/collections/{slug}/stats"), headers=_headers()
        )
    except FetchFailure as exc:
        logger.debug("stats for %s unavailable: %s", slug, exc)
        return None
    return payload if isinstance(payload, dict) else None


async def fetch_collections_once(client: httpx.AsyncClient, eth_price: float) -> list[NFTCollection]:
    payload = await get_json(
        client,
        _PROVIDER,
        _url("/collections"),
        params={
            "chain": "abstract",
            "order_by": "seven_day_volume",
            "limit": str(settings.abstract.collections_limit),
        },
        headers=_headers(),
    )
    listed = [
        entry
        for entry in (payload.get("collections") if isinstance(payload, dict) else None) or []
        if isinstance(entry, dict)
    ]
    stats = await asyncio.gather(
        *(_fetch_stats(client, entry.get("collection") or "") for entry in listed)
    )

    collections: list[NFTCollection] = []
    for entry, entry_stats in zip(listed, stats):
        built = build_collection(entry, entry_stats, eth_price)
        if built is not None:
            collections.append(built)
    return rank_collection(collections, nft_key, settings.reference.collection_limit)


async def fetch_abstract_nfts(
    client: httpx.AsyncClient,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> list[NFTCollection]:
    """Abstract NFT collections, or ``[]`` when OpenSea stays unavailable.

    An empty list fails reference validation downstream, so the cached
    collections are merged back in instead of the whole refresh failing.
    """
    eth_price = await coingecko.get_eth_price(client)
    try:
        return await retry_fetch(
            lambda: fetch_collections_once(client, eth_price),
            label="abstract NFTs",
            max_retries=settings.retry.max_retries,
            backoff_seconds=settings.retry.backoff_seconds,
            min_results=settings.retry.min_results,
            sleep=sleep,
        )
    except FetchFailure as exc:
        logger.warning("OpenSea collections unavailable, returning none: %s", exc)
        return []
