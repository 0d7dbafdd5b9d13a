from __future__ import annotations

import time
from typing import Any

import httpx

from app.config.settings import settings
from app.errors import FetchFailure
from app.providers.http import get_json, to_float
from app.schemas.market import ChainTvl, ProtocolTvl, TvlPoint

_PROVIDER = "defillama"


def _url(path: str) -> str:
    return f"{settings.providers.defillama_base_url.rstrip('/')}{path}"


async def _get_list(client: httpx.AsyncClient, path: str) -> list[dict[str, Any]]:
    payload = await get_json(client, _PROVIDER, _url(path))
    if not isinstance(payload, list):
        raise FetchFailure(_PROVIDER, f"unexpected {path} payload")
    return [entry for entry in payload if isinstance(entry, dict)]


def _top_by_tvl(entries: list[dict[str, Any]], limit: int) -> list[dict[str, Any]]:
    ranked = [entry for entry in entries if to_float(entry.get("tvl")) > 0]
    ranked.sort(key=lambda entry: to_float(entry.get("tvl")), reverse=True)
    return ranked[:limit]


def build_protocols(entries: list[dict[str, Any]], limit: int = 20) -> list[ProtocolTvl]:
    return [
        ProtocolTvl(
            id=str(entry.get("id") or entry.get("slug") or entry.get("name")),
            name=entry.get("name") or "",
            symbol=entry.get("symbol"),
            tvl=to_float(entry.get("tvl")),
            change_1d=entry.get("change_1d"),
            change_7d=entry.get("change_7d"),
            logo=entry.get("logo"),
            category=entry.get("category"),
        )
        for entry in _top_by_tvl(entries, limit)
    ]


def build_chains(entries: list[dict[str, Any]], limit: int = 75) -> list[ChainTvl]:
    return [
        ChainTvl(
            id=entry.get("gecko_id") or (entry.get("name") or "").lower(),
            name=entry.get("name") or "",
            tvl=to_float(entry.get("tvl")),
            symbol=entry.get("tokenSymbol") or "",
            chain_id=entry.get("chainId"),
        )
        for entry in _top_by_tvl(entries, limit)
    ]


def sample_rate(days: str) -> int:
    if days in ("1", "7"):
        return 1
    if days == "30":
        return 2
    return 4


def build_tvl_history(
    entries: list[dict[str, Any]], days: str, now: float | None = None
) -> list[TvlPoint]:
    now_ms = (now if now is not None else time.time()) * 1000
    if days == "max":
        start_ms = 0.0
    else:
        try:
            start_ms = now_ms - int(days) * 24 * 60 * 60 * 1000
        except ValueError:
            start_ms = now_ms - 7 * 24 * 60 * 60 * 1000

    points = [
        TvlPoint(timestamp=int(to_float(entry.get("date")) * 1000), tvl=to_float(entry.get("tvl")))
        for entry in entries
        if to_float(entry.get("date")) * 1000 >= start_ms
    ]
    rate = sample_rate(days)
    last = len(points) - 1
    return [point for index, point in enumerate(points) if index % rate == 0 or index == last]


async def fetch_top_protocols(client: httpx.AsyncClient) -> list[ProtocolTvl]:
    return build_protocols(await _get_list(client, "/protocols"))


async def fetch_top_chains(client: httpx.AsyncClient) -> list[ChainTvl]:
    return build_chains(await _get_list(client, "/v2/chains"))


async def fetch_tvl_history(client: httpx.AsyncClient, days: str) -> list[TvlPoint]:
    return build_tvl_history(await _get_list(client, "/v2/historicalChainTvl"), days)
