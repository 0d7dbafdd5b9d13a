from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable

import httpx

from app.config.settings import settings
from app.errors import FetchFailure
from app.providers.http import get_json, to_float
from app.schemas.collections import Token

logger = logging.getLogger(__name__)

_PROVIDER = "dexscreener"
_CHAIN_ID = "abstract"


def token_image_url(address: str) -> str:
    return f"https://dd.dexscreener.com/ds-data/tokens/abstract/{address}.png"


async def search_abstract_pairs(
    client: httpx.AsyncClient,
    queries: Iterable[str],
    delay_seconds: float | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> tuple[list[dict[str, Any]], int]:
    """Run each search query in turn; return abstract-chain pairs and the failure count."""
    delay = settings.abstract.search_delay_seconds if delay_seconds is None else delay_seconds
    base_url = settings.providers.dexscreener_base_url.rstrip("/")
    pairs: list[dict[str, Any]] = []
    seen: set[str] = set()
    failures = 0
    for query in queries:
        try:
            payload = await get_json(
                client,
                _PROVIDER,
                f"{base_url}/latest/dex/search",
                params={"q": query},
                timeout=settings.providers.search_timeout_seconds,
            )
        except FetchFailure as exc:
            failures += 1
            logger.debug("search %r failed: %s", query, exc)
            payload = None
        if isinstance(payload, dict):
            for pair in payload.get("pairs") or []:
                if not isinstance(pair, dict) or pair.get("chainId") != _CHAIN_ID:
                    continue
                pair_address = pair.get("pairAddress") or ""
                if pair_address in seen:
                    continue
                seen.add(pair_address)
                pairs.append(pair)
        await sleep(delay)
    return pairs, failures


def tokens_from_pairs(
    pairs: Iterable[dict[str, Any]], skip_symbols: Iterable[str] | None = None
) -> dict[str, Token]:
    """Aggregate pairs by base-token symbol.

    Volumes add up across pairs; price fields come from the pair reporting
    the largest market cap. DexScreener has no 7d/30d change, so those are
    extrapolated from the 6h and 24h figures.
    """
    skip = set(settings.abstract.skip_tokens if skip_symbols is None else skip_symbols)
    tokens: dict[str, Token] = {}
    for pair in pairs:
        base = pair.get("baseToken") or {}
        symbol = base.get("symbol") or ""
        address = base.get("address") or ""
        if not symbol or symbol in skip:
            continue

        volume = to_float((pair.get("volume") or {}).get("h24"))
        price = to_float(pair.get("priceUsd"))
        changes = pair.get("priceChange") or {}
        change_1h = to_float(changes.get("h1"))
        change_6h = to_float(changes.get("h6"))
        change_24h = to_float(changes.get("h24"))
        market_cap = to_float(pair.get("fdv")) or to_float(pair.get("marketCap"))
        image = (pair.get("info") or {}).get("imageUrl")

        existing = tokens.get(symbol)
        if existing is None:
            tokens[symbol] = Token(
                name=base.get("name") or symbol,
                symbol=symbol,
                address=address,
                image=image or token_image_url(address),
                price=price,
                price_change_1h=change_1h,
                price_change_24h=change_24h,
                price_change_7d=change_6h * 4,
                price_change_30d=change_24h * 3,
                volume_24h=volume,
                market_cap=market_cap,
            )
            continue

        update: dict[str, Any] = {"volume_24h": existing.volume_24h + volume}
        if market_cap > existing.market_cap:
            update.update(
                price=price,
                price_change_1h=change_1h,
                price_change_24h=change_24h,
                price_change_7d=change_6h * 4,
                price_change_30d=change_24h * 3,
                market_cap=market_cap,
            )
            if image:
                update["image"] = image
        tokens[symbol] = existing.model_copy(update=update)
    return tokens
