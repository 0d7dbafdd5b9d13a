from __future__ import annotations

from typing import Any, Iterable
from urllib.parse import quote

import httpx

from app.config.settings import settings
from app.providers.dexscreener import token_image_url
from app.providers.http import get_json, to_float
from app.schemas.collections import Token

_PROVIDER = "geckoterminal"


def _avatar_url(symbol: str) -> str:
    return (
        f"https://ui-avatars.com/api/?name={quote(symbol)}"
        "&background=random&color=fff&size=128&bold=true"
    )


async def fetch_trending_pools(client: httpx.AsyncClient) -> dict[str, Any]:
    base_url = settings.providers.geckoterminal_base_url.rstrip("/")
    payload = await get_json(
        client,
        _PROVIDER,
        f"{base_url}/networks/abstract/trending_pools",
        params={"page": "1", "include": "base_token"},
        timeout=settings.providers.search_timeout_seconds,
    )
    return payload if isinstance(payload, dict) else {}


def tokens_from_pools(
    payload: dict[str, Any],
    known_symbols: Iterable[str] = (),
    skip_symbols: Iterable[str] | None = None,
) -> list[Token]:
    """Tokens from trending pools whose symbols are not already known."""
    skip = set(settings.abstract.skip_tokens if skip_symbols is None else skip_symbols)
    taken = set(known_symbols)
    images = {
        included.get("id"): (included.get("attributes") or {}).get("image_url")
        for included in payload.get("included") or []
        if isinstance(included, dict) and included.get("type") == "token"
    }

    tokens: list[Token] = []
    for pool in payload.get("data") or []:
        if not isinstance(pool, dict):
            continue
        attrs = pool.get("attributes") or {}
        symbol = (attrs.get("name") or "").split(" / ")[0].strip()
        if not symbol or symbol in skip or symbol in taken:
            continue
        taken.add(symbol)

        base_token_id = (
            ((pool.get("relationships") or {}).get("base_token") or {}).get("data") or {}
        ).get("id") or ""
        address = base_token_id.replace("abstract_", "")
        image = images.get(base_token_id) or (token_image_url(address) if address else "")
        changes = attrs.get("price_change_percentage") or {}
        change_24h = to_float(changes.get("h24"))

        tokens.append(
            Token(
                name=symbol,
                symbol=symbol,
                address=address,
                image=image or _avatar_url(symbol),
                price=to_float(attrs.get("base_token_price_usd")),
                price_change_1h=to_float(changes.get("h1")),
                price_change_24h=change_24h,
                price_change_7d=change_24h * 3,
                price_change_30d=change_24h * 6,
                volume_24h=to_float((attrs.get("volume_usd") or {}).get("h24")),
                market_cap=to_float(attrs.get("fdv_usd")) or to_float(attrs.get("market_cap_usd")),
            )
        )
    return tokens
