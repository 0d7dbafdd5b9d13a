from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

import httpx

from app.config.settings import settings
from app.errors import FetchFailure
from app.providers import coingecko, dexscreener, etherscan, feargreed, geckoterminal
from app.providers.retry import retry_fetch
from app.schemas.collections import Token
from app.schemas.market import GlobalOverview
from app.validation.validator import rank_collection, token_key

logger = logging.getLogger(__name__)


async def fetch_tokens_once(
    client: httpx.AsyncClient,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> list[Token]:
    queries = settings.abstract.search_queries
    pairs, failures = await dexscreener.search_abstract_pairs(client, queries, sleep=sleep)
    tokens = dexscreener.tokens_from_pairs(pairs)

    # GeckoTerminal only fills in symbols DexScreener did not return.
    gecko_failed = False
    try:
        pools = await geckoterminal.fetch_trending_pools(client)
    except FetchFailure as exc:
        gecko_failed = True
        logger.info("GeckoTerminal unavailable, using DexScreener only: %s", exc)
    else:
        for token in geckoterminal.tokens_from_pools(pools, known_symbols=tokens.keys()):
            tokens[token.symbol] = token

    if gecko_failed and queries and failures == len(queries):
        raise FetchFailure("tokens", "every token source failed", retryable=True)
    return rank_collection(tokens.values(), token_key, settings.reference.collection_limit)


async def fetch_abstract_tokens(
    client: httpx.AsyncClient,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> list[Token]:
    try:
        return await retry_fetch(
            lambda: fetch_tokens_once(client, sleep=sleep),
            label="abstract tokens",
            max_retries=settings.retry.max_retries,
            backoff_seconds=settings.retry.backoff_seconds,
            min_results=settings.retry.min_results,
            sleep=sleep,
        )
    except FetchFailure as exc:
        logger.warning("Token sources unavailable, returning none: %s", exc)
        return []


async def fetch_global_overview(client: httpx.AsyncClient) -> GlobalOverview:
    """CoinGecko global metrics (required) with fear & greed and gas (optional)."""
    global_data, fear_greed, gas = await asyncio.gather(
        coingecko.fetch_global(client),
        feargreed.fetch_fear_greed(client),
        etherscan.fetch_gas(client),
    )
    return GlobalOverview(global_=global_data, fear_greed=fear_greed, gas=gas)
