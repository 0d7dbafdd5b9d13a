from __future__ import annotations

import asyncio
import logging
from typing import Iterable

import httpx

from app.config.settings import settings
from app.errors import FetchFailure
from app.providers.http import get_json, to_float
from app.schemas.market import FundingRate

logger = logging.getLogger(__name__)

_PROVIDER = "binance"


async def _fetch_rate(client: httpx.AsyncClient, symbol: str) -> FundingRate | None:
    base_url = settings.providers.binance_futures_base_url.rstrip("/")
    try:
        history = await get_json(
            client,
            _PROVIDER,
            f"{base_url}/fapi/v1/fundingRate",
            params={"symbol": symbol, "limit": "1"},
        )
    except FetchFailure as exc:
        logger.debug("funding rate for %s unavailable: %s", symbol, exc)
        return None
    if not isinstance(history, list) or not history or not isinstance(history[0], dict):
        return None

    predicted = 0.0
    try:
        premium = await get_json(
            client, _PROVIDER, f"{base_url}/fapi/v1/premiumIndex", params={"symbol": symbol}
        )
    except FetchFailure:
        premium = None
    if isinstance(premium, dict):
        predicted = to_float(premium.get("lastFundingRate")) * 100

    return FundingRate(
        symbol=symbol.removesuffix("USDT"),
        rate=to_float(history[0].get("fundingRate")) * 100,
        predicted_rate=predicted,
    )


async def fetch_funding_rates(client: httpx.AsyncClient, symbols: Iterable[str]) -> list[FundingRate]:
    """Latest perp funding rates in percent, most extreme first."""
    results = await asyncio.gather(*(_fetch_rate(client, symbol) for symbol in symbols))
    rates = [rate for rate in results if rate is not None]
    rates.sort(key=lambda rate: abs(rate.rate), reverse=True)
    return rates
