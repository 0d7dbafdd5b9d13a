from __future__ import annotations

import logging

import httpx

from app.config.settings import settings
from app.errors import FetchFailure
from app.providers.http import get_json, to_int
from app.schemas.market import GasPrices

logger = logging.getLogger(__name__)


async def fetch_gas(client: httpx.AsyncClient) -> GasPrices:
    params = {"module": "gastracker", "action": "gasoracle"}
    if settings.providers.etherscan_api_key:
        params["apikey"] = settings.providers.etherscan_api_key
    try:
        payload = await get_json(client, "etherscan", settings.providers.etherscan_base_url, params=params)
    except FetchFailure as exc:
        logger.warning("gas oracle unavailable: %s", exc)
        return GasPrices()

    result = payload.get("result") if isinstance(payload, dict) else None
    # Without a key Etherscan answers with a string message in "result"
    if not isinstance(result, dict):
        return GasPrices()
    return GasPrices(
        low=to_int(result.get("SafeGasPrice")),
        average=to_int(result.get("ProposeGasPrice")),
        fast=to_int(result.get("FastGasPrice")),
    )
