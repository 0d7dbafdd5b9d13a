from __future__ import annotations

import json
import logging
from typing import Any, Mapping

import httpx

from app.config.settings import settings
from app.errors import FetchFailure

logger = logging.getLogger(__name__)


def build_client(transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=settings.providers.timeout_seconds,
        headers={
            "Accept": "application/json",
            "User-Agent": settings.providers.user_agent,
        },
        transport=transport,
        follow_redirects=True,
    )


async def get_json(
    client: httpx.AsyncClient,
    provider: str,
    url: str,
    params: Mapping[str, Any] | None = None,
    headers: Mapping[str, str] | None = None,
    timeout: float | None = None,
) -> Any:
    """GET a JSON document, raising ``FetchFailure`` for anything unusable."""
    request_timeout = timeout if timeout is not None else settings.providers.timeout_seconds
    try:
        response = await client.get(url, params=params, headers=headers, timeout=request_timeout)
    except httpx.TimeoutException as exc:
        raise FetchFailure(provider, f"timeout after {request_timeout}s", retryable=True) from exc
    except httpx.TransportError as exc:
        raise FetchFailure(provider, f"transport error: {exc}", retryable=True) from exc

    if response.status_code >= 400:
        retryable = response.status_code >= 500 or response.status_code == 429
        logger.info("%s returned HTTP %s for %s", provider, response.status_code, url)
        raise FetchFailure(
            provider,
            f"HTTP {response.status_code}",
            status_code=response.status_code,
            retryable=retryable,
        )

    try:
        return response.json()
    except (json.JSONDecodeError, ValueError) as exc:
        raise FetchFailure(provider, "invalid JSON body", status_code=response.status_code) from exc


def to_float(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def to_int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default
