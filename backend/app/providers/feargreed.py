from __future__ import annotations

import logging
from typing import Any

import httpx

from app.config.settings import settings
from app.errors import FetchFailure
from app.providers.http import get_json
from app.schemas.market import FearGreed

logger = logging.getLogger(__name__)


def build_fear_greed(entries: list[dict[str, Any]]) -> FearGreed:
    if not entries:
        return FearGreed()
    current = str(entries[0].get("value", "50"))

    def _value_at(index: int) -> str:
        if index < len(entries) and entries[index].get("value"):
            return str(entries[index]["value"])
        return current

    return FearGreed(
        value=current,
        value_classification=entries[0].get("value_classification") or "Neutral",
        yesterday=_value_at(1),
        last_week=_value_at(7),
        last_month=_value_at(30),
    )


async def fetch_fear_greed(client: httpx.AsyncClient) -> FearGreed:
    """Fear & Greed index with history; neutral defaults when unavailable."""
    try:
        payload = await get_json(
            client, "alternative.me", settings.providers.fear_greed_url, params={"limit": "31"}
        )
    except FetchFailure as exc:
        logger.warning("fear & greed unavailable: %s", exc)
        return FearGreed()
    entries = payload.get("data") if isinstance(payload, dict) else None
    return build_fear_greed([entry for entry in entries or [] if isinstance(entry, dict)])
