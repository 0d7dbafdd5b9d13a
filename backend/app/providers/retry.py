from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Sequence, TypeVar

from app.errors import FetchFailure

logger = logging.getLogger(__name__)

Item = TypeVar("Item")


async def retry_fetch(
    fetch_once: Callable[[], Awaitable[Sequence[Item]]],
    *,
    label: str,
    max_retries: int = 2,
    backoff_seconds: float = 1.0,
    min_results: int = 8,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> list[Item]:
    """Call ``fetch_once`` up to ``max_retries + 1`` times.

    Retries on retryable ``FetchFailure`` and on short results (fewer than
    ``min_results`` items, usually a partial upstream response). Returns the
    largest result seen; raises the last failure only if no attempt
    produced a result at all.
    """
    best: list[Item] | None = None
    last_error: FetchFailure | None = None
    attempts = max_retries + 1

    for attempt in range(1, attempts + 1):
        try:
            result = list(await fetch_once())
        except FetchFailure as exc:
            if not exc.retryable:
                if best is not None:
                    return best
                raise
            last_error = exc
            if attempt < attempts:
                logger.warning("%s: attempt %d failed (%s), retrying", label, attempt, exc)
                await sleep(backoff_seconds)
                continue
            break

        if best is None or len(result) > len(best):
            best = result
        if len(result) >= min_results or attempt == attempts:
            break
        logger.warning(
            "%s: only got %d results on attempt %d, retrying", label, len(result), attempt
        )
        await sleep(backoff_seconds)

    if best is not None:
        return best
    assert last_error is not None
    raise last_error
