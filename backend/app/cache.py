from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Generic, Optional, TypeVar

from app.errors import DataUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CachedValue(Generic[T]):
    value: T
    fetched_at: float
    stale: bool = False
    error: bool = False

    def age(self, now: float | None = None) -> float:
        return (now if now is not None else time.monotonic()) - self.fetched_at


class TimedCache(Generic[T]):
    """In-memory TTL cache that falls back to the last value on failure.

    Entries are keyed so one cache can hold variants of the same data
    (e.g. one entry per ``days`` query parameter). Refreshes for a key are
    serialized; callers that waited on an in-flight refresh get its result
    instead of fetching again.

    An optional ``validator`` rejects suspicious fetches: a rejected value is
    only stored when nothing is cached yet, otherwise the previous value is
    served as stale.
    """

    def __init__(
        self,
        name: str,
        ttl_seconds: float,
        validator: Optional[Callable[[T], bool]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.ttl_seconds = ttl_seconds
        self.validator = validator
        self._clock = clock
        self._entries: Dict[str, CachedValue[T]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def _fresh(self, key: str) -> CachedValue[T] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.fetched_at >= self.ttl_seconds:
            return None
        return entry

    def peek(self, key: str = "default") -> CachedValue[T] | None:
        return self._entries.get(key)

    def invalidate(self, key: str | None = None) -> None:
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    async def get(
        self, fetch: Callable[[], Awaitable[T]], key: str = "default"
    ) -> CachedValue[T]:
        entry = self._fresh(key)
        if entry is not None:
            return entry

        async with self._lock_for(key):
            # Another caller may have refreshed while we waited.
            entry = self._fresh(key)
            if entry is not None:
                return entry

            previous = self._entries.get(key)
            try:
                value = await fetch()
            except Exception as exc:
                if previous is None:
                    logger.error("%s[%s]: fetch failed with empty cache: %s", self.name, key, exc)
                    raise DataUnavailable(self.name) from exc
                logger.warning(
                    "%s[%s]: fetch failed, serving cached value (age %.0fs): %s",
                    self.name,
                    key,
                    previous.age(self._clock()),
                    exc,
                )
                return CachedValue(
                    value=previous.value,
                    fetched_at=previous.fetched_at,
                    stale=True,
                    error=True,
                )

            if self.validator is not None and not self.validator(value):
                if previous is not None:
                    logger.warning("%s[%s]: fetched value rejected, keeping cached value", self.name, key)
                    return CachedValue(
                        value=previous.value, fetched_at=previous.fetched_at, stale=True
                    )
                logger.warning("%s[%s]: fetched value rejected, caching it anyway on cold start", self.name, key)

            entry = CachedValue(value=value, fetched_at=self._clock())
            self._entries[key] = entry
            return entry
