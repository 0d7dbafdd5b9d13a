from __future__ import annotations

import asyncio
import datetime
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence

from app.errors import DataUnavailable
from app.schemas.collections import NFTCollection, Snapshot, Token
from app.schemas.stats import ValidationResult
from app.validation.validator import (
    DEFAULT_LIMIT,
    DEFAULT_MAX_MISSING_RATIO,
    merge_with_cache,
    nft_key,
    rank_collection,
    token_key,
    validate_collection,
)

logger = logging.getLogger(__name__)

FetchNfts = Callable[[], Awaitable[list[NFTCollection]]]
FetchTokens = Callable[[], Awaitable[list[Token]]]


@dataclass(frozen=True)
class RefreshResult:
    nfts: tuple[NFTCollection, ...]
    tokens: tuple[Token, ...]
    last_updated: datetime.datetime
    nft_validation: Optional[ValidationResult] = None
    token_validation: Optional[ValidationResult] = None
    using_cache: bool = False
    from_cache: bool = False
    error: bool = False


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class ValidatedCache:
    """Last known-good NFT/token snapshot guarded by reference-set checks.

    Fresh data is trusted when both collections contain enough of the
    reference identifiers. When either falls short and a snapshot is cached,
    the cached reference items the providers dropped are merged back in.
    The very first fetch seeds the cache even when it fails validation, so
    a cold process always has something to serve.
    """

    def __init__(
        self,
        reference_nfts: Sequence[str],
        reference_tokens: Sequence[str],
        ttl_seconds: float = 300.0,
        limit: int = DEFAULT_LIMIT,
        max_missing_ratio: float = DEFAULT_MAX_MISSING_RATIO,
        name: str = "abstract-stats",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.reference_nfts = tuple(reference_nfts)
        self.reference_tokens = tuple(reference_tokens)
        self.ttl_seconds = ttl_seconds
        self.limit = limit
        self.max_missing_ratio = max_missing_ratio
        self.name = name
        self._clock = clock
        self._snapshot: Snapshot | None = None
        self._last_result: RefreshResult | None = None
        self._last_refresh_at: float | None = None
        self._lock = asyncio.Lock()

    @property
    def snapshot(self) -> Snapshot | None:
        return self._snapshot

    def seed(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot

    def _fresh_result(self) -> RefreshResult | None:
        if self._last_result is None or self._last_refresh_at is None:
            return None
        if self._clock() - self._last_refresh_at >= self.ttl_seconds:
            return None
        return self._last_result

    async def get(self, fetch_nfts: FetchNfts, fetch_tokens: FetchTokens) -> RefreshResult:
        result = self._fresh_result()
        if result is not None:
            return result
        async with self._lock:
            result = self._fresh_result()
            if result is not None:
                return result
            return await self._refresh(fetch_nfts, fetch_tokens)

    async def refresh_cycle(self, fetch_nfts: FetchNfts, fetch_tokens: FetchTokens) -> RefreshResult:
        async with self._lock:
            return await self._refresh(fetch_nfts, fetch_tokens)

    async def _refresh(self, fetch_nfts: FetchNfts, fetch_tokens: FetchTokens) -> RefreshResult:
        outcomes = await asyncio.gather(fetch_nfts(), fetch_tokens(), return_exceptions=True)
        for outcome in outcomes:
            if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
                raise outcome
        failures = [outcome for outcome in outcomes if isinstance(outcome, Exception)]
        if failures:
            return self._serve_stale(failures[0])

        fresh_nfts, fresh_tokens = outcomes
        nft_validation = validate_collection(
            fresh_nfts, self.reference_nfts, nft_key, self.max_missing_ratio
        )
        token_validation = validate_collection(
            fresh_tokens, self.reference_tokens, token_key, self.max_missing_ratio
        )
        if not nft_validation.valid:
            logger.warning(
                "%s: NFT data missing %d known collections: %s",
                self.name,
                nft_validation.missing_count,
                nft_validation.missing,
            )
        if not token_validation.valid:
            logger.warning(
                "%s: token data missing %d known tokens: %s",
                self.name,
                token_validation.missing_count,
                token_validation.missing,
            )

        both_valid = nft_validation.valid and token_validation.valid
        cached = self._snapshot
        if cached is not None and not both_valid:
            age = (_utcnow() - cached.captured_at).total_seconds()
            logger.warning("%s: merging with cached data (age: %.0fs)", self.name, age)
            nfts, tokens = merge_with_cache(
                fresh_nfts,
                fresh_tokens,
                cached,
                self.reference_nfts,
                self.reference_tokens,
                self.limit,
            )
        else:
            nfts = rank_collection(fresh_nfts, nft_key, self.limit)
            tokens = rank_collection(fresh_tokens, token_key, self.limit)

        now = _utcnow()
        if both_valid or cached is None:
            self._snapshot = Snapshot(nfts=tuple(nfts), tokens=tuple(tokens), captured_at=now)

        result = RefreshResult(
            nfts=tuple(nfts),
            tokens=tuple(tokens),
            last_updated=now,
            nft_validation=nft_validation,
            token_validation=token_validation,
            using_cache=not both_valid,
        )
        self._last_result = result
        self._last_refresh_at = self._clock()
        return result

    def _serve_stale(self, exc: Exception) -> RefreshResult:
        cached = self._snapshot
        if cached is None:
            logger.error("%s: fetch failed with no cached data: %s", self.name, exc)
            raise DataUnavailable(self.name) from exc
        logger.warning("%s: fetch failed, returning cached data: %s", self.name, exc)
        return RefreshResult(
            nfts=cached.nfts,
            tokens=cached.tokens,
            last_updated=cached.captured_at,
            from_cache=True,
            error=True,
        )
