from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from app.cache import TimedCache
from app.config.settings import Settings, settings as default_settings
from app.schemas.market import (
    ChainTvl,
    CoinHistory,
    FundingRate,
    GlobalOverview,
    ProtocolTvl,
    Sector,
    TvlPoint,
)
from app.validation.validated_cache import ValidatedCache


def _non_empty(value: Any) -> bool:
    return bool(value)


@dataclass
class Caches:
    """Every cache the routes share, built once per application."""

    abstract_stats: ValidatedCache
    global_overview: TimedCache[GlobalOverview]
    prices: TimedCache[list[dict[str, Any]]]
    sectors: TimedCache[list[Sector]]
    tvl: TimedCache[list[ProtocolTvl]]
    chains: TimedCache[list[ChainTvl]]
    tvl_history: TimedCache[list[TvlPoint]]
    history: TimedCache[list[CoinHistory]]
    funding: TimedCache[list[FundingRate]]


def build_caches(config: Settings | None = None) -> Caches:
    config = config or default_settings
    ttl = config.cache
    return Caches(
        abstract_stats=ValidatedCache(
            reference_nfts=config.reference.known_top_nfts,
            reference_tokens=config.reference.known_top_tokens,
            ttl_seconds=ttl.abstract_stats_ttl_seconds,
            limit=config.reference.collection_limit,
            max_missing_ratio=config.reference.max_missing_ratio,
        ),
        global_overview=TimedCache("global", ttl.global_ttl_seconds),
        prices=TimedCache("prices", ttl.prices_ttl_seconds, validator=_non_empty),
        sectors=TimedCache("sectors", ttl.sectors_ttl_seconds),
        tvl=TimedCache("tvl", ttl.tvl_ttl_seconds),
        chains=TimedCache("chains", ttl.chains_ttl_seconds),
        tvl_history=TimedCache("tvl-history", ttl.tvl_history_ttl_seconds, validator=_non_empty),
        history=TimedCache("history", ttl.history_ttl_seconds, validator=_non_empty),
        funding=TimedCache("funding", ttl.funding_ttl_seconds, validator=_non_empty),
    )
