from typing import Any

import httpx
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from app.api.deps import get_caches, get_http_client
from app.config.settings import settings
from app.errors import DataUnavailable
from app.providers import binance, coingecko, defillama, opensea, selector
from app.registry import Caches
from app.schemas.market import (
    ChainTvl,
    CoinHistory,
    FundingRate,
    GlobalOverview,
    ProtocolTvl,
    Sector,
    TvlPoint,
)
from app.schemas.stats import (
    CollectionValidation,
    StatsResponse,
    StatsType,
    StatsValidation,
    ValidationResult,
)
from app.validation.validated_cache import RefreshResult

router = APIRouter()

_DAYS_PATTERN = r"^(\d{1,4}|max)$"


def _unavailable(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": message},
    )


def _summarize(validation: ValidationResult | None) -> CollectionValidation | None:
    if validation is None:
        return None
    return CollectionValidation(valid=validation.valid, missing=validation.missing_count)


def build_stats_response(result: RefreshResult, stats_type: str = "all") -> StatsResponse:
    return StatsResponse(
        nfts=list(result.nfts) if stats_type in ("all", "nfts") else [],
        tokens=list(result.tokens) if stats_type in ("all", "tokens") else [],
        last_updated=result.last_updated,
        validation=StatsValidation(
            nfts=_summarize(result.nft_validation),
            tokens=_summarize(result.token_validation),
            using_cache=result.using_cache,
            from_cache=result.from_cache,
            error=result.error,
        ),
    )


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/api/abstract-stats", response_model=StatsResponse)
async def abstract_stats_endpoint(
    stats_type: StatsType = Query("all", alias="type"),
    caches: Caches = Depends(get_caches),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    try:
        result = await caches.abstract_stats.get(
            lambda: opensea.fetch_abstract_nfts(client),
            lambda: selector.fetch_abstract_tokens(client),
        )
    except DataUnavailable:
        return _unavailable("Failed to fetch Abstract stats")
    return build_stats_response(result, stats_type)


@router.get("/api/crypto/global", response_model=GlobalOverview)
async def global_endpoint(
    caches: Caches = Depends(get_caches),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    try:
        cached = await caches.global_overview.get(lambda: selector.fetch_global_overview(client))
    except DataUnavailable:
        return _unavailable("Failed to fetch global data")
    return cached.value


@router.get("/api/crypto/prices")
async def prices_endpoint(
    caches: Caches = Depends(get_caches),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> Any:
    try:
        cached = await caches.prices.get(lambda: coingecko.fetch_markets(client))
    except DataUnavailable:
        return _unavailable("Failed to fetch prices")
    return cached.value


@router.get("/api/crypto/sectors", response_model=list[Sector])
async def sectors_endpoint(
    caches: Caches = Depends(get_caches),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    try:
        cached = await caches.sectors.get(lambda: coingecko.fetch_sectors(client))
    except DataUnavailable:
        return _unavailable("Failed to fetch sectors")
    return cached.value


@router.get("/api/crypto/tvl", response_model=list[ProtocolTvl])
async def tvl_endpoint(
    caches: Caches = Depends(get_caches),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    try:
        cached = await caches.tvl.get(lambda: defillama.fetch_top_protocols(client))
    except DataUnavailable:
        return _unavailable("Failed to fetch TVL data")
    return cached.value


@router.get("/api/crypto/chains", response_model=list[ChainTvl])
async def chains_endpoint(
    caches: Caches = Depends(get_caches),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    try:
        cached = await caches.chains.get(lambda: defillama.fetch_top_chains(client))
    except DataUnavailable:
        return _unavailable("Failed to fetch chain data")
    return cached.value


@router.get("/api/crypto/tvl-history", response_model=list[TvlPoint])
async def tvl_history_endpoint(
    days: str = Query("7", pattern=_DAYS_PATTERN),
    caches: Caches = Depends(get_caches),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    try:
        cached = await caches.tvl_history.get(
            lambda: defillama.fetch_tvl_history(client, days), key=days
        )
    except DataUnavailable:
        return []
    return cached.value


@router.get("/api/crypto/history", response_model=list[CoinHistory])
async def history_endpoint(
    days: str = Query("7", pattern=_DAYS_PATTERN),
    caches: Caches = Depends(get_caches),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    try:
        cached = await caches.history.get(
            lambda: coingecko.fetch_price_history(client, days), key=days
        )
    except DataUnavailable:
        return []
    return cached.value


@router.get("/api/crypto/funding", response_model=list[FundingRate])
async def funding_endpoint(
    caches: Caches = Depends(get_caches),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    try:
        cached = await caches.funding.get(
            lambda: binance.fetch_funding_rates(client, settings.funding_symbols)
        )
    except DataUnavailable:
        return []
    return cached.value
