from __future__ import annotations

import math
from typing import Callable, Iterable, Sequence, TypeVar

from app.schemas.collections import NFTCollection, Snapshot, Token
from app.schemas.stats import ValidationResult

Item = TypeVar("Item", NFTCollection, Token)

DEFAULT_LIMIT = 20
DEFAULT_MAX_MISSING_RATIO = 0.25


def nft_key(item: NFTCollection) -> str:
    return item.slug


def token_key(item: Token) -> str:
    return item.symbol


def allowed_missing(reference_size: int, max_missing_ratio: float = DEFAULT_MAX_MISSING_RATIO) -> int:
    return math.ceil(reference_size * max_missing_ratio)


def validate_collection(
    items: Iterable[Item],
    reference: Sequence[str],
    key: Callable[[Item], str],
    max_missing_ratio: float = DEFAULT_MAX_MISSING_RATIO,
) -> ValidationResult:
    present = {key(item) for item in items}
    missing = [ident for ident in reference if ident not in present]
    valid = len(missing) <= allowed_missing(len(reference), max_missing_ratio)
    return ValidationResult(valid=valid, missing=missing)


def rank_collection(
    items: Iterable[Item], key: Callable[[Item], str], limit: int = DEFAULT_LIMIT
) -> list[Item]:
    """Dedupe by key (first occurrence wins), sort by market cap, cap at limit."""
    by_key: dict[str, Item] = {}
    for item in items:
        by_key.setdefault(key(item), item)
    ranked = sorted(by_key.values(), key=lambda item: item.market_cap, reverse=True)
    return ranked[:limit]


def merge_collection(
    fresh: Iterable[Item],
    cached: Iterable[Item],
    reference: Sequence[str],
    key: Callable[[Item], str],
    limit: int = DEFAULT_LIMIT,
) -> list[Item]:
    """Keep every fresh item and re-add cached reference items the fresh fetch dropped."""
    merged: dict[str, Item] = {}
    for item in fresh:
        merged.setdefault(key(item), item)
    wanted = set(reference)
    for item in cached:
        ident = key(item)
        if ident in wanted and ident not in merged:
            merged[ident] = item
    return rank_collection(merged.values(), key, limit)


def merge_with_cache(
    fresh_nfts: Iterable[NFTCollection],
    fresh_tokens: Iterable[Token],
    cached: Snapshot,
    reference_nfts: Sequence[str],
    reference_tokens: Sequence[str],
    limit: int = DEFAULT_LIMIT,
) -> tuple[list[NFTCollection], list[Token]]:
    nfts = merge_collection(fresh_nfts, cached.nfts, reference_nfts, nft_key, limit)
    tokens = merge_collection(fresh_tokens, cached.tokens, reference_tokens, token_key, limit)
    return nfts, tokens
