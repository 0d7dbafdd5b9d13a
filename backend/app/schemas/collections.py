from __future__ import annotations

import datetime

from pydantic import BaseModel, ConfigDict, Field


class NFTCollection(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    slug: str
    image: str = ""
    floor_price: float = Field(default=0.0, alias="floorPrice")
    floor_price_usd: float = Field(default=0.0, alias="floorPriceUsd")
    market_cap: float = Field(default=0.0, alias="marketCap")
    volume_24h: float = Field(default=0.0, alias="volume24h")
    volume_change_24h: float = Field(default=0.0, alias="volumeChange24h")
    volume_change_7d: float = Field(default=0.0, alias="volumeChange7d")
    volume_change_30d: float = Field(default=0.0, alias="volumeChange30d")
    sales_24h: int = Field(default=0, alias="sales24h")
    owners: int = 0
    supply: int = 0


class Token(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    symbol: str
    address: str = ""
    image: str = ""
    price: float = 0.0
    price_change_1h: float = Field(default=0.0, alias="priceChange1h")
    price_change_24h: float = Field(default=0.0, alias="priceChange24h")
    price_change_7d: float = Field(default=0.0, alias="priceChange7d")
    price_change_30d: float = Field(default=0.0, alias="priceChange30d")
    volume_24h: float = Field(default=0.0, alias="volume24h")
    market_cap: float = Field(default=0.0, alias="marketCap")
    holders: int = 0


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class Snapshot(BaseModel):
    """Last accepted NFT and token collections, replaced wholesale."""

    model_config = ConfigDict(frozen=True)

    nfts: tuple[NFTCollection, ...] = ()
    tokens: tuple[Token, ...] = ()
    captured_at: datetime.datetime = Field(default_factory=_utcnow)
