from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class FearGreed(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    value: str = "50"
    value_classification: str = "Neutral"
    yesterday: str = "50"
    last_week: str = Field(default="50", alias="lastWeek")
    last_month: str = Field(default="50", alias="lastMonth")


class GasPrices(BaseModel):
    low: int = 0
    average: int = 0
    fast: int = 0


class GlobalOverview(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    global_: dict[str, Any] = Field(default_factory=dict, alias="global")
    fear_greed: FearGreed = Field(default_factory=FearGreed, alias="fearGreed")
    gas: GasPrices = Field(default_factory=GasPrices)


class Sector(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    market_cap: float = Field(alias="marketCap")
    change_24h: float = Field(default=0.0, alias="change24h")
    volume_24h: float = Field(default=0.0, alias="volume24h")
    top_coins: list[str] = Field(default_factory=list, alias="topCoins")


class ProtocolTvl(BaseModel):
    id: str
    name: str
    symbol: Optional[str] = None
    tvl: float
    change_1d: Optional[float] = None
    change_7d: Optional[float] = None
    logo: Optional[str] = None
    category: Optional[str] = None


class ChainTvl(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    tvl: float
    symbol: str = ""
    chain_id: Optional[int | str] = Field(default=None, alias="chainId")


class TvlPoint(BaseModel):
    timestamp: int
    tvl: float


class PricePoint(BaseModel):
    timestamp: int
    price: float


class CoinHistory(BaseModel):
    id: str
    symbol: str
    color: str
    prices: list[PricePoint] = Field(default_factory=list)


class FundingRate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    symbol: str
    rate: float
    predicted_rate: float = Field(default=0.0, alias="predictedRate")
    exchange: str = "Binance"
