from __future__ import annotations

from typing import Dict, List

from pydantic import BaseModel, Field, AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict


class CacheSettings(BaseModel):
    abstract_stats_ttl_seconds: float = 300.0
    global_ttl_seconds: float = 60.0
    prices_ttl_seconds: float = 60.0
    sectors_ttl_seconds: float = 300.0
    tvl_ttl_seconds: float = 300.0
    chains_ttl_seconds: float = 300.0
    tvl_history_ttl_seconds: float = 600.0
    history_ttl_seconds: float = 600.0
    funding_ttl_seconds: float = 120.0


class RetrySettings(BaseModel):
    max_retries: int = 2
    backoff_seconds: float = 1.0
    min_results: int = 8


class ReferenceSettings(BaseModel):
    known_top_nfts: List[str] = Field(
        default_factory=lambda: [
            "gigaverse-roms-abstract",
            "finalbosu",
            "genesishero-abstract",
            "bearish",
            "fugzfamily",
            "hamieverse-genesis",
            "glowbuds",
            "checkmate-pass-abstract",
            "pengztracted-abstract",
            "abstractio",
        ]
    )
    known_top_tokens: List[str] = Field(
        default_factory=lambda: [
            "PENGU",
            "BURR",
            "BIGHOSS",
            "PANDA",
            "LUNA",
            "MECH",
            "TYAG",
            "absETH",
        ]
    )
    max_missing_ratio: float = 0.25
    collection_limit: int = 20


class AbstractSettings(BaseModel):
    search_queries: List[str] = Field(
        default_factory=lambda: [
            "abstract",
            "pengu",
            "BURR",
            "BIGHOSS",
            "panda",
            "luna",
            "mech",
            "abs",
            "bearish",
            "dreami",
            "pengz",
            "checkmate",
            "tyag",
            "polly",
            "sock",
            "meme abstract",
            "degen abstract",
            "token abstract",
        ]
    )
    search_delay_seconds: float = 0.2
    skip_tokens: List[str] = Field(
        default_factory=lambda: ["WETH", "USDC", "USDC.e", "USDT", "ETH", "DAI"]
    )
    # OpenSea supply figures are often wrong for these collections.
    supply_overrides: Dict[str, int] = Field(
        default_factory=lambda: {
            "gigaverse-roms-abstract": 10000,
            "finalbosu": 8888,
            "hamieverse-genesis": 888,
            "glowbuds": 3333,
            "checkmate-pass-abstract": 3333,
            "wolf-game": 6247,
            "ultraman-archive78": 888,
            "gigaverse-giglings": 28084,
            "buumeeofficial": 6650,
            "abstractio": 3333,
            "ruyui": 7000,
            "web3-playboys": 3000,
            "dreamiliomaker-abstract": 5555,
            "genesishero-abstract": 10000,
            "abstract-hotdogs-abstract": 3333,
            "fugzfamily": 5555,
            "pengztracted-abstract": 7777,
            "plooshy-apartments-abstract": 10000,
            "och-ringbearer": 1000,
            "bearish": 5039,
        }
    )
    collections_limit: int = 30
    eth_price_fallback_usd: float = 2500.0


class ProviderSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MARKETDESK_",
        env_file=("../.env", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )
    opensea_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("OPENSEA_API_KEY", "MARKETDESK_OPENSEA_API_KEY"),
    )
    etherscan_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("ETHERSCAN_API_KEY", "MARKETDESK_ETHERSCAN_API_KEY"),
    )
    opensea_base_url: str = "https://api.opensea.io/api/v2"
    coingecko_base_url: str = "https://api.coingecko.com/api/v3"
    dexscreener_base_url: str = "https://api.dexscreener.com"
    geckoterminal_base_url: str = "https://api.geckoterminal.com/api/v2"
    defillama_base_url: str = "https://api.llama.fi"
    binance_futures_base_url: str = "https://fapi.binance.com"
    fear_greed_url: str = "https://api.alternative.me/fng/"
    etherscan_base_url: str = "https://api.etherscan.io/api"
    timeout_seconds: float = 10.0
    search_timeout_seconds: float = 8.0
    user_agent: str = "marketdesk/0.1"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MARKETDESK_",
        env_file=("../.env", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = Field(
        default="INFO",
        validation_alias=AliasChoices("LOG_LEVEL", "MARKETDESK_LOG_LEVEL"),
    )
    funding_symbols: List[str] = Field(
        default_factory=lambda: [
            "BTCUSDT",
            "ETHUSDT",
            "SOLUSDT",
            "BNBUSDT",
            "XRPUSDT",
            "DOGEUSDT",
            "ADAUSDT",
            "AVAXUSDT",
        ]
    )

    cache: CacheSettings = Field(default_factory=CacheSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    reference: ReferenceSettings = Field(default_factory=ReferenceSettings)
    abstract: AbstractSettings = Field(default_factory=AbstractSettings)
    providers: ProviderSettings = Field(default_factory=ProviderSettings)


settings = Settings()
