from __future__ import annotations

import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_serializer

from app.schemas.collections import NFTCollection, Token

StatsType = Literal["all", "nfts", "tokens"]


class ValidationResult(BaseModel):
    valid: bool
    missing: list[str] = Field(default_factory=list)

    @property
    def missing_count(self) -> int:
        return len(self.missing)


class CollectionValidation(BaseModel):
    valid: bool
    missing: int


class StatsValidation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    nfts: Optional[CollectionValidation] = None
    tokens: Optional[CollectionValidation] = None
    using_cache: bool = Field(default=False, alias="usingCache")
    from_cache: bool = Field(default=False, alias="fromCache")
    error: bool = False

    @model_serializer(mode="wrap")
    def _drop_skipped_checks(self, handler):
        # Collections are not validated when the cached snapshot is served on error.
        data = handler(self)
        for key in ("nfts", "tokens"):
            if data.get(key) is None:
                data.pop(key, None)
        return data


class StatsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    nfts: list[NFTCollection] = Field(default_factory=list)
    tokens: list[Token] = Field(default_factory=list)
    last_updated: datetime.datetime = Field(alias="lastUpdated")
    validation: StatsValidation
