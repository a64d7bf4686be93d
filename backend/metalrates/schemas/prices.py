from __future__ import annotations

import datetime
import math

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


def _require_positive(value: float) -> float:
    if not math.isfinite(value) or value <= 0:
        raise ValueError("must be a positive finite number")
    return value


def format_timestamp(value: datetime.datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a trailing Z."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.UTC)
    value = value.astimezone(datetime.UTC)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class MetalPrices(BaseModel):
    gold: float
    silver: float
    platinum: float

    @field_validator("gold", "silver", "platinum")
    @classmethod
    def check_price(cls, value: float) -> float:
        return _require_positive(value)


class CurrencyRates(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ILS: float
    EUR: float
    GBP: float

    @field_validator("ILS", "EUR", "GBP")
    @classmethod
    def check_rate(cls, value: float) -> float:
        return _require_positive(value)


class PriceSnapshot(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    gold: float
    silver: float
    platinum: float
    currencies: CurrencyRates
    updated_at: datetime.datetime = Field(alias="updatedAt")

    @field_validator("gold", "silver", "platinum")
    @classmethod
    def check_price(cls, value: float) -> float:
        return _require_positive(value)

    @field_validator("updated_at")
    @classmethod
    def normalize_updated_at(cls, value: datetime.datetime) -> datetime.datetime:
        # Millisecond precision, so the serialized value compares equal.
        if value.tzinfo is None:
            value = value.replace(tzinfo=datetime.UTC)
        value = value.astimezone(datetime.UTC)
        return value.replace(microsecond=value.microsecond // 1000 * 1000)

    @field_serializer("updated_at")
    def serialize_updated_at(self, value: datetime.datetime) -> str:
        return format_timestamp(value)

    @property
    def metals(self) -> MetalPrices:
        return MetalPrices(gold=self.gold, silver=self.silver, platinum=self.platinum)

    @classmethod
    def from_parts(
        cls,
        metals: MetalPrices,
        currencies: CurrencyRates,
        updated_at: datetime.datetime,
    ) -> PriceSnapshot:
        return cls(
            gold=metals.gold,
            silver=metals.silver,
            platinum=metals.platinum,
            currencies=currencies,
            updated_at=updated_at,
        )

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class RefreshSources(BaseModel):
    metals: str
    currencies: str


class RefreshResponse(BaseModel):
    ok: bool = True
    data: dict
    sources: RefreshSources


class QueuedRefreshResponse(BaseModel):
    ok: bool = True
    job_id: str
