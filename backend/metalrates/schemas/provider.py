from typing import Literal

from pydantic import BaseModel, Field, PositiveFloat


ProviderStatus = Literal["ok", "missing_key", "rate_limited", "error", "invalid"]


class ProviderResult(BaseModel):
    provider: str
    status: ProviderStatus = "ok"
    reason: str | None = None
    payload: dict[str, float] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "ok"


# Upstream response shapes. Only the fields we read are declared.


class GoldApiQuote(BaseModel):
    metal: str | None = None
    currency: str | None = None
    price: PositiveFloat


class MetalsDevMetals(BaseModel):
    gold: PositiveFloat
    silver: PositiveFloat
    platinum: PositiveFloat


class MetalsDevLatest(BaseModel):
    status: str | None = None
    metals: MetalsDevMetals


class FrankfurterRates(BaseModel):
    ILS: PositiveFloat
    EUR: PositiveFloat
    GBP: PositiveFloat


class FrankfurterLatest(BaseModel):
    base: str | None = None
    date: str | None = None
    rates: FrankfurterRates
