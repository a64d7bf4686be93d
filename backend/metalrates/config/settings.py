from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field, AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict


class MetalDefaults(BaseModel):
    gold: float = 92.5
    silver: float = 1.05
    platinum: float = 31.2


class CurrencyDefaults(BaseModel):
    ILS: float = 3.65
    EUR: float = 1.08
    GBP: float = 1.27


class DefaultPrices(BaseModel):
    metals: MetalDefaults = Field(default_factory=MetalDefaults)
    currencies: CurrencyDefaults = Field(default_factory=CurrencyDefaults)


class ProviderSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="METALRATES_",
        env_file=("../.env", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )
    goldapi_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("GOLDAPI_KEY", "METALRATES_GOLDAPI_KEY"),
    )
    metals_dev_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("METALS_DEV_KEY", "METALRATES_METALS_DEV_KEY"),
    )
    goldapi_base_url: str = "https://www.goldapi.io"
    metals_dev_base_url: str = "https://api.metals.dev"
    frankfurter_base_url: str = "https://api.frankfurter.dev"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="METALRATES_",
        env_file=("../.env", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    redis_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("REDIS_URL", "METALRATES_REDIS_URL"),
    )
    cron_secret: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CRON_SECRET", "METALRATES_CRON_SECRET"),
    )
    refresh_queue_name: str = Field(
        default="refresh",
        validation_alias=AliasChoices("REFRESH_QUEUE_NAME", "METALRATES_REFRESH_QUEUE_NAME"),
    )
    cache_key: str = "prices"
    stale_after_seconds: int = 300
    http_timeout_seconds: float = 10.0
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    providers: ProviderSettings = Field(default_factory=ProviderSettings)
    defaults: DefaultPrices = Field(default_factory=DefaultPrices)


settings = Settings()
