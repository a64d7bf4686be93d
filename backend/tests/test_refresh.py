import asyncio
import datetime
from unittest.mock import AsyncMock, patch

import pytest

from conftest import make_snapshot
from metalrates.cache import CacheStore, MemoryCacheStore
from metalrates.config.settings import (
    DefaultPrices,
    MetalDefaults,
    ProviderSettings,
    Settings,
    settings,
)
from metalrates.errors import AuthorizationError, CacheError
from metalrates.jobs.refresh import (
    get_current_prices,
    is_stale,
    refresh_prices,
    run_scheduled_refresh,
)
from metalrates.providers.selector import CurrencyOutcome, MetalOutcome
from metalrates.schemas.prices import CurrencyRates, MetalPrices

NOW = datetime.datetime(2026, 10, 16, 12, 0, tzinfo=datetime.UTC)


class RecordingStore(MemoryCacheStore):
    def __init__(self) -> None:
        super().__init__()
        self.reads = 0
        self.writes = 0

    async def get(self, key):
        self.reads += 1
        return await super().get(key)

    async def set(self, key, snapshot):
        self.writes += 1
        await super().set(key, snapshot)


class UnavailableStore(CacheStore):
    async def get(self, key):
        raise CacheError("redis down")

    async def set(self, key, snapshot):
        raise CacheError("redis down")


def _seed(store: CacheStore, age: datetime.timedelta, **prices):
    snapshot = make_snapshot(NOW - age, **prices)
    asyncio.run(store.set(settings.cache_key, snapshot))
    return snapshot


def test_is_stale_threshold() -> None:
    assert is_stale(None, NOW) is True
    assert is_stale(make_snapshot(NOW - datetime.timedelta(minutes=5)), NOW) is False
    assert is_stale(make_snapshot(NOW - datetime.timedelta(minutes=5, seconds=1)), NOW) is True


def test_fresh_cache_makes_no_provider_call(upstream, http_client) -> None:
    settings.providers.goldapi_key = "gold-token"
    store = RecordingStore()
    cached = _seed(store, datetime.timedelta(minutes=4))

    result = asyncio.run(get_current_prices(store, http_client, now=NOW))

    assert result == cached
    assert upstream.requests == []
    assert store.writes == 1


def test_stale_cache_refreshes_with_newer_timestamp(upstream, http_client) -> None:
    settings.providers.goldapi_key = "gold-token"
    store = RecordingStore()
    cached = _seed(store, datetime.timedelta(minutes=6))

    result = asyncio.run(get_current_prices(store, http_client, now=NOW))

    assert result.updated_at > cached.updated_at
    assert result.gold == pytest.approx(100.0)
    assert result.currencies.EUR == pytest.approx(1.25)
    assert asyncio.run(store.get(settings.cache_key)) == result
    assert "www.goldapi.io" in upstream.hosts()
    assert "api.frankfurter.dev" in upstream.hosts()


def test_empty_cache_refreshes(upstream, http_client) -> None:
    store = MemoryCacheStore()

    result = asyncio.run(get_current_prices(store, http_client, now=NOW))

    assert result.updated_at == NOW
    assert (result.gold, result.silver, result.platinum) == (92.5, 1.05, 31.2)
    assert asyncio.run(store.get(settings.cache_key)) == result


def test_failed_refresh_serves_cached_value(http_client) -> None:
    store = MemoryCacheStore()
    cached = _seed(store, datetime.timedelta(minutes=30))

    with patch(
        "metalrates.jobs.refresh.refresh_prices",
        AsyncMock(side_effect=RuntimeError("boom")),
    ):
        result = asyncio.run(get_current_prices(store, http_client, now=NOW))

    assert result == cached


def test_failed_refresh_without_cache_returns_none(http_client) -> None:
    with patch(
        "metalrates.jobs.refresh.refresh_prices",
        AsyncMock(side_effect=RuntimeError("boom")),
    ):
        result = asyncio.run(get_current_prices(MemoryCacheStore(), http_client, now=NOW))

    assert result is None


def test_unavailable_store_still_returns_fresh_snapshot(upstream, http_client) -> None:
    result = asyncio.run(get_current_prices(UnavailableStore(), http_client, now=NOW))

    assert result is not None
    assert result.updated_at == NOW
    assert result.currencies.ILS == pytest.approx(3.7)


def test_refresh_merges_cached_sub_values(upstream, http_client) -> None:
    store = MemoryCacheStore()
    cached = _seed(store, datetime.timedelta(hours=1), gold=88.0, silver=0.9, platinum=29.0)

    result = asyncio.run(refresh_prices(store, http_client, now=NOW))

    assert result.sources.metals == "cache"
    assert result.sources.currencies == "frankfurter"
    assert (result.snapshot.gold, result.snapshot.silver, result.snapshot.platinum) == (88.0, 0.9, 29.0)
    assert result.snapshot.currencies.GBP == pytest.approx(2.0)
    assert result.snapshot.updated_at > cached.updated_at
    assert result.persisted is True


def test_refresh_never_moves_timestamp_backwards(upstream, http_client) -> None:
    store = MemoryCacheStore()
    ahead = _seed(store, -datetime.timedelta(minutes=2))

    result = asyncio.run(refresh_prices(store, http_client, now=NOW))

    assert result.snapshot.updated_at == ahead.updated_at


def test_refresh_write_failure_is_swallowed(upstream, http_client) -> None:
    result = asyncio.run(refresh_prices(UnavailableStore(), http_client, now=NOW))

    assert result.persisted is False
    assert result.sources.metals == "default"


def test_scheduled_refresh_rejects_bad_secret(upstream, http_client) -> None:
    settings.cron_secret = "s3cret"
    settings.providers.goldapi_key = "gold-token"
    store = RecordingStore()

    with pytest.raises(AuthorizationError):
        asyncio.run(run_scheduled_refresh(store, http_client, "Bearer wrong", now=NOW))
    with pytest.raises(AuthorizationError):
        asyncio.run(run_scheduled_refresh(store, http_client, None, now=NOW))

    assert store.reads == 0
    assert store.writes == 0
    assert upstream.requests == []


def test_scheduled_refresh_ignores_fresh_cache(upstream, http_client) -> None:
    settings.cron_secret = "s3cret"
    store = RecordingStore()
    _seed(store, datetime.timedelta(seconds=10))

    result = asyncio.run(run_scheduled_refresh(store, http_client, "Bearer s3cret", now=NOW))

    assert store.writes == 2
    assert result.snapshot.updated_at == NOW
    assert upstream.hosts() == ["api.frankfurter.dev"]


def test_scheduled_refresh_without_configured_secret(upstream, http_client) -> None:
    result = asyncio.run(run_scheduled_refresh(MemoryCacheStore(), http_client, None, now=NOW))

    assert result.snapshot.updated_at == NOW


def test_metal_and_currency_chains_run_together(http_client) -> None:
    async def scenario():
        # Neither chain answers until the other one has started.
        both_started = asyncio.Barrier(2)

        async def metals(client, previous, app_settings):
            await asyncio.wait_for(both_started.wait(), timeout=1.0)
            return MetalOutcome(
                prices=MetalPrices(gold=90.0, silver=1.0, platinum=30.0), source="goldapi"
            )

        async def currencies(client, previous, app_settings):
            await asyncio.wait_for(both_started.wait(), timeout=1.0)
            return CurrencyOutcome(
                rates=CurrencyRates(ILS=3.7, EUR=1.25, GBP=2.0), source="frankfurter"
            )

        with (
            patch("metalrates.jobs.refresh.fetch_metals_with_fallback", metals),
            patch("metalrates.jobs.refresh.fetch_currencies_with_fallback", currencies),
        ):
            return await asyncio.wait_for(
                refresh_prices(MemoryCacheStore(), http_client, previous=None, now=NOW),
                timeout=5.0,
            )

    result = asyncio.run(scenario())

    assert result.sources.metals == "goldapi"
    assert result.sources.currencies == "frankfurter"
    assert result.snapshot.gold == 90.0


def test_custom_settings_drive_key_staleness_and_defaults(upstream, http_client) -> None:
    custom = Settings(
        cache_key="custom-prices",
        stale_after_seconds=60,
        providers=ProviderSettings(goldapi_key=None, metals_dev_key=None),
        defaults=DefaultPrices(metals=MetalDefaults(gold=50.0, silver=0.5, platinum=20.0)),
    )
    store = RecordingStore()
    asyncio.run(store.set("custom-prices", make_snapshot(NOW - datetime.timedelta(minutes=2))))

    result = asyncio.run(get_current_prices(store, http_client, now=NOW, app_settings=custom))

    assert result.updated_at == NOW
    assert result.gold == 90.0
    assert asyncio.run(store.get("custom-prices")) == result
    assert asyncio.run(store.get(settings.cache_key)) is None

    empty = asyncio.run(refresh_prices(MemoryCacheStore(), http_client, now=NOW, app_settings=custom))

    assert (empty.snapshot.gold, empty.snapshot.silver, empty.snapshot.platinum) == (50.0, 0.5, 20.0)
