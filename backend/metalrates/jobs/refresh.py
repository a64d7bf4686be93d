from __future__ import annotations

import asyncio
import datetime
import hmac
import logging
from dataclasses import dataclass

import httpx

from metalrates.cache import CacheStore
from metalrates.config.settings import Settings, settings
from metalrates.errors import AuthorizationError, CacheError
from metalrates.providers.selector import (
    fetch_currencies_with_fallback,
    fetch_metals_with_fallback,
)
from metalrates.schemas.prices import PriceSnapshot, RefreshSources

logger = logging.getLogger(__name__)

_UNSET = object()


@dataclass(frozen=True)
class RefreshResult:
    snapshot: PriceSnapshot
    sources: RefreshSources
    persisted: bool


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


async def _read_cached(store: CacheStore, app_settings: Settings) -> PriceSnapshot | None:
    try:
        return await store.get(app_settings.cache_key)
    except CacheError as exc:
        logger.error("Cache read failed, treating %r as absent: %s", app_settings.cache_key, exc)
        return None


def is_stale(
    snapshot: PriceSnapshot | None,
    now: datetime.datetime,
    app_settings: Settings | None = None,
) -> bool:
    app_settings = app_settings or settings
    if snapshot is None:
        return True
    age = now - snapshot.updated_at
    return age > datetime.timedelta(seconds=app_settings.stale_after_seconds)


def check_cron_authorization(
    authorization: str | None, app_settings: Settings | None = None
) -> None:
    secret = (app_settings or settings).cron_secret
    if not secret:
        return
    expected = f"Bearer {secret}"
    if authorization is None or not hmac.compare_digest(authorization.encode(), expected.encode()):
        raise AuthorizationError("cron secret mismatch")


async def refresh_prices(
    store: CacheStore,
    client: httpx.AsyncClient,
    previous: PriceSnapshot | None | object = _UNSET,
    now: datetime.datetime | None = None,
    app_settings: Settings | None = None,
) -> RefreshResult:
    """Fetch metals and currencies together, then write one whole snapshot.

    Sub-values a chain cannot fetch fall back to ``previous`` (read from the
    store when not given). A failed write is logged, the new snapshot is
    still returned.
    """
    app_settings = app_settings or settings
    if previous is _UNSET:
        previous = await _read_cached(store, app_settings)
    now = now or _utcnow()

    metals, currencies = await asyncio.gather(
        fetch_metals_with_fallback(client, previous, app_settings),
        fetch_currencies_with_fallback(client, previous, app_settings),
    )

    updated_at = now
    if previous is not None and previous.updated_at > updated_at:
        updated_at = previous.updated_at

    snapshot = PriceSnapshot.from_parts(metals.prices, currencies.rates, updated_at)
    sources = RefreshSources(metals=metals.source, currencies=currencies.source)

    persisted = True
    try:
        await store.set(app_settings.cache_key, snapshot)
    except CacheError as exc:
        persisted = False
        logger.error("Cache write failed, serving unsaved snapshot: %s", exc)

    logger.info(
        "Refreshed prices (metals=%s, currencies=%s, persisted=%s)",
        sources.metals,
        sources.currencies,
        persisted,
    )
    return RefreshResult(snapshot=snapshot, sources=sources, persisted=persisted)


async def run_scheduled_refresh(
    store: CacheStore,
    client: httpx.AsyncClient,
    authorization: str | None,
    now: datetime.datetime | None = None,
    app_settings: Settings | None = None,
) -> RefreshResult:
    check_cron_authorization(authorization, app_settings)
    return await refresh_prices(store, client, now=now, app_settings=app_settings)


async def get_current_prices(
    store: CacheStore,
    client: httpx.AsyncClient,
    now: datetime.datetime | None = None,
    app_settings: Settings | None = None,
) -> PriceSnapshot | None:
    """Cached snapshot when fresh, otherwise a refreshed one.

    Returns None only when nothing is cached and the refresh itself blew up.
    """
    app_settings = app_settings or settings
    now = now or _utcnow()
    cached = await _read_cached(store, app_settings)
    if not is_stale(cached, now, app_settings):
        return cached

    try:
        result = await refresh_prices(
            store, client, previous=cached, now=now, app_settings=app_settings
        )
    except Exception:
        logger.exception("On-demand refresh failed, serving cached prices")
        return cached
    return result.snapshot
