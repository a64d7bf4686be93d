from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import httpx

from metalrates.config.settings import Settings, settings
from metalrates.providers import frankfurter, goldapi, metalsdev
from metalrates.schemas.prices import CurrencyRates, MetalPrices, PriceSnapshot
from metalrates.schemas.provider import ProviderResult

logger = logging.getLogger(__name__)

Candidate = Callable[[httpx.AsyncClient, Settings], Awaitable[ProviderResult]]


@dataclass(frozen=True)
class MetalOutcome:
    prices: MetalPrices
    source: str


@dataclass(frozen=True)
class CurrencyOutcome:
    rates: CurrencyRates
    source: str


async def _attempt(
    name: str, candidate: Candidate, client: httpx.AsyncClient, app_settings: Settings
) -> ProviderResult:
    try:
        return await candidate(client, app_settings)
    except Exception as exc:
        logger.exception("Provider %s raised unexpectedly", name)
        return ProviderResult(provider=name, status="error", reason=repr(exc))


def _log_failure(result: ProviderResult) -> None:
    if result.status == "missing_key":
        logger.info("Skipping %s: %s", result.provider, result.reason)
    else:
        logger.warning("Provider %s failed (%s): %s", result.provider, result.status, result.reason)


def _metal_candidates() -> list[tuple[str, Candidate]]:
    # Looked up at call time so tests can patch the module functions.
    return [
        (goldapi.PROVIDER, goldapi.fetch_metals),
        (metalsdev.PROVIDER, metalsdev.fetch_metals),
    ]


async def fetch_metals_with_fallback(
    client: httpx.AsyncClient,
    previous: PriceSnapshot | None = None,
    app_settings: Settings | None = None,
) -> MetalOutcome:
    """Walk the metal providers in order and stop at the first full success.

    When every provider fails the previous snapshot's metal prices are reused,
    and without one the configured defaults are returned.
    """
    app_settings = app_settings or settings
    for name, candidate in _metal_candidates():
        result = await _attempt(name, candidate, client, app_settings)
        if result.ok:
            return MetalOutcome(prices=MetalPrices(**result.payload), source=result.provider)
        _log_failure(result)

    if previous is not None:
        logger.warning("All metal providers failed, reusing cached metal prices")
        return MetalOutcome(prices=previous.metals, source="cache")

    logger.warning("All metal providers failed and no cache, using default metal prices")
    defaults = app_settings.defaults.metals
    return MetalOutcome(
        prices=MetalPrices(gold=defaults.gold, silver=defaults.silver, platinum=defaults.platinum),
        source="default",
    )


async def fetch_currencies_with_fallback(
    client: httpx.AsyncClient,
    previous: PriceSnapshot | None = None,
    app_settings: Settings | None = None,
) -> CurrencyOutcome:
    app_settings = app_settings or settings
    result = await _attempt(frankfurter.PROVIDER, frankfurter.fetch_rates, client, app_settings)
    if result.ok:
        return CurrencyOutcome(rates=CurrencyRates(**result.payload), source=result.provider)
    _log_failure(result)

    if previous is not None:
        logger.warning("Currency provider failed, reusing cached rates")
        return CurrencyOutcome(rates=previous.currencies.model_copy(), source="cache")

    logger.warning("Currency provider failed and no cache, using default rates")
    defaults = app_settings.defaults.currencies
    return CurrencyOutcome(
        rates=CurrencyRates(ILS=defaults.ILS, EUR=defaults.EUR, GBP=defaults.GBP),
        source="default",
    )
