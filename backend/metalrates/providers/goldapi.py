from __future__ import annotations

import asyncio

import httpx

from metalrates.config.settings import Settings, settings
from metalrates.conversion.units import price_per_gram
from metalrates.errors import ProviderError
from metalrates.providers.base import failed_result, fetch_json, parse_response
from metalrates.schemas.provider import GoldApiQuote, ProviderResult

PROVIDER = "goldapi"

_SYMBOLS = {
    "gold": "XAU",
    "silver": "XAG",
    "platinum": "XPT",
}


def _build_url(symbol: str, app_settings: Settings) -> str:
    base_url = app_settings.providers.goldapi_base_url.rstrip("/")
    return f"{base_url}/api/{symbol}/USD"


async def _fetch_quote(
    client: httpx.AsyncClient, metal: str, headers: dict[str, str], app_settings: Settings
) -> float:
    url = _build_url(_SYMBOLS[metal], app_settings)
    payload = await fetch_json(client, PROVIDER, url, headers=headers)
    quote = parse_response(PROVIDER, GoldApiQuote, payload)
    try:
        return price_per_gram(quote.price)
    except (TypeError, ValueError) as exc:
        raise ProviderError(PROVIDER, str(exc), status="invalid") from exc


async def fetch_metals(
    client: httpx.AsyncClient, app_settings: Settings | None = None
) -> ProviderResult:
    """One request per metal, issued together. Any failed metal fails the lot."""
    app_settings = app_settings or settings
    api_key = app_settings.providers.goldapi_key
    if not api_key:
        return ProviderResult(provider=PROVIDER, status="missing_key", reason="GOLDAPI_KEY not set")

    headers = {"x-access-token": api_key, "Accept": "application/json"}
    metals = list(_SYMBOLS)
    results = await asyncio.gather(
        *(_fetch_quote(client, metal, headers, app_settings) for metal in metals),
        return_exceptions=True,
    )

    prices: dict[str, float] = {}
    for metal, result in zip(metals, results):
        if isinstance(result, ProviderError):
            failure = failed_result(result)
            failure.reason = f"{metal}: {failure.reason}"
            return failure
        if isinstance(result, BaseException):
            raise result
        prices[metal] = result
    return ProviderResult(provider=PROVIDER, payload=prices)
