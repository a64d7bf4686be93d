from __future__ import annotations

import httpx

from metalrates.config.settings import Settings, settings
from metalrates.conversion.units import invert
from metalrates.errors import ProviderError
from metalrates.providers.base import failed_result, fetch_json, parse_response
from metalrates.schemas.prices import CurrencyRates
from metalrates.schemas.provider import FrankfurterLatest, ProviderResult

PROVIDER = "frankfurter"

_LATEST_PATH = "/v1/latest"
_SYMBOLS = ("ILS", "EUR", "GBP")


def _build_url(app_settings: Settings) -> str:
    base_url = app_settings.providers.frankfurter_base_url.rstrip("/")
    return f"{base_url}{_LATEST_PATH}"


async def fetch_rates(
    client: httpx.AsyncClient, app_settings: Settings | None = None
) -> ProviderResult:
    """USD based rates. ILS stays USD->ILS, EUR and GBP are flipped to X->USD."""
    app_settings = app_settings or settings
    params = {"base": "USD", "symbols": ",".join(_SYMBOLS)}
    try:
        payload = await fetch_json(client, PROVIDER, _build_url(app_settings), params=params)
        latest = parse_response(PROVIDER, FrankfurterLatest, payload)
        try:
            rates = CurrencyRates(
                ILS=latest.rates.ILS,
                EUR=invert(latest.rates.EUR),
                GBP=invert(latest.rates.GBP),
            ).model_dump()
        except (TypeError, ValueError) as exc:
            raise ProviderError(PROVIDER, str(exc), status="invalid") from exc
    except ProviderError as exc:
        return failed_result(exc)

    return ProviderResult(provider=PROVIDER, payload=rates)
