from __future__ import annotations

import httpx

from metalrates.config.settings import Settings, settings
from metalrates.conversion.units import price_per_gram
from metalrates.errors import ProviderError
from metalrates.providers.base import failed_result, fetch_json, parse_response
from metalrates.schemas.provider import MetalsDevLatest, ProviderResult

PROVIDER = "metals_dev"

_LATEST_PATH = "/v1/latest"


def _build_url(app_settings: Settings) -> str:
    base_url = app_settings.providers.metals_dev_base_url.rstrip("/")
    return f"{base_url}{_LATEST_PATH}"


async def fetch_metals(
    client: httpx.AsyncClient, app_settings: Settings | None = None
) -> ProviderResult:
    app_settings = app_settings or settings
    api_key = app_settings.providers.metals_dev_key
    if not api_key:
        return ProviderResult(
            provider=PROVIDER, status="missing_key", reason="METALS_DEV_KEY not set"
        )

    params = {"api_key": api_key, "currency": "USD", "unit": "toz"}
    try:
        payload = await fetch_json(client, PROVIDER, _build_url(app_settings), params=params)
        latest = parse_response(PROVIDER, MetalsDevLatest, payload)
        try:
            prices = {
                "gold": price_per_gram(latest.metals.gold),
                "silver": price_per_gram(latest.metals.silver),
                "platinum": price_per_gram(latest.metals.platinum),
            }
        except (TypeError, ValueError) as exc:
            raise ProviderError(PROVIDER, str(exc), status="invalid") from exc
    except ProviderError as exc:
        return failed_result(exc)

    return ProviderResult(provider=PROVIDER, payload=prices)
