import datetime

import httpx
import pytest

from metalrates.config.settings import settings
from metalrates.schemas.prices import CurrencyRates, PriceSnapshot

GOLDAPI_OUNCE_PRICES = {"XAU": 3110.35, "XAG": 31.1035, "XPT": 933.105}
METALS_DEV_OUNCE_PRICES = {"gold": 2799.315, "silver": 62.207, "platinum": 1244.14}
FRANKFURTER_RATES = {"ILS": 3.7, "EUR": 0.8, "GBP": 0.5}


class FakeUpstream:
    """Answers for the three upstream hosts, with per-provider failure codes."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.failures: dict[str, int] = {}
        self.payloads: dict[str, object] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        if host == "www.goldapi.io":
            return self._respond("goldapi", request)
        if host == "api.metals.dev":
            return self._respond("metals_dev", request)
        if host == "api.frankfurter.dev":
            return self._respond("frankfurter", request)
        return httpx.Response(404)

    def _respond(self, provider: str, request: httpx.Request) -> httpx.Response:
        if provider in self.failures:
            return httpx.Response(self.failures[provider], json={"error": "upstream"})
        if provider in self.payloads:
            return httpx.Response(200, json=self.payloads[provider])
        if provider == "goldapi":
            symbol = request.url.path.split("/")[2]
            return httpx.Response(
                200, json={"metal": symbol, "currency": "USD", "price": GOLDAPI_OUNCE_PRICES[symbol]}
            )
        if provider == "metals_dev":
            return httpx.Response(
                200, json={"status": "success", "currency": "USD", "metals": METALS_DEV_OUNCE_PRICES}
            )
        return httpx.Response(
            200, json={"amount": 1.0, "base": "USD", "date": "2026-10-16", "rates": FRANKFURTER_RATES}
        )

    def hosts(self) -> list[str]:
        return [request.url.host for request in self.requests]


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    monkeypatch.setattr(settings.providers, "goldapi_key", None)
    monkeypatch.setattr(settings.providers, "metals_dev_key", None)
    monkeypatch.setattr(settings, "cron_secret", None)
    monkeypatch.setattr(settings, "redis_url", None)
    monkeypatch.setattr(settings, "cache_key", "prices")
    monkeypatch.setattr(settings, "stale_after_seconds", 300)
    yield settings


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def http_client(upstream: FakeUpstream) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(upstream))


def make_snapshot(
    updated_at: datetime.datetime,
    gold: float = 90.0,
    silver: float = 1.1,
    platinum: float = 30.0,
) -> PriceSnapshot:
    return PriceSnapshot(
        gold=gold,
        silver=silver,
        platinum=platinum,
        currencies=CurrencyRates(ILS=3.6, EUR=1.1, GBP=1.3),
        updated_at=updated_at,
    )
