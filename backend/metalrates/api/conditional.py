from __future__ import annotations

import datetime
from dataclasses import dataclass
from email.utils import parsedate_to_datetime

from metalrates.config.settings import Settings, settings
from metalrates.schemas.prices import CurrencyRates, PriceSnapshot, format_timestamp


@dataclass(frozen=True)
class PriceResponse:
    snapshot: PriceSnapshot | None
    not_modified: bool = False
    last_modified: str | None = None

    @property
    def status_code(self) -> int:
        return 304 if self.not_modified else 200


def default_snapshot(now: datetime.datetime, app_settings: Settings | None = None) -> PriceSnapshot:
    defaults = (app_settings or settings).defaults
    return PriceSnapshot(
        gold=defaults.metals.gold,
        silver=defaults.metals.silver,
        platinum=defaults.metals.platinum,
        currencies=CurrencyRates(
            ILS=defaults.currencies.ILS,
            EUR=defaults.currencies.EUR,
            GBP=defaults.currencies.GBP,
        ),
        updated_at=now,
    )


def parse_client_timestamp(value: str | None) -> datetime.datetime | None:
    """Accept the ISO value we hand out in Last-Modified, or an HTTP-date."""
    if not value or not value.strip():
        return None
    value = value.strip()
    parsed: datetime.datetime | None
    try:
        parsed = datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.UTC)
    return parsed


def build_price_response(
    snapshot: PriceSnapshot | None,
    if_modified_since: str | None = None,
    now: datetime.datetime | None = None,
    app_settings: Settings | None = None,
) -> PriceResponse:
    if snapshot is None:
        now = now or datetime.datetime.now(datetime.UTC)
        return PriceResponse(snapshot=default_snapshot(now, app_settings))

    client_time = parse_client_timestamp(if_modified_since)
    if client_time is not None and client_time >= snapshot.updated_at:
        return PriceResponse(snapshot=None, not_modified=True)

    return PriceResponse(snapshot=snapshot, last_modified=format_timestamp(snapshot.updated_at))
