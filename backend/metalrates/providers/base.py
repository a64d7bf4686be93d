from __future__ import annotations

import json
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from metalrates.errors import ProviderError
from metalrates.schemas.provider import ProviderResult

ResponseModel = TypeVar("ResponseModel", bound=BaseModel)


async def fetch_json(
    client: httpx.AsyncClient,
    provider: str,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    params: dict[str, str] | None = None,
) -> Any:
    try:
        response = await client.get(url, headers=headers, params=params)
    except httpx.TimeoutException as exc:
        raise ProviderError(provider, f"timeout requesting {url}") from exc
    except httpx.HTTPError as exc:
        raise ProviderError(provider, f"transport error: {exc}") from exc

    if response.status_code == 429:
        raise ProviderError(provider, "HTTP 429", status="rate_limited")
    if not response.is_success:
        raise ProviderError(provider, f"HTTP {response.status_code}")

    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ProviderError(provider, "response is not JSON", status="invalid") from exc


def parse_response(provider: str, model: type[ResponseModel], payload: Any) -> ResponseModel:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise ProviderError(
            provider,
            f"unexpected response shape: {exc.error_count()} error(s)",
            status="invalid",
        ) from exc


def failed_result(exc: ProviderError) -> ProviderResult:
    return ProviderResult(provider=exc.provider, status=exc.status, reason=exc.reason)
