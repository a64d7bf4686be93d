import logging

import httpx
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, Response

from metalrates.api.conditional import build_price_response
from metalrates.cache import CacheStore
from metalrates.config.settings import Settings
from metalrates.errors import AuthorizationError
from metalrates.jobs.queue import enqueue_scheduled_refresh
from metalrates.jobs.refresh import check_cron_authorization, get_current_prices, run_scheduled_refresh
from metalrates.schemas.prices import QueuedRefreshResponse, RefreshResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_cache_store(request: Request) -> CacheStore:
    return request.app.state.cache_store


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def _unauthorized() -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"error": "Unauthorized"})


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/api/prices")
async def read_prices(
    if_modified_since: str | None = Header(default=None),
    store: CacheStore = Depends(get_cache_store),
    client: httpx.AsyncClient = Depends(get_http_client),
    app_settings: Settings = Depends(get_settings),
) -> Response:
    try:
        snapshot = await get_current_prices(store, client, app_settings=app_settings)
        built = build_price_response(snapshot, if_modified_since, app_settings=app_settings)
    except Exception:
        logger.exception("Price read failed")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to fetch prices"},
        )

    if built.not_modified:
        return Response(status_code=status.HTTP_304_NOT_MODIFIED)

    headers = {"Last-Modified": built.last_modified} if built.last_modified else None
    return JSONResponse(content=built.snapshot.to_payload(), headers=headers)


@router.api_route("/api/cron/update-prices", methods=["GET", "POST"])
async def update_prices(
    defer: bool = Query(default=False),
    authorization: str | None = Header(default=None),
    store: CacheStore = Depends(get_cache_store),
    client: httpx.AsyncClient = Depends(get_http_client),
    app_settings: Settings = Depends(get_settings),
) -> Response:
    if defer:
        try:
            check_cron_authorization(authorization, app_settings)
        except AuthorizationError:
            return _unauthorized()
        if not app_settings.redis_url:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Deferred refresh requires REDIS_URL.",
            )
        job = enqueue_scheduled_refresh(app_settings)
        body = QueuedRefreshResponse(job_id=job.id)
        return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=body.model_dump())

    try:
        result = await run_scheduled_refresh(store, client, authorization, app_settings=app_settings)
    except AuthorizationError:
        return _unauthorized()
    except Exception as exc:
        logger.exception("Scheduled price refresh failed")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(exc)},
        )

    body = RefreshResponse(data=result.snapshot.to_payload(), sources=result.sources)
    return JSONResponse(content=body.model_dump())
