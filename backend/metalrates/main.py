from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from metalrates.api.routes import router
from metalrates.cache import build_cache_store
from metalrates.config.settings import Settings, settings as default_settings


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_app(app_settings: Settings | None = None) -> FastAPI:
    app_settings = app_settings or default_settings
    configure_logging(app_settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.http_client = httpx.AsyncClient(
            timeout=app_settings.http_timeout_seconds,
            follow_redirects=True,
            limits=httpx.Limits(max_keepalive_connections=10, max_connections=30),
        )
        app.state.cache_store = build_cache_store(app_settings)
        try:
            yield
        finally:
            await app.state.http_client.aclose()
            await app.state.cache_store.close()

    app = FastAPI(
        title="Metal Rates API",
        description="Cached precious metal prices (USD per gram) and ILS/EUR/GBP rates.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["Last-Modified"],
    )
    app.state.settings = app_settings
    app.include_router(router)
    return app


app = create_app()
