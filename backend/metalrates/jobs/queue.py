from __future__ import annotations

import asyncio

import httpx
from redis import Redis
from rq import Queue
from rq.job import Job

from metalrates.cache import RedisCacheStore
from metalrates.config.settings import Settings, settings
from metalrates.jobs.refresh import refresh_prices


def get_redis_connection(app_settings: Settings | None = None) -> Redis:
    app_settings = app_settings or settings
    if not app_settings.redis_url:
        raise RuntimeError("REDIS_URL is required for the refresh queue")
    return Redis.from_url(app_settings.redis_url)


def get_queue(name: str | None = None, app_settings: Settings | None = None) -> Queue:
    app_settings = app_settings or settings
    queue_name = name or app_settings.refresh_queue_name
    return Queue(name=queue_name, connection=get_redis_connection(app_settings))


async def _refresh_from_worker() -> dict:
    store = RedisCacheStore.from_url(settings.redis_url)
    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
            result = await refresh_prices(store, client)
    finally:
        await store.close()
    return result.snapshot.to_payload()


def run_scheduled_refresh_job() -> dict:
    # Authorization is checked by whoever enqueued the job. The worker
    # process reads its own environment.
    return asyncio.run(_refresh_from_worker())


def enqueue_scheduled_refresh(app_settings: Settings | None = None) -> Job:
    queue = get_queue(app_settings=app_settings)
    return queue.enqueue(run_scheduled_refresh_job)
