from __future__ import annotations

import abc
import logging

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from metalrates.config.settings import Settings
from metalrates.errors import CacheError
from metalrates.schemas.prices import PriceSnapshot

logger = logging.getLogger(__name__)


def _decode(key: str, raw: str | bytes | None) -> PriceSnapshot | None:
    if not raw:
        return None
    try:
        return PriceSnapshot.model_validate_json(raw)
    except ValidationError as exc:
        # An unreadable entry is replaced by the next refresh.
        logger.warning("Discarding undecodable cache entry %r: %s", key, exc)
        return None


def _encode(snapshot: PriceSnapshot) -> str:
    return snapshot.model_dump_json(by_alias=True)


class CacheStore(abc.ABC):
    """Single-key get/set storage for price snapshots.

    Backend failures raise CacheError. A missing key is None.
    """

    @abc.abstractmethod
    async def get(self, key: str) -> PriceSnapshot | None:
        ...

    @abc.abstractmethod
    async def set(self, key: str, snapshot: PriceSnapshot) -> None:
        ...

    async def close(self) -> None:
        return None


class RedisCacheStore(CacheStore):
    def __init__(self, client: Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> RedisCacheStore:
        return cls(Redis.from_url(url))

    async def get(self, key: str) -> PriceSnapshot | None:
        try:
            raw = await self._client.get(key)
        except (RedisError, OSError) as exc:
            raise CacheError(f"redis get {key!r} failed: {exc}") from exc
        return _decode(key, raw)

    async def set(self, key: str, snapshot: PriceSnapshot) -> None:
        try:
            await self._client.set(key, _encode(snapshot))
        except (RedisError, OSError) as exc:
            raise CacheError(f"redis set {key!r} failed: {exc}") from exc

    async def close(self) -> None:
        await self._client.aclose()


class MemoryCacheStore(CacheStore):
    """Process-local store for development and tests.

    Entries are kept serialized, so readers never share objects with the
    store. Contents are lost when the instance goes away.
    """

    def __init__(self, data: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = {} if data is None else data

    async def get(self, key: str) -> PriceSnapshot | None:
        return _decode(key, self._data.get(key))

    async def set(self, key: str, snapshot: PriceSnapshot) -> None:
        self._data[key] = _encode(snapshot)


def build_cache_store(settings: Settings) -> CacheStore:
    if settings.redis_url:
        return RedisCacheStore.from_url(settings.redis_url)
    logger.info("No REDIS_URL configured, using in-memory price cache")
    return MemoryCacheStore()
