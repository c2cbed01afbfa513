"""
Cache backends.

Backends raise CacheUnavailableError on failure. ResilientCache wraps a
backend with a per-call timeout and turns every failure into a logged miss,
so callers always fall back to the store.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, Iterable

import structlog
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from forecast_scoring.config.settings import CacheSettings
from forecast_scoring.errors import CacheUnavailableError
from forecast_scoring.models.base import utc_now

logger = structlog.get_logger(__name__)


class CacheBackend(ABC):
    """Key/value store with per-key TTL holding JSON-ready dicts."""

    @abstractmethod
    async def get(self, key: str) -> dict[str, Any] | None: ...

    @abstractmethod
    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None: ...

    @abstractmethod
    async def delete(self, key: str) -> None: ...

    async def delete_many(self, keys: Iterable[str]) -> None:
        for key in keys:
            await self.delete(key)


class MemoryCache(CacheBackend):
    """Process-local cache; expiry is checked against a monotonic clock on read."""

    def __init__(self) -> None:
        self._entries: dict[str, tuple[float, dict[str, Any]]] = {}

    async def get(self, key: str) -> dict[str, Any] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if time.monotonic() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        self._entries[key] = (time.monotonic() + ttl_seconds, value)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def delete_many(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


class MongoCache(CacheBackend):
    """
    Cache stored in a MongoDB collection.

    Documents are ``{_id: key, value, expires_at}``; a TTL index on
    ``expires_at`` purges them and reads ignore entries already past expiry.
    """

    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self._collection = collection

    async def get(self, key: str) -> dict[str, Any] | None:
        try:
            document = await self._collection.find_one(
                {"_id": key, "expires_at": {"$gt": utc_now()}}
            )
        except PyMongoError as e:
            raise CacheUnavailableError(f"cache get failed: {e}") from e
        if document is None:
            return None
        return document["value"]

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        try:
            await self._collection.replace_one(
                {"_id": key},
                {
                    "_id": key,
                    "value": value,
                    "expires_at": utc_now() + timedelta(seconds=ttl_seconds),
                },
                upsert=True,
            )
        except PyMongoError as e:
            raise CacheUnavailableError(f"cache set failed: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            await self._collection.delete_one({"_id": key})
        except PyMongoError as e:
            raise CacheUnavailableError(f"cache delete failed: {e}") from e

    async def delete_many(self, keys: Iterable[str]) -> None:
        try:
            await self._collection.delete_many({"_id": {"$in": list(keys)}})
        except PyMongoError as e:
            raise CacheUnavailableError(f"cache delete failed: {e}") from e


class NullCache(CacheBackend):
    """Caching disabled: every read misses."""

    async def get(self, key: str) -> dict[str, Any] | None:
        return None

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        return None

    async def delete(self, key: str) -> None:
        return None


class ResilientCache:
    """
    Fail-open facade over a CacheBackend.

    Each call is bounded by ``timeout`` seconds. Errors and timeouts are
    logged and reported as a miss (get) or ignored (set/delete). Errors a
    backend does not wrap in CacheUnavailableError are logged with their
    traceback and handled the same way.
    """

    def __init__(self, backend: CacheBackend, timeout: float = 0.25) -> None:
        self.backend = backend
        self.timeout = timeout

    async def get(self, key: str) -> dict[str, Any] | None:
        try:
            return await asyncio.wait_for(self.backend.get(key), self.timeout)
        except (CacheUnavailableError, asyncio.TimeoutError) as e:
            logger.warning("Cache read failed, using store", key=key, error=repr(e))
            return None
        except Exception:
            logger.exception("Unexpected cache read failure, using store", key=key)
            return None

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> bool:
        try:
            await asyncio.wait_for(self.backend.set(key, value, ttl_seconds), self.timeout)
            return True
        except (CacheUnavailableError, asyncio.TimeoutError) as e:
            logger.warning("Cache write failed", key=key, error=repr(e))
            return False
        except Exception:
            logger.exception("Unexpected cache write failure", key=key)
            return False

    async def delete(self, key: str) -> bool:
        try:
            await asyncio.wait_for(self.backend.delete(key), self.timeout)
            return True
        except (CacheUnavailableError, asyncio.TimeoutError) as e:
            logger.warning("Cache invalidation failed", key=key, error=repr(e))
            return False
        except Exception:
            logger.exception("Unexpected cache invalidation failure", key=key)
            return False

    async def delete_many(self, keys: list[str]) -> bool:
        try:
            await asyncio.wait_for(self.backend.delete_many(keys), self.timeout)
            return True
        except (CacheUnavailableError, asyncio.TimeoutError) as e:
            logger.warning("Cache invalidation failed", keys=len(keys), error=repr(e))
            return False
        except Exception:
            logger.exception("Unexpected cache invalidation failure", keys=len(keys))
            return False


def build_cache_backend(
    settings: CacheSettings,
    database: AsyncIOMotorDatabase | None = None,
) -> CacheBackend:
    """Instantiate the configured backend."""
    if settings.backend == "mongo":
        if database is None:
            raise ValueError("The mongo cache backend needs a database")
        return MongoCache(database[settings.collection_name])
    if settings.backend == "none":
        return NullCache()
    return MemoryCache()
