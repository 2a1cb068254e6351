"""
Cache Store Infrastructure
===========================

Redis key-value store backing the repository metadata cache.

Values are opaque strings (JSON snapshots); expiry is set per write and is
purely time-based.
"""

from abc import ABC, abstractmethod
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from issue_triage.config import Settings, settings as default_settings
from issue_triage.core import CacheStoreException
from issue_triage.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class ICacheStore(ABC):
    """Interface for a TTL key-value store."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None when absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store (overwrite) a value with a time-to-live."""


class RedisCacheStore(ICacheStore):
    """Redis implementation of ICacheStore."""

    def __init__(self, client: Optional[redis.Redis] = None, config: Optional[Settings] = None):
        self._settings = config or default_settings
        self._client = client

    def _get_client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.Redis.from_url(
                self._settings.redis_url,
                decode_responses=True,
                health_check_interval=30
            )
        return self._client

    async def ping(self) -> bool:
        try:
            return bool(await self._get_client().ping())
        except RedisError as e:
            logger.warning("Redis unavailable", extra={"error": str(e)})
            return False

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._get_client().get(key)
        except RedisError as e:
            raise CacheStoreException(f"GET failed: {str(e)}", {"key": key})

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._get_client().set(key, value, ex=ttl_seconds)
        except RedisError as e:
            raise CacheStoreException(f"SET failed: {str(e)}", {"key": key})

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
