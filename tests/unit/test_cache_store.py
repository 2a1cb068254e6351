"""
Unit tests for RedisCacheStore with a mocked redis client
"""

import pytest
from unittest.mock import AsyncMock
from redis.exceptions import ConnectionError as RedisConnectionError, RedisError

from issue_triage.core import CacheStoreException
from issue_triage.infrastructure.cache import RedisCacheStore


@pytest.fixture
def redis_client():
    return AsyncMock()


@pytest.fixture
def store(redis_client, test_settings):
    return RedisCacheStore(client=redis_client, config=test_settings)


@pytest.mark.asyncio
async def test_set_passes_ttl_as_expiry(store, redis_client):
    await store.set("repo:acme/widgets:labels", "[]", 3600)

    redis_client.set.assert_awaited_once_with("repo:acme/widgets:labels", "[]", ex=3600)


@pytest.mark.asyncio
async def test_get_returns_stored_value(store, redis_client):
    redis_client.get.return_value = '{"title": "t", "body": "b"}'

    assert await store.get("repo:acme/widgets:label:bug:example") == '{"title": "t", "body": "b"}'
    redis_client.get.assert_awaited_once_with("repo:acme/widgets:label:bug:example")


@pytest.mark.asyncio
async def test_get_missing_key_is_none(store, redis_client):
    redis_client.get.return_value = None

    assert await store.get("repo:acme/widgets:labels") is None


@pytest.mark.asyncio
async def test_get_error_is_wrapped(store, redis_client):
    redis_client.get.side_effect = RedisConnectionError("connection refused")

    with pytest.raises(CacheStoreException) as exc_info:
        await store.get("k")

    assert exc_info.value.details == {"key": "k"}


@pytest.mark.asyncio
async def test_set_error_is_wrapped(store, redis_client):
    redis_client.set.side_effect = RedisError("READONLY")

    with pytest.raises(CacheStoreException):
        await store.set("k", "v", 1800)


@pytest.mark.asyncio
async def test_ping(store, redis_client):
    redis_client.ping.return_value = True
    assert await store.ping() is True

    redis_client.ping.side_effect = RedisConnectionError("down")
    assert await store.ping() is False


@pytest.mark.asyncio
async def test_close_releases_client(store, redis_client):
    await store.close()

    redis_client.aclose.assert_awaited_once()
    await store.close()
    redis_client.aclose.assert_awaited_once()
