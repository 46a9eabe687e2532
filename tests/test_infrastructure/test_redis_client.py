"""Tests for the Redis client lifecycle."""

from __future__ import annotations

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from deal_confirmation.infrastructure import redis_client


class FakeRedis:
    def __init__(self, ping_error: Exception | None = None) -> None:
        self.ping_error = ping_error
        self.closed = False

    async def ping(self) -> bool:
        if self.ping_error is not None:
            raise self.ping_error
        return True

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def reset_singleton(monkeypatch):
    monkeypatch.setattr(redis_client, "_redis_client", None)


class TestInitRedis:
    async def test_connects_and_publishes_client(self, monkeypatch) -> None:
        fake = FakeRedis()
        monkeypatch.setattr(redis_client.aioredis, "from_url", lambda *a, **kw: fake)

        assert await redis_client.init_redis() is fake
        assert redis_client.get_redis() is fake

        await redis_client.close_redis()
        assert fake.closed
        assert redis_client.get_redis() is None

    async def test_failed_ping_closes_client(self, monkeypatch) -> None:
        fake = FakeRedis(ping_error=RedisConnectionError("connection refused"))
        monkeypatch.setattr(redis_client.aioredis, "from_url", lambda *a, **kw: fake)

        with pytest.raises(RedisConnectionError):
            await redis_client.init_redis()

        assert fake.closed
        assert redis_client.get_redis() is None
