"""Publishing pool lifecycle and readiness reporting."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
import redis.asyncio as redis

from signquest import redis_client
from signquest.config import Settings


@pytest.fixture(autouse=True)
async def _no_pool():
    await redis_client.close_redis()
    yield
    await redis_client.close_redis()


class TestPool:
    """Test pool creation from settings."""

    @pytest.mark.asyncio
    async def test_pool_follows_settings(self):
        await redis_client.init_redis(Settings(redis_url="redis://localhost:6390/3", redis_max_connections=7))

        pool = redis_client.get_publisher()
        assert pool is not None
        assert pool.connection_pool.max_connections == 7

    @pytest.mark.asyncio
    async def test_publisher_is_none_before_init(self):
        assert redis_client.get_publisher() is None

    @pytest.mark.asyncio
    async def test_close_forgets_pool(self):
        await redis_client.init_redis(Settings())
        await redis_client.close_redis()

        assert redis_client.get_publisher() is None


class TestStatus:
    """Test the readiness check result."""

    @pytest.mark.asyncio
    async def test_not_initialized(self):
        assert await redis_client.redis_status() == "error: not initialized"

    @pytest.mark.asyncio
    async def test_ping_ok(self, monkeypatch):
        monkeypatch.setattr(redis_client, "_pool", AsyncMock())

        assert await redis_client.redis_status() == "ok"

    @pytest.mark.asyncio
    async def test_ping_failure_is_reported(self, monkeypatch):
        pool = AsyncMock()
        pool.ping.side_effect = redis.ConnectionError("connection refused")
        monkeypatch.setattr(redis_client, "_pool", pool)

        assert await redis_client.redis_status() == "error: connection refused"
