"""Tests for Redis client construction and shutdown."""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from crosslink.config import RedisSettings
from crosslink.store.connection import RedisOperationError, close_redis, create_redis


class _ClosingClient:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.closed = False

    async def aclose(self) -> None:
        if self.error is not None:
            raise self.error
        self.closed = True


class TestConnection:
    """Tests for client helpers."""

    def test_create_redis_uses_settings(self) -> None:
        """Test connection parameters come from the settings object."""
        client = create_redis(RedisSettings(host="redis.internal", port=6380, db=3, password="pw"))
        kwargs = client.connection_pool.connection_kwargs
        assert (kwargs["host"], kwargs["port"], kwargs["db"], kwargs["password"]) == ("redis.internal", 6380, 3, "pw")
        assert kwargs["decode_responses"] is True

    @pytest.mark.asyncio
    async def test_close_redis(self) -> None:
        """Test clients are closed through aclose."""
        client = _ClosingClient()
        await close_redis(client)  # type: ignore[arg-type]
        assert client.closed

    @pytest.mark.asyncio
    async def test_close_failure_is_wrapped(self) -> None:
        """Test close failures surface as RedisOperationError."""
        with pytest.raises(RedisOperationError, match="close failed"):
            await close_redis(_ClosingClient(RedisConnectionError("gone")))  # type: ignore[arg-type]

    @pytest.mark.asyncio
    async def test_clients_without_aclose_are_skipped(self, fake_redis) -> None:
        """Test objects without aclose are left alone."""
        await close_redis(fake_redis)
