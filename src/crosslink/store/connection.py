"""Async Redis client construction and shutdown."""

from __future__ import annotations

import logging
from typing import Optional, cast

import redis.asyncio
from redis.asyncio import Redis

from crosslink.config.settings import RedisSettings

from .error_types import REDIS_ERRORS

logger = logging.getLogger(__name__)


class RedisOperationError(RuntimeError):
    """Raised when a Redis operation fails and should be surfaced to callers."""

    def __init__(self, operation: str, original: Exception | None = None):
        message = f"Redis {operation} failed"
        if original:
            message = f"{message}: {original}"
        super().__init__(message)
        self.operation = operation
        self.original = original


def create_redis(settings: Optional[RedisSettings] = None) -> Redis:
    """Build a client from ``settings`` (environment when omitted); no I/O happens here."""
    settings = settings or RedisSettings.from_env()
    logger.debug("Creating Redis client for %s:%d/%d", settings.host, settings.port, settings.db)
    return redis.asyncio.Redis(
        host=settings.host,
        port=settings.port,
        db=settings.db,
        password=settings.password,
        socket_timeout=settings.socket_timeout,
        decode_responses=True,
    )


async def close_redis(redis_client: Redis) -> None:
    """Close a client during shutdown."""
    closer = getattr(redis_client, "aclose", None)
    if closer is None:
        logger.debug("Redis client does not expose aclose; skipping cleanup")
        return
    try:
        await closer()
    except REDIS_ERRORS as exc:
        raise RedisOperationError("close", original=cast(Exception, exc)) from exc
    logger.debug("Redis connection closed")


__all__ = ["RedisOperationError", "close_redis", "create_redis"]
