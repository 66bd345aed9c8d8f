"""Typing helpers for redis.asyncio usage.

redis-py exposes unified sync/async command signatures; these helpers narrow
them to the async behavior the stores rely on.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Awaitable, TypeVar, cast

from redis import asyncio as redis_asyncio

if TYPE_CHECKING:
    from redis.asyncio import Redis as RedisClient
else:
    RedisClient = redis_asyncio.Redis

T = TypeVar("T")


def ensure_awaitable(result: "Awaitable[T] | T") -> Awaitable[T]:
    """Treat a redis command result as awaitable; the async client always returns one."""
    return cast(Awaitable[T], result)


__all__ = ["RedisClient", "ensure_awaitable"]
