"""Shared exception groupings for the Redis-backed stores."""

import asyncio
from typing import Tuple, Type

import orjson
from redis.exceptions import RedisError

ExceptionTuple = Tuple[Type[BaseException], ...]

# Redis operations may surface redis-py errors along with generic timeout/OS failures.
REDIS_ERRORS: ExceptionTuple = (RedisError, asyncio.TimeoutError, OSError, RuntimeError)

JSON_ERRORS: ExceptionTuple = (TypeError, orjson.JSONDecodeError)

# Field coercion when decoding stored hashes.
DECODE_ERRORS: ExceptionTuple = JSON_ERRORS + (ValueError, KeyError)

__all__ = ["DECODE_ERRORS", "JSON_ERRORS", "REDIS_ERRORS"]
