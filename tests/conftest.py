"""Root pytest configuration and shared fixtures."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Any

import pytest

# Keep developer .env files and shell overrides out of the test run
for _name in ("MATCH_LOOKBACK_HOURS", "MATCH_MIN_SCORE", "MATCH_TOPICS"):
    os.environ.pop(_name, None)

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


class FakeRedis:
    """In-memory Redis mock for testing."""

    def __init__(self):
        self._sets: dict[str, set[str]] = {}
        self._hashes: dict[str, dict[str, str]] = {}
        self._sorted_sets: dict[str, dict[str, float]] = {}
        self.fail_writes = False
        self.hash_reads = 0

    def _check_writable(self) -> None:
        if self.fail_writes:
            raise ConnectionError("fake redis write failure")

    async def sadd(self, key: str, *members: str) -> int:
        """Add members to a set."""
        self._check_writable()
        if key not in self._sets:
            self._sets[key] = set()
        added = len(set(members) - self._sets[key])
        self._sets[key].update(members)
        return added

    async def smembers(self, key: str) -> set[str]:
        """Get all members of a set."""
        return self._sets.get(key, set()).copy()

    async def hset(self, key: str, mapping: dict[str, str] | None = None, **kwargs: Any) -> int:
        """Set hash fields from a mapping or keyword arguments."""
        self._check_writable()
        update_map = {str(field): str(value) for field, value in (mapping or kwargs).items()}
        current = self._hashes.setdefault(key, {})
        added = sum(1 for field in update_map if field not in current)
        current.update(update_map)
        return added

    async def hgetall(self, key: str) -> dict[str, str]:
        """Get all fields in a hash."""
        self.hash_reads += 1
        return self._hashes.get(key, {}).copy()

    async def delete(self, *keys: str) -> int:
        """Delete keys."""
        deleted = 0
        for key in keys:
            for store in (self._sets, self._hashes, self._sorted_sets):
                if key in store:
                    del store[key]
                    deleted += 1
        return deleted

    async def zadd(self, key: str, mapping: dict[str, float]) -> int:
        """Add members to a sorted set."""
        self._check_writable()
        current = self._sorted_sets.setdefault(key, {})
        added = sum(1 for member in mapping if member not in current)
        current.update({member: float(score) for member, score in mapping.items()})
        return added

    async def zrangebyscore(self, key: str, min_score: float | str, max_score: float | str) -> list[str]:
        """Members of a sorted set within an inclusive score range, lowest first."""
        min_val = float(min_score)
        max_val = float(max_score)
        members = self._sorted_sets.get(key, {})
        filtered = [(member, score) for member, score in members.items() if min_val <= score <= max_val]
        filtered.sort(key=lambda item: (item[1], item[0]))
        return [member for member, _ in filtered]

    def pipeline(self, transaction: bool = True) -> "FakeRedisPipeline":
        """Create a pipeline context."""
        return FakeRedisPipeline(self)

    def dump_set(self, key: str) -> set[str]:
        """Dump contents of a set (test helper)."""
        return self._sets.get(key, set()).copy()

    def dump_hash(self, key: str) -> dict[str, str]:
        """Dump contents of a hash (test helper)."""
        return self._hashes.get(key, {}).copy()

    def dump_sorted_set(self, key: str) -> dict[str, float]:
        """Dump contents of a sorted set (test helper)."""
        return dict(self._sorted_sets.get(key, {}))


class FakeRedisPipeline:
    """Redis pipeline mock that queues commands until execute()."""

    def __init__(self, fake_redis: FakeRedis):
        self.fake_redis = fake_redis
        self.commands: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []

    def _queue(self, name: str, *args: Any, **kwargs: Any) -> "FakeRedisPipeline":
        self.commands.append((name, args, kwargs))
        return self

    def sadd(self, key: str, *members: str) -> "FakeRedisPipeline":
        return self._queue("sadd", key, *members)

    def hset(self, key: str, mapping: dict[str, str] | None = None, **kwargs: Any) -> "FakeRedisPipeline":
        return self._queue("hset", key, mapping, **kwargs)

    def hgetall(self, key: str) -> "FakeRedisPipeline":
        return self._queue("hgetall", key)

    def zadd(self, key: str, mapping: dict[str, float]) -> "FakeRedisPipeline":
        return self._queue("zadd", key, mapping)

    async def execute(self) -> list[Any]:
        """Execute all queued commands in order."""
        results = []
        for name, args, kwargs in self.commands:
            results.append(await getattr(self.fake_redis, name)(*args, **kwargs))
        self.commands.clear()
        return results


@pytest.fixture
def fake_redis() -> FakeRedis:
    """Provide a fake Redis instance."""
    return FakeRedis()


@pytest.fixture
def now() -> datetime:
    """Fixed reference time shared by store and engine tests."""
    return NOW
