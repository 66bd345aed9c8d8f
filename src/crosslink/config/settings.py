"""Typed settings assembled from environment variables."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

from .errors import ConfigurationError
from .runtime import env_float, env_int, env_seconds, env_str

DEFAULT_REDIS_HOST = "localhost"
DEFAULT_REDIS_PORT = 6379
DEFAULT_SOCKET_TIMEOUT_SECONDS = 10.0

DEFAULT_DEDUP_EPSILON = 0.001
DEFAULT_DEDUP_MIN_INTERVAL_SECONDS = 60

_DEFAULT_REFRESH_SECONDS = {
    "kalshi": 60,
    "polymarket": 30,
}


@dataclass(frozen=True)
class RedisSettings:
    """Connection parameters for the Redis instance holding markets and links."""

    host: str = DEFAULT_REDIS_HOST
    port: int = DEFAULT_REDIS_PORT
    db: int = 0
    password: Optional[str] = None
    socket_timeout: float = DEFAULT_SOCKET_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls) -> "RedisSettings":
        port = env_int("REDIS_PORT", or_value=DEFAULT_REDIS_PORT)
        db = env_int("REDIS_DB", or_value=0)
        timeout = env_float("REDIS_SOCKET_TIMEOUT", or_value=DEFAULT_SOCKET_TIMEOUT_SECONDS)
        if port is None or port <= 0:
            raise ConfigurationError.invalid_value("REDIS_PORT", port, "Port must be positive")
        return cls(
            host=env_str("REDIS_HOST", or_value=DEFAULT_REDIS_HOST) or DEFAULT_REDIS_HOST,
            port=port,
            db=db or 0,
            password=env_str("REDIS_PASSWORD"),
            socket_timeout=timeout or DEFAULT_SOCKET_TIMEOUT_SECONDS,
        )


@dataclass(frozen=True)
class EngineSettings:
    """Process-wide overrides for matching run defaults.

    ``None`` means "use the per-topic default".
    """

    lookback_hours: Optional[int] = None
    min_score: Optional[float] = None

    @classmethod
    def from_env(cls) -> "EngineSettings":
        lookback = env_int("MATCH_LOOKBACK_HOURS")
        min_score = env_float("MATCH_MIN_SCORE")
        if lookback is not None and lookback <= 0:
            raise ConfigurationError.invalid_value("MATCH_LOOKBACK_HOURS", lookback, "Must be positive")
        if min_score is not None and not 0.0 <= min_score <= 1.0:
            raise ConfigurationError.invalid_value("MATCH_MIN_SCORE", min_score, "Must be within [0, 1]")
        return cls(lookback_hours=lookback, min_score=min_score)


@dataclass(frozen=True)
class DedupPolicy:
    """Quote retention policy consumed by the ingestion path.

    A new sample is kept when the price moved by at least ``epsilon`` (as a
    fraction) or ``min_interval_seconds`` elapsed since the last kept sample.
    """

    epsilon: float = DEFAULT_DEDUP_EPSILON
    min_interval_seconds: int = DEFAULT_DEDUP_MIN_INTERVAL_SECONDS

    def __post_init__(self) -> None:
        if self.epsilon < 0:
            raise ConfigurationError.invalid_value("epsilon", self.epsilon, "Must be non-negative")
        if self.min_interval_seconds < 0:
            raise ConfigurationError.invalid_value("min_interval_seconds", self.min_interval_seconds, "Must be non-negative")

    @classmethod
    def from_env(cls) -> "DedupPolicy":
        epsilon = env_float("QUOTES_DEDUP_EPSILON", or_value=DEFAULT_DEDUP_EPSILON)
        interval = env_seconds("QUOTES_DEDUP_MIN_INTERVAL_SECONDS", or_value=DEFAULT_DEDUP_MIN_INTERVAL_SECONDS)
        return cls(epsilon=float(epsilon or 0.0), min_interval_seconds=int(interval or 0))


@dataclass(frozen=True)
class VenueRefreshSettings:
    """Per-venue refresh intervals for market and quote ingestion."""

    intervals: Dict[str, int] = field(default_factory=lambda: dict(_DEFAULT_REFRESH_SECONDS))

    def interval_for(self, venue: str) -> int:
        key = venue.lower()
        if key not in self.intervals:
            raise ConfigurationError.missing_value(f"refresh interval for venue {venue!r}")
        return self.intervals[key]

    @classmethod
    def from_env(cls) -> "VenueRefreshSettings":
        intervals: Dict[str, int] = {}
        for venue, default_seconds in _DEFAULT_REFRESH_SECONDS.items():
            value = env_seconds(f"{venue.upper()}_REFRESH_SECONDS", or_value=default_seconds)
            if value is None or value <= 0:
                raise ConfigurationError.invalid_value(f"{venue.upper()}_REFRESH_SECONDS", value, "Must be positive")
            intervals[venue] = value
        return cls(intervals=intervals)


__all__ = [
    "DedupPolicy",
    "EngineSettings",
    "RedisSettings",
    "VenueRefreshSettings",
]
