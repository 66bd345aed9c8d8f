"""Shared configuration helpers and dataclasses."""

from .errors import ConfigurationError
from .runtime import (
    env_bool,
    env_float,
    env_int,
    env_list,
    env_seconds,
    env_str,
    reset_default_values,
)
from .settings import DedupPolicy, EngineSettings, RedisSettings, VenueRefreshSettings

__all__ = [
    "ConfigurationError",
    "DedupPolicy",
    "EngineSettings",
    "RedisSettings",
    "VenueRefreshSettings",
    "env_bool",
    "env_float",
    "env_int",
    "env_list",
    "env_seconds",
    "env_str",
    "reset_default_values",
]
