"""Runtime helpers for environment-backed configuration."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Dict, TypeVar

from .errors import ConfigurationError

_TRUE_VALUES = {"1", "true", "t", "yes", "y", "on"}
_FALSE_VALUES = {"0", "false", "f", "no", "n", "off"}

_DOTENV_CANDIDATES = (Path(".env"), Path.home() / ".crosslink.env")

_DEFAULT_VALUES: dict[str, str] | None = None

T = TypeVar("T")


def _parse_dotenv(path: Path) -> Dict[str, str]:
    """Read ``KEY=value`` pairs from a dotenv-style file."""
    if not path.exists():
        return {}

    values: Dict[str, str] = {}
    try:
        lines = path.read_text().splitlines()
    except OSError as exc:
        raise ConfigurationError(f"Failed to load configuration from {path}") from exc

    for line in lines:
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue
        key, raw_value = stripped.split("=", 1)
        key = key.strip()
        if key:
            values[key] = raw_value.strip().strip("'").strip('"')
    return values


def _load_default_values() -> dict[str, str]:
    """Load fallback values from dotenv files, first file wins."""
    global _DEFAULT_VALUES
    if _DEFAULT_VALUES is not None:
        return _DEFAULT_VALUES

    defaults: dict[str, str] = {}
    for path in _DOTENV_CANDIDATES:
        for key, value in _parse_dotenv(path).items():
            defaults.setdefault(key, value)

    _DEFAULT_VALUES = defaults
    return defaults


def reset_default_values() -> None:
    """Forget cached dotenv values so the next lookup re-reads the files."""
    global _DEFAULT_VALUES
    _DEFAULT_VALUES = None


def env_str(
    name: str,
    or_value: str | None = None,
    *,
    required: bool = False,
    strip: bool = True,
) -> str | None:
    """Fetch an environment variable as a string, falling back to dotenv defaults."""

    value = os.getenv(name)
    if value is not None and strip:
        value = value.strip()

    if not value:
        configured_default = _load_default_values().get(name)
        if configured_default is not None:
            value = configured_default.strip() if strip else configured_default

    if not value:
        if required:
            raise ConfigurationError(f"Required environment variable {name!r} is not set")
        return or_value
    return value


def _coerced(name: str, convert: Callable[[str], T], kind: str, or_value: T | None, required: bool) -> T | None:
    raw = env_str(name)
    if raw is None:
        if required and or_value is None:
            raise ConfigurationError.missing_value(name, "required environment variable")
        return or_value
    try:
        return convert(raw)
    except ValueError as exc:
        raise ConfigurationError(f"Environment variable {name!r} must be {kind} (got {raw!r})", param_name=name) from exc


def env_int(name: str, or_value: int | None = None, *, required: bool = False) -> int | None:
    return _coerced(name, int, "an integer", or_value, required)


def env_float(name: str, or_value: float | None = None, *, required: bool = False) -> float | None:
    return _coerced(name, float, "a float", or_value, required)


def _parse_bool(raw: str) -> bool:
    lowered = raw.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(raw)


def env_bool(name: str, or_value: bool | None = None, *, required: bool = False) -> bool | None:
    """Accepts 1/0, true/false, yes/no, on/off and their short forms, in any case."""
    return _coerced(name, _parse_bool, "a boolean", or_value, required)


def env_list(name: str, *, or_value: tuple[str, ...] | None = None, separator: str = ",") -> tuple[str, ...] | None:
    """Fetch a delimited list from the environment, dropping blanks and duplicates."""

    raw = env_str(name)
    if raw is None:
        return or_value

    seen: set[str] = set()
    items: list[str] = []
    for part in raw.split(separator):
        item = part.strip()
        if item and item not in seen:
            seen.add(item)
            items.append(item)
    return tuple(items)


def env_seconds(name: str, or_value: int | None = None, *, required: bool = False) -> int | None:
    """Convenience wrapper for durations stored as whole seconds."""

    value = env_int(name, or_value=or_value, required=required)
    if value is None:
        return None
    if value < 0:
        raise ConfigurationError(f"Environment variable {name!r} must be non-negative (got {value})")
    return value

