"""Exception types for configuration handling."""

from __future__ import annotations

from typing import Any, Iterable

from crosslink.exceptions import ApplicationError


class ConfigurationError(ApplicationError, RuntimeError):
    """Raised when configuration values or run options are missing or malformed."""

    @classmethod
    def missing_value(cls, param_name: str, context: str = "") -> "ConfigurationError":
        msg = f"{param_name} is missing or empty"
        if context:
            msg += f": {context}"
        return cls(msg, param_name=param_name)

    @classmethod
    def invalid_value(cls, param_name: str, value: Any, reason: str = "") -> "ConfigurationError":
        msg = f"Invalid value for {param_name}: {value!r}"
        if reason:
            msg += f". {reason}"
        return cls(msg, param_name=param_name)

    @classmethod
    def unknown_topic(cls, raw_topic: object, known: Iterable[object] = ()) -> "ConfigurationError":
        """Topic string that maps to no canonical topic."""
        listing = ", ".join(str(item) for item in known)
        msg = f"Invalid topic: {raw_topic!r}"
        if listing:
            msg += f". Known topics: {listing}"
        return cls(msg, param_name="topic")


__all__ = ["ConfigurationError"]
