"""Per-topic run defaults and option resolution."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from crosslink.config import ConfigurationError, EngineSettings

from .types import CanonicalTopic, EngineRunOptions, RunLimits

DEFAULT_LOOKBACK_HOURS = 720
DEFAULT_MIN_SCORE = 0.60
FALLBACK_LIMITS = RunLimits(max_left=1000, max_right=5000, max_per_left=3, max_per_right=3)

DEFAULT_LIMITS: dict[CanonicalTopic, RunLimits] = {
    CanonicalTopic.CRYPTO_DAILY: RunLimits(max_left=2000, max_right=20000, max_per_left=5, max_per_right=5),
    CanonicalTopic.CRYPTO_INTRADAY: RunLimits(max_left=500, max_right=5000, max_per_left=3, max_per_right=3),
    CanonicalTopic.RATES: RunLimits(max_left=500, max_right=2000, max_per_left=3, max_per_right=3),
    CanonicalTopic.ELECTIONS: RunLimits(max_left=1000, max_right=5000, max_per_left=3, max_per_right=3),
    CanonicalTopic.SPORTS: RunLimits(max_left=2000, max_right=10000, max_per_left=3, max_per_right=3),
    CanonicalTopic.UNIVERSAL: RunLimits(max_left=2000, max_right=10000, max_per_left=3, max_per_right=3),
}

DEFAULT_MIN_SCORES: dict[CanonicalTopic, float] = {
    CanonicalTopic.CRYPTO_DAILY: 0.60,
    CanonicalTopic.CRYPTO_INTRADAY: 0.60,
    CanonicalTopic.RATES: 0.60,
    CanonicalTopic.ELECTIONS: 0.55,
    CanonicalTopic.SPORTS: 0.60,
    CanonicalTopic.UNIVERSAL: 0.60,
}

DEFAULT_LOOKBACK: dict[CanonicalTopic, int] = {
    CanonicalTopic.CRYPTO_INTRADAY: 24,
}


@dataclass(frozen=True)
class ResolvedRunSettings:
    """Concrete values for one run after defaults are applied."""

    lookback_hours: int
    min_score: float
    max_left: int
    max_right: int
    max_per_left: int
    max_per_right: int


def _pick(explicit: Optional[int], fallback: Optional[int], last_resort: int) -> int:
    if explicit is not None:
        return explicit
    if fallback is not None:
        return fallback
    return last_resort


def resolve_run_settings(
    topic: CanonicalTopic,
    options: EngineRunOptions,
    settings: Optional[EngineSettings] = None,
) -> ResolvedRunSettings:
    """Fill unset options from process settings, then per-topic defaults.

    Explicit options always win; ``EngineSettings`` overrides the per-topic
    table for lookback and min score only.
    """
    settings = settings or EngineSettings()
    topic_limits = DEFAULT_LIMITS.get(topic, FALLBACK_LIMITS)
    limits = options.limits

    if options.lookback_hours is not None:
        lookback = options.lookback_hours
    elif settings.lookback_hours is not None:
        lookback = settings.lookback_hours
    else:
        lookback = DEFAULT_LOOKBACK.get(topic, DEFAULT_LOOKBACK_HOURS)

    if options.min_score is not None:
        min_score = options.min_score
    elif settings.min_score is not None:
        min_score = settings.min_score
    else:
        min_score = DEFAULT_MIN_SCORES.get(topic, DEFAULT_MIN_SCORE)

    if lookback <= 0:
        raise ConfigurationError.invalid_value("lookback_hours", lookback, "Must be positive")
    if not 0.0 <= min_score <= 1.0:
        raise ConfigurationError.invalid_value("min_score", min_score, "Must be within [0, 1]")

    resolved = ResolvedRunSettings(
        lookback_hours=lookback,
        min_score=min_score,
        max_left=_pick(limits.max_left, topic_limits.max_left, FALLBACK_LIMITS.max_left or 0),
        max_right=_pick(limits.max_right, topic_limits.max_right, FALLBACK_LIMITS.max_right or 0),
        max_per_left=_pick(limits.max_per_left, topic_limits.max_per_left, FALLBACK_LIMITS.max_per_left or 0),
        max_per_right=_pick(limits.max_per_right, topic_limits.max_per_right, FALLBACK_LIMITS.max_per_right or 0),
    )
    for name in ("max_left", "max_right", "max_per_left", "max_per_right"):
        if getattr(resolved, name) < 1:
            raise ConfigurationError.invalid_value(name, getattr(resolved, name), "Must be at least 1")
    return resolved


__all__ = [
    "DEFAULT_LIMITS",
    "DEFAULT_LOOKBACK",
    "DEFAULT_LOOKBACK_HOURS",
    "DEFAULT_MIN_SCORE",
    "DEFAULT_MIN_SCORES",
    "ResolvedRunSettings",
    "resolve_run_settings",
]
