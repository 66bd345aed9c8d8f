"""Tests for per-topic run defaults."""

import pytest

from crosslink.config import ConfigurationError, EngineSettings
from crosslink.matching.defaults import (
    DEFAULT_LIMITS,
    DEFAULT_LOOKBACK_HOURS,
    DEFAULT_MIN_SCORES,
    FALLBACK_LIMITS,
    resolve_run_settings,
)
from crosslink.matching.types import CanonicalTopic, EngineRunOptions, RunLimits


def _options(**overrides) -> EngineRunOptions:
    return EngineRunOptions(from_venue="kalshi", to_venue="polymarket", topic=CanonicalTopic.RATES, **overrides)


class TestResolveRunSettings:
    """Tests for resolve_run_settings."""

    def test_topic_defaults(self) -> None:
        """Test unset options fall back to the topic table."""
        resolved = resolve_run_settings(CanonicalTopic.CRYPTO_DAILY, _options())
        limits = DEFAULT_LIMITS[CanonicalTopic.CRYPTO_DAILY]
        assert resolved.max_left == limits.max_left
        assert resolved.max_right == limits.max_right
        assert resolved.max_per_left == limits.max_per_left
        assert resolved.min_score == DEFAULT_MIN_SCORES[CanonicalTopic.CRYPTO_DAILY]
        assert resolved.lookback_hours == DEFAULT_LOOKBACK_HOURS

    def test_intraday_uses_short_lookback(self) -> None:
        """Test the intraday topic has its own lookback."""
        assert resolve_run_settings(CanonicalTopic.CRYPTO_INTRADAY, _options()).lookback_hours == 24

    def test_unlisted_topic_uses_fallback_limits(self) -> None:
        """Test topics without a table entry use the fallback limits."""
        resolved = resolve_run_settings(CanonicalTopic.CLIMATE, _options())
        assert resolved.max_left == FALLBACK_LIMITS.max_left
        assert resolved.max_per_right == FALLBACK_LIMITS.max_per_right

    def test_explicit_options_win(self) -> None:
        """Test explicit values beat settings and topic defaults."""
        resolved = resolve_run_settings(
            CanonicalTopic.RATES,
            _options(lookback_hours=12, min_score=0.0, limits=RunLimits(max_left=7, max_per_right=1)),
            EngineSettings(lookback_hours=48, min_score=0.9),
        )
        assert resolved.lookback_hours == 12
        assert resolved.min_score == 0.0
        assert resolved.max_left == 7
        assert resolved.max_per_right == 1
        assert resolved.max_right == DEFAULT_LIMITS[CanonicalTopic.RATES].max_right

    def test_settings_override_topic_table(self) -> None:
        """Test process settings replace the topic defaults for lookback and min score."""
        resolved = resolve_run_settings(CanonicalTopic.RATES, _options(), EngineSettings(lookback_hours=48, min_score=0.7))
        assert resolved.lookback_hours == 48
        assert resolved.min_score == 0.7

    @pytest.mark.parametrize(
        "overrides",
        [
            {"lookback_hours": 0},
            {"min_score": 1.5},
            {"min_score": -0.1},
            {"limits": RunLimits(max_per_left=0)},
        ],
    )
    def test_invalid_values_raise(self, overrides) -> None:
        """Test invalid options raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            resolve_run_settings(CanonicalTopic.RATES, _options(**overrides))
