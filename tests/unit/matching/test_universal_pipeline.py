"""Tests for the universal fallback pipeline."""

from datetime import datetime, timedelta, timezone

import pytest

from crosslink.matching.pipelines.universal import (
    UNIVERSAL_PIPELINE,
    extract_entities,
    extract_numbers,
    extract_universal_signals,
    score_universal,
)
from crosslink.matching.types import MarketCandidate

CLOSE = datetime(2025, 12, 31, tzinfo=timezone.utc)


def _signals(title: str, close_time: datetime | None = CLOSE, **metadata):
    return extract_universal_signals(MarketCandidate(venue="v", market_id="m", title=title, close_time=close_time, metadata=metadata))


class TestExtraction:
    """Tests for entity and number extraction."""

    def test_entities_drop_question_openers(self) -> None:
        """Test capitalized runs become lowercase entities without leading question words."""
        assert extract_entities("Will Joe Biden meet Xi Jinping?") == frozenset({"joe biden", "xi jinping"})

    def test_numbers_handle_separators_and_suffixes(self) -> None:
        """Test thousands separators and k suffixes are expanded."""
        assert extract_numbers("Over $1,500 or 2.5k or 10%") == (1500.0, 2500.0, 10.0)

    def test_category_is_lowercased(self) -> None:
        """Test category metadata is normalized."""
        assert _signals("Anything", category="Music").category == "music"
        assert _signals("Anything").category is None


class TestScoring:
    """Tests for universal scoring and decisions."""

    def test_same_subject_confirms(self) -> None:
        """Test matching entities, numbers and dates confirm."""
        left = _signals("Will Taylor Swift release a new album in 2025?", category="music")
        right = _signals("Taylor Swift new album 2025", category="Music")
        result = score_universal(left, right)
        assert result.score > 0.95
        assert result.tier == "STRONG"
        decision = UNIVERSAL_PIPELINE.decide_auto_confirm(left, right, result)
        assert decision is not None
        assert decision.rule == "UNIVERSAL_HIGH_SCORE"

    def test_unrelated_markets_are_rejected_for_low_score(self) -> None:
        """Test unrelated titles far apart in time fall below the reject threshold."""
        left = _signals("Taylor Swift album")
        right = _signals("Mars landing by NASA", CLOSE + timedelta(days=30))
        result = score_universal(left, right)
        assert result.score < 0.4
        decision = UNIVERSAL_PIPELINE.decide_auto_reject(left, right, result)
        assert decision is not None
        assert decision.rule == "LOW_SCORE"

    def test_conflicting_numbers_are_rejected(self) -> None:
        """Test a shared subject with incompatible numbers is rejected."""
        left = _signals("Team Alpha scores 3 goals")
        right = _signals("Team Alpha scores 9 goals")
        result = score_universal(left, right)
        assert result.details["number_score"] == 0.0
        assert UNIVERSAL_PIPELINE.decide_auto_confirm(left, right, result) is None
        decision = UNIVERSAL_PIPELINE.decide_auto_reject(left, right, result)
        assert decision is not None
        assert decision.rule == "NUMBER_CONFLICT"

    @pytest.mark.parametrize(
        ("left_title", "right_title"),
        [
            ("Will Tesla deliver 100 or 200 cars", "Will Tesla deliver 100 cars"),
            ("Acme revenue above 1,500 in 2025", "Acme revenue above 1,510"),
            ("Will Taylor Swift release a new album in 2025?", "Taylor Swift new album"),
        ],
    )
    def test_score_is_symmetric(self, left_title: str, right_title: str) -> None:
        """Test swapping venues gives the same score and number score."""
        left = _signals(left_title)
        right = _signals(right_title, CLOSE + timedelta(days=2))
        forward = score_universal(left, right)
        backward = score_universal(right, left)
        assert forward.score == pytest.approx(backward.score)
        assert forward.details["number_score"] == pytest.approx(backward.details["number_score"])

    def test_unmatched_number_on_either_side_counts(self) -> None:
        """Test an extra number lowers the number score by the same amount from both sides."""
        result = score_universal(_signals("Will Tesla deliver 100 or 200 cars"), _signals("Will Tesla deliver 100 cars"))
        assert result.details["number_score"] == pytest.approx(0.75)

    def test_missing_close_times_score_neutral_time(self) -> None:
        """Test unknown dates neither help nor gate."""
        result = score_universal(_signals("Acme IPO", None), _signals("Acme IPO", None))
        assert result.details["time_score"] == 0.5
