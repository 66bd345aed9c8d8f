"""Type definitions for cross-venue matching."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Mapping

from .distribution import ScoreDistribution


class CanonicalTopic(str, Enum):
    """Closed set of market subject areas; each maps to one pipeline."""

    CRYPTO_DAILY = "CRYPTO_DAILY"
    CRYPTO_INTRADAY = "CRYPTO_INTRADAY"
    MACRO = "MACRO"
    RATES = "RATES"
    ELECTIONS = "ELECTIONS"
    COMMODITIES = "COMMODITIES"
    CLIMATE = "CLIMATE"
    SPORTS = "SPORTS"
    GEOPOLITICS = "GEOPOLITICS"
    ENTERTAINMENT = "ENTERTAINMENT"
    FINANCE = "FINANCE"
    UNIVERSAL = "UNIVERSAL"

    def __str__(self) -> str:
        return self.value


class LinkStatus(str, Enum):
    SUGGESTED = "suggested"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"

    def __str__(self) -> str:
        return self.value


class RunMode(str, Enum):
    """``DRY_RUN`` scores and counts without touching the link store."""

    DRY_RUN = "dry-run"
    SUGGEST = "suggest"


class EligibilitySource(str, Enum):
    """Where an eligibility decision came from, most authoritative first."""

    EVENT_GROUP = "event-group"
    SERIES_GROUP = "series-group"
    DECLARED_FIELD = "declared-field"
    TITLE_PATTERN = "title_pattern"
    UNKNOWN = "unknown"
    NOT_APPLICABLE = "not-applicable"


@dataclass(frozen=True)
class MarketCandidate:
    """A market drawn from one venue for one matching run."""

    venue: str
    market_id: str
    title: str
    close_time: datetime | None = None
    status: str = "active"
    event_ticker: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def key(self) -> tuple[str, str]:
        return (self.venue, self.market_id)


@dataclass(frozen=True)
class ScoreResult:
    """Score for one (left, right) pair plus topic-specific detail."""

    score: float
    reason: str
    tier: str = "WEAK"
    details: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class EligibilityVerdict:
    is_eligible: bool
    source: EligibilitySource
    reason: str | None = None


ALWAYS_ELIGIBLE = EligibilityVerdict(is_eligible=True, source=EligibilitySource.NOT_APPLICABLE)


@dataclass(frozen=True)
class AutoDecision:
    """Outcome of a pipeline's auto-confirm or auto-reject rule."""

    triggered: bool
    rule: str | None = None
    reason: str | None = None


NO_DECISION = AutoDecision(triggered=False)


@dataclass(frozen=True)
class LinkKey:
    left_venue: str
    left_market_id: str
    right_venue: str
    right_market_id: str


@dataclass
class MarketLink:
    """Persisted claim that two markets, one per venue, are equivalent."""

    left_venue: str
    left_market_id: str
    right_venue: str
    right_market_id: str
    status: LinkStatus
    score: float
    reason: str | None
    algo_version: str | None
    topic: str | None
    created_at: datetime
    updated_at: datetime

    @property
    def key(self) -> LinkKey:
        return LinkKey(self.left_venue, self.left_market_id, self.right_venue, self.right_market_id)


@dataclass(frozen=True)
class RunLimits:
    """Cardinality caps; ``None`` falls back to the topic default."""

    max_left: int | None = None
    max_right: int | None = None
    max_per_left: int | None = None
    max_per_right: int | None = None


@dataclass(frozen=True)
class EngineRunOptions:
    from_venue: str
    to_venue: str
    topic: CanonicalTopic | str
    lookback_hours: int | None = None
    limits: RunLimits = field(default_factory=RunLimits)
    min_score: float | None = None
    mode: RunMode = RunMode.SUGGEST
    auto_confirm: bool = False
    auto_reject: bool = False
    debug_market_id: str | None = None
    # None enables the filter for topics whose pipeline declares one by default.
    use_eligibility_filter: bool | None = None


@dataclass
class EngineRunStats:
    """Per-stage counters for one run."""

    fetched_left: int = 0
    fetched_right: int = 0
    after_filter_left: int = 0
    after_filter_right: int = 0
    ineligible_left: int = 0
    ineligible_right: int = 0
    extraction_failures: int = 0
    scoring_failures: int = 0
    pairs_evaluated: int = 0
    pairs_above_threshold: int = 0
    pairs_retained: int = 0
    write_failures: int = 0


@dataclass
class EngineRunResult:
    topic: str
    algo_version: str
    left_count: int = 0
    right_count: int = 0
    suggestions_created: int = 0
    auto_confirmed: int = 0
    auto_rejected: int = 0
    duration_ms: int = 0
    errors: List[str] = field(default_factory=list)
    score_distribution: ScoreDistribution = field(default_factory=ScoreDistribution)
    stats: EngineRunStats = field(default_factory=EngineRunStats)

    @property
    def ok(self) -> bool:
        return not self.errors


__all__ = [
    "ALWAYS_ELIGIBLE",
    "AutoDecision",
    "CanonicalTopic",
    "EligibilitySource",
    "EligibilityVerdict",
    "EngineRunOptions",
    "EngineRunResult",
    "EngineRunStats",
    "LinkKey",
    "LinkStatus",
    "MarketCandidate",
    "MarketLink",
    "NO_DECISION",
    "RunLimits",
    "RunMode",
    "ScoreResult",
]
