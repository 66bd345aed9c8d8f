"""Composite (multi-condition / parlay) market detection.

A composite market bundles several independent conditions into one contract,
so it has no single-condition equivalent on the other venue. Detection sources
are checked in priority order and the first hit decides:

1. event ticker carries the reserved multi-condition prefix
2. series ticker (from metadata) carries the same prefix
3. metadata declares ``is_multivariate`` explicitly (True or False)
4. title matches one of the structural patterns below

Nothing matching means eligible with no reason recorded.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Iterable, Mapping, Optional

from .types import EligibilitySource, EligibilityVerdict, MarketCandidate

logger = logging.getLogger(__name__)

MULTI_CONDITION_PREFIX = "KXMV"

_SERIES_TICKER_FIELDS = ("series_ticker", "seriesTicker")
_DECLARED_FIELDS = ("is_multivariate", "isMultivariate")

TitleRule = tuple[str, Callable[[str], bool]]


def _regex_rule(label: str, *patterns: str) -> TitleRule:
    compiled = tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns)

    def _matches(title: str) -> bool:
        return any(pattern.search(title) for pattern in compiled)

    return label, _matches


# Ordered; the first matching rule is reported.
TITLE_RULES: tuple[TitleRule, ...] = (
    _regex_rule(
        "stacked yes/no conditions",
        r"^(yes|no)\s+\w+.*,\s*(yes|no)\s+",
    ),
    _regex_rule(
        "parlay terminology",
        r"same\s+game\s+parlay",
        r"\bsgp\b",
        r"\bparlay\b",
    ),
    _regex_rule(
        "over/under combined with another condition",
        r"(over|under)\s+[\d.]+\s+(points?\s+scored|total).*,\s*(yes|no)\s+",
        r"wins?\s+by\s+over.*,\s*(over|under)\s+[\d.]+",
    ),
)


def _first_present(metadata: Mapping[str, Any], names: Iterable[str]) -> Any:
    for name in names:
        if name in metadata:
            return metadata[name]
    return None


def _has_reserved_prefix(identifier: Any) -> bool:
    return isinstance(identifier, str) and identifier.startswith(MULTI_CONDITION_PREFIX)


def _check_event_group(candidate: MarketCandidate) -> Optional[EligibilityVerdict]:
    if _has_reserved_prefix(candidate.event_ticker):
        return EligibilityVerdict(
            is_eligible=False,
            source=EligibilitySource.EVENT_GROUP,
            reason=f"event ticker starts with {MULTI_CONDITION_PREFIX}: {candidate.event_ticker}",
        )
    return None


def _check_series_group(candidate: MarketCandidate) -> Optional[EligibilityVerdict]:
    series_ticker = _first_present(candidate.metadata, _SERIES_TICKER_FIELDS)
    if _has_reserved_prefix(series_ticker):
        return EligibilityVerdict(
            is_eligible=False,
            source=EligibilitySource.SERIES_GROUP,
            reason=f"series ticker starts with {MULTI_CONDITION_PREFIX}: {series_ticker}",
        )
    return None


def _check_declared_field(candidate: MarketCandidate) -> Optional[EligibilityVerdict]:
    declared = _first_present(candidate.metadata, _DECLARED_FIELDS)
    # Only real booleans are authoritative; strings like "false" fall through.
    if declared is True:
        return EligibilityVerdict(False, EligibilitySource.DECLARED_FIELD, "metadata declares is_multivariate = true")
    if declared is False:
        return EligibilityVerdict(True, EligibilitySource.DECLARED_FIELD, "metadata declares is_multivariate = false")
    return None


def _check_title(candidate: MarketCandidate) -> Optional[EligibilityVerdict]:
    for label, matches in TITLE_RULES:
        if matches(candidate.title):
            return EligibilityVerdict(
                is_eligible=False,
                source=EligibilitySource.TITLE_PATTERN,
                reason=f"title matches composite pattern: {label}",
            )
    return None


_CHECKS: tuple[Callable[[MarketCandidate], Optional[EligibilityVerdict]], ...] = (
    _check_event_group,
    _check_series_group,
    _check_declared_field,
    _check_title,
)

_DEFAULT_VERDICT = EligibilityVerdict(is_eligible=True, source=EligibilitySource.UNKNOWN, reason=None)


def classify_composite(candidate: MarketCandidate) -> EligibilityVerdict:
    """Classify one market; ineligible when it bundles several conditions."""
    for check in _CHECKS:
        verdict = check(candidate)
        if verdict is not None:
            return verdict
    return _DEFAULT_VERDICT


def classify_many(candidates: Iterable[MarketCandidate]) -> dict[tuple[str, str], EligibilityVerdict]:
    """Classify a batch, keyed by ``(venue, market_id)``."""
    verdicts = {candidate.key: classify_composite(candidate) for candidate in candidates}
    excluded = sum(1 for verdict in verdicts.values() if not verdict.is_eligible)
    logger.debug("Classified %d markets, %d composite", len(verdicts), excluded)
    return verdicts


def is_composite(candidate: MarketCandidate) -> bool:
    return not classify_composite(candidate).is_eligible


__all__ = [
    "MULTI_CONDITION_PREFIX",
    "TITLE_RULES",
    "classify_composite",
    "classify_many",
    "is_composite",
]
