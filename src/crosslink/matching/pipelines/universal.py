"""Topic-agnostic fallback pipeline built on entity, number, time and text overlap."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..pipeline import TopicPipeline
from ..text import STOPWORDS, clamp_score, jaccard, tokenize
from ..types import NO_DECISION, AutoDecision, CanonicalTopic, MarketCandidate, ScoreResult

ALGO_VERSION = "universal@3.0.22"

WEIGHT_ENTITY = 0.40
WEIGHT_NUMBERS = 0.20
WEIGHT_TIME = 0.20
WEIGHT_TEXT = 0.15
WEIGHT_CATEGORY = 0.05

STRONG_SCORE = 0.75
AUTO_CONFIRM_MIN_SCORE = 0.92
AUTO_CONFIRM_MIN_ENTITY = 0.5
AUTO_CONFIRM_MIN_TIME = 0.5
AUTO_REJECT_BELOW = 0.40

_PROPER_NOUN = re.compile(r"\b([A-Z][a-zA-Z'&.-]+(?:\s+[A-Z][a-zA-Z'&.-]+)*)")
_NUMBER = re.compile(r"(?<![\w.])\$?(\d{1,3}(?:,\d{3})+|\d+(?:\.\d+)?)(k|m|%)?", re.IGNORECASE)
_MULTIPLIERS = {"k": 1_000.0, "m": 1_000_000.0}
_SENTENCE_OPENERS = frozenset({"will", "who", "what", "which", "when", "how", "does", "is", "can", "yes", "no"})


@dataclass(frozen=True)
class UniversalSignals:
    entities: frozenset[str]
    numbers: tuple[float, ...]
    close_time: Optional[datetime]
    category: Optional[str]
    tokens: tuple[str, ...]


def extract_entities(title: str) -> frozenset[str]:
    """Capitalized word runs, lowercased, minus question openers and stopwords."""
    entities = set()
    for phrase in _PROPER_NOUN.findall(title):
        words = [word for word in phrase.lower().split() if word not in _SENTENCE_OPENERS and word not in STOPWORDS]
        if words:
            entities.add(" ".join(words))
    return frozenset(entities)


def extract_numbers(title: str) -> tuple[float, ...]:
    values = []
    for raw, suffix in _NUMBER.findall(title):
        value = float(raw.replace(",", ""))
        value *= _MULTIPLIERS.get(suffix.lower(), 1.0)
        values.append(value)
    return tuple(values)


def extract_universal_signals(candidate: MarketCandidate) -> UniversalSignals:
    category = candidate.metadata.get("category")
    return UniversalSignals(
        entities=extract_entities(candidate.title),
        numbers=extract_numbers(candidate.title),
        close_time=candidate.close_time,
        category=category.lower() if isinstance(category, str) and category else None,
        tokens=tokenize(candidate.title),
    )


def _closeness(relative: float) -> float:
    if relative == 0:
        return 1.0
    if relative <= 0.01:
        return 0.85
    if relative <= 0.05:
        return 0.6
    return 0.0


def _closest_match_average(source: tuple[float, ...], target: tuple[float, ...]) -> float:
    """Mean closeness of each ``source`` number to its nearest ``target`` number."""
    best = []
    for value in source:
        closest = min(target, key=lambda other: abs(other - value))
        scale = max(abs(value), abs(closest))
        best.append(_closeness(0.0 if scale == 0 else abs(value - closest) / scale))
    return sum(best) / len(best)


def _number_score(left: tuple[float, ...], right: tuple[float, ...]) -> float:
    """Average of both directions, so unmatched numbers on either side count."""
    if not left and not right:
        return 0.3
    if not left or not right:
        return 0.0
    return (_closest_match_average(left, right) + _closest_match_average(right, left)) / 2


def _time_score(left: Optional[datetime], right: Optional[datetime]) -> float:
    if left is None or right is None:
        return 0.5
    hours = abs((left - right).total_seconds()) / 3600
    if hours <= 24:
        return 1.0
    if hours <= 72:
        return 0.7
    if hours <= 24 * 7:
        return 0.4
    return 0.0


def score_universal(left: UniversalSignals, right: UniversalSignals) -> ScoreResult:
    entity_score = jaccard(left.entities, right.entities)
    number_score = _number_score(left.numbers, right.numbers)
    time_score = _time_score(left.close_time, right.close_time)
    text_score = jaccard(left.tokens, right.tokens)
    category_score = 1.0 if left.category and left.category == right.category else 0.0

    score = clamp_score(
        WEIGHT_ENTITY * entity_score
        + WEIGHT_NUMBERS * number_score
        + WEIGHT_TIME * time_score
        + WEIGHT_TEXT * text_score
        + WEIGHT_CATEGORY * category_score
    )
    shared = ",".join(sorted(left.entities & right.entities)) or "-"
    reason = (
        f"entities={entity_score:.2f}[{shared}] num={number_score:.2f} "
        f"time={time_score:.2f} text={text_score:.2f}"
    )
    return ScoreResult(
        score=score,
        reason=reason,
        tier="STRONG" if score >= STRONG_SCORE else "WEAK",
        details={
            "entity_score": entity_score,
            "number_score": number_score,
            "time_score": time_score,
            "text_score": text_score,
        },
    )


def should_auto_confirm_universal(left: UniversalSignals, right: UniversalSignals, result: ScoreResult) -> AutoDecision:
    if (
        result.score >= AUTO_CONFIRM_MIN_SCORE
        and result.details.get("entity_score", 0.0) >= AUTO_CONFIRM_MIN_ENTITY
        and result.details.get("time_score", 0.0) >= AUTO_CONFIRM_MIN_TIME
    ):
        return AutoDecision(True, "UNIVERSAL_HIGH_SCORE", f"score {result.score:.3f}")
    return NO_DECISION


def should_auto_reject_universal(left: UniversalSignals, right: UniversalSignals, result: ScoreResult) -> AutoDecision:
    if result.score < AUTO_REJECT_BELOW:
        return AutoDecision(True, "LOW_SCORE", f"Score {result.score * 100:.0f}% below threshold")
    if left.numbers and right.numbers and result.details.get("number_score") == 0.0:
        return AutoDecision(True, "NUMBER_CONFLICT", "No comparable numbers between titles")
    return NO_DECISION


UNIVERSAL_PIPELINE = TopicPipeline(
    topic=CanonicalTopic.UNIVERSAL,
    algo_version=ALGO_VERSION,
    description="Universal pipeline for any markets",
    extract_signals=extract_universal_signals,
    score=score_universal,
    supports_auto_confirm=True,
    supports_auto_reject=True,
    should_auto_confirm=should_auto_confirm_universal,
    should_auto_reject=should_auto_reject_universal,
)


__all__ = [
    "ALGO_VERSION",
    "UNIVERSAL_PIPELINE",
    "UniversalSignals",
    "extract_entities",
    "extract_numbers",
    "extract_universal_signals",
    "score_universal",
]
