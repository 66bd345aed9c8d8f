"""Intraday crypto up/down markets (15 minute, 30 minute and hourly windows).

Both sides must name the same asset and settle in the same hourly slot. The
score is then mostly fixed; text overlap and the up/down direction decide
between confirm, suggest and reject.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from ..pipeline import TopicPipeline
from ..text import clamp_score, jaccard, tokenize
from ..types import NO_DECISION, AutoDecision, CanonicalTopic, MarketCandidate, ScoreResult
from .crypto import TITLE_KEYWORDS, CryptoMarketType, classify_market_type, extract_entity

ALGO_VERSION = "v3@3.0.6:CRYPTO_INTRADAY"

WEIGHT_ENTITY = 0.60
WEIGHT_TIME = 0.30
WEIGHT_TEXT = 0.10

STRONG_SCORE = 0.85
AUTO_CONFIRM_MIN_SCORE = 0.92
AUTO_REJECT_BELOW = 0.60

_INTRADAY_TICKER = re.compile(r"UPDOWN|INTRADAY|15MIN|30MIN|1HR|HOURLY", re.IGNORECASE)
_UP_WORDS = re.compile(r"\b(up|higher|rise|rises|gain)\b", re.IGNORECASE)
_DOWN_WORDS = re.compile(r"\b(down|lower|fall|falls|drop)\b", re.IGNORECASE)


class Direction(str, Enum):
    UP = "UP"
    DOWN = "DOWN"


@dataclass(frozen=True)
class IntradaySignals:
    entity: Optional[str]
    time_bucket: Optional[datetime]
    direction: Optional[Direction]
    tokens: tuple[str, ...]


def hour_bucket(moment: Optional[datetime]) -> Optional[datetime]:
    """Floor a settlement time to its hourly slot in UTC."""
    if moment is None:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).replace(minute=0, second=0, microsecond=0)


def extract_direction(title: str) -> Optional[Direction]:
    """UP or DOWN when the title commits to one side; "up or down" questions have none."""
    up = bool(_UP_WORDS.search(title))
    down = bool(_DOWN_WORDS.search(title))
    if up == down:
        return None
    return Direction.UP if up else Direction.DOWN


def is_crypto_intraday_market(candidate: MarketCandidate) -> bool:
    if extract_entity(candidate.title, candidate.event_ticker) is None:
        return False
    if classify_market_type(candidate.title) is CryptoMarketType.INTRADAY_UPDOWN:
        return True
    return bool(candidate.event_ticker and _INTRADAY_TICKER.search(candidate.event_ticker))


def extract_intraday_signals(candidate: MarketCandidate) -> IntradaySignals:
    return IntradaySignals(
        entity=extract_entity(candidate.title, candidate.event_ticker),
        time_bucket=hour_bucket(candidate.close_time),
        direction=extract_direction(candidate.title),
        tokens=tokenize(candidate.title),
    )


def _directions_agree(left: IntradaySignals, right: IntradaySignals) -> bool:
    return left.direction is right.direction


def score_intraday(left: IntradaySignals, right: IntradaySignals) -> ScoreResult:
    if left.entity is None or left.entity != right.entity:
        return ScoreResult(0.0, f"gate: entity mismatch {left.entity}/{right.entity}", details={"gate": "entity"})
    if left.time_bucket is None or left.time_bucket != right.time_bucket:
        return ScoreResult(0.0, "gate: time bucket mismatch", details={"gate": "time_bucket"})

    text_score = jaccard(left.tokens, right.tokens)
    score = clamp_score(WEIGHT_ENTITY + WEIGHT_TIME + WEIGHT_TEXT * text_score)
    direction_match = _directions_agree(left, right)
    reason = f"entity={left.entity} bucket={left.time_bucket:%Y-%m-%dT%H}Z text={text_score:.2f}"
    return ScoreResult(
        score=score,
        reason=reason,
        tier="STRONG" if direction_match and score >= STRONG_SCORE else "WEAK",
        details={"direction_match": direction_match, "text_score": text_score},
    )


def should_auto_confirm_intraday(left: IntradaySignals, right: IntradaySignals, result: ScoreResult) -> AutoDecision:
    if result.score >= AUTO_CONFIRM_MIN_SCORE and _directions_agree(left, right):
        return AutoDecision(True, "CRYPTO_INTRADAY_EXACT_MATCH", f"score {result.score:.3f}, same hourly slot")
    return NO_DECISION


def should_auto_reject_intraday(left: IntradaySignals, right: IntradaySignals, result: ScoreResult) -> AutoDecision:
    if result.score < AUTO_REJECT_BELOW:
        return AutoDecision(True, "CRYPTO_INTRADAY_LOW_SCORE", f"Low score: {result.score:.2f}")
    if left.direction is not None and right.direction is not None and left.direction is not right.direction:
        return AutoDecision(
            True,
            "CRYPTO_INTRADAY_LOW_SCORE",
            f"Direction conflict: {left.direction.value} vs {right.direction.value}",
        )
    return NO_DECISION


CRYPTO_INTRADAY_PIPELINE = TopicPipeline(
    topic=CanonicalTopic.CRYPTO_INTRADAY,
    algo_version=ALGO_VERSION,
    description="Intraday crypto up/down matching (15min, 1hr windows)",
    extract_signals=extract_intraday_signals,
    score=score_intraday,
    supports_auto_confirm=True,
    supports_auto_reject=True,
    should_auto_confirm=should_auto_confirm_intraday,
    should_auto_reject=should_auto_reject_intraday,
    is_topic_market=is_crypto_intraday_market,
    title_keywords=TITLE_KEYWORDS,
)


__all__ = [
    "ALGO_VERSION",
    "CRYPTO_INTRADAY_PIPELINE",
    "Direction",
    "IntradaySignals",
    "extract_direction",
    "extract_intraday_signals",
    "hour_bucket",
    "is_crypto_intraday_market",
    "score_intraday",
]
