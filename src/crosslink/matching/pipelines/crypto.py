"""Daily crypto price threshold and range markets (BTC, ETH, SOL)."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from ..pipeline import TopicPipeline
from ..text import clamp_score, day_distance, jaccard, parse_full_date, tokenize
from ..types import NO_DECISION, AutoDecision, CanonicalTopic, MarketCandidate, ScoreResult

ALGO_VERSION = "v3@3.0.6:CRYPTO_DAILY"

WEIGHT_ENTITY = 0.45
WEIGHT_DATE = 0.35
WEIGHT_NUMBERS = 0.15
WEIGHT_TEXT = 0.05

AUTO_CONFIRM_MIN_SCORE = 0.90
AUTO_CONFIRM_MIN_NUMBERS = 0.8
AUTO_REJECT_BELOW = 0.55


class CryptoMarketType(str, Enum):
    DAILY_THRESHOLD = "DAILY_THRESHOLD"
    DAILY_RANGE = "DAILY_RANGE"
    INTRADAY_UPDOWN = "INTRADAY_UPDOWN"
    UNKNOWN = "UNKNOWN"


ENTITY_TOKENS: dict[str, frozenset[str]] = {
    "BITCOIN": frozenset({"bitcoin", "btc"}),
    "ETHEREUM": frozenset({"ethereum", "eth", "ether"}),
    "SOLANA": frozenset({"solana", "sol"}),
}
_EVENT_TICKER_PREFIXES = {"KXBTC": "BITCOIN", "KXETH": "ETHEREUM", "KXSOL": "SOLANA"}
_TICKER_SYMBOL = re.compile(r"\$(BTC|ETH|SOL)\b", re.IGNORECASE)
_SYMBOL_ENTITY = {"BTC": "BITCOIN", "ETH": "ETHEREUM", "SOL": "SOLANA"}

_PRICE = re.compile(r"(\$)?\s*(\d{1,3}(?:,\d{3})+|\d+(?:\.\d+)?)\s*(k)?\b", re.IGNORECASE)
_RANGE_WORDS = re.compile(r"\b(between|range|from)\b", re.IGNORECASE)
_THRESHOLD_WORDS = re.compile(r"\b(above|below|over|under|at least|at or above|reach|hit|exceed|higher|lower)\b|[<>≥≤]", re.IGNORECASE)
_INTRADAY_WORDS = re.compile(r"\bup or down\b|\b\d{1,2}(:\d{2})?\s*(am|pm)\b|\bhourly\b|\b\d+\s*min(ute)?s?\b", re.IGNORECASE)

TITLE_KEYWORDS = ("bitcoin", "btc", "ethereum", "eth", "solana", "crypto")


@dataclass(frozen=True)
class CryptoSignals:
    entity: Optional[str]
    settle_date: Optional[date]
    market_type: CryptoMarketType
    numbers: tuple[float, ...]
    tokens: tuple[str, ...]


def extract_entity(title: str, event_ticker: Optional[str] = None) -> Optional[str]:
    tokens = set(tokenize(title))
    for entity, names in ENTITY_TOKENS.items():
        if tokens & names:
            return entity
    match = _TICKER_SYMBOL.search(title)
    if match:
        return _SYMBOL_ENTITY[match.group(1).upper()]
    if event_ticker:
        upper = event_ticker.upper()
        for prefix, entity in _EVENT_TICKER_PREFIXES.items():
            if upper.startswith(prefix):
                return entity
    return None


def extract_prices(title: str) -> tuple[float, ...]:
    """Price levels in the title.

    A bare number counts only when it is at least 100 and not a year, so day
    numbers in "March 18" never look like a strike.
    """
    values = []
    for dollar, raw, thousands in _PRICE.findall(title):
        value = float(raw.replace(",", ""))
        if thousands:
            value *= 1000
        explicit = bool(dollar or thousands or "," in raw)
        if not explicit and (value < 100 or 2000 <= value <= 2100):
            continue
        values.append(value)
    return tuple(values)


def classify_market_type(title: str) -> CryptoMarketType:
    if _INTRADAY_WORDS.search(title):
        return CryptoMarketType.INTRADAY_UPDOWN
    if _RANGE_WORDS.search(title) and len(extract_prices(title)) >= 2:
        return CryptoMarketType.DAILY_RANGE
    if _THRESHOLD_WORDS.search(title):
        return CryptoMarketType.DAILY_THRESHOLD
    return CryptoMarketType.UNKNOWN


def is_crypto_daily_market(candidate: MarketCandidate) -> bool:
    if extract_entity(candidate.title, candidate.event_ticker) is None:
        return False
    return classify_market_type(candidate.title) is not CryptoMarketType.INTRADAY_UPDOWN


def extract_crypto_signals(candidate: MarketCandidate) -> CryptoSignals:
    settle_date = parse_full_date(candidate.title)
    if settle_date is None and candidate.close_time is not None:
        settle_date = candidate.close_time.date()
    return CryptoSignals(
        entity=extract_entity(candidate.title, candidate.event_ticker),
        settle_date=settle_date,
        market_type=classify_market_type(candidate.title),
        numbers=extract_prices(candidate.title),
        tokens=tokenize(candidate.title),
    )


def _number_score(left: tuple[float, ...], right: tuple[float, ...]) -> float:
    if not left or not right:
        return 0.0
    left_min, left_max = min(left), max(left)
    right_min, right_max = min(right), max(right)
    if left_min <= right_max and right_min <= left_max:
        return 1.0
    gap = min(abs(left_max - right_min), abs(right_max - left_min))
    relative_gap = gap / ((left_max + right_max) / 2)
    if relative_gap < 0.01:
        return 0.9
    if relative_gap < 0.05:
        return 0.7
    if relative_gap < 0.10:
        return 0.4
    return 0.0


def score_crypto(left: CryptoSignals, right: CryptoSignals) -> ScoreResult:
    if left.entity is None or left.entity != right.entity:
        return ScoreResult(0.0, f"gate: entity mismatch {left.entity}/{right.entity}", details={"gate": "entity"})
    if CryptoMarketType.INTRADAY_UPDOWN in (left.market_type, right.market_type):
        return ScoreResult(0.0, "gate: intraday excluded", details={"gate": "intraday"})

    day_gap = day_distance(left.settle_date, right.settle_date)
    if day_gap is None or day_gap > 1:
        return ScoreResult(0.0, f"gate: settle dates {day_gap}d apart", details={"gate": "date", "day_gap": day_gap})

    date_score = 1.0 if day_gap == 0 else 0.6
    number_score = _number_score(left.numbers, right.numbers)
    text_score = jaccard(left.tokens, right.tokens)
    score = clamp_score(
        WEIGHT_ENTITY + WEIGHT_DATE * date_score + WEIGHT_NUMBERS * number_score + WEIGHT_TEXT * text_score
    )
    tier = "STRONG" if day_gap == 0 and number_score >= 0.6 else "WEAK"
    reason = (
        f"entity={left.entity} date={date_score:.2f}({day_gap}d) "
        f"num={number_score:.2f} text={text_score:.2f}"
    )
    return ScoreResult(
        score=score,
        reason=reason,
        tier=tier,
        details={"day_gap": day_gap, "number_score": number_score, "text_score": text_score},
    )


def should_auto_confirm_crypto(left: CryptoSignals, right: CryptoSignals, result: ScoreResult) -> AutoDecision:
    if (
        result.score >= AUTO_CONFIRM_MIN_SCORE
        and result.details.get("day_gap") == 0
        and result.details.get("number_score", 0.0) >= AUTO_CONFIRM_MIN_NUMBERS
        and left.market_type is CryptoMarketType.DAILY_THRESHOLD
        and right.market_type is CryptoMarketType.DAILY_THRESHOLD
    ):
        return AutoDecision(True, "CRYPTO_DAILY_EXACT_MATCH", f"score {result.score:.3f}, same settle date")
    return NO_DECISION


def should_auto_reject_crypto(left: CryptoSignals, right: CryptoSignals, result: ScoreResult) -> AutoDecision:
    if result.score < AUTO_REJECT_BELOW:
        return AutoDecision(True, "CRYPTO_DAILY_LOW_SCORE", f"Low score: {result.score:.2f}")
    day_gap = result.details.get("day_gap")
    if day_gap is not None and day_gap > 1:
        return AutoDecision(True, "CRYPTO_DAILY_LOW_SCORE", f"Date too far: {day_gap}d")
    return NO_DECISION


CRYPTO_DAILY_PIPELINE = TopicPipeline(
    topic=CanonicalTopic.CRYPTO_DAILY,
    algo_version=ALGO_VERSION,
    description="Daily crypto threshold/range matching (BTC, ETH, SOL)",
    extract_signals=extract_crypto_signals,
    score=score_crypto,
    supports_auto_confirm=True,
    supports_auto_reject=True,
    should_auto_confirm=should_auto_confirm_crypto,
    should_auto_reject=should_auto_reject_crypto,
    is_topic_market=is_crypto_daily_market,
    title_keywords=TITLE_KEYWORDS,
)


__all__ = [
    "ALGO_VERSION",
    "CRYPTO_DAILY_PIPELINE",
    "CryptoMarketType",
    "CryptoSignals",
    "classify_market_type",
    "extract_crypto_signals",
    "extract_entity",
    "extract_prices",
    "score_crypto",
]
