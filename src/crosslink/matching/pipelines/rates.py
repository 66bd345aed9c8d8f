"""Interest-rate / central-bank decision pipeline (FOMC, ECB, BoE, ...)."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from ..pipeline import TopicPipeline
from ..text import clamp_score, day_distance, jaccard, month_distance, parse_full_date, parse_month, parse_year, tokenize
from ..types import NO_DECISION, AutoDecision, CanonicalTopic, MarketCandidate, ScoreResult

ALGO_VERSION = "rates@3.1.0"


class CentralBank(str, Enum):
    FED = "FED"
    ECB = "ECB"
    BOE = "BOE"
    BOJ = "BOJ"
    RBA = "RBA"
    BOC = "BOC"
    SNB = "SNB"
    UNKNOWN = "UNKNOWN"


class RateAction(str, Enum):
    CUT = "CUT"
    HIKE = "HIKE"
    HOLD = "HOLD"
    PAUSE = "PAUSE"
    UNKNOWN = "UNKNOWN"


CENTRAL_BANK_KEYWORDS: dict[CentralBank, tuple[str, ...]] = {
    CentralBank.FED: ("federal reserve", "fed ", "fomc", "fed funds", "powell", "us interest rate", "fed rate"),
    CentralBank.ECB: ("european central bank", "ecb", "lagarde", "eurozone rate", "euro area rate"),
    CentralBank.BOE: ("bank of england", "boe", "uk interest rate", "uk rate"),
    CentralBank.BOJ: ("bank of japan", "boj", "ueda", "japan interest rate", "japan rate"),
    CentralBank.RBA: ("reserve bank of australia", "rba", "australian rate"),
    CentralBank.BOC: ("bank of canada", "boc", "canada rate"),
    CentralBank.SNB: ("swiss national bank", "snb", "swiss rate"),
}

_ACTION_PATTERNS: tuple[tuple[RateAction, re.Pattern[str]], ...] = tuple(
    (action, re.compile(r"\b(?:" + "|".join(words) + r")\b", re.IGNORECASE))
    for action, words in (
        (RateAction.CUT, ("cut", "cuts", "cutting", "lower", "lowers", "lowering", "decrease", "reduce", "ease", "easing")),
        (RateAction.HIKE, ("hike", "hikes", "hiking", "raise", "raises", "raising", "increase", "increases", "tighten", "tightening", "higher")),
        (RateAction.HOLD, ("hold", "holds", "holding", "unchanged", "no change", "maintain", "maintains", "steady")),
        (RateAction.PAUSE, ("pause", "pauses", "pausing", "skip", "skips")),
    )
)

_BPS_PATTERN = re.compile(r"(\d+)\s*(?:bps?|basis\s*points?)", re.IGNORECASE)
_PERCENT_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*%")
_RATE_KEYWORDS = re.compile(r"\b(rate|rates|interest|fomc|fed funds?|bps|basis points?)\b", re.IGNORECASE)

TITLE_KEYWORDS = (
    "fed", "fomc", "federal reserve", "interest rate", "rate cut", "rate hike",
    "ecb", "bank of england", "boe", "boj", "bank of japan", "basis points", "bps",
)

WEIGHT_BANK = 0.40
WEIGHT_DATE = 0.30
WEIGHT_ACTION = 0.15
WEIGHT_BPS = 0.10
WEIGHT_TEXT = 0.05

AUTO_CONFIRM_MIN_SCORE = 0.85
AUTO_CONFIRM_MIN_TEXT = 0.15
AUTO_REJECT_BELOW = 0.55
MAX_MONTH_GAP = 1
MAX_DAY_GAP = 7


@dataclass(frozen=True)
class RatesSignals:
    central_bank: CentralBank
    meeting_date: Optional[date]
    meeting_month: Optional[str]
    action: RateAction
    basis_points: Optional[int]
    year: Optional[int]
    tokens: tuple[str, ...]


def extract_central_bank(title: str) -> CentralBank:
    # Trailing space lets "fed " match at the end of a title too.
    lower = f"{title.lower()} "
    for bank, keywords in CENTRAL_BANK_KEYWORDS.items():
        if any(keyword in lower for keyword in keywords):
            return bank
    return CentralBank.UNKNOWN


def extract_rate_action(title: str) -> RateAction:
    for action, pattern in _ACTION_PATTERNS:
        if pattern.search(title):
            return action
    return RateAction.UNKNOWN


def extract_basis_points(title: str) -> Optional[int]:
    """Basis points from "25 bps", "0.25%", "quarter point" and "half point"."""
    match = _BPS_PATTERN.search(title)
    if match:
        return int(match.group(1))

    match = _PERCENT_PATTERN.search(title)
    if match:
        percent = float(match.group(1))
        # Larger percentages are rate levels, not moves.
        if percent <= 1:
            return round(percent * 100)

    lower = title.lower()
    if re.search(r"quarter[\s-]*point", lower):
        return 25
    if re.search(r"half[\s-]*point", lower):
        return 50
    return None


def is_rates_market(candidate: MarketCandidate) -> bool:
    return extract_central_bank(candidate.title) is not CentralBank.UNKNOWN and bool(
        _RATE_KEYWORDS.search(candidate.title) or extract_rate_action(candidate.title) is not RateAction.UNKNOWN
    )


def extract_rates_signals(candidate: MarketCandidate) -> RatesSignals:
    title = candidate.title
    close_time = candidate.close_time
    meeting_date = parse_full_date(title)
    if meeting_date is None and close_time is not None:
        meeting_date = close_time.date()

    return RatesSignals(
        central_bank=extract_central_bank(title),
        meeting_date=meeting_date,
        meeting_month=parse_month(title, close_time),
        action=extract_rate_action(title),
        basis_points=extract_basis_points(title),
        year=parse_year(title, close_time),
        tokens=tokenize(title),
    )


def _gate_failure(left: RatesSignals, right: RatesSignals) -> Optional[str]:
    if left.central_bank is not right.central_bank:
        return f"central bank mismatch {left.central_bank.value}/{right.central_bank.value}"
    if left.central_bank is CentralBank.UNKNOWN:
        return "unknown central bank"
    months = month_distance(left.meeting_month, right.meeting_month)
    if months is not None and months > MAX_MONTH_GAP:
        return f"meeting months {months} apart"
    days = day_distance(left.meeting_date, right.meeting_date)
    if days is not None and days > MAX_DAY_GAP:
        return f"meeting dates {days} days apart"
    return None


def _date_score(left: RatesSignals, right: RatesSignals) -> tuple[float, str]:
    days = day_distance(left.meeting_date, right.meeting_date)
    if days is not None:
        if days == 0:
            return 1.0, "0d"
        if days <= 1:
            return 0.9, f"{days}d"
        if days <= 3:
            return 0.7, f"{days}d"
        return 0.5, f"{days}d"

    months = month_distance(left.meeting_month, right.meeting_month)
    if months is not None:
        return (0.8 if months == 0 else 0.4), f"{months}m"

    if left.year is not None and left.year == right.year:
        return 0.3, "year"
    return 0.0, "none"


def _action_score(left: RateAction, right: RateAction) -> float:
    if RateAction.UNKNOWN in (left, right):
        return 0.5
    if left is right:
        return 1.0
    if {left, right} == {RateAction.HOLD, RateAction.PAUSE}:
        return 0.8
    return 0.0


def _bps_score(left: Optional[int], right: Optional[int]) -> float:
    if left is None and right is None:
        return 0.5
    if left is None or right is None:
        return 0.0
    gap = abs(left - right)
    if gap == 0:
        return 1.0
    if gap <= 25:
        return 0.7
    if gap <= 50:
        return 0.4
    return 0.0


def score_rates(left: RatesSignals, right: RatesSignals) -> ScoreResult:
    failure = _gate_failure(left, right)
    if failure:
        return ScoreResult(score=0.0, reason=f"gate: {failure}", details={"gate": failure})

    date_score, date_note = _date_score(left, right)
    action_score = _action_score(left.action, right.action)
    bps_score = _bps_score(left.basis_points, right.basis_points)
    text_score = jaccard(left.tokens, right.tokens)

    score = clamp_score(
        WEIGHT_BANK
        + WEIGHT_DATE * date_score
        + WEIGHT_ACTION * action_score
        + WEIGHT_BPS * bps_score
        + WEIGHT_TEXT * text_score
    )
    strong = date_score >= 0.7 and action_score >= 0.5
    actions = "/".join(sorted((left.action.value, right.action.value)))
    bps_pair = "/".join(sorted(str(value) if value is not None else "?" for value in (left.basis_points, right.basis_points)))
    reason = (
        f"bank={left.central_bank.value} date={date_score:.2f}({date_note}) "
        f"action={action_score:.2f}[{actions}] bps={bps_score:.2f}[{bps_pair}] text={text_score:.2f}"
    )
    return ScoreResult(
        score=score,
        reason=reason,
        tier="STRONG" if strong else "WEAK",
        details={
            "date_score": date_score,
            "action_score": action_score,
            "bps_score": bps_score,
            "text_score": text_score,
            "day_gap": day_distance(left.meeting_date, right.meeting_date),
        },
    )


def should_auto_confirm_rates(left: RatesSignals, right: RatesSignals, result: ScoreResult) -> AutoDecision:
    if result.score < AUTO_CONFIRM_MIN_SCORE:
        return NO_DECISION
    if result.details.get("day_gap") != 0:
        return NO_DECISION
    if RateAction.UNKNOWN not in (left.action, right.action) and left.action is not right.action:
        return NO_DECISION
    if left.basis_points is not None and right.basis_points is not None and left.basis_points != right.basis_points:
        return NO_DECISION
    if result.details.get("text_score", 0.0) < AUTO_CONFIRM_MIN_TEXT:
        return NO_DECISION
    return AutoDecision(True, "RATES_EXACT_MATCH", f"score {result.score:.3f}, same meeting day")


def should_auto_reject_rates(left: RatesSignals, right: RatesSignals, result: ScoreResult) -> AutoDecision:
    if result.score < AUTO_REJECT_BELOW:
        return AutoDecision(True, "LOW_SCORE", f"score {result.score:.2f} < {AUTO_REJECT_BELOW:.2f}")
    if {left.action, right.action} == {RateAction.CUT, RateAction.HIKE}:
        return AutoDecision(True, "ACTION_CONFLICT", f"conflicting actions {left.action.value}/{right.action.value}")
    if left.basis_points is not None and right.basis_points is not None and abs(left.basis_points - right.basis_points) > 50:
        return AutoDecision(True, "BPS_MISMATCH", f"bps {left.basis_points}/{right.basis_points}")
    return NO_DECISION


RATES_PIPELINE = TopicPipeline(
    topic=CanonicalTopic.RATES,
    algo_version=ALGO_VERSION,
    description="Interest rate and central bank decision matching",
    extract_signals=extract_rates_signals,
    score=score_rates,
    supports_auto_confirm=True,
    supports_auto_reject=True,
    should_auto_confirm=should_auto_confirm_rates,
    should_auto_reject=should_auto_reject_rates,
    is_topic_market=is_rates_market,
    title_keywords=TITLE_KEYWORDS,
)


__all__ = [
    "ALGO_VERSION",
    "CentralBank",
    "RATES_PIPELINE",
    "RateAction",
    "RatesSignals",
    "extract_basis_points",
    "extract_central_bank",
    "extract_rate_action",
    "extract_rates_signals",
    "is_rates_market",
    "score_rates",
]
