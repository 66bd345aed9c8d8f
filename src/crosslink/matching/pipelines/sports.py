"""Sports game markets, matched event first (league, teams, start time) then by line.

Composite markets (parlays, same-game combos) have no single-game equivalent,
so this pipeline applies the composite classifier unless a run opts out.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from ..eligibility import classify_composite
from ..pipeline import TopicPipeline
from ..text import clamp_score, jaccard, tokenize
from ..types import NO_DECISION, AutoDecision, CanonicalTopic, MarketCandidate, ScoreResult

ALGO_VERSION = "sports@3.0.14"

WEIGHT_LEAGUE = 0.20
WEIGHT_TEAMS = 0.45
WEIGHT_TIME = 0.10
WEIGHT_MARKET_TYPE = 0.10
WEIGHT_LINE_VALUE = 0.10
WEIGHT_SIDE = 0.05
EVENT_SHARE = 0.75
LINE_SHARE = 0.25

AUTO_CONFIRM_MIN_SCORE = 0.92
AUTO_CONFIRM_MIN_TEXT = 0.10
AUTO_REJECT_BELOW = 0.55
MAX_LINE_GAP = 2.0
BUCKET_MINUTES = 30


class SportsLeague(str, Enum):
    NFL = "NFL"
    NBA = "NBA"
    MLB = "MLB"
    NHL = "NHL"
    NCAAF = "NCAAF"
    NCAAB = "NCAAB"
    WNBA = "WNBA"
    MLS = "MLS"
    EPL = "EPL"
    UCL = "UCL"
    UNKNOWN = "UNKNOWN"


class SportsMarketType(str, Enum):
    MONEYLINE = "MONEYLINE"
    SPREAD = "SPREAD"
    TOTAL = "TOTAL"


LEAGUE_KEYWORDS: tuple[tuple[SportsLeague, tuple[str, ...]], ...] = (
    (SportsLeague.WNBA, ("wnba",)),
    (SportsLeague.NCAAF, ("ncaaf", "college football", "cfb")),
    (SportsLeague.NCAAB, ("ncaab", "college basketball", "march madness")),
    (SportsLeague.NFL, ("nfl", "super bowl")),
    (SportsLeague.NBA, ("nba",)),
    (SportsLeague.MLB, ("mlb", "world series")),
    (SportsLeague.NHL, ("nhl", "stanley cup")),
    (SportsLeague.MLS, ("mls",)),
    (SportsLeague.EPL, ("premier league", "epl")),
    (SportsLeague.UCL, ("champions league", "ucl")),
)

TEAM_ALIASES: dict[str, str] = {
    "la lakers": "lakers",
    "los angeles lakers": "lakers",
    "la clippers": "clippers",
    "los angeles clippers": "clippers",
    "ny knicks": "knicks",
    "new york knicks": "knicks",
    "gs warriors": "warriors",
    "golden state warriors": "warriors",
    "kc chiefs": "chiefs",
    "kansas city chiefs": "chiefs",
    "man utd": "manchester united",
    "man united": "manchester united",
    "man city": "manchester city",
    "spurs": "tottenham",
    "tottenham hotspur": "tottenham",
}

_TEAM_NOISE = re.compile(r"\b(fc|cf|sc|the)\b")
_MATCHUP = re.compile(r"(?P<a>[A-Za-z .'&-]+?)\s+(?:vs\.?|versus|@|at)\s+(?P<b>[A-Za-z .'&-]+?)(?=$|[?:,(]|\s+(?:on|winner|total|spread|over|under|-|\d))", re.IGNORECASE)
_LINE_VALUE = re.compile(r"(?<![\w.])([+-]?\d+(?:\.5)?)(?:\s*(?:points?|pts|goals?|runs?))?", re.IGNORECASE)
_SPREAD_WORDS = re.compile(r"\b(spread|handicap|by more than|wins? by)\b|[+-]\d+(?:\.5)?\b", re.IGNORECASE)
_TOTAL_WORDS = re.compile(r"\b(total|over/under|o/u|combined)\b|\b(over|under)\s+\d", re.IGNORECASE)
_SIDE_WORDS = re.compile(r"\b(over|under)\b", re.IGNORECASE)

TITLE_KEYWORDS = ("vs", "game", "match", "nfl", "nba", "mlb", "nhl", "spread", "total")


@dataclass(frozen=True)
class SportsSignals:
    league: SportsLeague
    teams: tuple[str, str] | None
    start_bucket: Optional[datetime]
    market_type: SportsMarketType
    line_value: Optional[float]
    side: Optional[str]
    tokens: tuple[str, ...]


def normalize_team(name: str) -> str:
    cleaned = re.sub(r"[^a-z0-9& ]", " ", name.lower())
    cleaned = _TEAM_NOISE.sub(" ", cleaned)
    cleaned = " ".join(cleaned.split())
    return TEAM_ALIASES.get(cleaned, cleaned)


def teams_match(left: str, right: str) -> bool:
    """Equal names, or one name is a trailing word run of the other ("lakers" / "la lakers")."""
    if not left or not right:
        return False
    if left == right:
        return True
    shorter, longer = sorted((left, right), key=len)
    return longer.endswith(f" {shorter}")


def teams_aligned(left: tuple[str, str], right: tuple[str, str]) -> bool:
    """Both teams pair up under :func:`teams_match`, straight or crossed."""
    first, second = left
    straight = teams_match(first, right[0]) and teams_match(second, right[1])
    return straight or (teams_match(first, right[1]) and teams_match(second, right[0]))


def extract_league(title: str, event_ticker: Optional[str] = None) -> SportsLeague:
    lower = title.lower()
    for league, keywords in LEAGUE_KEYWORDS:
        if any(re.search(rf"\b{re.escape(keyword)}\b", lower) for keyword in keywords):
            return league
    if event_ticker:
        upper = event_ticker.upper()
        for league in SportsLeague:
            if league is not SportsLeague.UNKNOWN and upper.startswith(f"KX{league.value}"):
                return league
    return SportsLeague.UNKNOWN


def extract_teams(title: str) -> tuple[str, str] | None:
    match = _MATCHUP.search(title)
    if not match:
        return None
    first = normalize_team(match.group("a").split(":")[-1])
    second = normalize_team(match.group("b"))
    if not first or not second:
        return None
    return tuple(sorted((first, second)))  # type: ignore[return-value]


def extract_market_type(title: str) -> SportsMarketType:
    if _TOTAL_WORDS.search(title):
        return SportsMarketType.TOTAL
    if _SPREAD_WORDS.search(title):
        return SportsMarketType.SPREAD
    return SportsMarketType.MONEYLINE


def extract_line_value(title: str, market_type: SportsMarketType) -> Optional[float]:
    if market_type is SportsMarketType.MONEYLINE:
        return None
    for raw in _LINE_VALUE.findall(title):
        value = float(raw)
        # Skip years and day-of-month numbers that are not half-point lines.
        if abs(value) >= 1900:
            continue
        return abs(value) if market_type is SportsMarketType.TOTAL else value
    return None


def _parse_start(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def time_bucket(moment: Optional[datetime]) -> Optional[datetime]:
    """Floor a start time to its 30 minute bucket in UTC."""
    if moment is None:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.replace(minute=(moment.minute // BUCKET_MINUTES) * BUCKET_MINUTES, second=0, microsecond=0)


def buckets_adjacent(left: Optional[datetime], right: Optional[datetime]) -> bool:
    if left is None or right is None:
        return False
    return abs((left - right).total_seconds()) <= BUCKET_MINUTES * 60


def is_sports_market(candidate: MarketCandidate) -> bool:
    return extract_league(candidate.title, candidate.event_ticker) is not SportsLeague.UNKNOWN or (
        extract_teams(candidate.title) is not None
    )


def extract_sports_signals(candidate: MarketCandidate) -> SportsSignals:
    title = candidate.title
    start = _parse_start(candidate.metadata.get("start_time")) or candidate.close_time
    market_type = extract_market_type(title)
    side_match = _SIDE_WORDS.search(title) if market_type is SportsMarketType.TOTAL else None
    return SportsSignals(
        league=extract_league(title, candidate.event_ticker),
        teams=extract_teams(title),
        start_bucket=time_bucket(start),
        market_type=market_type,
        line_value=extract_line_value(title, market_type),
        side=side_match.group(1).upper() if side_match else None,
        tokens=tokenize(title),
    )


def _gate_failure(left: SportsSignals, right: SportsSignals) -> Optional[str]:
    if left.league is not right.league:
        return f"league mismatch {left.league.value}/{right.league.value}"
    if left.league is SportsLeague.UNKNOWN:
        return "league unknown"
    if left.teams is None or right.teams is None:
        return "teams missing"
    if not teams_aligned(left.teams, right.teams):
        return f"teams mismatch {list(left.teams)}/{list(right.teams)}"
    if left.start_bucket is None or right.start_bucket is None:
        return "missing time bucket"
    if not buckets_adjacent(left.start_bucket, right.start_bucket):
        return "time bucket mismatch"
    if left.market_type is not right.market_type:
        return f"market type mismatch {left.market_type.value}/{right.market_type.value}"
    if left.line_value is not None and right.line_value is not None:
        if abs(left.line_value - right.line_value) > MAX_LINE_GAP:
            return f"line value too different {left.line_value}/{right.line_value}"
    return None


def _line_value_score(left: SportsSignals, right: SportsSignals) -> float:
    if left.market_type is SportsMarketType.MONEYLINE:
        return 1.0
    if left.line_value is None or right.line_value is None:
        return 0.5
    gap = abs(left.line_value - right.line_value)
    if gap == 0:
        return 1.0
    if gap <= 0.5:
        return 0.9
    if gap <= 1.0:
        return 0.7
    if gap <= 2.0:
        return 0.4
    return 0.1


def score_sports(left: SportsSignals, right: SportsSignals) -> ScoreResult:
    failure = _gate_failure(left, right)
    if failure:
        return ScoreResult(0.0, f"gate: {failure}", details={"gate": failure})

    time_score = 1.0 if left.start_bucket == right.start_bucket else 0.7
    event_score = (WEIGHT_LEAGUE + WEIGHT_TEAMS + WEIGHT_TIME * time_score) / (
        WEIGHT_LEAGUE + WEIGHT_TEAMS + WEIGHT_TIME
    )

    line_value_score = _line_value_score(left, right)
    side_score = 0.5
    if left.side is not None and right.side is not None:
        side_score = 1.0 if left.side == right.side else 0.3
    line_score = (WEIGHT_MARKET_TYPE + WEIGHT_LINE_VALUE * line_value_score + WEIGHT_SIDE * side_score) / (
        WEIGHT_MARKET_TYPE + WEIGHT_LINE_VALUE + WEIGHT_SIDE
    )

    score = clamp_score(event_score * EVENT_SHARE + line_score * LINE_SHARE)
    text_score = jaccard(left.tokens, right.tokens)
    reason = (
        f"event={event_score:.2f} (league={left.league.value}, time={time_score:.2f}) | "
        f"line={line_score:.2f} (type={left.market_type.value}, val={line_value_score:.2f})"
    )
    return ScoreResult(
        score=score,
        reason=reason,
        tier="STRONG" if score >= 0.85 else "WEAK",
        details={"time_score": time_score, "line_value_score": line_value_score, "text_score": text_score},
    )


def should_auto_confirm_sports(left: SportsSignals, right: SportsSignals, result: ScoreResult) -> AutoDecision:
    if left.market_type is not SportsMarketType.MONEYLINE:
        return NO_DECISION
    if result.score < AUTO_CONFIRM_MIN_SCORE or "gate" in result.details:
        return NO_DECISION
    if result.details.get("time_score", 0.0) < 0.7:
        return NO_DECISION
    if result.details.get("text_score", 0.0) < AUTO_CONFIRM_MIN_TEXT:
        return NO_DECISION
    return AutoDecision(True, "MONEYLINE_EXACT_EVENT_MATCH", f"score {result.score:.3f}")


def should_auto_reject_sports(left: SportsSignals, right: SportsSignals, result: ScoreResult) -> AutoDecision:
    if result.score < AUTO_REJECT_BELOW:
        return AutoDecision(True, "LOW_SCORE", f"Score {result.score:.2f} < {AUTO_REJECT_BELOW}")
    if left.side is not None and right.side is not None and left.side != right.side:
        return AutoDecision(True, "SIDE_MISMATCH", f"Opposite sides {left.side}/{right.side}")
    if result.details.get("line_value_score", 1.0) < 0.7:
        return AutoDecision(True, "LINE_VALUE_MISMATCH", "Line value difference too large")
    return NO_DECISION


SPORTS_PIPELINE = TopicPipeline(
    topic=CanonicalTopic.SPORTS,
    algo_version=ALGO_VERSION,
    description="Event-first sports matching (league, teams, start time, line)",
    extract_signals=extract_sports_signals,
    score=score_sports,
    supports_auto_confirm=True,
    supports_auto_reject=True,
    should_auto_confirm=should_auto_confirm_sports,
    should_auto_reject=should_auto_reject_sports,
    is_topic_market=is_sports_market,
    is_eligible=classify_composite,
    title_keywords=TITLE_KEYWORDS,
    eligibility_by_default=True,
)


__all__ = [
    "ALGO_VERSION",
    "SPORTS_PIPELINE",
    "SportsLeague",
    "SportsMarketType",
    "SportsSignals",
    "extract_league",
    "extract_sports_signals",
    "extract_teams",
    "normalize_team",
    "score_sports",
    "teams_aligned",
    "teams_match",
    "time_bucket",
]
