"""Election markets: presidential, senate, house, governor and national leaders.

Elections are never auto-confirmed; candidate names and race scoping are too
easy to get subtly wrong, so confirmed links always come from review.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..pipeline import TopicPipeline
from ..text import clamp_score, jaccard, parse_year, tokenize
from ..types import NO_DECISION, AutoDecision, CanonicalTopic, MarketCandidate, ScoreResult

ALGO_VERSION = "elections@3.0.0"

WEIGHT_COUNTRY = 0.20
WEIGHT_OFFICE = 0.20
WEIGHT_YEAR = 0.15
WEIGHT_CANDIDATES = 0.25
WEIGHT_TEXT = 0.20

STATE_MATCH_BONUS = 0.05
AUTO_REJECT_BELOW = 0.50


class ElectionOffice(str, Enum):
    PRESIDENT = "PRESIDENT"
    SENATE = "SENATE"
    HOUSE = "HOUSE"
    GOVERNOR = "GOVERNOR"
    PARTY_CONTROL = "PARTY_CONTROL"
    PRIME_MINISTER = "PRIME_MINISTER"
    MAYOR = "MAYOR"
    UNKNOWN = "UNKNOWN"


class ElectionIntent(str, Enum):
    WINNER = "WINNER"
    MARGIN = "MARGIN"
    TURNOUT = "TURNOUT"
    PARTY_CONTROL = "PARTY_CONTROL"
    UNKNOWN = "UNKNOWN"


UNKNOWN_COUNTRY = "UNKNOWN"

COUNTRY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "UK": ("united kingdom", "uk ", "britain", "british", "labour", "tory", "conservative party", "prime minister of the uk"),
    "FRANCE": ("france", "french"),
    "GERMANY": ("germany", "german", "bundestag", "chancellor"),
    "CANADA": ("canada", "canadian"),
    "BRAZIL": ("brazil", "brazilian"),
    "MEXICO": ("mexico", "mexican"),
    "INDIA": ("india", "indian", "lok sabha"),
    "JAPAN": ("japan", "japanese"),
    "AUSTRALIA": ("australia", "australian"),
    "US": ("united states", "u.s.", "us ", "usa", "american", "presidential election", "electoral college",
           "senate", "house of representatives", "governor", "gop", "republican", "democrat"),
}

_OFFICE_PATTERNS: tuple[tuple[ElectionOffice, re.Pattern[str]], ...] = (
    (ElectionOffice.PARTY_CONTROL, re.compile(r"\b(control|majority)\b.*\b(senate|house|congress)\b|\b(senate|house|congress)\b.*\b(control|majority)\b", re.IGNORECASE)),
    (ElectionOffice.PRESIDENT, re.compile(r"\bpresiden(t|tial|cy)\b", re.IGNORECASE)),
    (ElectionOffice.SENATE, re.compile(r"\bsenat(e|or)\b", re.IGNORECASE)),
    (ElectionOffice.HOUSE, re.compile(r"\b(house|congressional|congress)\b", re.IGNORECASE)),
    (ElectionOffice.GOVERNOR, re.compile(r"\b(governor|gubernatorial)\b", re.IGNORECASE)),
    (ElectionOffice.PRIME_MINISTER, re.compile(r"\b(prime minister|chancellor|premier)\b", re.IGNORECASE)),
    (ElectionOffice.MAYOR, re.compile(r"\bmayor(al)?\b", re.IGNORECASE)),
)

# Pairs of distinct offices that still describe the same contest.
_RELATED_OFFICES = frozenset(
    {
        frozenset({ElectionOffice.HOUSE, ElectionOffice.PARTY_CONTROL}),
        frozenset({ElectionOffice.SENATE, ElectionOffice.PARTY_CONTROL}),
    }
)

_INTENT_PATTERNS: tuple[tuple[ElectionIntent, re.Pattern[str]], ...] = (
    (ElectionIntent.TURNOUT, re.compile(r"\bturnout\b", re.IGNORECASE)),
    (ElectionIntent.MARGIN, re.compile(r"\b(margin|by more than|popular vote share|win by)\b", re.IGNORECASE)),
    (ElectionIntent.PARTY_CONTROL, re.compile(r"\b(control|majority)\b", re.IGNORECASE)),
    (ElectionIntent.WINNER, re.compile(r"\b(win|wins|winner|elected|victory|next president)\b", re.IGNORECASE)),
)

_INCOMPATIBLE_INTENTS = frozenset(
    {
        frozenset({ElectionIntent.WINNER, ElectionIntent.TURNOUT}),
        frozenset({ElectionIntent.MARGIN, ElectionIntent.TURNOUT}),
    }
)

US_STATES = (
    "alabama", "alaska", "arizona", "arkansas", "california", "colorado", "connecticut", "delaware",
    "florida", "georgia", "hawaii", "idaho", "illinois", "indiana", "iowa", "kansas", "kentucky",
    "louisiana", "maine", "maryland", "massachusetts", "michigan", "minnesota", "mississippi",
    "missouri", "montana", "nebraska", "nevada", "new hampshire", "new jersey", "new mexico",
    "new york", "north carolina", "north dakota", "ohio", "oklahoma", "oregon", "pennsylvania",
    "rhode island", "south carolina", "south dakota", "tennessee", "texas", "utah", "vermont",
    "virginia", "washington", "west virginia", "wisconsin", "wyoming",
)
# Longest names first so "west virginia" wins over "virginia".
_STATE_PATTERN = re.compile(r"\b(" + "|".join(sorted(US_STATES, key=len, reverse=True)) + r")\b", re.IGNORECASE)

KNOWN_CANDIDATES = frozenset(
    {
        "trump", "biden", "harris", "vance", "walz", "newsom", "desantis", "haley", "obama",
        "pence", "ramaswamy", "kennedy", "buttigieg", "shapiro", "whitmer", "ocasio-cortez",
        "starmer", "sunak", "farage", "macron", "le pen", "bardella", "merz", "scholz",
        "carney", "poilievre", "lula", "bolsonaro", "sheinbaum", "modi", "albanese", "dutton",
    }
)
_WILL_NAME_WIN = re.compile(r"\b[Ww]ill\s+((?:[A-Z][\w'-]+\s?){1,3})\s+(?:win|be elected|become)", re.UNICODE)
_PARTY_WORDS = frozenset({"republicans", "republican", "democrats", "democrat", "gop", "labour", "conservatives", "tories"})

ELECTION_KEYWORDS = (
    "election", "president", "presidential", "senate", "senator", "congress", "house",
    "governor", "gubernatorial", "electoral", "trump", "biden", "harris", "republican",
    "democrat", "primary", "nominee", "vote", "ballot",
)
_ELECTION_WORDS = re.compile(r"\b(" + "|".join(ELECTION_KEYWORDS) + r")\b", re.IGNORECASE)


@dataclass(frozen=True)
class ElectionsSignals:
    country: str
    office: ElectionOffice
    intent: ElectionIntent
    year: Optional[int]
    state: Optional[str]
    candidates: frozenset[str]
    tokens: tuple[str, ...]


def extract_country(title: str) -> str:
    lower = f" {title.lower()} "
    for country, keywords in COUNTRY_KEYWORDS.items():
        if any(keyword in lower for keyword in keywords):
            return country
    return UNKNOWN_COUNTRY


def extract_office(title: str) -> ElectionOffice:
    for office, pattern in _OFFICE_PATTERNS:
        if pattern.search(title):
            return office
    return ElectionOffice.UNKNOWN


def extract_intent(title: str) -> ElectionIntent:
    for intent, pattern in _INTENT_PATTERNS:
        if pattern.search(title):
            return intent
    return ElectionIntent.UNKNOWN


def extract_state(title: str) -> Optional[str]:
    match = _STATE_PATTERN.search(title)
    return match.group(1).lower() if match else None


def extract_candidates(title: str) -> frozenset[str]:
    """Known candidate surnames plus the subject of "Will <Name> win ..."."""
    lower = title.lower()
    found = {name for name in KNOWN_CANDIDATES if re.search(rf"\b{re.escape(name)}\b", lower)}
    match = _WILL_NAME_WIN.search(title)
    if match:
        surname = match.group(1).split()[-1].lower()
        if surname not in _PARTY_WORDS:
            found.add(surname)
    return frozenset(found)


def is_elections_market(candidate: MarketCandidate) -> bool:
    return bool(_ELECTION_WORDS.search(candidate.title))


def extract_elections_signals(candidate: MarketCandidate) -> ElectionsSignals:
    title = candidate.title
    return ElectionsSignals(
        country=extract_country(title),
        office=extract_office(title),
        intent=extract_intent(title),
        year=parse_year(title, candidate.close_time),
        state=extract_state(title),
        candidates=extract_candidates(title),
        tokens=tokenize(title),
    )


def _gate_failure(left: ElectionsSignals, right: ElectionsSignals) -> Optional[str]:
    if UNKNOWN_COUNTRY not in (left.country, right.country) and left.country != right.country:
        return f"country mismatch {left.country}/{right.country}"
    if ElectionOffice.UNKNOWN not in (left.office, right.office) and left.office is not right.office:
        if frozenset({left.office, right.office}) not in _RELATED_OFFICES:
            return f"office mismatch {left.office.value}/{right.office.value}"
    if left.year is not None and right.year is not None and left.year != right.year:
        return f"year mismatch {left.year}/{right.year}"
    if left.state and right.state and left.state != right.state:
        return f"state mismatch {left.state}/{right.state}"
    return None


def _office_score(left: ElectionOffice, right: ElectionOffice) -> float:
    if ElectionOffice.UNKNOWN in (left, right):
        return 0.5
    if left is right:
        return 1.0
    return 0.7 if frozenset({left, right}) in _RELATED_OFFICES else 0.0


def _candidate_score(left: frozenset[str], right: frozenset[str]) -> tuple[float, int]:
    if not left and not right:
        return 0.5, 0
    if not left or not right:
        return 0.3, 0
    overlap = len(left & right)
    return overlap / len(left | right), overlap


def score_elections(left: ElectionsSignals, right: ElectionsSignals) -> ScoreResult:
    failure = _gate_failure(left, right)
    if failure:
        return ScoreResult(0.0, f"gate: {failure}", details={"gate": failure})

    office_score = _office_score(left.office, right.office)
    year_score = 1.0 if left.year is not None and left.year == right.year else 0.5
    candidate_score, overlap = _candidate_score(left.candidates, right.candidates)
    text_score = jaccard(left.tokens, right.tokens)

    score = (
        WEIGHT_COUNTRY
        + WEIGHT_OFFICE * office_score
        + WEIGHT_YEAR * year_score
        + WEIGHT_CANDIDATES * candidate_score
        + WEIGHT_TEXT * text_score
    )
    if left.state and left.state == right.state:
        score += STATE_MATCH_BONUS
    score = clamp_score(score)

    strong = office_score >= 0.7 and year_score >= 0.5 and overlap > 0
    reason = (
        f"country={left.country if left.country != UNKNOWN_COUNTRY else right.country} "
        f"office={office_score:.2f}[{left.office.value}/{right.office.value}] "
        f"year={year_score:.2f}[{left.year}/{right.year}] "
        f"candidates={candidate_score:.2f}({overlap} overlap) text={text_score:.2f}"
    )
    return ScoreResult(
        score=score,
        reason=reason,
        tier="STRONG" if strong else "WEAK",
        details={"candidate_overlap": overlap, "office_score": office_score, "text_score": text_score},
    )


def should_auto_reject_elections(left: ElectionsSignals, right: ElectionsSignals, result: ScoreResult) -> AutoDecision:
    if result.score < AUTO_REJECT_BELOW:
        return AutoDecision(True, "LOW_SCORE", f"Score {result.score:.2f} < {AUTO_REJECT_BELOW:.2f}")
    if left.candidates and right.candidates and not left.candidates & right.candidates:
        return AutoDecision(
            True,
            "NO_CANDIDATE_OVERLAP",
            f"No candidate overlap: [{','.join(sorted(left.candidates))}] vs [{','.join(sorted(right.candidates))}]",
        )
    if frozenset({left.intent, right.intent}) in _INCOMPATIBLE_INTENTS:
        return AutoDecision(True, "INTENT_MISMATCH", f"Incompatible intent: {left.intent.value} vs {right.intent.value}")
    return NO_DECISION


ELECTIONS_PIPELINE = TopicPipeline(
    topic=CanonicalTopic.ELECTIONS,
    algo_version=ALGO_VERSION,
    description="Presidential, legislative and leadership election matching",
    extract_signals=extract_elections_signals,
    score=score_elections,
    supports_auto_confirm=False,
    supports_auto_reject=True,
    should_auto_reject=should_auto_reject_elections,
    is_topic_market=is_elections_market,
    title_keywords=ELECTION_KEYWORDS,
)


__all__ = [
    "ALGO_VERSION",
    "ELECTIONS_PIPELINE",
    "ElectionIntent",
    "ElectionOffice",
    "ElectionsSignals",
    "extract_candidates",
    "extract_country",
    "extract_elections_signals",
    "extract_office",
    "score_elections",
]
