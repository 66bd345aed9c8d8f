"""Text and date helpers shared by topic pipelines."""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Iterable, Optional

_TOKEN_PATTERN = re.compile(r"[a-z0-9]+(?:\.[0-9]+)?")

STOPWORDS = frozenset(
    {
        "a", "an", "and", "are", "at", "be", "by", "for", "in", "is", "it", "of",
        "on", "or", "the", "to", "will", "with", "what", "who", "which", "than",
        "before", "after", "end", "yes", "no",
    }
)

MONTHS: dict[str, int] = {
    "jan": 1, "january": 1, "feb": 2, "february": 2, "mar": 3, "march": 3,
    "apr": 4, "april": 4, "may": 5, "jun": 6, "june": 6, "jul": 7, "july": 7,
    "aug": 8, "august": 8, "sep": 9, "sept": 9, "september": 9, "oct": 10,
    "october": 10, "nov": 11, "november": 11, "dec": 12, "december": 12,
}

_MONTH_ALTERNATION = "|".join(sorted(MONTHS, key=len, reverse=True))
_FULL_DATE = re.compile(rf"\b({_MONTH_ALTERNATION})\.?\s+(\d{{1,2}})(?:st|nd|rd|th)?\s*,?\s*(20\d{{2}})\b", re.IGNORECASE)
_MONTH_YEAR = re.compile(rf"\b({_MONTH_ALTERNATION})\.?\s*,?\s*(20\d{{2}})\b", re.IGNORECASE)
_MONTH_ONLY = re.compile(rf"\b({_MONTH_ALTERNATION})\b", re.IGNORECASE)
# Case-sensitive: lowercase "may" followed by a word is the modal verb ("Fed may cut").
_MODAL_MAY = re.compile(r"may\s+[a-z]")
_YEAR = re.compile(r"\b(20\d{2})\b")


def tokenize(text: str) -> tuple[str, ...]:
    """Lowercase word tokens with stopwords removed, order preserved."""
    return tuple(token for token in _TOKEN_PATTERN.findall(text.lower()) if token not in STOPWORDS)


def jaccard(left: Iterable[str], right: Iterable[str]) -> float:
    left_set = set(left)
    right_set = set(right)
    if not left_set and not right_set:
        return 0.0
    union = len(left_set | right_set)
    return len(left_set & right_set) / union if union else 0.0


def clamp_score(value: float) -> float:
    return max(0.0, min(1.0, value))


def parse_full_date(text: str) -> Optional[date]:
    """Find "March 18, 2026" style dates."""
    match = _FULL_DATE.search(text)
    if not match:
        return None
    month = MONTHS[match.group(1).lower()]
    try:
        return date(int(match.group(3)), month, int(match.group(2)))
    except ValueError:
        return None


def _named_month(text: str) -> Optional[int]:
    """First month named in the text; "may" yields to any other month and is skipped as a verb."""
    fallback: Optional[int] = None
    for match in _MONTH_ONLY.finditer(text):
        word = match.group(1).lower()
        if word != "may":
            return MONTHS[word]
        if fallback is None and not _MODAL_MAY.match(text, match.start()):
            fallback = MONTHS[word]
    return fallback


def parse_month(text: str, close_time: Optional[datetime] = None) -> Optional[str]:
    """Return ``YYYY-MM`` from the title, borrowing the year from close time when absent."""
    full = parse_full_date(text)
    if full:
        return f"{full.year}-{full.month:02d}"

    match = _MONTH_YEAR.search(text)
    if match:
        return f"{int(match.group(2))}-{MONTHS[match.group(1).lower()]:02d}"

    month = _named_month(text)
    if month is not None and close_time is not None:
        year = close_time.year + (1 if month < close_time.month - 6 else 0)
        return f"{year}-{month:02d}"

    if close_time is not None:
        return f"{close_time.year}-{close_time.month:02d}"
    return None


def parse_year(text: str, close_time: Optional[datetime] = None) -> Optional[int]:
    match = _YEAR.search(text)
    if match:
        return int(match.group(1))
    if close_time is not None:
        return close_time.year
    return None


def month_distance(left: Optional[str], right: Optional[str]) -> Optional[int]:
    """Absolute distance in months between two ``YYYY-MM`` strings."""
    if not left or not right:
        return None
    try:
        left_year, left_month = (int(part) for part in left.split("-"))
        right_year, right_month = (int(part) for part in right.split("-"))
    except ValueError:
        return None
    return abs((left_year - right_year) * 12 + (left_month - right_month))


def day_distance(left: Optional[date], right: Optional[date]) -> Optional[int]:
    if left is None or right is None:
        return None
    return abs((left - right).days)


__all__ = [
    "MONTHS",
    "STOPWORDS",
    "clamp_score",
    "day_distance",
    "jaccard",
    "month_distance",
    "parse_full_date",
    "parse_month",
    "parse_year",
    "tokenize",
]
