"""Topic string parsing and the implemented-topic allow-list."""

from __future__ import annotations

from typing import Optional

from .types import CanonicalTopic

# Used for CLI validation and help text only; dispatch goes through the registry.
IMPLEMENTED_TOPICS: tuple[CanonicalTopic, ...] = (
    CanonicalTopic.CRYPTO_DAILY,
    CanonicalTopic.CRYPTO_INTRADAY,
    CanonicalTopic.RATES,
    CanonicalTopic.ELECTIONS,
    CanonicalTopic.SPORTS,
    CanonicalTopic.UNIVERSAL,
)

_LEGACY_ALIASES: dict[str, CanonicalTopic] = {
    "crypto": CanonicalTopic.CRYPTO_DAILY,
    "politics": CanonicalTopic.ELECTIONS,
    "election": CanonicalTopic.ELECTIONS,
    "weather": CanonicalTopic.CLIMATE,
    "economics": CanonicalTopic.MACRO,
    "commodity": CanonicalTopic.COMMODITIES,
    "fed": CanonicalTopic.RATES,
    "interest_rates": CanonicalTopic.RATES,
    "sport": CanonicalTopic.SPORTS,
    "all": CanonicalTopic.UNIVERSAL,
}


def _normalize(raw: str) -> str:
    return raw.strip().replace("-", "_").replace(" ", "_").upper()


def parse_topic_string(raw: object) -> Optional[CanonicalTopic]:
    """Map a free-form topic string to a CanonicalTopic, or None when unknown."""
    if isinstance(raw, CanonicalTopic):
        return raw
    if not isinstance(raw, str):
        return None

    normalized = _normalize(raw)
    if not normalized:
        return None
    try:
        return CanonicalTopic(normalized)
    except ValueError:
        return _LEGACY_ALIASES.get(normalized.lower())


def is_topic_implemented(topic: CanonicalTopic) -> bool:
    return topic in IMPLEMENTED_TOPICS


__all__ = ["IMPLEMENTED_TOPICS", "is_topic_implemented", "parse_topic_string"]
