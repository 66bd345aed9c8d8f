"""Redis key layout for markets and market links.

markets:{venue}:{market_id}            hash, one market
markets:{venue}:by_close               sorted set, market ids scored by close epoch
market_links:{lv}:{lid}:{rv}:{rid}     hash, one link
market_links:index                     set of every link hash key
"""

from __future__ import annotations

from crosslink.matching.types import LinkKey

MARKET_PREFIX = "markets"
LINK_PREFIX = "market_links"
LINK_INDEX_KEY = f"{LINK_PREFIX}:index"
CLOSE_INDEX_SUFFIX = "by_close"

# Sorted set score for markets without a close time; always inside any window.
NO_CLOSE_SCORE = float("inf")


def _check_part(name: str, value: str) -> str:
    if not value:
        raise ValueError(f"{name} must be non-empty")
    return value


def market_key(venue: str, market_id: str) -> str:
    return f"{MARKET_PREFIX}:{_check_part('venue', venue)}:{_check_part('market_id', market_id)}"


def close_index_key(venue: str) -> str:
    return f"{MARKET_PREFIX}:{_check_part('venue', venue)}:{CLOSE_INDEX_SUFFIX}"


def link_key(key: LinkKey) -> str:
    return ":".join(
        (
            LINK_PREFIX,
            _check_part("left_venue", key.left_venue),
            _check_part("left_market_id", key.left_market_id),
            _check_part("right_venue", key.right_venue),
            _check_part("right_market_id", key.right_market_id),
        )
    )


__all__ = [
    "LINK_INDEX_KEY",
    "LINK_PREFIX",
    "MARKET_PREFIX",
    "NO_CLOSE_SCORE",
    "close_index_key",
    "link_key",
    "market_key",
]
