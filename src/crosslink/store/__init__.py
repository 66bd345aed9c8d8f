"""Redis persistence for markets and market links."""

from .connection import close_redis, create_redis
from .link_admin import (
    BackfillResult,
    LinkStats,
    RollbackResult,
    backfill_provenance,
    format_link_stats,
    link_stats,
    rollback_by_reason,
)
from .link_store import RedisLinkStore, UpsertResult
from .market_store import RedisMarketSource, is_market_eligible

__all__ = [
    "BackfillResult",
    "LinkStats",
    "RedisLinkStore",
    "RedisMarketSource",
    "RollbackResult",
    "UpsertResult",
    "backfill_provenance",
    "close_redis",
    "create_redis",
    "format_link_stats",
    "is_market_eligible",
    "link_stats",
    "rollback_by_reason",
]
