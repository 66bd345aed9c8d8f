"""Redis-backed market source for matching runs."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional, Sequence

from redis.asyncio import Redis

from crosslink.exceptions import MarketDecodeError, MarketSourceError
from crosslink.matching.types import MarketCandidate

from .codec import close_score, decode_market, decode_redis_key, encode_market
from .error_types import REDIS_ERRORS
from .keys import close_index_key, market_key
from .typing import ensure_awaitable

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = frozenset({"active", "open", "initialized"})
CLOSED_STATUSES = frozenset({"closed", "settled", "resolved", "finalized"})
SUPPORTED_ORDERINGS = ("close_time",)


def _matches_keywords(title: str, keywords: Optional[Sequence[str]]) -> bool:
    if not keywords:
        return True
    lower = title.lower()
    return any(keyword.lower() in lower for keyword in keywords)


def is_market_eligible(candidate: MarketCandidate, *, now: datetime, lookback_hours: int) -> bool:
    """Active and not stale, or closed within the lookback window."""
    window_start = now - timedelta(hours=lookback_hours)
    close_time = candidate.close_time
    status = candidate.status.lower()
    if status in ACTIVE_STATUSES:
        return close_time is None or close_time >= window_start
    if status in CLOSED_STATUSES:
        return close_time is not None and window_start <= close_time <= now
    return False


class RedisMarketSource:
    """Markets stored as hashes with a per-venue close-time index."""

    def __init__(self, redis: Redis) -> None:
        self.redis = redis

    async def save_market(self, candidate: MarketCandidate) -> None:
        payload = encode_market(candidate)
        try:
            pipe = self.redis.pipeline()
            pipe.hset(market_key(candidate.venue, candidate.market_id), mapping=payload)
            pipe.zadd(close_index_key(candidate.venue), {candidate.market_id: close_score(candidate.close_time)})
            await ensure_awaitable(pipe.execute())
        except REDIS_ERRORS as exc:
            raise MarketSourceError(f"Failed to save market {candidate.venue}:{candidate.market_id}") from exc

    async def save_markets(self, candidates: Sequence[MarketCandidate]) -> int:
        for candidate in candidates:
            await self.save_market(candidate)
        return len(candidates)

    async def get_market(self, venue: str, market_id: str) -> Optional[MarketCandidate]:
        try:
            raw = await ensure_awaitable(self.redis.hgetall(market_key(venue, market_id)))
        except REDIS_ERRORS as exc:
            raise MarketSourceError(f"Failed to read market {venue}:{market_id}") from exc
        if not raw:
            return None
        return decode_market(raw)

    async def list_eligible_markets(
        self,
        venue: str,
        *,
        lookback_hours: int,
        limit: int,
        title_keywords: Optional[Sequence[str]] = None,
        order_by: str = "close_time",
        now: Optional[datetime] = None,
    ) -> List[MarketCandidate]:
        """Eligible markets for ``venue`` ordered by close time, earliest first.

        Keyword filtering happens before ``limit`` is applied, so the limit
        counts only markets that mention a keyword. Hashes are read in
        ``limit``-sized pipelined batches and reading stops once the limit
        is reached.
        """
        if order_by not in SUPPORTED_ORDERINGS:
            raise MarketSourceError(f"Unsupported ordering {order_by!r}", order_by=order_by)
        now = now or datetime.now(timezone.utc)
        window_start = now - timedelta(hours=lookback_hours)

        try:
            members = await ensure_awaitable(
                self.redis.zrangebyscore(close_index_key(venue), window_start.timestamp(), "+inf")
            )
        except REDIS_ERRORS as exc:
            raise MarketSourceError(f"Failed to list markets for {venue}") from exc
        market_ids = [decode_redis_key(member) for member in members]

        markets: List[MarketCandidate] = []
        batch_size = max(limit, 1)
        for start in range(0, len(market_ids), batch_size):
            if len(markets) >= limit:
                break
            batch = market_ids[start : start + batch_size]
            try:
                raw_records = await self._fetch_hashes(venue, batch)
            except REDIS_ERRORS as exc:
                raise MarketSourceError(f"Failed to list markets for {venue}") from exc
            for market_id, raw in zip(batch, raw_records):
                candidate = self._decode_listed(venue, market_id, raw)
                if candidate is None:
                    continue
                if not is_market_eligible(candidate, now=now, lookback_hours=lookback_hours):
                    continue
                if not _matches_keywords(candidate.title, title_keywords):
                    continue
                markets.append(candidate)
                if len(markets) >= limit:
                    break

        logger.info("Loaded %d eligible %s markets (lookback=%dh, limit=%d)", len(markets), venue, lookback_hours, limit)
        return markets

    @staticmethod
    def _decode_listed(venue: str, market_id: str, raw: Any) -> Optional[MarketCandidate]:
        if not raw:
            logger.warning("Close index references missing market %s:%s", venue, market_id)
            return None
        try:
            return decode_market(raw)
        except MarketDecodeError as exc:
            logger.warning("Skipping malformed market %s:%s: %s", venue, market_id, exc)
            return None

    async def _fetch_hashes(self, venue: str, market_ids: Sequence[str]) -> List[Any]:
        if not market_ids:
            return []
        pipe = self.redis.pipeline()
        for market_id in market_ids:
            pipe.hgetall(market_key(venue, market_id))
        return await ensure_awaitable(pipe.execute())


__all__ = ["RedisMarketSource", "is_market_eligible"]
