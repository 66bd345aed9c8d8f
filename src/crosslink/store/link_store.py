"""Redis-backed market link store with idempotent upserts."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, List, Mapping, Optional, Union

from redis.asyncio import Redis

from crosslink.exceptions import LinkStoreError
from crosslink.matching.types import LinkKey, LinkStatus, MarketLink

from .codec import decode_link, decode_redis_key, encode_link
from .error_types import REDIS_ERRORS
from .keys import LINK_INDEX_KEY, link_key
from .typing import ensure_awaitable

logger = logging.getLogger(__name__)

LinkPredicate = Callable[[MarketLink], bool]
LinkPatch = Union[Mapping[str, Any], Callable[[MarketLink], Mapping[str, Any]]]

_PATCHABLE_FIELDS = frozenset({"status", "score", "reason", "algo_version", "topic"})


@dataclass(frozen=True)
class UpsertResult:
    link: MarketLink
    created: bool


def derive_topic(algo_version: Optional[str]) -> Optional[str]:
    """Topic implied by an algorithm tag: ``name@version:TOPIC`` or ``topic@version``."""
    if not algo_version:
        return None
    if ":" in algo_version:
        return algo_version.rsplit(":", 1)[1] or None
    return algo_version.split("@", 1)[0] or None


class RedisLinkStore:
    """One hash per link key plus an index set of every link."""

    def __init__(self, redis: Redis) -> None:
        self.redis = redis

    async def upsert_link(
        self,
        *,
        left_venue: str,
        left_market_id: str,
        right_venue: str,
        right_market_id: str,
        score: float,
        reason: Optional[str],
        algo_version: Optional[str],
        topic: Optional[str] = None,
        status: LinkStatus = LinkStatus.SUGGESTED,
        now: Optional[datetime] = None,
    ) -> UpsertResult:
        """Create or refresh the link for this market pair.

        Repeating the same call leaves exactly one link. A confirmed link is
        returned untouched so its review tag stays addressable by rollback.
        Otherwise score, reason and provenance are refreshed and
        ``created_at`` never changes.
        """
        now = now or datetime.now(timezone.utc)
        key = LinkKey(left_venue, left_market_id, right_venue, right_market_id)
        existing = await self.get_link(key)
        if existing is not None and existing.status is LinkStatus.CONFIRMED:
            logger.debug("Left confirmed link %s unchanged", link_key(key))
            return UpsertResult(link=existing, created=False)

        link = MarketLink(
            left_venue=left_venue,
            left_market_id=left_market_id,
            right_venue=right_venue,
            right_market_id=right_market_id,
            status=status,
            score=float(score),
            reason=reason,
            algo_version=algo_version,
            topic=topic if topic is not None else derive_topic(algo_version),
            created_at=existing.created_at if existing is not None else now,
            updated_at=now,
        )
        await self._write(link)
        return UpsertResult(link=link, created=existing is None)

    async def get_link(self, key: LinkKey) -> Optional[MarketLink]:
        try:
            raw = await ensure_awaitable(self.redis.hgetall(link_key(key)))
        except REDIS_ERRORS as exc:
            raise LinkStoreError(f"Failed to read link {link_key(key)}") from exc
        if not raw:
            return None
        return decode_link(raw)

    async def list_links(self, predicate: Optional[LinkPredicate] = None) -> List[MarketLink]:
        """Every stored link, optionally filtered, in key order."""
        try:
            members = await ensure_awaitable(self.redis.smembers(LINK_INDEX_KEY))
            keys = sorted(decode_redis_key(member) for member in members)
            if not keys:
                return []
            pipe = self.redis.pipeline()
            for key in keys:
                pipe.hgetall(key)
            raw_records = await ensure_awaitable(pipe.execute())
        except REDIS_ERRORS as exc:
            raise LinkStoreError("Failed to list links") from exc

        links: List[MarketLink] = []
        for key, raw in zip(keys, raw_records):
            if not raw:
                logger.warning("Link index references missing hash %s", key)
                continue
            link = decode_link(raw)
            if predicate is None or predicate(link):
                links.append(link)
        return links

    async def update_many(
        self,
        predicate: LinkPredicate,
        patch: LinkPatch,
        *,
        dry_run: bool = False,
        now: Optional[datetime] = None,
    ) -> int:
        """Apply ``patch`` to every link matching ``predicate``; return how many matched.

        ``patch`` is a field mapping or a callable producing one per link.
        Nothing is written when ``dry_run`` is set.
        """
        now = now or datetime.now(timezone.utc)
        matched = await self.list_links(predicate)
        if dry_run:
            return len(matched)

        for link in matched:
            changes = dict(patch(link) if callable(patch) else patch)
            unknown = set(changes) - _PATCHABLE_FIELDS
            if unknown:
                raise LinkStoreError(f"Cannot patch link fields: {', '.join(sorted(unknown))}")
            if "status" in changes:
                changes["status"] = LinkStatus(changes["status"])
            await self._write(dataclasses.replace(link, updated_at=now, **changes))
        logger.info("Updated %d links", len(matched))
        return len(matched)

    async def _write(self, link: MarketLink) -> None:
        hash_key = link_key(link.key)
        try:
            pipe = self.redis.pipeline()
            pipe.hset(hash_key, mapping=encode_link(link))
            pipe.sadd(LINK_INDEX_KEY, hash_key)
            await ensure_awaitable(pipe.execute())
        except REDIS_ERRORS as exc:
            raise LinkStoreError(f"Failed to write link {hash_key}", key=hash_key) from exc


__all__ = [
    "LinkPatch",
    "LinkPredicate",
    "RedisLinkStore",
    "UpsertResult",
    "derive_topic",
]
