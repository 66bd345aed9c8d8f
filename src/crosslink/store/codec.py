"""Hash encoding for markets and links.

Every hash value is a string. ``None`` is stored as the empty string and read
back as ``None``; timestamps are ISO-8601 in UTC; market metadata is JSON.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

import orjson

from crosslink.exceptions import LinkStoreError, MarketDecodeError
from crosslink.matching.types import LinkStatus, MarketCandidate, MarketLink

from .error_types import DECODE_ERRORS, JSON_ERRORS
from .keys import NO_CLOSE_SCORE

_LINK_FIELDS = (
    "left_venue",
    "left_market_id",
    "right_venue",
    "right_market_id",
    "status",
    "score",
)


def decode_redis_key(raw_key: Any) -> str:
    """Decode Redis keys and values that may be stored as bytes."""
    if isinstance(raw_key, bytes):
        return raw_key.decode("utf-8")
    return str(raw_key)


def decode_hash(raw: Mapping[Any, Any]) -> Dict[str, str]:
    return {decode_redis_key(field): decode_redis_key(value) for field, value in raw.items()}


def _optional(text: Optional[str]) -> Optional[str]:
    return text if text else None


def _text(value: Optional[str]) -> str:
    return "" if value is None else value


def encode_datetime(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def decode_datetime(text: Optional[str]) -> Optional[datetime]:
    if not text:
        return None
    parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def close_score(close_time: Optional[datetime]) -> float:
    """Sorted-set score for a close time; ``inf`` when the market never closes."""
    if close_time is None:
        return NO_CLOSE_SCORE
    if close_time.tzinfo is None:
        close_time = close_time.replace(tzinfo=timezone.utc)
    return close_time.timestamp()


def encode_market(candidate: MarketCandidate) -> Dict[str, str]:
    try:
        metadata = orjson.dumps(dict(candidate.metadata)).decode()
    except JSON_ERRORS as exc:
        raise MarketDecodeError(f"Metadata for {candidate.venue}:{candidate.market_id} is not JSON serializable") from exc
    return {
        "venue": candidate.venue,
        "market_id": candidate.market_id,
        "title": candidate.title,
        "close_time": encode_datetime(candidate.close_time),
        "status": candidate.status,
        "event_ticker": _text(candidate.event_ticker),
        "metadata": metadata,
    }


def decode_market(raw: Mapping[Any, Any]) -> MarketCandidate:
    fields = decode_hash(raw)
    try:
        metadata_text = fields.get("metadata") or "{}"
        metadata = orjson.loads(metadata_text)
        if not isinstance(metadata, dict):
            raise TypeError(f"metadata must be an object, got {type(metadata).__name__}")
        return MarketCandidate(
            venue=fields["venue"],
            market_id=fields["market_id"],
            title=fields["title"],
            close_time=decode_datetime(fields.get("close_time")),
            status=fields.get("status") or "active",
            event_ticker=_optional(fields.get("event_ticker")),
            metadata=metadata,
        )
    except DECODE_ERRORS as exc:
        raise MarketDecodeError(f"Malformed market record: {exc}") from exc


def encode_link(link: MarketLink) -> Dict[str, str]:
    return {
        "left_venue": link.left_venue,
        "left_market_id": link.left_market_id,
        "right_venue": link.right_venue,
        "right_market_id": link.right_market_id,
        "status": link.status.value,
        "score": repr(float(link.score)),
        "reason": _text(link.reason),
        "algo_version": _text(link.algo_version),
        "topic": _text(link.topic),
        "created_at": encode_datetime(link.created_at),
        "updated_at": encode_datetime(link.updated_at),
    }


def decode_link(raw: Mapping[Any, Any]) -> MarketLink:
    fields = decode_hash(raw)
    missing = [name for name in _LINK_FIELDS if not fields.get(name)]
    if missing:
        raise LinkStoreError(f"Link record missing fields: {', '.join(missing)}", missing=missing)
    try:
        created_at = decode_datetime(fields.get("created_at"))
        updated_at = decode_datetime(fields.get("updated_at")) or created_at
        if created_at is None or updated_at is None:
            raise ValueError("created_at is required")
        return MarketLink(
            left_venue=fields["left_venue"],
            left_market_id=fields["left_market_id"],
            right_venue=fields["right_venue"],
            right_market_id=fields["right_market_id"],
            status=LinkStatus(fields["status"]),
            score=float(fields["score"]),
            reason=_optional(fields.get("reason")),
            algo_version=_optional(fields.get("algo_version")),
            topic=_optional(fields.get("topic")),
            created_at=created_at,
            updated_at=updated_at,
        )
    except DECODE_ERRORS as exc:
        raise LinkStoreError(f"Malformed link record: {exc}") from exc


__all__ = [
    "close_score",
    "decode_datetime",
    "decode_hash",
    "decode_link",
    "decode_market",
    "decode_redis_key",
    "encode_datetime",
    "encode_link",
    "encode_market",
]
