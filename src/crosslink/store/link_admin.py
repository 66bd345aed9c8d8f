"""Bulk maintenance over stored links: statistics, review rollback and provenance backfill."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List

from crosslink.matching.types import LinkStatus, MarketLink

from .link_store import RedisLinkStore

logger = logging.getLogger(__name__)

LEGACY_TOPIC_LABEL = "legacy (no topic)"
NULL_ALGO_LABEL = "(null)"
BACKFILL_ALGO_VERSION = "legacy"
BACKFILL_TOPIC = "unknown"
DEFAULT_ROLLBACK_TAG = "manual_review@3.1.0:web_ui"


@dataclass
class LinkStats:
    total: int = 0
    by_status: Dict[str, int] = field(default_factory=lambda: {status.value: 0 for status in LinkStatus})
    avg_score_by_status: Dict[str, float | None] = field(default_factory=dict)
    by_topic: Dict[str, int] = field(default_factory=dict)
    by_algo_version: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class RollbackResult:
    tag: str
    matched: int
    dry_run: bool


@dataclass(frozen=True)
class BackfillResult:
    null_algo_version: int
    null_topic: int
    null_both: int
    updated: int
    dry_run: bool


def _ranked(counter: Counter) -> Dict[str, int]:
    return {label: count for label, count in sorted(counter.items(), key=lambda item: (-item[1], item[0]))}


def compute_link_stats(links: List[MarketLink]) -> LinkStats:
    stats = LinkStats(total=len(links))
    score_sums: Dict[str, float] = {status.value: 0.0 for status in LinkStatus}
    topics: Counter = Counter()
    algos: Counter = Counter()

    for link in links:
        stats.by_status[link.status.value] += 1
        score_sums[link.status.value] += link.score
        topics[link.topic or LEGACY_TOPIC_LABEL] += 1
        algos[link.algo_version or NULL_ALGO_LABEL] += 1

    stats.avg_score_by_status = {
        status: (score_sums[status] / count if count else None) for status, count in stats.by_status.items()
    }
    stats.by_topic = _ranked(topics)
    stats.by_algo_version = _ranked(algos)
    return stats


async def link_stats(store: RedisLinkStore) -> LinkStats:
    return compute_link_stats(await store.list_links())


async def rollback_by_reason(store: RedisLinkStore, tag: str = DEFAULT_ROLLBACK_TAG, *, dry_run: bool = False) -> RollbackResult:
    """Return confirmed links whose reason is exactly ``tag`` to suggested and clear the reason."""
    if not tag:
        raise ValueError("rollback tag must be non-empty")

    def _confirmed_with_tag(link: MarketLink) -> bool:
        return link.status is LinkStatus.CONFIRMED and link.reason == tag

    matched = await store.update_many(
        _confirmed_with_tag,
        {"status": LinkStatus.SUGGESTED, "reason": None},
        dry_run=dry_run,
    )
    logger.info("Rollback of %r matched %d confirmed links (dry_run=%s)", tag, matched, dry_run)
    return RollbackResult(tag=tag, matched=matched, dry_run=dry_run)


def _backfill_patch(link: MarketLink) -> Dict[str, str]:
    patch: Dict[str, str] = {}
    if link.algo_version is None:
        patch["algo_version"] = BACKFILL_ALGO_VERSION
    if link.topic is None:
        patch["topic"] = BACKFILL_TOPIC
    return patch


async def backfill_provenance(store: RedisLinkStore, *, dry_run: bool = False) -> BackfillResult:
    """Fill missing provenance: null algo_version becomes ``legacy``, null topic ``unknown``.

    Each field is patched only where it is null, so a link with a known topic
    keeps it even when its algo_version is backfilled.
    """
    links = await store.list_links()
    null_algo = sum(1 for link in links if link.algo_version is None)
    null_topic = sum(1 for link in links if link.topic is None)
    null_both = sum(1 for link in links if link.algo_version is None and link.topic is None)

    updated = 0
    if null_algo or null_topic:
        updated = await store.update_many(
            lambda link: link.algo_version is None or link.topic is None,
            _backfill_patch,
            dry_run=dry_run,
        )
    logger.info(
        "Backfill: %d null algo_version, %d null topic, %d updated (dry_run=%s)",
        null_algo,
        null_topic,
        0 if dry_run else updated,
        dry_run,
    )
    return BackfillResult(
        null_algo_version=null_algo,
        null_topic=null_topic,
        null_both=null_both,
        updated=0 if dry_run else updated,
        dry_run=dry_run,
    )


def format_link_stats(stats: LinkStats, *, max_versions: int = 20) -> List[str]:
    lines = ["[By Status]"]
    for status, count in stats.by_status.items():
        average = stats.avg_score_by_status.get(status)
        average_text = f"{average:.3f}" if average is not None else "-"
        lines.append(f"  {status:<12} {count:>8} {average_text:>10}")
    lines.append(f"  {'TOTAL':<12} {stats.total:>8}")

    lines.append("[By Topic]")
    if not stats.by_topic:
        lines.append("  (no data)")
    for topic, count in stats.by_topic.items():
        lines.append(f"  {topic:<20} {count:>8}")

    lines.append("[By AlgoVersion]")
    if not stats.by_algo_version:
        lines.append("  (no data)")
    versions = list(stats.by_algo_version.items())
    for version, count in versions[:max_versions]:
        lines.append(f"  {version:<30} {count:>8}")
    if len(versions) > max_versions:
        lines.append(f"  ... and {len(versions) - max_versions} more versions")
    return lines


__all__ = [
    "BACKFILL_ALGO_VERSION",
    "BACKFILL_TOPIC",
    "BackfillResult",
    "DEFAULT_ROLLBACK_TAG",
    "LEGACY_TOPIC_LABEL",
    "LinkStats",
    "RollbackResult",
    "backfill_provenance",
    "compute_link_stats",
    "format_link_stats",
    "link_stats",
    "rollback_by_reason",
]
