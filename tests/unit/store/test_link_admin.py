"""Tests for link statistics, rollback and provenance backfill."""

from datetime import datetime

import pytest

from crosslink.matching.types import LinkKey, LinkStatus
from crosslink.store.link_admin import (
    DEFAULT_ROLLBACK_TAG,
    LEGACY_TOPIC_LABEL,
    backfill_provenance,
    compute_link_stats,
    format_link_stats,
    link_stats,
    rollback_by_reason,
)
from crosslink.store.link_store import RedisLinkStore


async def _link(store: RedisLinkStore, now: datetime, right_id: str, **overrides) -> None:
    values = dict(
        left_venue="kalshi",
        left_market_id="K1",
        right_venue="polymarket",
        right_market_id=right_id,
        score=0.8,
        reason="rates@3.0.1|bank=FED",
        algo_version="rates@3.0.1",
        topic="RATES",
        now=now,
    )
    values.update(overrides)
    await store.upsert_link(**values)


def _key(right_id: str) -> LinkKey:
    return LinkKey("kalshi", "K1", "polymarket", right_id)


class TestLinkStats:
    """Tests for link statistics."""

    @pytest.mark.asyncio
    async def test_counts_and_averages(self, fake_redis, now: datetime) -> None:
        """Test per-status, per-topic and per-version breakdowns."""
        store = RedisLinkStore(fake_redis)
        await _link(store, now, "P1", score=0.9, status=LinkStatus.CONFIRMED)
        await _link(store, now, "P2", score=0.6)
        await _link(store, now, "P3", score=0.8, algo_version=None, topic=None)

        stats = await link_stats(store)

        assert stats.total == 3
        assert stats.by_status == {"suggested": 2, "confirmed": 1, "rejected": 0}
        assert stats.avg_score_by_status["suggested"] == pytest.approx(0.7)
        assert stats.avg_score_by_status["rejected"] is None
        assert list(stats.by_topic.items()) == [("RATES", 2), (LEGACY_TOPIC_LABEL, 1)]
        assert list(stats.by_algo_version.items()) == [("rates@3.0.1", 2), ("(null)", 1)]

    def test_empty_store(self) -> None:
        """Test statistics over no links."""
        stats = compute_link_stats([])
        assert stats.total == 0
        assert stats.by_topic == {}
        lines = format_link_stats(stats)
        assert lines[0] == "[By Status]"
        assert "  (no data)" in lines

    def test_format_truncates_versions(self) -> None:
        """Test long version lists are cut off with a remainder line."""
        stats = compute_link_stats([])
        stats.by_algo_version = {"a@1": 3, "b@1": 2, "c@1": 1}
        lines = format_link_stats(stats, max_versions=2)
        assert lines[-1] == "  ... and 1 more versions"


class TestRollback:
    """Tests for rolling back reviewed confirmations."""

    @pytest.mark.asyncio
    async def test_rolls_back_exact_tag_only(self, fake_redis, now: datetime) -> None:
        """Test only confirmed links with exactly the tag return to suggested."""
        store = RedisLinkStore(fake_redis)
        await _link(store, now, "P1", status=LinkStatus.CONFIRMED, reason=DEFAULT_ROLLBACK_TAG)
        await _link(store, now, "P2", status=LinkStatus.CONFIRMED, reason=f"{DEFAULT_ROLLBACK_TAG}|extra")
        await _link(store, now, "P3", reason=DEFAULT_ROLLBACK_TAG)

        result = await rollback_by_reason(store)

        assert result.matched == 1
        rolled = await store.get_link(_key("P1"))
        assert rolled is not None
        assert rolled.status is LinkStatus.SUGGESTED
        assert rolled.reason is None
        kept = await store.get_link(_key("P2"))
        assert kept is not None
        assert kept.status is LinkStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_tag_survives_resuggestion(self, fake_redis, now: datetime) -> None:
        """Test a reviewed link re-suggested by a later run is still rolled back by its tag."""
        store = RedisLinkStore(fake_redis)
        await _link(store, now, "P1", status=LinkStatus.CONFIRMED, reason=DEFAULT_ROLLBACK_TAG)
        await _link(store, now, "P1", score=0.95, reason="rates@3.0.2|bank=FED", algo_version="rates@3.0.2")

        result = await rollback_by_reason(store)

        assert result.matched == 1
        rolled = await store.get_link(_key("P1"))
        assert rolled is not None
        assert rolled.status is LinkStatus.SUGGESTED

    @pytest.mark.asyncio
    async def test_dry_run(self, fake_redis, now: datetime) -> None:
        """Test a dry run reports matches without changing them."""
        store = RedisLinkStore(fake_redis)
        await _link(store, now, "P1", status=LinkStatus.CONFIRMED, reason="review:batch7")

        result = await rollback_by_reason(store, "review:batch7", dry_run=True)

        assert result.matched == 1
        assert result.dry_run
        link = await store.get_link(_key("P1"))
        assert link is not None
        assert link.status is LinkStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_empty_tag(self, fake_redis) -> None:
        """Test an empty tag is refused."""
        with pytest.raises(ValueError):
            await rollback_by_reason(RedisLinkStore(fake_redis), "")


class TestBackfill:
    """Tests for provenance backfill."""

    async def _seed(self, store: RedisLinkStore, now: datetime) -> None:
        await _link(store, now, "NO_ALGO", algo_version=None)
        await _link(store, now, "NO_BOTH", algo_version=None, topic=None)
        await _link(store, now, "NO_TOPIC")
        await _link(store, now, "COMPLETE")
        await store.update_many(lambda link: link.right_market_id == "NO_TOPIC", {"topic": None})

    @pytest.mark.asyncio
    async def test_fills_each_field_independently(self, fake_redis, now: datetime) -> None:
        """Test null fields get placeholders while known values are kept."""
        store = RedisLinkStore(fake_redis)
        await self._seed(store, now)

        result = await backfill_provenance(store)

        assert (result.null_algo_version, result.null_topic, result.null_both) == (2, 2, 1)
        assert result.updated == 3
        no_algo = await store.get_link(_key("NO_ALGO"))
        no_both = await store.get_link(_key("NO_BOTH"))
        no_topic = await store.get_link(_key("NO_TOPIC"))
        assert no_algo is not None and no_both is not None and no_topic is not None
        assert (no_algo.algo_version, no_algo.topic) == ("legacy", "RATES")
        assert (no_both.algo_version, no_both.topic) == ("legacy", "unknown")
        assert (no_topic.algo_version, no_topic.topic) == ("rates@3.0.1", "unknown")

    @pytest.mark.asyncio
    async def test_dry_run(self, fake_redis, now: datetime) -> None:
        """Test a dry run counts without updating."""
        store = RedisLinkStore(fake_redis)
        await self._seed(store, now)

        result = await backfill_provenance(store, dry_run=True)

        assert result.updated == 0
        assert result.null_both == 1
        link = await store.get_link(_key("NO_BOTH"))
        assert link is not None
        assert link.algo_version is None
