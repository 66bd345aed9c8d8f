"""Tests for the Redis link store."""

from datetime import datetime, timedelta

import pytest

from crosslink.exceptions import LinkStoreError
from crosslink.matching.types import LinkKey, LinkStatus
from crosslink.store.keys import LINK_INDEX_KEY
from crosslink.store.link_store import RedisLinkStore, derive_topic

KEY = LinkKey("kalshi", "KXFED-25MAR", "polymarket", "0xfed")


async def _upsert(store: RedisLinkStore, now: datetime, **overrides):
    values = dict(
        left_venue=KEY.left_venue,
        left_market_id=KEY.left_market_id,
        right_venue=KEY.right_venue,
        right_market_id=KEY.right_market_id,
        score=0.8,
        reason="rates@3.0.1|bank=FED",
        algo_version="rates@3.0.1",
        topic="RATES",
        now=now,
    )
    values.update(overrides)
    return await store.upsert_link(**values)


class TestDeriveTopic:
    """Tests for topic inference from algorithm tags."""

    def test_derive_topic(self) -> None:
        """Test suffix and head forms."""
        assert derive_topic("manual_review@3.1.0:web_ui") == "web_ui"
        assert derive_topic("rates@3.0.1") == "rates"
        assert derive_topic(None) is None
        assert derive_topic("") is None


class TestUpsert:
    """Tests for idempotent link upserts."""

    @pytest.mark.asyncio
    async def test_repeat_upsert_keeps_one_link(self, fake_redis, now: datetime) -> None:
        """Test a second upsert refreshes the link and keeps created_at."""
        store = RedisLinkStore(fake_redis)
        first = await _upsert(store, now)
        second = await _upsert(store, now + timedelta(hours=1), score=0.9)

        assert first.created
        assert not second.created
        assert len(fake_redis.dump_set(LINK_INDEX_KEY)) == 1
        stored = await store.get_link(KEY)
        assert stored is not None
        assert stored.score == 0.9
        assert stored.created_at == now
        assert stored.updated_at == now + timedelta(hours=1)

    @pytest.mark.asyncio
    async def test_confirmed_link_is_left_untouched(self, fake_redis, now: datetime) -> None:
        """Test a suggestion for a confirmed pair leaves the stored link untouched."""
        store = RedisLinkStore(fake_redis)
        await _upsert(store, now, status=LinkStatus.CONFIRMED, reason="review:batch7")
        result = await _upsert(
            store,
            now + timedelta(hours=1),
            score=0.65,
            reason="rates@3.0.2|bank=FED",
            algo_version="rates@3.0.2",
        )

        assert not result.created
        assert result.link.status is LinkStatus.CONFIRMED
        assert result.link.score == 0.8
        assert result.link.reason == "review:batch7"
        assert result.link.algo_version == "rates@3.0.1"
        stored = await store.get_link(KEY)
        assert stored is not None
        assert stored == result.link
        assert stored.updated_at == now

    @pytest.mark.asyncio
    async def test_rejected_is_suggested_again(self, fake_redis, now: datetime) -> None:
        """Test a rejected pair takes the newly requested status."""
        store = RedisLinkStore(fake_redis)
        await _upsert(store, now, status=LinkStatus.REJECTED)
        result = await _upsert(store, now)

        assert result.link.status is LinkStatus.SUGGESTED

    @pytest.mark.asyncio
    async def test_topic_derived_from_algo_version(self, fake_redis, now: datetime) -> None:
        """Test an omitted topic is inferred from the algorithm tag."""
        result = await _upsert(RedisLinkStore(fake_redis), now, topic=None)
        assert result.link.topic == "rates"

    @pytest.mark.asyncio
    async def test_write_failure(self, fake_redis, now: datetime) -> None:
        """Test Redis failures surface as LinkStoreError."""
        fake_redis.fail_writes = True
        with pytest.raises(LinkStoreError):
            await _upsert(RedisLinkStore(fake_redis), now)


class TestListAndUpdate:
    """Tests for bulk reads and patches."""

    @pytest.mark.asyncio
    async def test_list_links_with_predicate(self, fake_redis, now: datetime) -> None:
        """Test listing filters and ignores dangling index entries."""
        store = RedisLinkStore(fake_redis)
        await _upsert(store, now)
        await _upsert(store, now, right_market_id="0xother", score=0.3)
        await fake_redis.sadd(LINK_INDEX_KEY, "market_links:kalshi:GONE:polymarket:0x0")

        assert len(await store.list_links()) == 2
        high = await store.list_links(lambda link: link.score > 0.5)
        assert [link.right_market_id for link in high] == ["0xfed"]

    @pytest.mark.asyncio
    async def test_update_many(self, fake_redis, now: datetime) -> None:
        """Test patches apply to matching links and coerce status strings."""
        store = RedisLinkStore(fake_redis)
        await _upsert(store, now)
        later = now + timedelta(minutes=5)

        matched = await store.update_many(lambda link: True, {"status": "confirmed", "reason": None}, now=later)

        assert matched == 1
        stored = await store.get_link(KEY)
        assert stored is not None
        assert stored.status is LinkStatus.CONFIRMED
        assert stored.reason is None
        assert stored.updated_at == later

    @pytest.mark.asyncio
    async def test_update_many_dry_run(self, fake_redis, now: datetime) -> None:
        """Test dry runs count without writing."""
        store = RedisLinkStore(fake_redis)
        await _upsert(store, now)

        assert await store.update_many(lambda link: True, {"topic": "OTHER"}, dry_run=True) == 1
        stored = await store.get_link(KEY)
        assert stored is not None
        assert stored.topic == "RATES"

    @pytest.mark.asyncio
    async def test_update_many_refuses_identity_fields(self, fake_redis, now: datetime) -> None:
        """Test only mutable fields can be patched."""
        store = RedisLinkStore(fake_redis)
        await _upsert(store, now)
        with pytest.raises(LinkStoreError, match="left_market_id"):
            await store.update_many(lambda link: True, {"left_market_id": "X"})
