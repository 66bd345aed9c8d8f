"""Tests for the Redis market source."""

from datetime import datetime, timedelta

import pytest

from crosslink.exceptions import MarketSourceError
from crosslink.matching.types import MarketCandidate
from crosslink.store.keys import close_index_key, market_key
from crosslink.store.market_store import RedisMarketSource, is_market_eligible


def _market(market_id: str, close_time: datetime | None, status: str = "active", title: str | None = None) -> MarketCandidate:
    return MarketCandidate(
        venue="kalshi",
        market_id=market_id,
        title=title or f"Market {market_id}",
        close_time=close_time,
        status=status,
    )


class TestEligibility:
    """Tests for the lookback eligibility rule."""

    def test_active_markets(self, now: datetime) -> None:
        """Test active markets are eligible unless they closed before the window."""
        assert is_market_eligible(_market("A", now + timedelta(days=1)), now=now, lookback_hours=24)
        assert is_market_eligible(_market("A", None), now=now, lookback_hours=24)
        assert not is_market_eligible(_market("A", now - timedelta(hours=30)), now=now, lookback_hours=24)

    def test_closed_markets(self, now: datetime) -> None:
        """Test closed markets need a close time inside the window."""
        assert is_market_eligible(_market("C", now - timedelta(hours=2), "settled"), now=now, lookback_hours=24)
        assert not is_market_eligible(_market("C", now - timedelta(hours=48), "closed"), now=now, lookback_hours=24)
        assert not is_market_eligible(_market("C", None, "closed"), now=now, lookback_hours=24)
        assert not is_market_eligible(_market("C", now + timedelta(hours=1), "closed"), now=now, lookback_hours=24)

    def test_other_statuses_are_ineligible(self, now: datetime) -> None:
        """Test unknown lifecycle states are skipped."""
        assert not is_market_eligible(_market("S", now + timedelta(days=1), "suspended"), now=now, lookback_hours=24)


class TestRedisMarketSource:
    """Tests for saving and listing markets."""

    @pytest.mark.asyncio
    async def test_save_and_get(self, fake_redis, now: datetime) -> None:
        """Test a saved market is readable and indexed by close time."""
        source = RedisMarketSource(fake_redis)
        market = _market("M1", now)
        await source.save_market(market)

        assert await source.get_market("kalshi", "M1") == market
        assert await source.get_market("kalshi", "missing") is None
        assert fake_redis.dump_sorted_set(close_index_key("kalshi")) == {"M1": now.timestamp()}

    @pytest.mark.asyncio
    async def test_lists_eligible_markets_by_close_time(self, fake_redis, now: datetime) -> None:
        """Test the window, status filter and close-time ordering."""
        source = RedisMarketSource(fake_redis)
        await source.save_markets(
            [
                _market("OPEN", now + timedelta(days=1)),
                _market("RECENT", now - timedelta(hours=2), "settled"),
                _market("OLD", now - timedelta(hours=48), "settled"),
                _market("FOREVER", None),
                _market("PAUSED", now + timedelta(hours=5), "suspended"),
            ]
        )

        markets = await source.list_eligible_markets("kalshi", lookback_hours=24, limit=10, now=now)

        assert [market.market_id for market in markets] == ["RECENT", "OPEN", "FOREVER"]

    @pytest.mark.asyncio
    async def test_keywords_filter_before_limit(self, fake_redis, now: datetime) -> None:
        """Test the limit counts only markets that mention a keyword."""
        source = RedisMarketSource(fake_redis)
        await source.save_markets(
            [
                _market("BTC1", now + timedelta(hours=1), title="Bitcoin above 100k?"),
                _market("FED", now + timedelta(hours=2), title="Fed cut in March?"),
                _market("BTC2", now + timedelta(hours=3), title="BITCOIN below 80k?"),
                _market("BTC3", now + timedelta(hours=4), title="Bitcoin above 120k?"),
            ]
        )

        markets = await source.list_eligible_markets("kalshi", lookback_hours=24, limit=2, title_keywords=["bitcoin"], now=now)

        assert [market.market_id for market in markets] == ["BTC1", "BTC2"]

    @pytest.mark.asyncio
    async def test_stops_reading_once_limit_is_reached(self, fake_redis, now: datetime) -> None:
        """Test hashes are read in limit-sized batches and later batches are never fetched."""
        source = RedisMarketSource(fake_redis)
        await source.save_markets([_market(f"M{index:02d}", now + timedelta(hours=index + 1)) for index in range(10)])

        markets = await source.list_eligible_markets("kalshi", lookback_hours=24, limit=3, now=now)

        assert [market.market_id for market in markets] == ["M00", "M01", "M02"]
        assert fake_redis.hash_reads == 3

    @pytest.mark.asyncio
    async def test_filtered_markets_pull_another_batch(self, fake_redis, now: datetime) -> None:
        """Test a batch short of the limit after keyword filtering reads the next batch only."""
        source = RedisMarketSource(fake_redis)
        await source.save_markets(
            [
                _market("BTC1", now + timedelta(hours=1), title="Bitcoin above 100k?"),
                _market("FED", now + timedelta(hours=2), title="Fed cut in March?"),
                _market("BTC2", now + timedelta(hours=3), title="Bitcoin below 80k?"),
                _market("BTC3", now + timedelta(hours=4), title="Bitcoin above 120k?"),
                _market("BTC4", now + timedelta(hours=5), title="Bitcoin above 150k?"),
                _market("BTC5", now + timedelta(hours=6), title="Bitcoin above 200k?"),
            ]
        )

        markets = await source.list_eligible_markets("kalshi", lookback_hours=24, limit=2, title_keywords=["bitcoin"], now=now)

        assert [market.market_id for market in markets] == ["BTC1", "BTC2"]
        assert fake_redis.hash_reads == 4

    @pytest.mark.asyncio
    async def test_malformed_and_missing_records_are_skipped(self, fake_redis, now: datetime) -> None:
        """Test bad records are logged and skipped rather than failing the listing."""
        source = RedisMarketSource(fake_redis)
        await source.save_market(_market("GOOD", now + timedelta(hours=3)))
        await fake_redis.hset(market_key("kalshi", "BAD"), mapping={"venue": "kalshi", "market_id": "BAD"})
        await fake_redis.zadd(close_index_key("kalshi"), {"BAD": (now + timedelta(hours=1)).timestamp()})
        await fake_redis.zadd(close_index_key("kalshi"), {"GONE": (now + timedelta(hours=2)).timestamp()})

        markets = await source.list_eligible_markets("kalshi", lookback_hours=24, limit=10, now=now)

        assert [market.market_id for market in markets] == ["GOOD"]

    @pytest.mark.asyncio
    async def test_unsupported_ordering(self, fake_redis) -> None:
        """Test only close-time ordering is accepted."""
        source = RedisMarketSource(fake_redis)
        with pytest.raises(MarketSourceError, match="Unsupported ordering"):
            await source.list_eligible_markets("kalshi", lookback_hours=24, limit=10, order_by="volume")

    @pytest.mark.asyncio
    async def test_write_failure(self, fake_redis, now: datetime) -> None:
        """Test Redis failures surface as MarketSourceError."""
        fake_redis.fail_writes = True
        with pytest.raises(MarketSourceError):
            await RedisMarketSource(fake_redis).save_market(_market("M1", now))
