"""Tests for market and link hash encoding."""

from datetime import datetime, timezone

import pytest

from crosslink.exceptions import LinkStoreError, MarketDecodeError
from crosslink.matching.types import LinkStatus, MarketCandidate, MarketLink
from crosslink.store.codec import (
    close_score,
    decode_datetime,
    decode_link,
    decode_market,
    encode_datetime,
    encode_link,
    encode_market,
)

CLOSE = datetime(2025, 3, 10, 20, 0, tzinfo=timezone.utc)


class TestMarketCodec:
    """Tests for market hashes."""

    def test_encode_and_decode_market(self) -> None:
        """Test markets survive a hash round trip with metadata."""
        market = MarketCandidate(
            venue="kalshi",
            market_id="KXFED-25MAR",
            title="Fed hike in March?",
            close_time=CLOSE,
            metadata={"series_ticker": "KXFED", "is_multivariate": False},
        )
        encoded = encode_market(market)
        assert encoded["event_ticker"] == ""
        assert all(isinstance(value, str) for value in encoded.values())

        decoded = decode_market(encoded)
        assert decoded == market
        assert decoded.event_ticker is None
        assert decoded.metadata == {"series_ticker": "KXFED", "is_multivariate": False}

    def test_decode_defaults(self) -> None:
        """Test missing optional fields fall back to defaults."""
        decoded = decode_market({b"venue": b"kalshi", b"market_id": b"M1", b"title": b"T"})
        assert decoded.status == "active"
        assert decoded.close_time is None
        assert decoded.metadata == {}

    @pytest.mark.parametrize(
        "raw",
        [
            {"venue": "kalshi", "market_id": "M1"},
            {"venue": "kalshi", "market_id": "M1", "title": "T", "metadata": "not json"},
            {"venue": "kalshi", "market_id": "M1", "title": "T", "metadata": "[1, 2]"},
            {"venue": "kalshi", "market_id": "M1", "title": "T", "close_time": "yesterday"},
        ],
    )
    def test_malformed_market(self, raw) -> None:
        """Test malformed records raise MarketDecodeError."""
        with pytest.raises(MarketDecodeError):
            decode_market(raw)

    def test_unserializable_metadata(self) -> None:
        """Test metadata that is not JSON is refused on write."""
        market = MarketCandidate(venue="kalshi", market_id="M1", title="T", metadata={"when": object()})
        with pytest.raises(MarketDecodeError):
            encode_market(market)


class TestLinkCodec:
    """Tests for link hashes."""

    def test_null_fields_round_trip(self) -> None:
        """Test None reason, algo_version and topic are stored empty and read back as None."""
        link = MarketLink(
            left_venue="kalshi",
            left_market_id="K1",
            right_venue="polymarket",
            right_market_id="P1",
            status=LinkStatus.SUGGESTED,
            score=0.75,
            reason=None,
            algo_version=None,
            topic=None,
            created_at=CLOSE,
            updated_at=CLOSE,
        )
        encoded = encode_link(link)
        assert encoded["reason"] == ""
        assert encoded["status"] == "suggested"
        assert decode_link(encoded) == link

    def test_missing_required_fields(self) -> None:
        """Test records without identifiers raise LinkStoreError."""
        with pytest.raises(LinkStoreError, match="right_market_id"):
            decode_link({"left_venue": "kalshi", "left_market_id": "K1", "right_venue": "p", "status": "suggested", "score": "1"})

    def test_unknown_status(self) -> None:
        """Test an unknown status is malformed."""
        raw = {
            "left_venue": "kalshi",
            "left_market_id": "K1",
            "right_venue": "polymarket",
            "right_market_id": "P1",
            "status": "pending",
            "score": "0.5",
            "created_at": encode_datetime(CLOSE),
        }
        with pytest.raises(LinkStoreError, match="Malformed"):
            decode_link(raw)


class TestTimestamps:
    """Tests for timestamp helpers."""

    def test_naive_values_are_utc(self) -> None:
        """Test naive datetimes are treated as UTC."""
        naive = datetime(2025, 3, 10, 20, 0)
        assert close_score(naive) == CLOSE.timestamp()
        assert encode_datetime(naive) == "2025-03-10T20:00:00+00:00"

    def test_no_close_time_sorts_last(self) -> None:
        """Test markets without a close time score as infinity."""
        assert close_score(None) == float("inf")

    def test_decode_zulu_suffix(self) -> None:
        """Test Z suffixed timestamps decode as UTC."""
        assert decode_datetime("2025-03-10T20:00:00Z") == CLOSE
        assert decode_datetime("") is None
