"""Unit tests for the in-memory auction store and bid ledger."""

from __future__ import annotations

from dataclasses import FrozenInstanceError, replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from auction_server.auction.models import Bid
from auction_server.storage.errors import AuctionExists, VersionConflict

START = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)


def _bid(amount: str, *, seconds: int, bid_id: str) -> Bid:
    return Bid(
        bid_id=bid_id,
        auction_id="A1",
        user_id="u",
        amount=Decimal(amount),
        timestamp=START + timedelta(seconds=seconds),
    )


class TestAuctionStore:
    @pytest.mark.asyncio
    async def test_duplicate_auction_rejected(self, storage, seed):
        await seed()

        with pytest.raises(AuctionExists):
            await seed()

    @pytest.mark.asyncio
    async def test_missing_auction_returns_none(self, storage):
        assert await storage.get_auction("nope") is None

    @pytest.mark.asyncio
    async def test_update_requires_current_version(self, storage, seed):
        auction = await seed()
        bumped = replace(auction, current_price=Decimal("150"), version=1)
        await storage.update_auction(bumped, expected_version=0)

        with pytest.raises(VersionConflict):
            await storage.update_auction(replace(bumped, version=2), expected_version=0)
        assert (await storage.get_auction("A1")).version == 1

    @pytest.mark.asyncio
    async def test_find_by_product(self, storage, seed):
        await seed(auction_id="A1", product_id="P1")
        await seed(auction_id="A2", product_id="P2")

        found = await storage.find_auctions_by_product("P2")

        assert [a.auction_id for a in found] == ["A2"]
        assert len(await storage.list_auctions()) == 2


class TestBidLedger:
    @pytest.mark.asyncio
    async def test_stale_commit_writes_nothing(self, storage, seed):
        auction = await seed()
        bid = _bid("150", seconds=1, bid_id="b1")

        with pytest.raises(VersionConflict):
            await storage.commit_bid(
                replace(auction, current_price=Decimal("150"), version=6),
                bid,
                expected_version=5,
            )

        assert (await storage.get_auction("A1")).current_price == Decimal("100")
        assert await storage.query_bids_by_auction("A1") == []

    @pytest.mark.asyncio
    async def test_query_orders_by_timestamp(self, storage, seed):
        auction = await seed()
        late = _bid("120", seconds=30, bid_id="late")
        early = _bid("110", seconds=10, bid_id="early")
        await storage.commit_bid(replace(auction, version=1), late, expected_version=0)
        await storage.commit_bid(replace(auction, version=2), early, expected_version=1)

        bids = await storage.query_bids_by_auction("A1")

        assert [bid.bid_id for bid in bids] == ["early", "late"]
        assert await storage.query_bids_by_auction("A1") == bids

    @pytest.mark.asyncio
    async def test_reads_do_not_expose_internal_lists(self, storage, seed):
        auction = await seed()
        await storage.commit_bid(
            replace(auction, version=1), _bid("110", seconds=1, bid_id="b1"), expected_version=0
        )

        (await storage.query_bids_by_auction("A1")).clear()
        (await storage.list_auctions()).clear()

        assert [bid.bid_id for bid in await storage.query_bids_by_auction("A1")] == ["b1"]
        assert len(await storage.list_auctions()) == 1
        with pytest.raises(FrozenInstanceError):
            auction.current_price = Decimal("999")
