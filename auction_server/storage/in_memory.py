"""In-memory storage backend for auctions and the bid ledger."""

from __future__ import annotations

import asyncio
from collections import defaultdict

from ..auction.models import Auction, Bid
from .errors import AuctionExists, VersionConflict


class InMemoryStorage:
    def __init__(self) -> None:
        self._auctions: dict[str, Auction] = {}
        self._bids: dict[str, list[Bid]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def create_auction(self, auction: Auction) -> Auction:
        async with self._lock:
            if auction.auction_id in self._auctions:
                raise AuctionExists(auction.auction_id)
            self._auctions[auction.auction_id] = auction
            return auction

    async def get_auction(self, auction_id: str) -> Auction | None:
        async with self._lock:
            return self._auctions.get(auction_id)

    async def update_auction(self, auction: Auction, *, expected_version: int) -> Auction:
        async with self._lock:
            self._assert_version(auction.auction_id, expected_version)
            self._auctions[auction.auction_id] = auction
            return auction

    async def commit_bid(self, auction: Auction, bid: Bid, *, expected_version: int) -> None:
        async with self._lock:
            self._assert_version(auction.auction_id, expected_version)
            self._auctions[auction.auction_id] = auction
            self._bids[bid.auction_id].append(bid)

    async def find_auctions_by_product(self, product_id: str) -> list[Auction]:
        async with self._lock:
            return [a for a in self._auctions.values() if a.product_id == product_id]

    async def list_auctions(self) -> list[Auction]:
        async with self._lock:
            return list(self._auctions.values())

    async def query_bids_by_auction(self, auction_id: str) -> list[Bid]:
        async with self._lock:
            return sorted(self._bids.get(auction_id, []), key=lambda bid: bid.timestamp)

    def _assert_version(self, auction_id: str, expected_version: int) -> None:
        current = self._auctions.get(auction_id)
        if current is None or current.version != expected_version:
            raise VersionConflict(auction_id, expected_version)
