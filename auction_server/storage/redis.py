"""Redis storage backend using redis-py asyncio client."""

from __future__ import annotations

from typing import Any

import orjson
from redis import asyncio as aioredis
from redis.exceptions import WatchError

from ..auction.models import Auction, Bid
from .errors import AuctionExists, VersionConflict


class RedisStorage:
    def __init__(self, *, url: str, prefix: str = "rostry:auctions") -> None:
        if not url:
            raise ValueError("redis url missing")
        self._redis = aioredis.from_url(url)
        self._prefix = prefix.rstrip(":")

    def _auction_key(self, auction_id: str) -> str:
        return f"{self._prefix}:auction:{auction_id}"

    def _bids_key(self, auction_id: str) -> str:
        return f"{self._prefix}:bids:{auction_id}"

    async def create_auction(self, auction: Auction) -> Auction:
        created = await self._redis.set(
            self._auction_key(auction.auction_id),
            orjson.dumps(auction.to_dict()),
            nx=True,
        )
        if not created:
            raise AuctionExists(auction.auction_id)
        return auction

    async def get_auction(self, auction_id: str) -> Auction | None:
        raw = await self._redis.get(self._auction_key(auction_id))
        if raw is None:
            return None
        return Auction.from_dict(orjson.loads(raw))

    async def update_auction(self, auction: Auction, *, expected_version: int) -> Auction:
        await self._swap(auction, expected_version)
        return auction

    async def commit_bid(self, auction: Auction, bid: Bid, *, expected_version: int) -> None:
        await self._swap(auction, expected_version, bid)

    async def _swap(self, auction: Auction, expected_version: int, bid: Bid | None = None) -> None:
        key = self._auction_key(auction.auction_id)
        async with self._redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(key)
                raw = await pipe.get(key)
                if raw is None or orjson.loads(raw).get("version") != expected_version:
                    raise VersionConflict(auction.auction_id, expected_version)
                pipe.multi()
                pipe.set(key, orjson.dumps(auction.to_dict()))
                if bid is not None:
                    pipe.rpush(self._bids_key(bid.auction_id), orjson.dumps(bid.to_dict()))
                await pipe.execute()
            except WatchError as exc:
                raise VersionConflict(auction.auction_id, expected_version) from exc

    async def _scan_auctions(self) -> list[dict[str, Any]]:
        pattern = self._auction_key("*")
        keys: list[str] = []
        cursor = 0
        while True:
            cursor, batch = await self._redis.scan(cursor=cursor, match=pattern, count=100)
            keys.extend(batch)
            if cursor == 0:
                break
        if not keys:
            return []
        values = await self._redis.mget(keys)
        return [orjson.loads(value) for value in values if value]

    async def find_auctions_by_product(self, product_id: str) -> list[Auction]:
        return [
            Auction.from_dict(data)
            for data in await self._scan_auctions()
            if data.get("product_id") == product_id
        ]

    async def list_auctions(self) -> list[Auction]:
        return [Auction.from_dict(data) for data in await self._scan_auctions()]

    async def query_bids_by_auction(self, auction_id: str) -> list[Bid]:
        values = await self._redis.lrange(self._bids_key(auction_id), 0, -1)
        bids = [Bid.from_dict(orjson.loads(value)) for value in values]
        return sorted(bids, key=lambda bid: bid.timestamp)
