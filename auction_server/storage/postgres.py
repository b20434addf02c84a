"""Postgres storage backend leveraging asyncpg."""

from __future__ import annotations

from typing import Any

import asyncpg
import orjson

from ..auction.models import Auction, Bid
from .errors import AuctionExists, VersionConflict


class PostgresStorage:
    def __init__(self, *, dsn: str | None = None, **connect_kwargs: Any) -> None:
        if not dsn and not connect_kwargs:
            raise ValueError("postgres connection details missing")
        self._dsn = dsn
        self._connect_kwargs = connect_kwargs
        self._pool: asyncpg.Pool | None = None

    def _encode(self, payload: dict[str, Any]) -> str:
        return orjson.dumps(payload).decode()

    def _decode(self, value: Any) -> dict[str, Any]:
        if isinstance(value, (bytes, bytearray)):
            value = value.decode()
        if isinstance(value, str):
            return orjson.loads(value)
        return value

    async def _ensure_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            self._pool = await asyncpg.create_pool(dsn=self._dsn, **self._connect_kwargs)
            async with self._pool.acquire() as conn:
                await conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS auctions (
                        auction_id TEXT PRIMARY KEY,
                        product_id TEXT NOT NULL,
                        version INTEGER NOT NULL,
                        data JSONB NOT NULL
                    );
                    CREATE INDEX IF NOT EXISTS idx_auctions_product
                    ON auctions (product_id);
                    """
                )
                await conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS bids (
                        bid_id TEXT PRIMARY KEY,
                        auction_id TEXT NOT NULL REFERENCES auctions(auction_id),
                        placed_at TEXT NOT NULL,
                        seq BIGSERIAL,
                        data JSONB NOT NULL
                    );
                    CREATE INDEX IF NOT EXISTS idx_bids_auction
                    ON bids (auction_id, placed_at, seq);
                    """
                )
        return self._pool

    async def create_auction(self, auction: Auction) -> Auction:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            try:
                await conn.execute(
                    """INSERT INTO auctions(auction_id, product_id, version, data)
                       VALUES($1, $2, $3, $4)""",
                    auction.auction_id,
                    auction.product_id,
                    auction.version,
                    self._encode(auction.to_dict()),
                )
            except asyncpg.UniqueViolationError as exc:
                raise AuctionExists(auction.auction_id) from exc
        return auction

    async def get_auction(self, auction_id: str) -> Auction | None:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                """SELECT data FROM auctions WHERE auction_id=$1""",
                auction_id,
            )
        if not row:
            return None
        return Auction.from_dict(self._decode(row["data"]))

    async def update_auction(self, auction: Auction, *, expected_version: int) -> Auction:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            await self._swap_auction(conn, auction, expected_version)
        return auction

    async def commit_bid(self, auction: Auction, bid: Bid, *, expected_version: int) -> None:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                await self._swap_auction(conn, auction, expected_version)
                await conn.execute(
                    """INSERT INTO bids(bid_id, auction_id, placed_at, data)
                       VALUES($1, $2, $3, $4)""",
                    bid.bid_id,
                    bid.auction_id,
                    bid.to_dict()["timestamp"],
                    self._encode(bid.to_dict()),
                )

    async def _swap_auction(
        self, conn: asyncpg.Connection, auction: Auction, expected_version: int
    ) -> None:
        status = await conn.execute(
            """UPDATE auctions SET data=$2, version=$3
               WHERE auction_id=$1 AND version=$4""",
            auction.auction_id,
            self._encode(auction.to_dict()),
            auction.version,
            expected_version,
        )
        if status.split()[-1] == "0":
            raise VersionConflict(auction.auction_id, expected_version)

    async def find_auctions_by_product(self, product_id: str) -> list[Auction]:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT data FROM auctions WHERE product_id=$1 ORDER BY auction_id",
                product_id,
            )
        return [Auction.from_dict(self._decode(row["data"])) for row in rows]

    async def list_auctions(self) -> list[Auction]:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch("SELECT data FROM auctions ORDER BY auction_id")
        return [Auction.from_dict(self._decode(row["data"])) for row in rows]

    async def query_bids_by_auction(self, auction_id: str) -> list[Bid]:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                """SELECT data FROM bids WHERE auction_id=$1
                   ORDER BY placed_at, seq""",
                auction_id,
            )
        return [Bid.from_dict(self._decode(row["data"])) for row in rows]
