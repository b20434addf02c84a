"""Storage backend factory."""

from __future__ import annotations

from typing import Protocol

from ..auction.models import Auction, Bid
from ..config import ServerConfig
from .errors import AuctionExists, StorageError, VersionConflict
from .firestore import FirestoreStorage
from .in_memory import InMemoryStorage
from .postgres import PostgresStorage
from .redis import RedisStorage

__all__ = [
    "AuctionExists",
    "AuctionStore",
    "BidLedger",
    "BiddingStorage",
    "StorageError",
    "VersionConflict",
    "build_storage",
]


class AuctionStore(Protocol):
    async def create_auction(self, auction: Auction) -> Auction: ...

    async def get_auction(self, auction_id: str) -> Auction | None: ...

    async def update_auction(self, auction: Auction, *, expected_version: int) -> Auction:
        """Replace the auction only if the stored version still equals ``expected_version``."""
        ...

    async def find_auctions_by_product(self, product_id: str) -> list[Auction]: ...

    async def list_auctions(self) -> list[Auction]: ...


class BidLedger(Protocol):
    async def query_bids_by_auction(self, auction_id: str) -> list[Bid]:
        """Bids for one auction ordered by timestamp ascending."""
        ...


class BiddingStorage(AuctionStore, BidLedger, Protocol):
    async def commit_bid(self, auction: Auction, bid: Bid, *, expected_version: int) -> None:
        """Write the new auction projection and append the bid, all or nothing."""
        ...


def build_storage(config: ServerConfig) -> BiddingStorage:
    backend = config.storage.backend
    options = dict(config.storage.options)
    if backend == "in_memory":
        return InMemoryStorage()
    if backend == "redis":
        return RedisStorage(**options)
    if backend == "postgres":
        return PostgresStorage(**options)
    if backend == "firestore":
        return FirestoreStorage(**options)
    raise ValueError(f"unknown storage backend {backend}")
