"""Firestore storage backend leveraging google-cloud-firestore."""

from __future__ import annotations

import asyncio
from typing import Any, Callable

from google.api_core.exceptions import Conflict
from google.cloud import firestore
from google.oauth2 import service_account

from ..auction.models import Auction, Bid
from .errors import AuctionExists, VersionConflict


class FirestoreStorage:
    """Auctions live at ``auctions/{auction_id}`` with bids in a ``bids`` sub-collection."""

    def __init__(
        self,
        *,
        project_id: str,
        collection: str = "auctions",
        bids_collection: str = "bids",
        credentials_path: str | None = None,
    ) -> None:
        if not project_id:
            raise ValueError("project_id required for firestore backend")
        client_kwargs: dict[str, Any] = {"project": project_id}
        if credentials_path:
            client_kwargs["credentials"] = service_account.Credentials.from_service_account_file(
                credentials_path
            )
        self._client = firestore.Client(**client_kwargs)
        self._collection_name = collection
        self._bids_collection_name = bids_collection

    def _collection(self):
        return self._client.collection(self._collection_name)

    def _auction_ref(self, auction_id: str):
        return self._collection().document(auction_id)

    def _bids(self, auction_id: str):
        return self._auction_ref(auction_id).collection(self._bids_collection_name)

    async def _run(self, func: Callable, *args, **kwargs):
        return await asyncio.to_thread(func, *args, **kwargs)

    async def create_auction(self, auction: Auction) -> Auction:
        def _create() -> None:
            try:
                self._auction_ref(auction.auction_id).create(auction.to_dict())
            except Conflict as exc:
                raise AuctionExists(auction.auction_id) from exc

        await self._run(_create)
        return auction

    async def get_auction(self, auction_id: str) -> Auction | None:
        doc = await self._run(self._auction_ref(auction_id).get)
        if not doc.exists:
            return None
        return Auction.from_dict(doc.to_dict())

    async def update_auction(self, auction: Auction, *, expected_version: int) -> Auction:
        await self._run(self._swap, auction, expected_version, None)
        return auction

    async def commit_bid(self, auction: Auction, bid: Bid, *, expected_version: int) -> None:
        await self._run(self._swap, auction, expected_version, bid)

    def _swap(self, auction: Auction, expected_version: int, bid: Bid | None) -> None:
        auction_ref = self._auction_ref(auction.auction_id)

        @firestore.transactional
        def _apply(transaction) -> None:
            snapshot = auction_ref.get(transaction=transaction)
            if not snapshot.exists or snapshot.get("version") != expected_version:
                raise VersionConflict(auction.auction_id, expected_version)
            transaction.set(auction_ref, auction.to_dict())
            if bid is not None:
                transaction.create(self._bids(bid.auction_id).document(bid.bid_id), bid.to_dict())

        _apply(self._client.transaction())

    async def find_auctions_by_product(self, product_id: str) -> list[Auction]:
        query = self._collection().where("product_id", "==", product_id)
        docs = await self._run(lambda: list(query.stream()))
        return [Auction.from_dict(doc.to_dict()) for doc in docs]

    async def list_auctions(self) -> list[Auction]:
        docs = await self._run(lambda: list(self._collection().stream()))
        return [Auction.from_dict(doc.to_dict()) for doc in docs]

    async def query_bids_by_auction(self, auction_id: str) -> list[Bid]:
        query = self._bids(auction_id).order_by("timestamp")
        docs = await self._run(lambda: list(query.stream()))
        return [Bid.from_dict(doc.to_dict()) for doc in docs]
