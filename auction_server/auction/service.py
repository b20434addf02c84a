"""Auction creation and read access."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable

from ..config import SoftCloseConfig
from ..storage import BiddingStorage
from ..timestamps import parse_timestamp, utc_now
from .models import OPEN_STATUSES, Auction, AuctionStatus, Bid, to_money

logger = logging.getLogger(__name__)


def _non_negative(name: str, value: Any) -> Decimal | None:
    if value is None:
        return None
    amount = to_money(value)
    if amount < 0:
        raise ValueError(f"{name} must not be negative")
    return amount


@dataclass
class AuctionService:
    storage: BiddingStorage
    soft_close: SoftCloseConfig
    clock: Callable[[], datetime] = utc_now

    async def create_auction(
        self,
        *,
        product_id: str,
        seller_id: str,
        starts_at: str | datetime,
        ends_at: str | datetime,
        min_price: Any,
        reserve_price: Any = None,
        buy_now_price: Any = None,
        auction_id: str | None = None,
        extension_minutes: int | None = None,
        max_extensions: int | None = None,
    ) -> Auction:
        if not seller_id:
            raise ValueError("Seller ID required")
        if not product_id:
            raise ValueError("Product ID required")
        start = parse_timestamp(starts_at)
        end = parse_timestamp(ends_at)
        if end <= start:
            raise ValueError("Auction end time must be after start time")
        floor = _non_negative("min_price", min_price)
        if floor is None:
            raise ValueError("min_price required")
        reserve = _non_negative("reserve_price", reserve_price)
        if reserve is not None and reserve < floor:
            raise ValueError("reserve_price must not be below min_price")
        buy_now = _non_negative("buy_now_price", buy_now_price)
        if buy_now is not None and buy_now <= floor:
            raise ValueError("buy_now_price must be above min_price")
        now = self.clock()
        auction = Auction(
            auction_id=auction_id or uuid.uuid4().hex,
            product_id=product_id,
            seller_id=seller_id,
            starts_at=start,
            ends_at=end,
            min_price=floor,
            current_price=floor,
            status=AuctionStatus.UPCOMING if start > now else AuctionStatus.ACTIVE,
            reserve_price=reserve,
            is_reserve_met=reserve is None,
            buy_now_price=buy_now,
            extension_minutes=(
                self.soft_close.extension_minutes
                if extension_minutes is None
                else int(extension_minutes)
            ),
            max_extensions=(
                self.soft_close.max_extensions if max_extensions is None else int(max_extensions)
            ),
            created_at=now,
            updated_at=now,
        )
        created = await self.storage.create_auction(auction)
        logger.info("auction created: %s for product %s", created.auction_id, product_id)
        return created

    async def get_auction(self, auction_id: str) -> Auction | None:
        return await self.storage.get_auction(auction_id)

    async def find_open_auction_for_product(self, product_id: str) -> Auction | None:
        auctions = await self.storage.find_auctions_by_product(product_id)
        open_auctions = [a for a in auctions if a.status in OPEN_STATUSES]
        return min(open_auctions, key=lambda a: a.starts_at, default=None)

    async def list_bids(self, auction_id: str) -> list[Bid]:
        return await self.storage.query_bids_by_auction(auction_id)

    async def list_auctions(self) -> list[Auction]:
        return await self.storage.list_auctions()
