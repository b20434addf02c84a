"""Serialized bid placement and the other writes that touch an auction's price."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Awaitable, Callable

from ..storage import BiddingStorage, VersionConflict
from ..timestamps import utc_now
from . import rules
from .models import OPEN_STATUSES, Auction, AuctionStatus, Bid, new_bid_id, to_money
from .results import (
    AuctionHasBids,
    AuctionNotActive,
    AuctionNotFound,
    AuctionUpdated,
    BidAccepted,
    BidResult,
    BidTooLow,
    BuyNowUnavailable,
    InvalidBidAmount,
    LifecycleResult,
    NotAuthorized,
    PersistenceFailure,
)
from .scopes import SerializationScope

logger = logging.getLogger(__name__)


class BiddingEngine:
    """Accepts bids one at a time per auction.

    Each attempt holds the auction's serialization scope, re-reads the stored
    auction, validates against the latest price and commits the bid together
    with the new price. Rejections and storage failures come back as result
    values; nothing but cancellation escapes ``place_bid``.
    """

    def __init__(
        self,
        storage: BiddingStorage,
        scope: SerializationScope,
        *,
        minimum_increment: Decimal,
        max_attempts: int = 3,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if minimum_increment <= 0:
            raise ValueError("minimum_increment must be positive")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._storage = storage
        self._scope = scope
        self._minimum_increment = minimum_increment
        self._max_attempts = max_attempts
        self._clock = clock

    @property
    def minimum_increment(self) -> Decimal:
        return self._minimum_increment

    async def place_bid(self, auction_id: str, user_id: str, amount: Any) -> BidResult:
        try:
            value = to_money(amount)
        except ValueError as exc:
            return InvalidBidAmount(str(exc))
        if value <= 0:
            return InvalidBidAmount("Bid amount must be positive")
        result = await self._serialized(
            auction_id, lambda auction: self._evaluate_bid(auction, user_id, value)
        )
        if isinstance(result, BidAccepted):
            logger.info(
                "bid accepted auction=%s user=%s amount=%s", auction_id, user_id, value
            )
        else:
            logger.debug(
                "bid rejected auction=%s user=%s amount=%s code=%s",
                auction_id,
                user_id,
                value,
                result.code,
            )
        return result

    async def cancel_auction(self, auction_id: str, seller_id: str) -> LifecycleResult:
        return await self._serialized(
            auction_id, lambda auction: self._evaluate_cancel(auction, seller_id)
        )

    async def buy_now(self, auction_id: str, buyer_id: str) -> LifecycleResult:
        return await self._serialized(
            auction_id, lambda auction: self._evaluate_buy_now(auction, buyer_id)
        )

    async def _serialized(
        self,
        auction_id: str,
        evaluate: Callable[[Auction], Awaitable[Any]],
    ) -> Any:
        for attempt in range(1, self._max_attempts + 1):
            try:
                async with self._scope.hold(auction_id):
                    auction = await self._storage.get_auction(auction_id)
                    if auction is None:
                        return AuctionNotFound(auction_id)
                    return await evaluate(auction)
            except VersionConflict:
                logger.info(
                    "auction %s changed during attempt %d/%d, retrying",
                    auction_id,
                    attempt,
                    self._max_attempts,
                )
            except Exception as exc:
                logger.exception("storage failure while updating auction %s", auction_id)
                return PersistenceFailure(str(exc) or exc.__class__.__name__)
        return PersistenceFailure(
            f"auction {auction_id} kept changing after {self._max_attempts} attempts"
        )

    async def _evaluate_bid(self, auction: Auction, user_id: str, amount: Decimal) -> BidResult:
        now = self._clock()
        reason = rules.inactive_reason(auction, now)
        if reason:
            return AuctionNotActive(auction.auction_id, reason)
        required = rules.minimum_next_bid(auction.current_price, self._minimum_increment)
        if amount < required:
            return BidTooLow(required)
        bid = Bid(
            bid_id=new_bid_id(),
            auction_id=auction.auction_id,
            user_id=user_id,
            amount=amount,
            timestamp=rules.commit_timestamp(auction, now),
        )
        updated = rules.apply_bid(auction, bid)
        await self._commit(self._storage.commit_bid(updated, bid, expected_version=auction.version))
        return BidAccepted(updated, bid)

    async def _evaluate_cancel(self, auction: Auction, seller_id: str) -> LifecycleResult:
        if auction.seller_id != seller_id:
            return NotAuthorized()
        if auction.status not in OPEN_STATUSES:
            return AuctionNotActive(auction.auction_id, f"auction is {auction.status.value}")
        if auction.bid_count > 0:
            return AuctionHasBids(auction.auction_id)
        updated = rules.close_auction(
            auction, status=AuctionStatus.CANCELLED, closed_by="SELLER", now=self._clock()
        )
        await self._commit(
            self._storage.update_auction(updated, expected_version=auction.version)
        )
        logger.info("auction %s cancelled by seller %s", auction.auction_id, seller_id)
        return AuctionUpdated(updated)

    async def _evaluate_buy_now(self, auction: Auction, buyer_id: str) -> LifecycleResult:
        if auction.buy_now_price is None:
            return BuyNowUnavailable()
        now = self._clock()
        if auction.status not in OPEN_STATUSES or not auction.is_active:
            return AuctionNotActive(auction.auction_id, "auction is closed")
        # Upcoming auctions may be bought outright; expired ones may not.
        if now > auction.ends_at:
            return AuctionNotActive(auction.auction_id, "auction has ended")
        if auction.current_price >= auction.buy_now_price:
            return BuyNowUnavailable("Bidding has passed the Buy Now price")
        updated = rules.close_auction(
            auction,
            status=AuctionStatus.SOLD,
            closed_by="BUYER",
            now=now,
            current_price=auction.buy_now_price,
            winner_id=buyer_id,
        )
        await self._commit(
            self._storage.update_auction(updated, expected_version=auction.version)
        )
        logger.info("buy now executed on auction %s by %s", auction.auction_id, buyer_id)
        return AuctionUpdated(updated)

    async def _commit(self, write: Awaitable[Any]) -> None:
        """Run a storage write that a cancelled caller cannot interrupt halfway."""
        task = asyncio.ensure_future(write)
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            # Let the write land (or fail) before the scope is released.
            try:
                await task
            except Exception:
                logger.exception("write failed after caller cancelled")
            raise
