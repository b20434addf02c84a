"""Bid validation, increment and soft-close rules."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from decimal import Decimal

from .models import CLOSED_STATUSES, Auction, AuctionStatus, Bid


def inactive_reason(auction: Auction, now: datetime) -> str | None:
    if not auction.is_active:
        return "auction is not active"
    if auction.status in CLOSED_STATUSES:
        return f"auction is {auction.status.value}"
    if now < auction.starts_at:
        return "auction has not started"
    if now > auction.ends_at:
        return "auction has ended"
    return None


def minimum_next_bid(current_price: Decimal, minimum_increment: Decimal) -> Decimal:
    return current_price + minimum_increment


def commit_timestamp(auction: Auction, now: datetime) -> datetime:
    # updated_at must never move backwards, even if the clock does.
    return max(now, auction.updated_at)


def extended_end(auction: Auction, now: datetime) -> datetime | None:
    """Return the new end time when a bid lands inside the soft-close window."""
    if auction.extension_minutes <= 0:
        return None
    if auction.extension_count >= auction.max_extensions:
        return None
    window = timedelta(minutes=auction.extension_minutes)
    if auction.ends_at - now >= window:
        return None
    return now + window


def apply_bid(auction: Auction, bid: Bid) -> Auction:
    new_end = extended_end(auction, bid.timestamp)
    reserve_met = auction.reserve_price is None or bid.amount >= auction.reserve_price
    return replace(
        auction,
        current_price=bid.amount,
        winner_id=bid.user_id,
        bid_count=auction.bid_count + 1,
        is_reserve_met=reserve_met,
        status=AuctionStatus.ACTIVE,
        ends_at=new_end or auction.ends_at,
        extension_count=auction.extension_count + (1 if new_end else 0),
        updated_at=bid.timestamp,
        version=auction.version + 1,
    )


def close_auction(
    auction: Auction,
    *,
    status: AuctionStatus,
    closed_by: str,
    now: datetime,
    **changes,
) -> Auction:
    stamp = commit_timestamp(auction, now)
    return replace(
        auction,
        status=status,
        is_active=False,
        closed_at=stamp,
        closed_by=closed_by,
        updated_at=stamp,
        version=auction.version + 1,
        **changes,
    )
