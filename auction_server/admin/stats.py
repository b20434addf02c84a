"""Operational stats endpoint."""

from __future__ import annotations

from collections import Counter
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, Request

from ..auction.models import AuctionStatus
from ..auction.service import AuctionService

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_auction_service(request: Request) -> AuctionService:
    return request.app.state.auction_service


@router.get("/stats")
async def stats(
    service: AuctionService = Depends(_get_auction_service),
) -> dict[str, Any]:
    auctions = await service.list_auctions()
    total_auctions = len(auctions)
    total_bids = sum(auction.bid_count for auction in auctions)
    status_distribution: Counter[str] = Counter(auction.status.value for auction in auctions)
    with_bids = sum(1 for auction in auctions if auction.bid_count)
    no_bid_rate = ((total_auctions - with_bids) / total_auctions) if total_auctions else 0.0
    reserve_met = sum(
        1 for auction in auctions if auction.reserve_price is not None and auction.is_reserve_met
    )
    with_reserve = sum(1 for auction in auctions if auction.reserve_price is not None)
    sold_value = sum(
        (auction.current_price for auction in auctions if auction.status == AuctionStatus.SOLD),
        Decimal("0"),
    )
    return {
        "total_auctions": total_auctions,
        "total_bids": total_bids,
        "no_bid_rate": round(no_bid_rate, 4),
        "reserve_met_rate": round(reserve_met / with_reserve, 4) if with_reserve else 0.0,
        "status_distribution": dict(status_distribution),
        "sold_value": str(sold_value),
    }
