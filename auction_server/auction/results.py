"""Typed outcomes returned across the bidding engine boundary."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, ClassVar, Union

from .models import Auction, Bid


@dataclass(frozen=True)
class BidAccepted:
    auction: Auction
    bid: Bid

    accepted: ClassVar[bool] = True
    code: ClassVar[str] = "accepted"

    @property
    def message(self) -> str:
        return f"Bid of {self.bid.amount} placed"


@dataclass(frozen=True)
class AuctionUpdated:
    auction: Auction

    accepted: ClassVar[bool] = True
    code: ClassVar[str] = "updated"

    @property
    def message(self) -> str:
        return f"Auction {self.auction.status.value}"


@dataclass(frozen=True)
class AuctionNotFound:
    auction_id: str

    accepted: ClassVar[bool] = False
    code: ClassVar[str] = "auction_not_found"

    @property
    def message(self) -> str:
        return "Auction not found"


@dataclass(frozen=True)
class AuctionNotActive:
    auction_id: str
    reason: str = "auction is not active"

    accepted: ClassVar[bool] = False
    code: ClassVar[str] = "auction_not_active"

    @property
    def message(self) -> str:
        return f"Auction is not accepting bids: {self.reason}"


@dataclass(frozen=True)
class BidTooLow:
    required_minimum: Decimal

    accepted: ClassVar[bool] = False
    code: ClassVar[str] = "bid_too_low"

    @property
    def message(self) -> str:
        return f"Bid must be at least ₹{self.required_minimum}"


@dataclass(frozen=True)
class OutbidByConcurrentHigherBid(BidTooLow):
    """Same validation branch as BidTooLow, for callers that know their price view was stale."""

    code: ClassVar[str] = "outbid"

    @property
    def message(self) -> str:
        return f"You've been outbid! The next bid must be at least ₹{self.required_minimum}"


@dataclass(frozen=True)
class InvalidBidAmount:
    detail: str

    accepted: ClassVar[bool] = False
    code: ClassVar[str] = "invalid_amount"

    @property
    def message(self) -> str:
        return self.detail


@dataclass(frozen=True)
class NotAuthorized:
    detail: str = "Not authorized"

    accepted: ClassVar[bool] = False
    code: ClassVar[str] = "not_authorized"

    @property
    def message(self) -> str:
        return self.detail


@dataclass(frozen=True)
class AuctionHasBids:
    auction_id: str

    accepted: ClassVar[bool] = False
    code: ClassVar[str] = "auction_has_bids"

    @property
    def message(self) -> str:
        return "Cannot cancel auction with bids"


@dataclass(frozen=True)
class BuyNowUnavailable:
    detail: str = "Buy Now not available"

    accepted: ClassVar[bool] = False
    code: ClassVar[str] = "buy_now_unavailable"

    @property
    def message(self) -> str:
        return self.detail


@dataclass(frozen=True)
class PersistenceFailure:
    detail: str

    accepted: ClassVar[bool] = False
    code: ClassVar[str] = "persistence_failure"

    @property
    def message(self) -> str:
        return f"Bid could not be saved: {self.detail}"


BidRejection = Union[
    AuctionNotFound,
    AuctionNotActive,
    BidTooLow,
    InvalidBidAmount,
    PersistenceFailure,
]
BidResult = Union[BidAccepted, BidRejection]
LifecycleResult = Union[
    AuctionUpdated,
    AuctionNotFound,
    AuctionNotActive,
    NotAuthorized,
    AuctionHasBids,
    BuyNowUnavailable,
    PersistenceFailure,
]


def describe(result: Any) -> dict[str, Any]:
    """Render a result as a JSON-friendly payload."""
    payload: dict[str, Any] = {"code": result.code, "message": result.message}
    if isinstance(result, BidTooLow):
        payload["required_minimum"] = str(result.required_minimum)
    if isinstance(result, BidAccepted):
        payload["bid"] = result.bid.to_dict()
        payload["auction"] = result.auction.to_dict()
    elif isinstance(result, AuctionUpdated):
        payload["auction"] = result.auction.to_dict()
    return payload
