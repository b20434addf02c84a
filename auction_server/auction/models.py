"""Auction and bid records shared by the engine and the storage backends."""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from ..timestamps import format_optional, format_timestamp, parse_optional, parse_timestamp


class AuctionStatus(str, Enum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    ENDED = "ended"
    CANCELLED = "cancelled"
    SOLD = "sold"


CLOSED_STATUSES = frozenset({AuctionStatus.ENDED, AuctionStatus.CANCELLED, AuctionStatus.SOLD})
OPEN_STATUSES = frozenset({AuctionStatus.ACTIVE, AuctionStatus.UPCOMING})


def to_money(value: Any) -> Decimal:
    """Coerce a numeric payload value into a Decimal amount."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"invalid monetary value {value!r}")
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"invalid monetary value {value!r}")
        value = str(value)
    try:
        amount = Decimal(str(value).strip()) if not isinstance(value, Decimal) else value
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ValueError(f"invalid monetary value {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"invalid monetary value {value!r}")
    return amount


def _optional_money(value: Any) -> Decimal | None:
    return to_money(value) if value is not None else None


def _money_str(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


def new_bid_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Auction:
    auction_id: str
    product_id: str
    seller_id: str
    starts_at: datetime
    ends_at: datetime
    min_price: Decimal
    current_price: Decimal
    created_at: datetime
    updated_at: datetime
    is_active: bool = True
    status: AuctionStatus = AuctionStatus.ACTIVE
    reserve_price: Decimal | None = None
    is_reserve_met: bool = True
    buy_now_price: Decimal | None = None
    winner_id: str | None = None
    bid_count: int = 0
    extension_minutes: int = 0
    max_extensions: int = 0
    extension_count: int = 0
    closed_at: datetime | None = None
    closed_by: str | None = None
    version: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "auction_id": self.auction_id,
            "product_id": self.product_id,
            "seller_id": self.seller_id,
            "starts_at": format_timestamp(self.starts_at),
            "ends_at": format_timestamp(self.ends_at),
            "min_price": str(self.min_price),
            "current_price": str(self.current_price),
            "is_active": self.is_active,
            "status": self.status.value,
            "reserve_price": _money_str(self.reserve_price),
            "is_reserve_met": self.is_reserve_met,
            "buy_now_price": _money_str(self.buy_now_price),
            "winner_id": self.winner_id,
            "bid_count": self.bid_count,
            "extension_minutes": self.extension_minutes,
            "max_extensions": self.max_extensions,
            "extension_count": self.extension_count,
            "closed_at": format_optional(self.closed_at),
            "closed_by": self.closed_by,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Auction":
        return cls(
            auction_id=data["auction_id"],
            product_id=data["product_id"],
            seller_id=data.get("seller_id", ""),
            starts_at=parse_timestamp(data["starts_at"]),
            ends_at=parse_timestamp(data["ends_at"]),
            min_price=to_money(data["min_price"]),
            current_price=to_money(data["current_price"]),
            is_active=bool(data.get("is_active", True)),
            status=AuctionStatus(data.get("status", AuctionStatus.ACTIVE.value)),
            reserve_price=_optional_money(data.get("reserve_price")),
            is_reserve_met=bool(data.get("is_reserve_met", True)),
            buy_now_price=_optional_money(data.get("buy_now_price")),
            winner_id=data.get("winner_id"),
            bid_count=int(data.get("bid_count", 0)),
            extension_minutes=int(data.get("extension_minutes", 0)),
            max_extensions=int(data.get("max_extensions", 0)),
            extension_count=int(data.get("extension_count", 0)),
            closed_at=parse_optional(data.get("closed_at")),
            closed_by=data.get("closed_by"),
            created_at=parse_timestamp(data["created_at"]),
            updated_at=parse_timestamp(data["updated_at"]),
            version=int(data.get("version", 0)),
        )


@dataclass(frozen=True)
class Bid:
    bid_id: str
    auction_id: str
    user_id: str
    amount: Decimal
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "bid_id": self.bid_id,
            "auction_id": self.auction_id,
            "user_id": self.user_id,
            "amount": str(self.amount),
            "timestamp": format_timestamp(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Bid":
        return cls(
            bid_id=data["bid_id"],
            auction_id=data["auction_id"],
            user_id=data["user_id"],
            amount=to_money(data["amount"]),
            timestamp=parse_timestamp(data["timestamp"]),
        )
