"""Shared fixtures for auction server unit tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from auction_server.auction.engine import BiddingEngine
from auction_server.auction.models import Auction
from auction_server.auction.scopes import LocalSerializationScope
from auction_server.storage.in_memory import InMemoryStorage

START = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


@pytest.fixture
def clock():
    """Clock frozen one hour into the default auction window."""
    return FakeClock(START + timedelta(hours=1))


@pytest.fixture
def auction_factory():
    def _make(**overrides) -> Auction:
        defaults = {
            "auction_id": "A1",
            "product_id": "P1",
            "seller_id": "seller_1",
            "starts_at": START,
            "ends_at": START + timedelta(days=1),
            "min_price": Decimal("100"),
            "current_price": Decimal("100"),
            "created_at": START,
            "updated_at": START,
        }
        defaults.update(overrides)
        return Auction(**defaults)

    return _make


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def seed(storage, auction_factory):
    """Persist an auction built from the default template plus overrides."""

    async def _seed(store=None, **overrides) -> Auction:
        return await (store or storage).create_auction(auction_factory(**overrides))

    return _seed


@pytest.fixture
def scope():
    return LocalSerializationScope()


@pytest.fixture
def engine(storage, scope, clock):
    return BiddingEngine(storage, scope, minimum_increment=Decimal("10"), clock=clock)
