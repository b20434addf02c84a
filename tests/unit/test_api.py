"""Unit tests for the HTTP surface of the auction server."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from auction_server.main import app
from auction_server.timestamps import format_timestamp


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def _create(client, **overrides) -> dict:
    now = datetime.now(timezone.utc)
    payload = {
        "product_id": "bird_42",
        "seller_id": "farmer_1",
        "starts_at": format_timestamp(now - timedelta(hours=1)),
        "ends_at": format_timestamp(now + timedelta(hours=1)),
        "min_price": 100,
    }
    payload.update(overrides)
    response = client.post("/auctions", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


class TestAuctionEndpoints:
    def test_create_and_fetch(self, client):
        created = _create(client)

        response = client.get(f"/auctions/{created['auction_id']}")

        assert response.status_code == 200
        assert response.json()["current_price"] == "100"
        assert response.json()["status"] == "active"

    def test_create_rejects_unknown_fields(self, client):
        response = client.post("/auctions", json={"product_id": "p", "colour": "red"})

        assert response.status_code == 422

    def test_create_rejects_inverted_window(self, client):
        now = datetime.now(timezone.utc)
        response = client.post(
            "/auctions",
            json={
                "product_id": "bird_42",
                "seller_id": "farmer_1",
                "starts_at": format_timestamp(now + timedelta(hours=1)),
                "ends_at": format_timestamp(now),
                "min_price": 100,
            },
        )

        assert response.status_code == 422
        assert "end time" in response.json()["detail"]

    def test_duplicate_id_conflicts(self, client):
        _create(client, auction_id="dup_1")
        now = datetime.now(timezone.utc)

        response = client.post(
            "/auctions",
            json={
                "auction_id": "dup_1",
                "product_id": "bird_42",
                "seller_id": "farmer_1",
                "starts_at": format_timestamp(now),
                "ends_at": format_timestamp(now + timedelta(hours=1)),
                "min_price": 100,
            },
        )

        assert response.status_code == 409

    def test_unknown_auction(self, client):
        assert client.get("/auctions/nope").status_code == 404
        assert client.get("/auctions/nope/bids").status_code == 404

    def test_find_by_product(self, client):
        created = _create(client, product_id="bird_find")

        response = client.get("/auctions", params={"product_id": "bird_find"})

        assert response.json()["auction"]["auction_id"] == created["auction_id"]


class TestBidEndpoints:
    def test_bid_flow(self, client):
        auction_id = _create(client)["auction_id"]

        low = client.post(f"/auctions/{auction_id}/bids", json={"user_id": "x", "amount": 95})
        ok = client.post(f"/auctions/{auction_id}/bids", json={"user_id": "x", "amount": 110})
        stale = client.post(f"/auctions/{auction_id}/bids", json={"user_id": "y", "amount": 110})

        assert low.status_code == 422
        assert low.json()["detail"]["code"] == "bid_too_low"
        assert low.json()["detail"]["required_minimum"] == "110"
        assert ok.status_code == 201
        assert ok.json()["bid"]["amount"] == "110"
        assert ok.json()["auction"]["winner_id"] == "x"
        assert stale.json()["detail"]["required_minimum"] == "120"

        bids = client.get(f"/auctions/{auction_id}/bids").json()["bids"]
        assert [(bid["user_id"], bid["amount"]) for bid in bids] == [("x", "110")]

    def test_bid_on_unknown_auction(self, client):
        response = client.post("/auctions/nope/bids", json={"user_id": "x", "amount": 500})

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "auction_not_found"

    def test_bid_requires_user(self, client):
        auction_id = _create(client)["auction_id"]

        response = client.post(f"/auctions/{auction_id}/bids", json={"amount": 500})

        assert response.status_code == 422

    def test_non_positive_amount(self, client):
        auction_id = _create(client)["auction_id"]

        response = client.post(
            f"/auctions/{auction_id}/bids", json={"user_id": "x", "amount": "0"}
        )

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "invalid_amount"

    def test_cancel_then_bid(self, client):
        auction_id = _create(client)["auction_id"]

        forbidden = client.post(f"/auctions/{auction_id}/cancel", json={"seller_id": "other"})
        cancelled = client.post(f"/auctions/{auction_id}/cancel", json={"seller_id": "farmer_1"})
        bid = client.post(f"/auctions/{auction_id}/bids", json={"user_id": "x", "amount": 500})

        assert forbidden.status_code == 403
        assert cancelled.status_code == 200
        assert cancelled.json()["auction"]["status"] == "cancelled"
        assert bid.status_code == 409

    def test_buy_now(self, client):
        auction_id = _create(client, buy_now_price="900")["auction_id"]
        plain_id = _create(client)["auction_id"]

        sold = client.post(f"/auctions/{auction_id}/buy-now", json={"buyer_id": "b1"})
        unavailable = client.post(f"/auctions/{plain_id}/buy-now", json={"buyer_id": "b1"})

        assert sold.status_code == 200
        assert sold.json()["auction"]["current_price"] == "900"
        assert unavailable.status_code == 409


class TestAdminEndpoints:
    def test_health_and_config(self, client):
        health = client.get("/admin/health").json()
        config = client.get("/admin/config").json()

        assert health["status"] == "healthy"
        assert config["minimum_increment"] == "10"
        assert config["serialization_backend"] == "local"

    def test_stats_count_bids(self, client):
        auction_id = _create(client)["auction_id"]
        client.post(f"/auctions/{auction_id}/bids", json={"user_id": "x", "amount": 110})

        stats = client.get("/admin/stats").json()

        assert stats["total_auctions"] >= 1
        assert stats["total_bids"] >= 1
        assert "active" in stats["status_distribution"]

    def test_health_reports_unreachable_storage(self, client, monkeypatch):
        async def broken(auction_id):
            raise ConnectionError("storage down")

        monkeypatch.setattr(client.app.state.storage, "get_auction", broken)

        health = client.get("/admin/health").json()

        assert health["status"] == "degraded"
        assert health["storage_reachable"] is False


class TestBidFailureStatus:
    def test_storage_failure_is_service_unavailable(self, client, monkeypatch):
        auction_id = _create(client)["auction_id"]

        async def failing_commit(auction, bid, *, expected_version):
            raise ConnectionError("ledger unreachable")

        monkeypatch.setattr(client.app.state.storage, "commit_bid", failing_commit)

        response = client.post(f"/auctions/{auction_id}/bids", json={"user_id": "x", "amount": 110})

        assert response.status_code == 503
        assert response.json()["detail"]["code"] == "persistence_failure"
        assert client.get(f"/auctions/{auction_id}").json()["current_price"] == "100"

    def test_slow_commit_times_out_and_still_lands(self, client, monkeypatch):
        auction_id = _create(client)["auction_id"]
        storage = client.app.state.storage
        commit = storage.commit_bid

        async def slow_commit(auction, bid, *, expected_version):
            await asyncio.sleep(0.3)
            await commit(auction, bid, expected_version=expected_version)

        settings = client.app.state.server_config
        monkeypatch.setattr(
            client.app.state,
            "server_config",
            replace(settings, bidding=replace(settings.bidding, bid_timeout_ms=20)),
        )
        monkeypatch.setattr(storage, "commit_bid", slow_commit)

        response = client.post(f"/auctions/{auction_id}/bids", json={"user_id": "x", "amount": 110})

        assert response.status_code == 504
        bids = client.get(f"/auctions/{auction_id}/bids").json()["bids"]
        assert [bid["amount"] for bid in bids] == ["110"]
