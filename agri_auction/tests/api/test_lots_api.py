from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from agri_auction.core.config import Settings

API = "/api/v1"


def _register(client):
    r = client.put(
        f"{API}/participants/F1",
        json={
            "role": "farmer",
            "display_name": "Ramesh Patil",
            "phone": "9800000001",
            "email": "ramesh@example.in",
            "state": "Maharashtra",
            "district": "Pune",
            "city": "Baramati",
        },
    )
    assert r.status_code == 200, r.text
    for pid, name in (("A", "Anand Traders"), ("B", "Bharat Foods")):
        r = client.put(
            f"{API}/participants/{pid}",
            json={"role": "buyer", "display_name": name, "phone": "98000000" + pid},
        )
        assert r.status_code == 200, r.text


def _create_lot(client, clock, **overrides):
    now = clock()
    body = {
        "seller_id": "F1",
        "commodity_name": "Onion",
        "quantity": "1200",
        "unit": "kg",
        "quality": "Grade A",
        "harvest_date": (now - timedelta(days=2)).isoformat(),
        "expiry_date": (now + timedelta(days=10)).isoformat(),
        "closing_time": (now + timedelta(hours=1)).isoformat(),
        "starting_price": "5000",
    }
    body.update(overrides)
    return client.post(f"{API}/lots", json=body)


@pytest.fixture
def lot_id(client, clock):
    _register(client)
    r = _create_lot(client, clock)
    assert r.status_code == 201, r.text
    return r.json()["id"]


def test_participant_roundtrip(client):
    _register(client)
    r = client.get(f"{API}/participants/A")
    assert r.status_code == 200
    body = r.json()
    assert body["role"] == "buyer"
    assert body["buyer_type"] == "commercial"

    assert client.get(f"{API}/participants/nobody").status_code == 404


def test_farmer_with_bid_limit_is_rejected(client):
    r = client.put(
        f"{API}/participants/F9",
        json={"role": "farmer", "display_name": "X", "max_bid_limit": "100"},
    )
    assert r.status_code == 400


def test_create_and_get_lot(client, clock, lot_id):
    r = client.get(f"{API}/lots/{lot_id}")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "active"
    assert Decimal(body["current_price"]) == Decimal("5000")
    assert body["seller_name"] == "Ramesh Patil"
    assert body["bids"] == []


def test_create_lot_validation_error(client, clock):
    _register(client)
    r = _create_lot(client, clock, closing_time=(clock() - timedelta(minutes=1)).isoformat())
    assert r.status_code == 400

    r = _create_lot(client, clock, commodity_name="   ")
    assert r.status_code == 400


@pytest.mark.parametrize(
    "overrides",
    [{"starting_price": "0"}, {"starting_price": "5000.005"}, {"unit": None}],
)
def test_create_lot_schema_errors(client, clock, overrides):
    _register(client)
    r = _create_lot(client, clock, **overrides)
    assert r.status_code == 422


def test_create_lot_unknown_seller(client, clock):
    _register(client)
    r = _create_lot(client, clock, seller_id="ghost")
    assert r.status_code == 404


def test_get_unknown_lot(client):
    r = client.get(f"{API}/lots/00000000-0000-0000-0000-000000000000")
    assert r.status_code == 404


def test_active_listing_and_filters(client, clock, lot_id):
    r = client.get(f"{API}/lots/active")
    assert r.status_code == 200
    assert [l["id"] for l in r.json()] == [lot_id]

    r = client.get(f"{API}/lots/active", params={"min_quality": "Premium"})
    assert r.json() == []

    r = client.get(f"{API}/lots/active", params={"district": "Pune"})
    assert len(r.json()) == 1

    r = client.get(f"{API}/lots/seller/F1")
    assert [l["id"] for l in r.json()] == [lot_id]


def test_bid_flow(client, lot_id):
    r = client.post(f"{API}/lots/{lot_id}/bids", json={"bidder_id": "A", "amount": "5200"})
    assert r.status_code == 201, r.text
    assert Decimal(r.json()["current_price"]) == Decimal("5200")

    r = client.post(f"{API}/lots/{lot_id}/bids", json={"bidder_id": "B", "amount": "5100"})
    assert r.status_code == 409
    detail = r.json()["detail"]
    assert detail["reason"] == "stale_price"
    assert Decimal(detail["current_price"]) == Decimal("5200")

    r = client.post(f"{API}/lots/{lot_id}/bids", json={"bidder_id": "F1", "amount": "9000"})
    assert r.status_code == 403

    r = client.get(f"{API}/lots/{lot_id}")
    body = r.json()
    assert body["total_bids"] == 1
    assert [b["bidder_id"] for b in body["bids"]] == ["A"]


def test_bid_after_close_is_conflict(client, clock, lot_id):
    clock.advance(hours=1)
    r = client.post(f"{API}/lots/{lot_id}/bids", json={"bidder_id": "A", "amount": "6000"})
    assert r.status_code == 409
    assert r.json()["detail"]["reason"] == "lot_closed"


def test_cancel_by_seller(client, lot_id):
    client.post(f"{API}/lots/{lot_id}/bids", json={"bidder_id": "A", "amount": "5200"})

    r = client.post(f"{API}/lots/{lot_id}/cancel", json={"seller_id": "A"})
    assert r.status_code == 403

    r = client.post(f"{API}/lots/{lot_id}/cancel", json={"seller_id": "F1"})
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "cancelled"

    r = client.post(f"{API}/lots/{lot_id}/cancel", json={"seller_id": "F1"})
    assert r.status_code == 409

    r = client.get(f"{API}/notifications/A")
    assert [n["kind"] for n in r.json()] == ["lot_cancelled"]


def test_close_early_then_history(client, lot_id):
    client.post(f"{API}/lots/{lot_id}/bids", json={"bidder_id": "A", "amount": "5200"})
    client.post(f"{API}/lots/{lot_id}/bids", json={"bidder_id": "B", "amount": "5600"})

    r = client.post(f"{API}/lots/{lot_id}/close", json={"seller_id": "F1"})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["status"] == "completed"
    assert body["winner_id"] == "B"
    assert body["outcome"]["winner_contact"]["name"] == "Bharat Foods"

    r = client.get(f"{API}/lots/{lot_id}/history")
    assert r.status_code == 200
    rows = r.json()
    assert rows[0]["role"] == "creator"
    assert {row["participant_id"] for row in rows} == {"F1", "A", "B"}

    r = client.get(f"{API}/history/B", params={"outcome": "won"})
    assert len(r.json()) == 1
    assert r.json()[0]["contact_details"]["name"] == "Ramesh Patil"

    r = client.get(f"{API}/history/A", params={"outcome": "lost"})
    assert len(r.json()) == 1

    r = client.get(f"{API}/history/A", params={"outcome": "maybe"})
    assert r.status_code == 422

    r = client.get(f"{API}/notifications/B", params={"unread_only": True})
    assert [n["kind"] for n in r.json()] == ["lot_won"]


def test_bid_rate_limit(session_factory, clock):
    from agri_auction.core.deps import get_clock
    from agri_auction.db.session import get_db
    from agri_auction.main import create_app

    app = create_app(Settings(scheduler_enabled=False, bid_rate_limit_capacity=2))

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock

    with TestClient(app) as c:
        lot = "00000000-0000-0000-0000-000000000000"
        headers = {"X-Participant-Id": "A"}
        codes = [
            c.post(f"{API}/lots/{lot}/bids", json={"bidder_id": "A", "amount": "1"}, headers=headers).status_code
            for _ in range(3)
        ]
        assert codes[:2] == [404, 404]
        assert codes[2] == 429

        # other callers have their own bucket
        r = c.post(f"{API}/lots/{lot}/bids", json={"bidder_id": "B", "amount": "1"},
                   headers={"X-Participant-Id": "B"})
        assert r.status_code == 404


def test_sub_cent_bid_is_rejected_and_lot_keeps_trading(client, lot_id):
    r = client.post(f"{API}/lots/{lot_id}/bids", json={"bidder_id": "A", "amount": "5000.001"})
    assert r.status_code == 422

    r = client.post(f"{API}/lots/{lot_id}/bids", json={"bidder_id": "B", "amount": "5000.01"})
    assert r.status_code == 201, r.text
    assert Decimal(r.json()["current_price"]) == Decimal("5000.01")

    r = client.post(f"{API}/lots/{lot_id}/bids", json={"bidder_id": "A", "amount": "6000"})
    assert r.status_code == 201, r.text
