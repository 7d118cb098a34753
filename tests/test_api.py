# tests/test_api.py
"""HTTP layer: routers, schemas and the typed error mapping."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from valet.database import get_db
from valet.main import app
from valet.services.orchestrator import Orchestrator, get_orchestrator


@pytest.fixture
def core():
    return Orchestrator(hook_count=3)


@pytest.fixture
def client(core):
    app.dependency_overrides[get_orchestrator] = lambda: core
    app.dependency_overrides[get_db] = lambda: MagicMock()
    yield TestClient(app)
    app.dependency_overrides.clear()


def check_in(client, plate="ABC-123", **extra):
    resp = client.post("/api/v1/checkin", json={"plate": plate, **extra})
    assert resp.status_code == 201
    return resp.json()


class TestCheckInApi:
    def test_check_in(self, client):
        body = check_in(client, "abc-123", make="Toyota", model="Camry", color="White")
        assert body == {"card_id": "CARD-001", "hook_number": 1, "vehicle_id": 1,
                        "plate": "ABC-123", "created": True}

    def test_repeated_check_in_is_200(self, client):
        first = check_in(client, card_id="CARD-900")
        resp = client.post("/api/v1/checkin", json={"plate": "ABC-123", "card_id": "CARD-900"})
        assert resp.status_code == 200
        assert resp.json()["created"] is False
        assert resp.json()["hook_number"] == first["hook_number"]

    def test_bad_plate(self, client):
        resp = client.post("/api/v1/checkin", json={"plate": "!"})
        assert resp.status_code == 400

    def test_board_full_is_503(self, client):
        for plate in ("AAA-111", "BBB-222", "CCC-333"):
            check_in(client, plate)
        resp = client.post("/api/v1/checkin", json={"plate": "DDD-444"})
        assert resp.status_code == 503
        assert resp.json()["error"] == "NoHooksAvailable"
        assert resp.json()["current"]["available"] == 0

    def test_hooks_views(self, client):
        check_in(client)
        stats = client.get("/api/v1/hooks/stats").json()
        assert stats["occupied"] == 1
        assert stats["occupancy_percent"] == 33.3
        assert client.get("/api/v1/hooks/next").json() == {"hook_number": 2, "available": True}
        hooks = client.get("/api/v1/hooks").json()
        assert hooks[0]["state"] == "occupied"
        assert hooks[0]["bound_vehicle_id"] == 1


class TestRetrievalApi:
    def test_full_cycle(self, client, core):
        card_id = check_in(client)["card_id"]
        resp = client.post("/api/v1/retrieval", json={"card_id": card_id, "is_priority": True,
                                                      "payment_method": "cash"})
        assert resp.status_code == 201
        request = resp.json()
        assert request["amount"] == 25.0
        assert request["status"] == "pending"
        assert request["progress"] == 10

        rid = request["id"]
        assert client.get("/api/v1/queue/next").json()["id"] == rid
        assert client.post(f"/api/v1/retrieval/{rid}/assign", json={"driver_id": "drv-1"}).status_code == 200
        for step in ("assigned", "keys_picked", "walking", "driving"):
            resp = client.post(f"/api/v1/retrieval/{rid}/advance", json={"from_status": step})
            assert resp.status_code == 200
        assert resp.json()["status"] == "ready"
        assert [r["id"] for r in client.get("/api/v1/queue/handovers").json()] == [rid]

        assert client.post(f"/api/v1/retrieval/{rid}/payment", json={"tip_amount": 5}).status_code == 200
        assert client.post(f"/api/v1/retrieval/{rid}/verify-card", json={}).json()["card_verified"] is True
        done = client.post(f"/api/v1/retrieval/{rid}/complete")
        assert done.status_code == 200
        assert done.json()["status"] == "completed"
        assert done.json()["tip_amount"] == 5.0
        assert core.hook_stats().occupied == 0

    def test_stale_advance_is_409_with_current(self, client):
        card_id = check_in(client)["card_id"]
        rid = client.post("/api/v1/retrieval", json={"card_id": card_id}).json()["id"]
        client.post(f"/api/v1/retrieval/{rid}/assign", json={"driver_id": "drv-1"})
        client.post(f"/api/v1/retrieval/{rid}/advance", json={"from_status": "assigned"})
        resp = client.post(f"/api/v1/retrieval/{rid}/advance", json={"from_status": "assigned"})
        assert resp.status_code == 409
        assert resp.json()["error"] == "StatusMismatch"
        assert resp.json()["current"] == "keys_picked"

    def test_duplicate_request(self, client):
        card_id = check_in(client)["card_id"]
        client.post("/api/v1/retrieval", json={"card_id": card_id})
        resp = client.post("/api/v1/retrieval", json={"card_id": card_id})
        assert resp.status_code == 409
        assert resp.json()["error"] == "DuplicateActiveRequest"

    def test_second_assign_loses(self, client):
        card_id = check_in(client)["card_id"]
        rid = client.post("/api/v1/retrieval", json={"card_id": card_id}).json()["id"]
        client.post(f"/api/v1/retrieval/{rid}/assign", json={"driver_id": "drv-1"})
        resp = client.post(f"/api/v1/retrieval/{rid}/assign", json={"driver_id": "drv-2"})
        assert resp.status_code == 409
        assert resp.json()["error"] == "RequestNotPending"
        assert resp.json()["current"]["assigned_driver_id"] == "drv-1"

    def test_complete_before_ready_is_422(self, client):
        card_id = check_in(client)["card_id"]
        rid = client.post("/api/v1/retrieval", json={"card_id": card_id}).json()["id"]
        resp = client.post(f"/api/v1/retrieval/{rid}/complete")
        assert resp.status_code == 422
        assert resp.json()["error"] == "NotReady"

    def test_unknown_card(self, client):
        resp = client.post("/api/v1/retrieval", json={"card_id": "CARD-404"})
        assert resp.status_code == 404

    def test_claim_on_empty_queue(self, client):
        resp = client.post("/api/v1/drivers/drv-1/claim")
        assert resp.status_code == 404

    def test_queue_counts(self, client):
        regular = check_in(client, "AAA-111")["card_id"]
        vip = check_in(client, "BBB-222")["card_id"]
        client.post("/api/v1/retrieval", json={"card_id": regular})
        client.post("/api/v1/retrieval", json={"card_id": vip, "is_priority": True})
        body = client.get("/api/v1/queue").json()
        assert body["total"] == 2
        assert body["priority_count"] == 1
        assert body["requests"][0]["card_id"] == vip


class TestCardsApi:
    def test_clear_refused_while_parked(self, client):
        card_id = check_in(client)["card_id"]
        assert client.get(f"/api/v1/cards/{card_id}/safe-to-clear").json()["safe_to_clear"] is False
        resp = client.post(f"/api/v1/cards/{card_id}/clear")
        assert resp.status_code == 423
        assert resp.json()["error"] == "UnsafeToRelease"

    def test_card_status(self, client):
        card_id = check_in(client)["card_id"]
        body = client.get(f"/api/v1/cards/{card_id}").json()
        assert body["card"]["state"] == "bound"
        assert body["vehicle"]["plate"] == "ABC-123"
        assert body["latest_request"] is None

    def test_unknown_card_status(self, client):
        assert client.get("/api/v1/cards/CARD-404").status_code == 404


class TestMiscApi:
    def test_drivers(self, client):
        resp = client.post("/api/v1/drivers", json={"driver_id": "drv-1", "name": "Sam"})
        assert resp.json()["status"] == "available"
        resp = client.put("/api/v1/drivers/drv-1/status", json={"online": False})
        assert resp.json()["status"] == "offline"
        assert [d["id"] for d in client.get("/api/v1/drivers").json()] == ["drv-1"]

    def test_vehicles_filter(self, client):
        check_in(client)
        assert len(client.get("/api/v1/vehicles", params={"status": "parked"}).json()) == 1
        assert client.get("/api/v1/vehicles", params={"status": "retrieved"}).json() == []
        assert client.get("/api/v1/vehicles/99").status_code == 404

    def test_pricing(self, client):
        assert client.get("/api/v1/pricing").json() == {
            "base_fee": 15.0, "priority_fee": 10.0, "priority_total": 25.0, "currency": "USD",
        }

    def test_health(self, client):
        body = client.get("/api/v1/health").json()
        assert body["database"] == "ok"
        assert body["hooks"]["total"] == 3
