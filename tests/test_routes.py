"""
HTTP tests for the JSON API.

Uses the Flask test client against an app built with injected services.
"""

from datetime import datetime, timedelta, timezone
from itertools import count

import pytest

from app import create_app
from services.registry import build_services
from tests.conftest import reel_data


OPERATOR = {"X-Operator-Id": "op1"}


# Fixtures

@pytest.fixture
def clock():
    """Ledger timestamps one second apart, starting a minute ago."""
    start = datetime.now(timezone.utc) - timedelta(minutes=1)
    ticks = count()
    return lambda: start + timedelta(seconds=next(ticks))


@pytest.fixture
def app_services(clock):
    return build_services(clock=clock)


@pytest.fixture
def client(app_services):
    app = create_app("config.TestingConfig", services=app_services)
    return app.test_client()


@pytest.fixture
def reel_id(client):
    response = client.post("/api/reels", json=reel_data(), headers=OPERATOR)
    return response.get_json()["id"]


@pytest.fixture
def machine_id(client):
    response = client.post("/api/machines", json={"name": "Extrusora 1"})
    return response.get_json()["id"]


class TestReelRoutes:

    def test_create_and_get(self, client):
        response = client.post("/api/reels", json=reel_data(), headers=OPERATOR)

        assert response.status_code == 201
        body = response.get_json()
        assert body["added_by"] == "op1"
        assert body["quantity_used"] == 0

        fetched = client.get(f"/api/reels/{body['id']}").get_json()
        assert fetched["code"] == "BOB-001"

    @pytest.mark.parametrize("quantity", [-1, "²", "dez"])
    def test_create_invalid(self, client, quantity):
        response = client.post("/api/reels", json=reel_data(quantity_available=quantity))

        assert response.status_code == 400
        assert response.get_json()["error"] == "validation"

    def test_unknown_reel(self, client):
        response = client.get("/api/reels/nope")

        assert response.status_code == 404
        assert response.get_json()["error"] == "reel_not_found"

    def test_list_priority_order(self, client):
        client.post("/api/reels", json=reel_data(code="LOW", priority="baixa"))
        client.post("/api/reels", json=reel_data(code="HIGH", priority="alta"))

        body = client.get("/api/reels").get_json()
        assert [r["code"] for r in body["reels"]] == ["HIGH", "LOW"]

        only_low = client.get("/api/reels?priority=baixa").get_json()
        assert only_low["count"] == 1

    def test_list_stock_status(self, client):
        client.post("/api/reels", json=reel_data(code="FULL"))
        client.post("/api/reels", json=reel_data(code="EMPTY", quantity_available=0))

        in_stock = client.get("/api/reels?status=estoque").get_json()
        empty = client.get("/api/reels?status=vazio").get_json()

        assert [r["code"] for r in in_stock["reels"]] == ["FULL"]
        assert [r["code"] for r in empty["reels"]] == ["EMPTY"]
        assert client.get("/api/reels?status=todos").get_json()["count"] == 2
        assert client.get("/api/reels?status=cheio").status_code == 400

    def test_patch_restock(self, client, reel_id):
        response = client.patch(f"/api/reels/{reel_id}", json={"quantity_available": 40})

        assert response.status_code == 200
        assert response.get_json()["quantity_available"] == 40

    def test_patch_refuses_lower_stock(self, client, reel_id):
        response = client.patch(f"/api/reels/{reel_id}", json={"quantity_available": 3})

        assert response.status_code == 400
        assert response.get_json()["error"] == "validation"
        assert client.get(f"/api/reels/{reel_id}").get_json()["quantity_available"] == 15

    def test_patch_refuses_counters(self, client, reel_id):
        response = client.patch(f"/api/reels/{reel_id}", json={"quantity_used": 3})
        assert response.status_code == 400

    def test_delete_unreferenced(self, client, reel_id):
        assert client.delete(f"/api/reels/{reel_id}").status_code == 204
        assert client.get(f"/api/reels/{reel_id}").status_code == 404

    def test_delete_referenced_is_conflict(self, client, reel_id, machine_id):
        client.post("/api/transfers", json={
            "reel_id": reel_id, "machine_id": machine_id, "quantity": 1,
        }, headers=OPERATOR)

        response = client.delete(f"/api/reels/{reel_id}")

        assert response.status_code == 409
        assert response.get_json()["error"] == "reel_in_use"


class TestTransferRoutes:

    def test_transfer(self, client, reel_id, machine_id):
        response = client.post("/api/transfers", json={
            "reel_id": reel_id, "machine_id": machine_id, "quantity": "5",
        }, headers=OPERATOR)

        assert response.status_code == 201
        body = response.get_json()
        assert body["ledger_entry_id"]
        assert body["reel_remaining_quantity"] == 10
        assert body["reel_used_quantity"] == 5

        machine = client.get(f"/api/machines/{machine_id}").get_json()
        assert machine["assigned_reel_id"] == reel_id

    def test_operator_in_body(self, client, reel_id, machine_id):
        response = client.post("/api/transfers", json={
            "reel_id": reel_id, "machine_id": machine_id, "quantity": 1, "operator_id": "op9",
        })

        assert response.status_code == 201
        entries = client.get("/api/history").get_json()["entries"]
        assert entries[0]["operator_id"] == "op9"

    def test_missing_operator(self, client, reel_id, machine_id):
        response = client.post("/api/transfers", json={
            "reel_id": reel_id, "machine_id": machine_id, "quantity": 1,
        })

        assert response.status_code == 400
        assert response.get_json()["error"] == "missing_operator"

    def test_insufficient_stock(self, client, reel_id, machine_id):
        response = client.post("/api/transfers", json={
            "reel_id": reel_id, "machine_id": machine_id, "quantity": 16,
        }, headers=OPERATOR)

        assert response.status_code == 409
        body = response.get_json()
        assert body["error"] == "insufficient_stock"
        assert body["available"] == 15

    @pytest.mark.parametrize("quantity", ["abc", "-3", "²", 0, 1.5])
    def test_invalid_quantity(self, client, reel_id, machine_id, quantity):
        response = client.post("/api/transfers", json={
            "reel_id": reel_id, "machine_id": machine_id, "quantity": quantity,
        }, headers=OPERATOR)

        assert response.status_code == 400
        assert response.get_json()["error"] == "invalid_quantity"
        assert client.get(f"/api/reels/{reel_id}").get_json()["quantity_available"] == 15

    def test_notes_truncated_to_configured_length(self, client, reel_id, machine_id):
        client.application.config["MAX_NOTES_LENGTH"] = 10

        client.post("/api/transfers", json={
            "reel_id": reel_id, "machine_id": machine_id, "quantity": 1, "notes": "x" * 50,
        }, headers=OPERATOR)

        entries = client.get("/api/history").get_json()["entries"]
        assert entries[0]["notes"] == "x" * 10

    def test_unknown_machine(self, client, reel_id):
        response = client.post("/api/transfers", json={
            "reel_id": reel_id, "machine_id": "nope", "quantity": 1,
        }, headers=OPERATOR)

        assert response.status_code == 404
        assert response.get_json()["error"] == "machine_not_found"


class TestMachineRoutes:

    def test_create_with_reel(self, client, reel_id):
        response = client.post("/api/machines", json={"name": "Corte 1", "assigned_reel_id": reel_id})

        assert response.status_code == 201
        assert response.get_json()["assigned_reel_id"] == reel_id
        assert client.get(f"/api/reels/{reel_id}").get_json()["in_machine"] is True

    def test_create_with_unknown_reel_leaves_nothing(self, client):
        response = client.post("/api/machines", json={"name": "Corte 1", "assigned_reel_id": "nope"})

        assert response.status_code == 404
        assert client.get("/api/machines").get_json()["count"] == 0

    def test_patch_swaps_reel(self, client, reel_id, machine_id):
        other = client.post("/api/reels", json=reel_data(code="BOB-002")).get_json()["id"]
        client.patch(f"/api/machines/{machine_id}", json={"assigned_reel_id": reel_id})

        response = client.patch(f"/api/machines/{machine_id}", json={"assigned_reel_id": other})

        assert response.get_json()["assigned_reel_id"] == other
        assert client.get(f"/api/reels/{reel_id}").get_json()["in_machine"] is False
        assert client.get(f"/api/reels/{other}").get_json()["in_machine"] is True

    def test_toggle_and_filter(self, client, machine_id):
        assert client.post(f"/api/machines/{machine_id}/toggle").get_json()["active"] is True

        assert client.get("/api/machines?active=true").get_json()["count"] == 1
        assert client.get("/api/machines?active=false").get_json()["count"] == 0
        assert client.get("/api/machines?active=maybe").status_code == 400

    def test_delete_frees_reel(self, client, reel_id, machine_id):
        client.patch(f"/api/machines/{machine_id}", json={"assigned_reel_id": reel_id})

        assert client.delete(f"/api/machines/{machine_id}").status_code == 204
        assert client.get(f"/api/reels/{reel_id}").get_json()["in_machine"] is False

    def test_delete_referenced_is_conflict(self, client, reel_id, machine_id):
        client.post("/api/transfers", json={
            "reel_id": reel_id, "machine_id": machine_id, "quantity": 1,
        }, headers=OPERATOR)

        response = client.delete(f"/api/machines/{machine_id}")

        assert response.status_code == 409
        assert response.get_json()["error"] == "machine_in_use"


class TestHistoryRoutes:

    @pytest.fixture
    def transfers(self, client, reel_id, machine_id):
        for quantity in (1, 2, 3):
            client.post("/api/transfers", json={
                "reel_id": reel_id, "machine_id": machine_id, "quantity": quantity,
            }, headers=OPERATOR)

    def test_newest_first(self, client, transfers):
        body = client.get("/api/history").get_json()

        assert [e["quantity"] for e in body["entries"]] == [3, 2, 1]
        assert body["total"] == 3

    def test_limit(self, client, transfers):
        body = client.get("/api/history?limit=2").get_json()

        assert body["count"] == 2
        assert body["total"] == 3
        assert client.get("/api/history?limit=0").status_code == 400
        assert client.get("/api/history", query_string={"limit": "²"}).status_code == 400

    def test_period_and_filters(self, client, transfers, reel_id):
        assert client.get("/api/history?period=week").get_json()["total"] == 3
        assert client.get("/api/history?period=decade").status_code == 400
        assert client.get(f"/api/history?reel_id={reel_id}&operator_id=op2").get_json()["total"] == 0

    def test_search(self, client, transfers, reel_id):
        other_machine = client.post("/api/machines", json={"name": "Corte 2"}).get_json()["id"]
        client.post("/api/transfers", json={
            "reel_id": reel_id, "machine_id": other_machine, "quantity": 4,
        }, headers={"X-Operator-Id": "maria"})

        assert client.get("/api/history?q=extrusora").get_json()["total"] == 3
        assert client.get("/api/history?q=CORTE").get_json()["total"] == 1
        assert client.get("/api/history?q=bob-001").get_json()["total"] == 4
        assert client.get("/api/history?q=mar").get_json()["entries"][0]["quantity"] == 4
        assert client.get("/api/history?q=nobody").get_json()["total"] == 0

        summary = client.get("/api/history/summary?q=maria").get_json()
        assert summary["transfers"] == 1
        assert summary["total_quantity"] == 4

    def test_start_end(self, client, transfers):
        future = (datetime.now(timezone.utc) + timedelta(days=1)).isoformat()

        response = client.get("/api/history", query_string={"start": future})

        assert response.get_json()["total"] == 0
        assert client.get("/api/history?start=yesterday").status_code == 400

    def test_summary(self, client, transfers):
        assert client.get("/api/history/summary").get_json() == {
            "transfers": 3,
            "total_quantity": 6,
            "unique_operators": 1,
            "unique_machines": 1,
        }


class TestServiceRoutes:

    def test_health(self, client, reel_id):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.get_json()
        assert body["status"] == "ok"
        assert body["checks"]["reels"] == 1

    def test_dashboard(self, client, reel_id, machine_id):
        client.post("/api/transfers", json={
            "reel_id": reel_id, "machine_id": machine_id, "quantity": 15,
        }, headers=OPERATOR)

        body = client.get("/api/dashboard").get_json()

        assert body["total_reels"] == 1
        assert body["total_quantity"] == 0
        assert body["total_used"] == 15
        assert body["out_of_stock"] == 1
        assert body["reels_in_machine"] == 1
