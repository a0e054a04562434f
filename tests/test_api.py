"""HTTP surface through the FastAPI TestClient."""

from datetime import date, timedelta

import pytest


@pytest.fixture
def stocked(client):
    """Two components and one PCB type built through the API."""
    mcu = client.post("/components", json={
        "name": "MCU", "part_number": "MCU-1", "current_stock": 100, "monthly_required_quantity": 10,
    }).json()
    cap = client.post("/components", json={
        "name": "Capacitor", "part_number": "CAP-1", "current_stock": 5, "monthly_required_quantity": 10,
        "estimated_arrival_days": 4,
    }).json()
    pcb = client.post("/pcb-types", json={"name": "Controller"}).json()
    assert client.post(f"/pcb-types/{pcb['id']}/components", json={"component_id": mcu["id"], "quantity_per_pcb": 1}).status_code == 201
    assert client.post(f"/pcb-types/{pcb['id']}/components", json={"component_id": cap["id"], "quantity_per_pcb": 2}).status_code == 201
    return {"mcu": mcu, "cap": cap, "pcb": pcb}


def _order_body(pcb_id, qty, **extra):
    body = {
        "orderName": "Batch 1",
        "scheduledProductionDate": "2026-06-01",
        "deliveryDate": "2026-06-10",
        "items": [{"pcbTypeId": pcb_id, "quantityRequired": qty}],
    }
    body.update(extra)
    return body


class TestService:
    def test_health(self, client):
        assert client.get("/health").json() == {"ok": True}

    def test_request_id_is_echoed(self, client):
        resp = client.get("/health", headers={"X-Request-Id": "abc-123"})
        assert resp.headers["X-Request-Id"] == "abc-123"

    def test_request_id_is_generated(self, client):
        assert client.get("/health").headers.get("X-Request-Id")


class TestInventoryApi:
    def test_component_crud(self, client):
        created = client.post("/components", json={
            "name": "LED", "part_number": "LED-1", "current_stock": 3, "monthly_required_quantity": 1,
        })
        assert created.status_code == 201
        comp_id = created.json()["id"]

        assert client.get(f"/components/{comp_id}").json()["part_number"] == "LED-1"
        assert client.patch(f"/components/{comp_id}", json={"current_stock": 9}).json()["current_stock"] == 9
        assert [c["id"] for c in client.get("/components").json()] == [comp_id]
        assert client.delete(f"/components/{comp_id}").json() == {"ok": True, "id": comp_id}
        assert client.get(f"/components/{comp_id}").status_code == 404

    def test_duplicate_part_number(self, client):
        body = {"name": "LED", "part_number": "LED-1", "monthly_required_quantity": 1}
        client.post("/components", json=body)
        resp = client.post("/components", json=body)
        assert resp.status_code == 422
        assert resp.json()["error"] == "INVALID_INPUT"

    def test_schema_validation(self, client):
        resp = client.post("/components", json={"name": "LED", "part_number": "X", "monthly_required_quantity": 0})
        assert resp.status_code == 422

    def test_pcb_type_with_bom(self, client, stocked):
        out = client.get(f"/pcb-types/{stocked['pcb']['id']}").json()
        assert [(c["part_number"], c["quantity_per_pcb"], c["current_stock"]) for c in out["components"]] == [
            ("CAP-1", 2, 5),
            ("MCU-1", 1, 100),
        ]

    def test_component_in_bom_cannot_be_deleted(self, client, stocked):
        resp = client.delete(f"/components/{stocked['mcu']['id']}")
        assert resp.status_code == 422

    def test_duplicate_bom_line(self, client, stocked):
        resp = client.post(
            f"/pcb-types/{stocked['pcb']['id']}/components",
            json={"component_id": stocked["mcu"]["id"], "quantity_per_pcb": 3},
        )
        assert resp.status_code == 422


class TestPlanningApi:
    def test_estimate_date(self, client, stocked):
        resp = client.post("/future-orders/estimate-date", json={
            "items": [{"pcbTypeId": stocked["pcb"]["id"], "quantityRequired": 10}],
        })
        out = resp.json()
        assert resp.status_code == 200
        assert out["feasible"] is False
        assert out["max_wait_days"] == 4
        assert out["estimated_production_date"] == (date.today() + timedelta(days=4)).isoformat()
        assert out["binding_component_id"] == stocked["cap"]["id"]

    def test_check_availability(self, client, stocked):
        resp = client.post("/future-orders/check-availability", json={
            "items": [{"pcbTypeId": stocked["pcb"]["id"], "quantityRequired": 2}],
            "scheduledProductionDate": "2026-06-01",
        })
        out = resp.json()
        assert out["can_fulfill"] is True
        assert {c["part_number"]: c["required_quantity"] for c in out["components"]} == {"CAP-1": 4, "MCU-1": 2}

    def test_check_availability_accepts_legacy_pair(self, client, stocked):
        out = client.post("/future-orders/check-availability", json={
            "pcbTypeId": stocked["pcb"]["id"], "quantityRequired": 3, "scheduledProductionDate": "2026-06-01",
        }).json()
        assert out["can_fulfill"] is False

    def test_empty_items(self, client, stocked):
        est = client.post("/future-orders/estimate-date", json={"items": []})
        assert est.status_code == 200
        assert est.json()["feasible"] is True
        assert est.json()["max_wait_days"] == 0
        assert est.json()["details"] == []
        assert est.json()["estimated_production_date"] == date.today().isoformat()

        avail = client.post("/future-orders/check-availability", json={
            "items": [], "scheduledProductionDate": "2026-06-01",
        })
        assert avail.status_code == 200
        assert avail.json()["can_fulfill"] is True
        assert avail.json()["components"] == []

    def test_malformed_items(self, client, stocked):
        resp = client.post("/future-orders/estimate-date", json={
            "items": [{"pcbTypeId": stocked["pcb"]["id"], "quantityRequired": -1}],
        })
        assert resp.status_code == 422
        assert resp.json()["error"] == "INVALID_INPUT"

    def test_unknown_pcb_type(self, client):
        resp = client.post("/future-orders/estimate-date", json={"items": [{"pcbTypeId": "nope", "quantityRequired": 1}]})
        assert resp.status_code == 404
        assert resp.json()["error"] == "NOT_FOUND"


class TestOrderApi:
    def test_create_derives_status(self, client, stocked):
        ok = client.post("/future-orders", json=_order_body(stocked["pcb"]["id"], 2))
        short = client.post("/future-orders", json=_order_body(stocked["pcb"]["id"], 50))

        assert ok.status_code == 201
        assert ok.json()["status"] == "confirmed"
        assert short.json()["status"] == "at_risk"
        assert ok.json()["items"] == [
            {"pcb_type_id": stocked["pcb"]["id"], "pcb_name": "Controller", "quantity_required": 2}
        ]
        assert len(client.get("/future-orders").json()) == 2

    def test_execute_and_repeat(self, client, stocked):
        order = client.post("/future-orders", json=_order_body(stocked["pcb"]["id"], 2)).json()

        first = client.post(f"/future-orders/{order['id']}/execute")
        second = client.post(f"/future-orders/{order['id']}/execute")

        assert first.status_code == 200
        assert first.json()["message"] == "Order executed successfully"
        assert len(first.json()["production_entry_ids"]) == 1
        assert second.status_code == 409
        assert second.json()["error"] == "ALREADY_COMPLETED"
        assert client.get(f"/components/{stocked['cap']['id']}").json()["current_stock"] == 1
        assert client.get(f"/future-orders/{order['id']}").json()["status"] == "completed"

    def test_execute_with_shortage(self, client, stocked):
        order = client.post("/future-orders", json=_order_body(stocked["pcb"]["id"], 3)).json()

        resp = client.post(f"/future-orders/{order['id']}/execute")

        assert resp.status_code == 409
        body = resp.json()
        assert body["error"] == "INSUFFICIENT_STOCK"
        assert [s["component_id"] for s in body["shortages"]] == [stocked["cap"]["id"]]
        assert client.get(f"/components/{stocked['mcu']['id']}").json()["current_stock"] == 100

    def test_execute_unknown_order(self, client):
        assert client.post("/future-orders/missing/execute").status_code == 404

    def test_update_cancel_delete(self, client, stocked):
        order = client.post("/future-orders", json=_order_body(stocked["pcb"]["id"], 1)).json()

        patched = client.patch(f"/future-orders/{order['id']}", json={"orderName": "Renamed", "deliveryDate": "2026-07-01"})
        assert patched.json()["order_name"] == "Renamed"
        assert patched.json()["delivery_date"] == "2026-07-01"
        assert patched.json()["items"][0]["quantity_required"] == 1

        cancelled = client.post(f"/future-orders/{order['id']}/cancel")
        assert cancelled.json()["status"] == "cancelled"
        assert client.put(f"/future-orders/{order['id']}", json={"orderName": "x"}).status_code == 409

        assert client.delete(f"/future-orders/{order['id']}").json()["deleted"] is True
        assert client.get(f"/future-orders/{order['id']}").status_code == 404

    def test_refresh_status(self, client, stocked):
        order = client.post("/future-orders", json=_order_body(stocked["pcb"]["id"], 2)).json()
        client.patch(f"/components/{stocked['cap']['id']}", json={"current_stock": 0})

        out = client.post(f"/future-orders/{order['id']}/refresh-status").json()

        assert out["status"] == "at_risk"


class TestProductionAndProcurementApi:
    def test_record_production_and_history(self, client, stocked):
        resp = client.post("/production", json={"pcb_type_id": stocked["pcb"]["id"], "quantity_produced": 2})
        assert resp.status_code == 201
        entry_id = resp.json()["production_entry_id"]

        history = client.get("/production/history").json()
        assert history[0]["id"] == entry_id
        assert history[0]["components_consumed"] == 2

    def test_low_stock_trigger_lifecycle(self, client, stocked):
        client.post("/production", json={"pcb_type_id": stocked["pcb"]["id"], "quantity_produced": 2})

        (trig,) = client.get("/procurement/triggers", params={"status": "pending"}).json()
        assert trig["component_id"] == stocked["cap"]["id"]
        assert trig["current_stock"] == 1

        ordered = client.patch(f"/procurement/triggers/{trig['id']}", json={
            "status": "ordered", "quantity_ordered": 50, "expected_delivery_date": "2026-06-01",
        })
        assert ordered.json()["status"] == "ordered"
        received = client.patch(f"/procurement/triggers/{trig['id']}", json={"status": "received"})
        assert received.json()["status"] == "received"
        assert client.get(f"/components/{stocked['cap']['id']}").json()["current_stock"] == 51


class TestAdminApi:
    def test_audit_log_requires_admin(self, client):
        assert client.get("/admin/audit-logs").status_code == 403

    def test_execution_is_audited_with_actor(self, client, stocked, admin_headers):
        order = client.post("/future-orders", json=_order_body(stocked["pcb"]["id"], 1)).json()
        client.post(f"/future-orders/{order['id']}/execute", headers={"X-User-Id": "bob"})

        rows = client.get("/admin/audit-logs", params={"action": "order.executed"}, headers=admin_headers).json()

        assert len(rows) == 1
        assert rows[0]["actor_id"] == "bob"
        assert rows[0]["entity_id"] == order["id"]
        assert rows[0]["details"]["kind"] == "PRODUCTION_RUN"

    def test_audit_records_client_ip(self, client, stocked, admin_headers):
        order = client.post("/future-orders", json=_order_body(stocked["pcb"]["id"], 1),
                            headers={"X-Forwarded-For": "10.1.2.3, 172.16.0.1"}).json()
        client.post("/production", json={"pcb_type_id": stocked["pcb"]["id"], "quantity_produced": 1})

        created = client.get("/admin/audit-logs", params={"action": "order.created"}, headers=admin_headers).json()
        produced = client.get("/admin/audit-logs", params={"action": "production.recorded"}, headers=admin_headers).json()

        assert created[0]["entity_id"] == order["id"]
        assert created[0]["client_ip"] == "10.1.2.3"
        # TestClient connects as "testclient"
        assert produced[0]["client_ip"] == "testclient"

    def test_failed_execution_is_not_audited(self, client, stocked, admin_headers):
        order = client.post("/future-orders", json=_order_body(stocked["pcb"]["id"], 3)).json()
        client.post(f"/future-orders/{order['id']}/execute")

        rows = client.get("/admin/audit-logs", params={"action": "order.executed"}, headers=admin_headers).json()
        assert rows == []

    def test_subscription_management(self, client, admin_headers):
        created = client.post("/admin/events/subscriptions", headers=admin_headers, json={
            "name": "erp", "topic_pattern": "orders.", "target_url": "http://erp.test/hook",
        })
        assert created.status_code == 201
        sub_id = created.json()["id"]

        toggled = client.post(f"/admin/events/subscriptions/{sub_id}/toggle", headers=admin_headers)
        assert toggled.json()["is_active"] is False
        listed = client.get("/admin/events/subscriptions", headers=admin_headers).json()
        assert [(s["id"], s["is_active"]) for s in listed] == [(sub_id, False)]

        assert client.delete(f"/admin/events/subscriptions/{sub_id}", headers=admin_headers).json()["deleted"] is True
        assert client.get("/admin/events/subscriptions", headers=admin_headers).json() == []

    def test_subscriptions_require_admin(self, client):
        assert client.get("/admin/events/subscriptions", headers={"X-User-Role": "planner"}).status_code == 403

    def test_outbox_lists_published_events(self, client, stocked, admin_headers):
        order = client.post("/future-orders", json=_order_body(stocked["pcb"]["id"], 1)).json()
        client.post(f"/future-orders/{order['id']}/execute")

        topics = [e["topic"] for e in client.get("/admin/events/outbox", headers=admin_headers).json()]
        assert "orders.executed" in topics
