from types import SimpleNamespace

import pytest

from dealer_portal.api import orders as orders_api
from dealer_portal.core.config import settings
from dealer_portal.services.kintone import RecordStoreError


def _submission(record, is_draft=False):
    return {"record": record, "isDraft": is_draft}


@pytest.mark.integration
class TestSubmitOrderEndpoint:

    @pytest.mark.asyncio
    async def test_submit_goes_to_approval(self, test_client, auth_headers, store, order_record_factory):
        response = await test_client.post(
            "/api/orders/submit-order",
            json=_submission(order_record_factory()),
            headers=auth_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "pending_approval"
        assert body["revision"] == "1"
        assert "statusError" not in body
        assert body["id"] in store.records["orders"]

    @pytest.mark.asyncio
    async def test_draft_is_not_transitioned(self, test_client, auth_headers, store, order_record_factory):
        record = order_record_factory(items=[{"product_code": "ITM-TS-001", "quantity": "3"}])

        response = await test_client.post(
            "/api/orders/submit-order", json=_submission(record, is_draft=True), headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json()["status"] == "draft"
        assert [c[0] for c in store.calls_for("orders")] == ["create_record"]

    @pytest.mark.asyncio
    async def test_partial_success_reports_status_error(self, test_client, auth_headers, store, order_record_factory):
        store.next_id = 42
        store.action_errors["Submit Order"] = RecordStoreError("Kintone error 500", 500)

        response = await test_client.post(
            "/api/orders/submit-order", json=_submission(order_record_factory()), headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json() == {
            "id": "42",
            "revision": "1",
            "status": "created_but_status_pending",
            "statusError": "Kintone error 500",
        }

    @pytest.mark.asyncio
    async def test_create_failure_passes_store_status_through(self, test_client, auth_headers, store, order_record_factory):
        store.create_error = RecordStoreError("Missing or invalid input.", 400)

        response = await test_client.post(
            "/api/orders/submit-order", json=_submission(order_record_factory()), headers=auth_headers
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Missing or invalid input."

    @pytest.mark.asyncio
    async def test_empty_order_rejected(self, test_client, auth_headers, store, order_record_factory):
        response = await test_client.post(
            "/api/orders/submit-order", json=_submission(order_record_factory(items=[])), headers=auth_headers
        )

        assert response.status_code == 400
        assert "at least one item" in response.json()["detail"]
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_requires_authentication(self, test_client, order_record_factory):
        response = await test_client.post("/api/orders/submit-order", json=_submission(order_record_factory()))

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_cannot_submit_for_another_dealer(self, test_client, auth_headers, store, order_record_factory):
        response = await test_client.post(
            "/api/orders/submit-order",
            json=_submission(order_record_factory(dealer_code="DLR-002")),
            headers=auth_headers,
        )

        assert response.status_code == 403
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_staff_may_submit_for_any_dealer(self, test_client, staff_headers, order_record_factory):
        response = await test_client.post(
            "/api/orders/submit-order",
            json=_submission(order_record_factory(dealer_code="DLR-002")),
            headers=staff_headers,
        )

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_resubmission_creates_second_order(self, test_client, auth_headers, store, order_record_factory):
        payload = _submission(order_record_factory())

        first = await test_client.post("/api/orders/submit-order", json=payload, headers=auth_headers)
        second = await test_client.post("/api/orders/submit-order", json=payload, headers=auth_headers)

        assert first.json()["id"] != second.json()["id"]
        assert len(store.records["orders"]) == 2

    @pytest.mark.asyncio
    @pytest.mark.idempotency
    async def test_idempotency_key_replays_first_result(
        self, test_client, auth_headers, store, fake_redis, order_record_factory
    ):
        payload = _submission(order_record_factory())
        headers = {**auth_headers, "Idempotency-Key": "cart-7f3a"}

        first = await test_client.post("/api/orders/submit-order", json=payload, headers=headers)
        second = await test_client.post("/api/orders/submit-order", json=payload, headers=headers)

        assert first.status_code == second.status_code == 200
        assert first.json() == second.json()
        assert len(store.records["orders"]) == 1
        assert "idemp:DLR-001:cart-7f3a" in fake_redis.data

    @pytest.mark.asyncio
    async def test_rate_limit(self, test_client, auth_headers, fake_redis, monkeypatch, order_record_factory):
        monkeypatch.setattr(settings, "RATE_LIMIT", 1)
        payload = _submission(order_record_factory())

        first = await test_client.post("/api/orders/submit-order", json=payload, headers=auth_headers)
        second = await test_client.post("/api/orders/submit-order", json=payload, headers=auth_headers)

        assert first.status_code == 200
        assert second.status_code == 429


@pytest.mark.integration
class TestOrderReads:

    @pytest.mark.asyncio
    async def test_list_own_orders(self, test_client, auth_headers, order_record_factory):
        await test_client.post(
            "/api/orders/submit-order", json=_submission(order_record_factory()), headers=auth_headers
        )

        response = await test_client.get("/api/orders", headers=auth_headers)

        assert response.status_code == 200
        orders = response.json()
        assert len(orders) == 1
        assert orders[0]["total"] == 4250
        assert orders[0]["status"] == "Pending Approval"
        assert orders[0]["items"][0]["line_total"] == 4250

    @pytest.mark.asyncio
    async def test_list_other_dealer_forbidden(self, test_client, auth_headers):
        response = await test_client.get("/api/orders", params={"dealer_code": "DLR-002"}, headers=auth_headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_get_order_of_other_dealer_forbidden(
        self, test_client, auth_headers, other_dealer_token, order_record_factory
    ):
        created = await test_client.post(
            "/api/orders/submit-order", json=_submission(order_record_factory()), headers=auth_headers
        )

        response = await test_client.get(
            f"/api/orders/{created.json()['id']}",
            headers={"Authorization": f"Bearer {other_dealer_token}"},
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_missing_order_returns_store_error(self, test_client, auth_headers):
        response = await test_client.get("/api/orders/999", headers=auth_headers)

        assert response.status_code == 404
        assert "not found" in response.json()["error"]


@pytest.mark.integration
class TestDraftEditing:

    @pytest.mark.asyncio
    async def test_update_draft(self, test_client, auth_headers, store, order_record_factory):
        created = await test_client.post(
            "/api/orders/submit-order",
            json=_submission(order_record_factory(), is_draft=True),
            headers=auth_headers,
        )
        order_id = created.json()["id"]

        response = await test_client.put(
            f"/api/orders/{order_id}",
            json={"notes": "Use side entrance", "items": [{"product_code": "ITM-FI-001", "quantity": 2}]},
            headers=auth_headers,
        )

        assert response.status_code == 200
        record = store.records["orders"][order_id]
        assert record["notes"]["value"] == "Use side entrance"
        assert record["order_items"]["value"][0]["value"]["quantity"]["value"] == "2"

    @pytest.mark.asyncio
    async def test_submitted_order_cannot_be_edited(self, test_client, auth_headers, order_record_factory):
        created = await test_client.post(
            "/api/orders/submit-order", json=_submission(order_record_factory()), headers=auth_headers
        )

        response = await test_client.put(
            f"/api/orders/{created.json()['id']}", json={"notes": "late change"}, headers=auth_headers
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_draft_update_rejects_zero_quantity(self, test_client, auth_headers, order_record_factory):
        created = await test_client.post(
            "/api/orders/submit-order",
            json=_submission(order_record_factory(), is_draft=True),
            headers=auth_headers,
        )

        response = await test_client.put(
            f"/api/orders/{created.json()['id']}",
            json={"items": [{"product_code": "ITM-BV-001", "quantity": 0}]},
            headers=auth_headers,
        )

        assert response.status_code == 400


@pytest.mark.integration
class TestStaffActions:

    @pytest.mark.asyncio
    async def test_staff_status_action(self, test_client, auth_headers, staff_headers, store, order_record_factory):
        created = await test_client.post(
            "/api/orders/submit-order",
            json=_submission(order_record_factory(), is_draft=True),
            headers=auth_headers,
        )
        order_id = created.json()["id"]

        response = await test_client.post(
            "/api/orders/status", json={"id": order_id, "action": "Submit Order"}, headers=staff_headers
        )

        assert response.status_code == 200
        assert store.records["orders"][order_id]["Status"]["value"] == "Submitted"

    @pytest.mark.asyncio
    async def test_dealer_cannot_run_status_actions(self, test_client, auth_headers):
        response = await test_client.post(
            "/api/orders/status", json={"id": "1", "action": "Approve"}, headers=auth_headers
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_reconcile_is_queued(self, test_client, staff_headers, monkeypatch):
        queued = []
        monkeypatch.setattr(orders_api, "reconcile_order", SimpleNamespace(delay=queued.append))

        response = await test_client.post("/api/orders/42/reconcile", headers=staff_headers)

        assert response.status_code == 200
        assert response.json() == {"status": "queued", "id": "42"}
        assert queued == ["42"]


def _dealer_record(store, code):
    return next(r for r in store.records["dealers"].values() if r["dealer_code"]["value"] == code)


@pytest.mark.integration
class TestOrderRecordShapes:

    @pytest.mark.asyncio
    async def test_unknown_status_reported_as_malformed_record(self, test_client, auth_headers, store):
        order_id = store.seed("orders", {
            "order_number": {"value": "ORD-20260201-101500999"},
            "dealer_lookup": {"value": "DLR-001"},
            "is_draft": {"value": "No"},
            "Status": {"value": "Cancelled"},
        })

        response = await test_client.get(f"/api/orders/{order_id}", headers=auth_headers)
        edit = await test_client.put(f"/api/orders/{order_id}", json={"notes": "x"}, headers=auth_headers)

        assert response.status_code == 422
        assert response.json()["error"] == f"Order record {order_id} is malformed"
        assert response.json()["details"]["record_id"] == order_id
        assert edit.status_code == 422

    @pytest.mark.asyncio
    async def test_draft_advanced_by_staff_reads_as_submitted(
        self, test_client, auth_headers, staff_headers, order_record_factory
    ):
        created = await test_client.post(
            "/api/orders/submit-order",
            json=_submission(order_record_factory(), is_draft=True),
            headers=auth_headers,
        )
        order_id = created.json()["id"]
        await test_client.post(
            "/api/orders/status", json={"id": order_id, "action": "Submit Order"}, headers=staff_headers
        )

        response = await test_client.get(f"/api/orders/{order_id}", headers=auth_headers)
        listed = await test_client.get("/api/orders", headers=auth_headers)
        edit = await test_client.put(f"/api/orders/{order_id}", json={"notes": "x"}, headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["is_draft"] is False
        assert response.json()["status"] == "Submitted"
        assert [o["id"] for o in listed.json()] == [order_id]
        assert edit.status_code == 409


@pytest.mark.integration
class TestPaymentMethodRules:

    @pytest.mark.asyncio
    async def test_credit_terms_with_headroom_accepted(self, test_client, auth_headers, order_record_factory):
        response = await test_client.post(
            "/api/orders/submit-order",
            json=_submission(order_record_factory(payment_method="Credit Terms")),
            headers=auth_headers,
        )

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_credit_terms_without_terms_rejected(self, test_client, auth_headers, store, order_record_factory):
        _dealer_record(store, "DLR-001")["credit_terms"] = {"value": "None"}

        response = await test_client.post(
            "/api/orders/submit-order",
            json=_submission(order_record_factory(payment_method="Credit Terms")),
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert "Credit Terms" in response.json()["detail"]
        assert store.calls_for("orders") == []

    @pytest.mark.asyncio
    async def test_credit_terms_over_limit_rejected_on_draft_edit(
        self, test_client, auth_headers, store, order_record_factory
    ):
        created = await test_client.post(
            "/api/orders/submit-order",
            json=_submission(order_record_factory(), is_draft=True),
            headers=auth_headers,
        )
        _dealer_record(store, "DLR-001")["outstanding_balance"] = {"value": "100000"}

        response = await test_client.put(
            f"/api/orders/{created.json()['id']}",
            json={"payment_method": "Credit Terms"},
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert not [c for c in store.calls_for("orders") if c[0] == "update_record"]

    @pytest.mark.asyncio
    async def test_missing_payment_method_rejected(self, test_client, auth_headers, store, order_record_factory):
        record = order_record_factory()
        del record["payment_method"]

        response = await test_client.post("/api/orders/submit-order", json=_submission(record), headers=auth_headers)

        assert response.status_code == 422
        assert store.calls == []
