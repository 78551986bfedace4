"""HTTP-level tests: status-code mapping and response shapes."""

from decimal import Decimal

from fieldpos.models.customer_model import Customer

from conftest import AGENT, OTHER_AGENT, SUPERVISOR, ADMIN, AGENT_ID, auth_header


def _record(client, customer_id, amount, mode="cash", caller=AGENT, **extra):
    body = {"customer_id": customer_id, "collection_amount": str(amount), "payment_mode": mode}
    body.update(extra)
    return client.post("/collections", json=body, headers=auth_header(caller))


# ── Auth ──────────────────────────────────────────

class TestAuth:
    def test_missing_token(self, client):
        resp = client.get("/collections")
        assert resp.status_code == 401

    def test_garbage_token(self, client):
        resp = client.get("/collections", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401

    def test_health_is_public(self, client):
        assert client.get("/health").json() == {"status": "OK"}


# ── POST /collections ─────────────────────────────

class TestRecordEndpoint:
    def test_created(self, client, make_customer):
        customer = make_customer(outstanding="10000", penalty="500", emi="1000")

        resp = _record(client, customer.customer_id, "700", device_id="DEV-1", address="Market")

        assert resp.status_code == 201
        data = resp.json()
        assert data["collection"]["penalty_paid"] == 500.0
        assert data["collection"]["principal_paid"] == 200.0
        assert data["collection"]["outstanding_after"] == 9800.0
        assert data["collection"]["is_partial_payment"] is True
        assert data["collection"]["device_id"] == "DEV-1"
        assert data["collection"]["agent_id"] == AGENT_ID
        assert data["updated_customer"] == {
            "outstanding_amount": 9800.0,
            "penalty_amount": 0.0,
            "total_paid": 200.0,
            "status": "active",
        }

    def test_validation_maps_to_400(self, client, make_customer):
        customer = make_customer(outstanding="100")
        resp = _record(client, customer.customer_id, "500")
        assert resp.status_code == 400
        assert resp.json()["detail"]["kind"] == "validation"

    def test_bad_mode_maps_to_400(self, client, make_customer):
        customer = make_customer()
        resp = _record(client, customer.customer_id, "100", mode="cheque")
        assert resp.status_code == 400

    def test_not_found_maps_to_404(self, client):
        assert _record(client, 777, "100").status_code == 404

    def test_forbidden_maps_to_403(self, client, make_customer):
        customer = make_customer()
        resp = _record(client, customer.customer_id, "100", caller=OTHER_AGENT)
        assert resp.status_code == 403
        assert resp.json()["detail"]["kind"] == "forbidden"

    def test_duplicate_transaction_maps_to_409(self, client, make_customer):
        customer = make_customer()
        assert _record(client, customer.customer_id, "100", transaction_id="abc1").status_code == 201
        resp = _record(client, customer.customer_id, "100", transaction_id="ABC1")
        assert resp.status_code == 409


# ── Void ──────────────────────────────────────────

class TestVoidEndpoint:
    def test_void_and_double_void(self, client, make_customer):
        customer = make_customer(outstanding="500", emi="500")
        created = _record(client, customer.customer_id, "500").json()
        assert created["updated_customer"]["status"] == "closed"
        cid = created["collection"]["collection_id"]

        resp = client.post(
            f"/collections/{cid}/void",
            json={"reason": "customer disputes"},
            headers=auth_header(SUPERVISOR),
        )
        assert resp.status_code == 200
        assert resp.json()["collection"]["status"] == "voided"
        assert resp.json()["updated_customer"]["status"] == "active"
        assert resp.json()["updated_customer"]["outstanding_amount"] == 500.0

        again = client.post(f"/collections/{cid}/void", headers=auth_header(ADMIN))
        assert again.status_code == 409

    def test_agent_void_forbidden(self, client, make_customer):
        customer = make_customer()
        cid = _record(client, customer.customer_id, "100").json()["collection"]["collection_id"]
        resp = client.post(f"/collections/{cid}/void", headers=auth_header(AGENT))
        assert resp.status_code == 403


# ── Read endpoints ────────────────────────────────

class TestReadEndpoints:
    def test_list_and_stats(self, client, make_customer):
        customer = make_customer()
        _record(client, customer.customer_id, "1000", mode="cash")
        _record(client, customer.customer_id, "250", mode="upi")

        listing = client.get("/collections", headers=auth_header(AGENT)).json()
        assert listing["total"] == 2
        assert listing["summary"]["total_amount"] == 1250.0

        stats = client.get("/collections/stats/today", headers=auth_header(AGENT)).json()
        assert stats["total_collections"] == 2
        assert stats["by_mode"]["upi"] == 250.0
        assert stats["partial_payments"] == 1

    def test_customer_history_forbidden_for_other_agent(self, client, make_customer):
        customer = make_customer()
        resp = client.get(f"/collections/customer/{customer.customer_id}", headers=auth_header(OTHER_AGENT))
        assert resp.status_code == 403

    def test_audit_listing_requires_elevated_role(self, client, make_customer):
        make_customer()
        resp = client.get("/collections?include_voided=true", headers=auth_header(AGENT))
        assert resp.status_code == 403

    def test_reconcile_requires_elevated_role(self, client, make_customer):
        customer = make_customer()
        _record(client, customer.customer_id, "100")

        assert client.get(f"/collections/reconcile/{customer.customer_id}", headers=auth_header(AGENT)).status_code == 403
        report = client.get(f"/collections/reconcile/{customer.customer_id}", headers=auth_header(ADMIN)).json()
        assert report["in_balance"] is True

    def test_receipt_and_remarks(self, client, make_customer):
        customer = make_customer()
        cid = _record(client, customer.customer_id, "100").json()["collection"]["collection_id"]

        receipt = client.put(f"/collections/{cid}/receipt", json={"whatsapp": True}, headers=auth_header(AGENT))
        assert receipt.status_code == 200
        assert receipt.json()["receipt_whatsapp"] is True

        remarks = client.patch(f"/collections/{cid}/remarks", json={"remarks": "ok"}, headers=auth_header(AGENT))
        assert remarks.status_code == 403
        remarks = client.patch(f"/collections/{cid}/remarks", json={"remarks": "ok"}, headers=auth_header(ADMIN))
        assert remarks.json()["remarks"] == "ok"


# ── Customers ─────────────────────────────────────

class TestCustomerEndpoints:
    def test_register_customer(self, client):
        resp = client.post(
            "/customers",
            json={
                "name": "Asha Devi",
                "mobile": "9876543210",
                "loan_amount": "25000",
                "emi_amount": "2500",
                "emi_frequency": "weekly",
                "assigned_agent_id": AGENT_ID,
            },
            headers=auth_header(ADMIN),
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["loan_id"] == "LOAN000001"
        assert data["account_number"] == "ACC00000001"
        assert data["outstanding_amount"] == 25000.0
        assert data["status"] == "active"

    def test_codes_keep_counting_past_their_width(self, client, db):
        db.add(
            Customer(
                loan_id="LOAN999999",
                account_number="ACC99999999",
                name="Old Customer",
                mobile="9876500000",
                loan_amount=Decimal("1000"),
                emi_amount=Decimal("100"),
                outstanding_amount=Decimal("1000"),
                assigned_agent_id=AGENT_ID,
            )
        )
        db.commit()
        body = {
            "name": "New Customer",
            "mobile": "9876543210",
            "loan_amount": "1000",
            "emi_amount": "100",
            "assigned_agent_id": AGENT_ID,
        }

        first = client.post("/customers", json=body, headers=auth_header(ADMIN))
        second = client.post("/customers", json=dict(body, mobile="9876543211"), headers=auth_header(ADMIN))

        assert first.status_code == 201
        assert first.json()["loan_id"] == "LOAN1000000"
        assert first.json()["account_number"] == "ACC100000000"
        assert second.status_code == 201
        assert second.json()["loan_id"] == "LOAN1000001"
        assert second.json()["account_number"] == "ACC100000001"

    def test_agent_cannot_register(self, client):
        resp = client.post(
            "/customers",
            json={
                "name": "X",
                "mobile": "9876543210",
                "loan_amount": "1000",
                "emi_amount": "100",
                "assigned_agent_id": AGENT_ID,
            },
            headers=auth_header(AGENT),
        )
        assert resp.status_code == 403

    def test_agent_lists_only_assigned(self, client, make_customer):
        make_customer()
        make_customer(agent_id=999)
        resp = client.get("/customers", headers=auth_header(AGENT))
        assert [c["assigned_agent_id"] for c in resp.json()] == [AGENT_ID]
        assert len(client.get("/customers", headers=auth_header(SUPERVISOR)).json()) == 2
