"""
HTTP tests for invoices, bills, share links and the totals preview.
"""

import pytest

from vyapaar.models import Document


INVOICE = {
    "customer": {"name": "Asha Traders", "phone": "98450 11111"},
    "lines": [
        {"name": "Chair", "quantity": 2, "unit_price": "100.00"},
        {"name": "Stool", "quantity": 1, "unit_price": "50"},
    ],
    "tax": {"enabled": True, "rate": "18"},
    "due_date": "2026-11-30",
}


def _bill(product, quantity):
    return {
        "customer_name": "Walk-in",
        "items": [{"name": product.name, "quantity": quantity, "unit_price": "100", "product_id": product.id}],
        "payment_method": "cash",
    }


class TestTotalsPreview:

    def test_preview_matches_saved_totals(self, client, owner_headers):
        resp = client.post("/api/totals/preview", json=INVOICE, headers=owner_headers)
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["subtotal"] == "250.00"
        assert data["tax_amount"] == "45.00"
        assert data["grand_total"] == "295.00"
        assert data["grand_total_cents"] == 29500

    def test_preview_tolerates_half_typed_lines(self, client, owner_headers):
        resp = client.post(
            "/api/totals/preview",
            json={"lines": [{"quantity": "", "unit_price": "12."}, {"quantity": "x", "unit_price": ""}]},
            headers=owner_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["subtotal"] == "12.00"

    def test_preview_rejects_out_of_range_rate(self, client, owner_headers):
        resp = client.post(
            "/api/totals/preview",
            json={"lines": [], "discount": {"enabled": True, "rate": "101"}},
            headers=owner_headers,
        )
        assert resp.status_code == 400


class TestInvoices:

    def test_save_and_fetch(self, client, owner_headers):
        resp = client.post("/api/invoices", json=INVOICE, headers=owner_headers)
        assert resp.status_code == 201
        doc = resp.get_json()
        assert doc["document_number"] == "INV-00001"
        assert doc["document_type"] == "INVOICE"
        assert doc["grand_total_cents"] == 29500
        assert doc["due_date"] == "2026-11-30"
        assert doc["vendor"]["name"] == "Sharma Stores"
        assert doc["issued_at"].endswith("Z")

        fetched = client.get(f"/api/invoices/{doc['id']}", headers=owner_headers).get_json()
        assert fetched["lines"] == doc["lines"]

    def test_validation_errors_are_keyed(self, client, owner_headers):
        resp = client.post(
            "/api/invoices",
            json={"customer": {"name": ""}, "lines": [{"name": "", "quantity": 1, "unit_price": "5"}]},
            headers=owner_headers,
        )
        assert resp.status_code == 400
        details = resp.get_json()["details"]
        assert "customer.name" in details
        assert "lines[0].name" in details

    def test_non_object_payload_rejected(self, client, owner_headers):
        resp = client.post("/api/invoices", json=["not", "an", "object"], headers=owner_headers)
        assert resp.status_code == 400

    def test_list_search_and_paging(self, client, owner_headers):
        for name in ("Asha Traders", "Ravi Kumar", "Asha Traders"):
            client.post("/api/invoices", json={**INVOICE, "customer": {"name": name}}, headers=owner_headers)

        data = client.get("/api/invoices?q=asha&limit=1", headers=owner_headers).get_json()
        assert data["total"] == 2
        assert data["count"] == 1
        assert data["items"][0]["document_number"] == "INV-00003"

        assert client.get("/api/invoices?limit=abc", headers=owner_headers).status_code == 400

    def test_duplicate_returns_draft_with_totals(self, client, owner_headers):
        doc = client.post("/api/invoices", json=INVOICE, headers=owner_headers).get_json()

        resp = client.post(f"/api/invoices/{doc['id']}/duplicate", headers=owner_headers)
        assert resp.status_code == 200
        draft = resp.get_json()
        assert draft["customer"]["name"] == "Asha Traders"
        assert draft["totals"]["grand_total_cents"] == 29500
        assert {line["id"] for line in draft["lines"]}.isdisjoint({line["id"] for line in doc["lines"]})
        assert client.get("/api/invoices", headers=owner_headers).get_json()["total"] == 1

    def test_delete(self, client, owner_headers):
        doc = client.post("/api/invoices", json=INVOICE, headers=owner_headers).get_json()
        assert client.delete(f"/api/invoices/{doc['id']}", headers=owner_headers).status_code == 200
        assert client.get(f"/api/invoices/{doc['id']}", headers=owner_headers).status_code == 404
        assert client.delete(f"/api/invoices/{doc['id']}", headers=owner_headers).status_code == 404


class TestBills:

    def test_bill_deducts_stock(self, client, owner_headers, product):
        resp = client.post("/api/bills", json=_bill(product, 2), headers=owner_headers)
        assert resp.status_code == 201
        doc = resp.get_json()
        assert doc["document_number"] == "BILL-00001"
        assert doc["payment_method"] == "cash"
        assert doc["payment_status"] == "paid"

        stock = client.get(f"/api/products/{product.id}", headers=owner_headers).get_json()
        assert stock["quantity_in_stock"] == 1

    def test_insufficient_stock_is_conflict_and_saves_nothing(self, client, db_session, owner_headers, product):
        resp = client.post("/api/bills", json=_bill(product, 5), headers=owner_headers)

        assert resp.status_code == 409
        items = resp.get_json()["details"]["items"]
        assert items == [{"product_id": product.id, "name": "Rice 5kg", "requested_quantity": 5, "in_stock": 3}]
        assert db_session.query(Document).count() == 0

    def test_delete_with_restock(self, client, owner_headers, product):
        doc = client.post("/api/bills", json=_bill(product, 3), headers=owner_headers).get_json()

        resp = client.delete(f"/api/bills/{doc['id']}?restock=true", headers=owner_headers)
        assert resp.status_code == 200

        stock = client.get(f"/api/products/{product.id}", headers=owner_headers).get_json()
        assert stock["quantity_in_stock"] == 3
        txs = client.get(f"/api/inventory/transactions?product_id={product.id}", headers=owner_headers).get_json()
        assert [tx["type"] for tx in txs["items"]] == ["return", "sale"]


class TestShareLinks:

    @pytest.fixture
    def invoice(self, client, owner_headers):
        return client.post("/api/invoices", json=INVOICE, headers=owner_headers).get_json()

    def test_public_view_without_auth(self, client, owner_headers, invoice):
        link = client.post(f"/api/invoices/{invoice['id']}/share", headers=owner_headers)
        assert link.status_code == 201
        body = link.get_json()
        assert body["url_path"] == f"/api/shared/{body['token']}"

        shared = client.get(body["url_path"])
        assert shared.status_code == 200
        data = shared.get_json()
        assert data["document_number"] == "INV-00001"
        assert "owner_id" not in data
        assert "customer_id" not in data

    def test_ttl_hours(self, client, owner_headers, invoice):
        never = client.post(f"/api/invoices/{invoice['id']}/share", json={"ttl_hours": 0}, headers=owner_headers)
        assert never.get_json()["expires_at"] is None

        bad = client.post(f"/api/invoices/{invoice['id']}/share", json={"ttl_hours": -2}, headers=owner_headers)
        assert bad.status_code == 400

    def test_revoked_link_is_unavailable(self, client, owner_headers, invoice):
        body = client.post(f"/api/invoices/{invoice['id']}/share", headers=owner_headers).get_json()

        listed = client.get(f"/api/invoices/{invoice['id']}/shares", headers=owner_headers).get_json()
        assert listed["count"] == 1
        assert "token" not in listed["items"][0]

        assert client.delete(f"/api/invoices/shares/{body['id']}", headers=owner_headers).status_code == 200

        resp = client.get(f"/api/shared/{body['token']}")
        assert resp.status_code == 404
        assert resp.get_json() == {"error": "not_available", "reason": "not_found"}

    def test_unknown_token(self, client, db_session):
        resp = client.get("/api/shared/nope")
        assert resp.status_code == 404
        assert resp.get_json()["reason"] == "not_found"

    def test_bills_cannot_be_shared(self, client, owner_headers, product):
        bill = client.post("/api/bills", json=_bill(product, 1), headers=owner_headers).get_json()
        assert client.post(f"/api/bills/{bill['id']}/share", headers=owner_headers).status_code in (404, 405)
        assert client.post(f"/api/invoices/{bill['id']}/share", headers=owner_headers).status_code == 404
