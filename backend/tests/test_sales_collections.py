# Overview: Pytest coverage for sales stock rules, invoices and receivable payments.

from datetime import date, timedelta

import pytest

from insightbi.models import InventoryMovement
from insightbi.time_utils import today
from insightbi.services.collections_service import (
    calculate_aging_days,
    calculate_priority,
    determine_collection_status,
)


class TestLegacySales:

    def test_completed_sale_takes_stock(self, client, db_session, headers_a, product_a):
        resp = client.post("/api/sales", json={"product_id": product_a.id, "quantity": 3}, headers=headers_a)
        assert resp.status_code == 201
        assert resp.json["total_cents"] == 3 * 1_299_000
        assert resp.json["status"] == "completed"

        db_session.refresh(product_a)
        assert product_a.stock == 17
        movement = db_session.query(InventoryMovement).filter_by(sale_id=resp.json["id"]).one()
        assert movement.movement_type == "out"
        assert movement.quantity == 3

    def test_insufficient_stock_is_conflict(self, client, db_session, headers_a, product_a):
        resp = client.post("/api/sales", json={"product_id": product_a.id, "quantity": 21}, headers=headers_a)
        assert resp.status_code == 409
        db_session.refresh(product_a)
        assert product_a.stock == 20

    def test_pending_sale_leaves_stock(self, client, db_session, headers_a, product_a):
        resp = client.post(
            "/api/sales",
            json={"product_id": product_a.id, "quantity": 50, "status": "pending"},
            headers=headers_a,
        )
        assert resp.status_code == 201
        db_session.refresh(product_a)
        assert product_a.stock == 20

    def test_cancel_restores_stock(self, client, db_session, headers_a, product_a):
        sale = client.post("/api/sales", json={"product_id": product_a.id, "quantity": 5}, headers=headers_a).json
        resp = client.put(f"/api/sales/{sale['id']}/status", json={"status": "cancelled"}, headers=headers_a)
        assert resp.status_code == 200
        db_session.refresh(product_a)
        assert product_a.stock == 20

        reopen = client.put(f"/api/sales/{sale['id']}/status", json={"status": "completed"}, headers=headers_a)
        assert reopen.status_code == 409

    def test_unit_price_override(self, client, headers_a, product_a):
        resp = client.post(
            "/api/sales",
            json={"product_id": product_a.id, "quantity": 2, "unit_price_cents": 1_000_000},
            headers=headers_a,
        )
        assert resp.json["total_cents"] == 2_000_000

    def test_zero_quantity_rejected(self, client, headers_a, product_a):
        resp = client.post("/api/sales", json={"product_id": product_a.id, "quantity": 0}, headers=headers_a)
        assert resp.status_code == 400


class TestInvoices:

    def test_invoice_totals_from_items(self, client, db_session, headers_a, product_a):
        resp = client.post("/api/sales/enhanced", json={
            "invoice_number": "F-1001",
            "sale_date": "2026-01-10",
            "items": [{"product_id": product_a.id, "quantity": 2, "unit_price_cents": 100_000}],
        }, headers=headers_a)
        assert resp.status_code == 201
        assert resp.json["subtotal_cents"] == 200_000
        assert resp.json["tax_cents"] == 38_000
        assert resp.json["total_cents"] == 238_000
        assert len(resp.json["items"]) == 1

        # invoices do not move stock
        db_session.refresh(product_a)
        assert product_a.stock == 20

    def test_duplicate_invoice_number(self, client, headers_a):
        body = {"invoice_number": "F-1", "sale_date": "2026-01-10", "total_cents": 1000}
        assert client.post("/api/sales/enhanced", json=body, headers=headers_a).status_code == 201
        assert client.post("/api/sales/enhanced", json=body, headers=headers_a).status_code == 409

    def test_same_invoice_number_other_company(self, client, headers_a, headers_b):
        body = {"invoice_number": "F-1", "sale_date": "2026-01-10", "total_cents": 1000}
        assert client.post("/api/sales/enhanced", json=body, headers=headers_a).status_code == 201
        assert client.post("/api/sales/enhanced", json=body, headers=headers_b).status_code == 201


class TestAging:

    @pytest.mark.parametrize("days,expected", [
        (0, "current"),
        (1, "overdue_30"),
        (30, "overdue_30"),
        (31, "overdue_60"),
        (75, "overdue_90"),
        (91, "overdue_120_plus"),
    ])
    def test_status_buckets(self, days, expected):
        assert determine_collection_status(days) == expected

    def test_paid_status(self):
        assert determine_collection_status(200, 0) == "paid"

    def test_aging_days(self):
        as_of = date(2026, 3, 1)
        assert calculate_aging_days(date(2026, 3, 10), as_of) == 0
        assert calculate_aging_days(date(2026, 2, 1), as_of) == 28

    @pytest.mark.parametrize("amount,days,expected", [
        (6_000_000, 120, "critical"),
        (6_000_000, 80, "high"),
        (2_500_000, 61, "high"),
        (100_000, 45, "medium"),
        (1_500_000, 0, "medium"),
        (100_000, 10, "low"),
    ])
    def test_priority(self, amount, days, expected):
        assert calculate_priority(amount, days) == expected


class TestReceivables:

    def _create(self, client, headers, amount=1_000_000, due=None, number="F-900"):
        due = due or (today() + timedelta(days=30))
        return client.post("/api/receivables", json={
            "invoice_number": number,
            "invoice_date": today().isoformat(),
            "due_date": due.isoformat(),
            "original_amount_cents": amount,
        }, headers=headers)

    def test_partial_then_full_payment(self, client, headers_a):
        receivable = self._create(client, headers_a).json
        assert receivable["status"] == "current"
        assert receivable["outstanding_amount_cents"] == 1_000_000

        partial = client.post(
            f"/api/receivables/{receivable['id']}/payments",
            json={"amount_cents": 400_000, "method": "transfer"},
            headers=headers_a,
        )
        assert partial.status_code == 201
        assert partial.json["receivable"]["outstanding_amount_cents"] == 600_000

        full = client.post(
            f"/api/receivables/{receivable['id']}/payments",
            json={"amount_cents": 600_000},
            headers=headers_a,
        )
        assert full.json["receivable"]["status"] == "paid"
        assert full.json["receivable"]["priority"] == "low"

        detail = client.get(f"/api/receivables/{receivable['id']}", headers=headers_a).json
        assert len(detail["payments"]) == 2

    def test_overpayment_is_conflict(self, client, headers_a):
        receivable = self._create(client, headers_a).json
        resp = client.post(
            f"/api/receivables/{receivable['id']}/payments",
            json={"amount_cents": 1_000_001},
            headers=headers_a,
        )
        assert resp.status_code == 409

    def test_non_positive_amounts_rejected(self, client, headers_a):
        assert self._create(client, headers_a, amount=0).status_code == 400
        receivable = self._create(client, headers_a, number="F-901").json
        resp = client.post(f"/api/receivables/{receivable['id']}/payments", json={"amount_cents": 0}, headers=headers_a)
        assert resp.status_code == 400

    def test_overdue_receivable_in_summary(self, client, headers_a):
        self._create(client, headers_a, amount=500_000, due=today() - timedelta(days=45))
        summary = client.get("/api/receivables/summary", headers=headers_a).json
        assert summary["buckets"]["overdue_60"]["count"] == 1
        assert summary["overdue_outstanding_cents"] == 500_000
        assert summary["overdue_ratio"] == 1.0

    def test_other_company_receivable_hidden(self, client, headers_a, headers_b):
        receivable = self._create(client, headers_b).json
        resp = client.post(
            f"/api/receivables/{receivable['id']}/payments",
            json={"amount_cents": 1},
            headers=headers_a,
        )
        assert resp.status_code == 404
