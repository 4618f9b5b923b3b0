# Overview: Pytest coverage for simulated test data generation and data statistics.

import pytest

from insightbi.models import AccountReceivable, Product, Sale
from insightbi.services import mock_data_service
from insightbi.validation import ValidationError


class TestGenerateTestData:

    def test_seeded_generation(self, client, db_session, headers_a, company_a):
        resp = client.post(
            "/api/generate-test-data",
            json={"products": 5, "months": 2, "sales": 40, "seed": 7},
            headers=headers_a,
        )
        assert resp.status_code == 201
        assert resp.json["simulated"] is True
        assert resp.json["products"] == 5
        assert resp.json["sales"] == 40

        products = db_session.query(Product).filter_by(company_id=company_a.id).all()
        assert len(products) == 5
        assert all(p.is_simulated for p in products)
        assert all(p.stock >= 0 for p in products)
        assert all(p.sku.startswith("SIM-") for p in products)

        sales = db_session.query(Sale).filter_by(company_id=company_a.id).all()
        assert len(sales) == 40
        assert all(s.is_simulated for s in sales)

    def test_receivable_numbers_continue(self, db_session, company_a, user_a):
        mock_data_service.generate_test_data(company_a.id, products=3, months=1, sales=20, seed=1)
        first = db_session.query(AccountReceivable).filter_by(company_id=company_a.id).count()
        mock_data_service.generate_test_data(company_a.id, products=3, months=1, sales=20, seed=2)
        numbers = [
            r.invoice_number
            for r in db_session.query(AccountReceivable).filter_by(company_id=company_a.id).all()
        ]
        assert len(numbers) == len(set(numbers))
        assert len(numbers) >= first

    def test_other_company_untouched(self, client, db_session, headers_a, product_b, company_b):
        client.post("/api/generate-test-data", json={"products": 2, "months": 1, "sales": 5}, headers=headers_a)
        assert db_session.query(Product).filter_by(company_id=company_b.id).count() == 1
        assert db_session.query(Sale).filter_by(company_id=company_b.id).count() == 0

    @pytest.mark.parametrize("payload", [
        {"products": 0},
        {"products": mock_data_service.MAX_PRODUCTS + 1},
        {"months": 0},
        {"months": 37},
        {"seed": "x"},
        {"sales": -1},
        {"products": True},
    ])
    def test_bounds(self, client, headers_a, payload):
        resp = client.post("/api/generate-test-data", json=payload, headers=headers_a)
        assert resp.status_code == 400

    def test_service_bounds(self, company_a):
        with pytest.raises(ValidationError):
            mock_data_service.generate_test_data(company_a.id, products=0)


class TestDataStatistics:

    def test_empty_company(self, client, headers_a):
        resp = client.get("/api/data-statistics", headers=headers_a)
        assert resp.status_code == 200
        assert resp.json["counts"]["products"] == 0
        assert resp.json["date_range"]["first_sale"] is None

    def test_counts_after_generation(self, client, headers_a, product_a):
        client.post(
            "/api/generate-test-data",
            json={"products": 5, "months": 2, "sales": 40, "seed": 7},
            headers=headers_a,
        )
        stats = client.get("/api/data-statistics", headers=headers_a).json
        assert stats["counts"]["products"] == 6
        assert stats["simulated"]["products"] == 5
        assert stats["simulated"]["sales"] == 40
        assert stats["counts"]["imports"] >= 1
        assert stats["date_range"]["first_sale"] <= stats["date_range"]["last_sale"]
        assert stats["totals"]["inventory_value_cents"] > 0

    def test_dashboard_flags_simulated(self, client, headers_a):
        client.post(
            "/api/generate-test-data",
            json={"products": 3, "months": 1, "sales": 30, "seed": 3},
            headers=headers_a,
        )
        resp = client.get("/api/dashboard/analytics", headers=headers_a)
        assert resp.json["simulated"] is True
