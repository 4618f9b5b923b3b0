# Overview: Pytest coverage for dashboard analytics endpoints and saved layouts.

from insightbi.services.auth_service import create_user


WIDGETS = [{"type": "kpi", "metric": "revenue"}, {"type": "chart", "metric": "abc"}]


class TestDashboardAnalytics:

    def test_analytics_shape(self, client, headers_a, product_a):
        resp = client.get("/api/dashboard/analytics", headers=headers_a)
        assert resp.status_code == 200
        body = resp.json
        assert set(body["kpis"]) == {
            "total_revenue_cents", "inventory_value_cents", "pending_collections_cents", "monthly_sales_cents",
        }
        assert body["kpis"]["inventory_value_cents"] == 20 * 1_299_000
        assert len(body["sales_trend"]) == 12
        assert body["inventory_distribution"][0]["category"] == "Sin categoría"
        assert set(body["collection_status"]) == {"pending", "paid", "overdue", "cancelled"}
        assert body["simulated"] is False

    def test_executive_shape(self, client, headers_a, product_a):
        resp = client.get("/api/dashboard/executive", headers=headers_a)
        assert resp.status_code == 200
        body = resp.json
        for key in ("kpis", "abc", "alerts_summary", "demand_history", "top_movers", "slow_movers"):
            assert key in body
        assert body["forecast_next_month_units"] is None
        assert body["has_sales_history"] is False
        assert body["slow_movers"][0]["sku"] == "PROD-A-001"

    def test_executive_forecast_with_sales(self, client, headers_a, product_a):
        client.post("/api/sales", json={"product_id": product_a.id, "quantity": 6}, headers=headers_a)
        body = client.get("/api/dashboard/executive", headers=headers_a).json
        assert body["has_sales_history"] is True
        assert body["top_movers"][0]["units_sold_90d"] == 6
        assert body["forecast_next_month_units"] == 2

    def test_viewer_can_read(self, client, viewer_headers):
        assert client.get("/api/dashboard/analytics", headers=viewer_headers).status_code == 200


class TestSavedDashboards:

    def test_crud(self, client, headers_a):
        created = client.post("/api/dashboards", json={"name": "Ventas", "layout": WIDGETS}, headers=headers_a)
        assert created.status_code == 201
        dashboard_id = created.json["id"]
        assert created.json["layout"] == WIDGETS

        updated = client.put(f"/api/dashboards/{dashboard_id}", json={"name": "Ventas 2026"}, headers=headers_a)
        assert updated.status_code == 200
        assert updated.json["name"] == "Ventas 2026"
        assert updated.json["layout"] == WIDGETS

        assert client.get("/api/dashboards", headers=headers_a).json["count"] == 1
        assert client.delete(f"/api/dashboards/{dashboard_id}", headers=headers_a).status_code == 200
        assert client.get(f"/api/dashboards/{dashboard_id}", headers=headers_a).status_code == 404

    def test_name_required(self, client, headers_a):
        resp = client.post("/api/dashboards", json={"layout": []}, headers=headers_a)
        assert resp.status_code == 400

    def test_single_default(self, client, headers_a):
        first = client.post("/api/dashboards", json={"name": "A", "is_default": True}, headers=headers_a).json
        second = client.post("/api/dashboards", json={"name": "B", "is_default": True}, headers=headers_a).json
        items = client.get("/api/dashboards", headers=headers_a).json["items"]
        defaults = [d["id"] for d in items if d["is_default"]]
        assert defaults == [second["id"]]
        assert items[0]["id"] == second["id"]

        client.put(f"/api/dashboards/{first['id']}", json={"is_default": True}, headers=headers_a)
        items = client.get("/api/dashboards", headers=headers_a).json["items"]
        assert [d["id"] for d in items if d["is_default"]] == [first["id"]]

    def test_bad_layout(self, client, headers_a):
        resp = client.post("/api/dashboards", json={"name": "X", "layout": ["kpi"]}, headers=headers_a)
        assert resp.status_code == 400
        assert "layout" in resp.json["error"]

        created = client.post("/api/dashboards", json={"name": "X"}, headers=headers_a).json
        resp = client.put(f"/api/dashboards/{created['id']}", json={"layout": "kpi"}, headers=headers_a)
        assert resp.status_code == 400

    def test_other_user_gets_404(self, client, headers_a, company_a):
        create_user(
            username="manager_a", email="manager_a@andes.cl", password="Password123!",
            company_id=company_a.id, role="manager",
        )
        token = client.post("/api/auth/login", json={"username": "manager_a", "password": "Password123!"}).json["token"]
        other = {"Authorization": f"Bearer {token}"}

        created = client.post("/api/dashboards", json={"name": "Privado"}, headers=headers_a).json
        assert client.get(f"/api/dashboards/{created['id']}", headers=other).status_code == 404
        assert client.put(f"/api/dashboards/{created['id']}", json={"name": "x"}, headers=other).status_code == 404
        assert client.delete(f"/api/dashboards/{created['id']}", headers=other).status_code == 404
        assert client.get("/api/dashboards", headers=other).json["count"] == 0

    def test_other_company_gets_404(self, client, headers_a, headers_b):
        created = client.post("/api/dashboards", json={"name": "Andes"}, headers=headers_a).json
        assert client.get(f"/api/dashboards/{created['id']}", headers=headers_b).status_code == 404
