"""
Authorization tests.

Verifies:
- Unauthenticated requests return 401
- Read-only roles are denied write operations (403)
- Admin roles can perform privileged operations
- Login/signup payloads carry the effective permission set
"""

import pytest


# =============================================================================
# UNAUTHENTICATED ACCESS: 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("GET", "/api/inventory/alerts"),
            ("POST", "/api/inventory/movements"),
            ("GET", "/api/sales"),
            ("GET", "/api/receivables"),
            ("GET", "/api/companies"),
            ("GET", "/api/companies/current"),
            ("POST", "/api/data-ingestion/products"),
            ("GET", "/api/exports/inventory"),
            ("GET", "/api/ai/status"),
            ("GET", "/api/chat/conversations"),
            ("GET", "/api/dashboards"),
            ("GET", "/api/auth/me"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token_rejected(self, client, db_session):
        resp = client.get("/api/products", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401

    def test_health_is_public(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json["checks"]["database"]["status"] == "healthy"
        assert resp.json["checks"]["ai"]["status"] == "disabled"


# =============================================================================
# VIEWER DENIED WRITES: 403
# =============================================================================


class TestViewerDeniedWrites:
    """Viewer role can read but not change anything."""

    def test_can_list_products(self, client, viewer_headers, product_a):
        resp = client.get("/api/products", headers=viewer_headers)
        assert resp.status_code == 200
        assert resp.json["count"] == 1

    def test_cannot_create_product(self, client, viewer_headers):
        resp = client.post(
            "/api/products",
            json={"sku": "X-1", "name": "Nope"},
            headers=viewer_headers,
        )
        assert resp.status_code == 403
        assert resp.json["required_permission"] == "MANAGE_PRODUCTS"

    def test_cannot_import(self, client, viewer_headers):
        resp = client.post("/api/data-ingestion/products", headers=viewer_headers)
        assert resp.status_code == 403

    def test_cannot_export(self, client, viewer_headers):
        resp = client.get("/api/exports/inventory", headers=viewer_headers)
        assert resp.status_code == 403

    def test_cannot_use_ai(self, client, viewer_headers):
        resp = client.get("/api/chat/conversations", headers=viewer_headers)
        assert resp.status_code == 403

    def test_cannot_generate_test_data(self, client, viewer_headers):
        resp = client.post("/api/generate-test-data", json={}, headers=viewer_headers)
        assert resp.status_code == 403

    def test_cannot_list_all_companies(self, client, viewer_headers):
        resp = client.get("/api/companies", headers=viewer_headers)
        assert resp.status_code == 403


class TestAdminAccess:

    def test_company_admin_creates_product(self, client, headers_a):
        resp = client.post(
            "/api/products",
            json={"sku": "NEW-1", "name": "Aceite de oliva 500ml", "price_cents": 599_000, "stock": 12},
            headers=headers_a,
        )
        assert resp.status_code == 201
        assert resp.json["stock"] == 12

    def test_company_admin_cannot_list_all_companies(self, client, headers_a):
        resp = client.get("/api/companies", headers=headers_a)
        assert resp.status_code == 403

    def test_super_admin_lists_all_companies(self, client, super_headers, company_b):
        resp = client.get("/api/companies", headers=super_headers)
        assert resp.status_code == 200
        slugs = {c["slug"] for c in resp.json["items"]}
        assert {"andes", "biobio"} <= slugs


class TestLoginPayload:

    def test_login_returns_permissions(self, client, viewer_a):
        resp = client.post("/api/auth/login", json={"username": "viewer_a", "password": "Password123!"})
        assert resp.status_code == 200
        assert "VIEW_INVENTORY" in resp.json["permissions"]
        assert "MANAGE_PRODUCTS" not in resp.json["permissions"]
        assert resp.json["company_id"] == viewer_a.company_id

    def test_login_by_email(self, client, user_a):
        resp = client.post("/api/auth/login", json={"email": "user_a@andes.cl", "password": "Password123!"})
        assert resp.status_code == 200

    def test_wrong_password(self, client, user_a):
        resp = client.post("/api/auth/login", json={"username": "user_a", "password": "wrong"})
        assert resp.status_code == 401

    def test_logout_revokes_token(self, client, headers_a):
        assert client.post("/api/auth/logout", headers=headers_a).status_code == 200
        assert client.get("/api/auth/me", headers=headers_a).status_code == 401

    def test_inactive_company_cannot_login(self, client, db_session, user_a, company_a):
        company_a.is_active = False
        db_session.commit()
        resp = client.post("/api/auth/login", json={"username": "user_a", "password": "Password123!"})
        assert resp.status_code == 401


class TestSignup:

    def test_signup_creates_trial_company(self, client, db_session):
        resp = client.post("/api/auth/signup", json={
            "company_name": "Ferretería Ñuñoa",
            "username": "owner",
            "email": "owner@nunoa.cl",
            "password": "Password123!",
        })
        assert resp.status_code == 201
        assert resp.json["company"]["slug"] == "ferreteria-nunoa"
        assert resp.json["company"]["subscription"] == "trial"
        assert resp.json["user"]["role"] == "company_admin"
        assert resp.json["token"]

    def test_signup_missing_fields(self, client, db_session):
        resp = client.post("/api/auth/signup", json={"company_name": "X"})
        assert resp.status_code == 400

    def test_signup_weak_password(self, client, db_session):
        resp = client.post("/api/auth/signup", json={
            "company_name": "Weak SpA", "username": "weak", "email": "weak@x.cl", "password": "123",
        })
        assert resp.status_code == 400
