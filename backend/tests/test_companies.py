# Overview: Pytest coverage for companies, slugs and invitations.

from datetime import timedelta

import pytest

from insightbi.models import CompanyInvitation
from insightbi.services import company_service
from insightbi.time_utils import utcnow
from insightbi.validation import ConflictError


class TestSlugs:

    @pytest.mark.parametrize("name,expected", [
        ("Distribuidora Ñuñoa & Cía.", "distribuidora-nunoa-cia"),
        ("  Comercial   Andes SpA ", "comercial-andes-spa"),
        ("Café 100%", "cafe-100"),
        ("¿¿??", "company"),
    ])
    def test_generate_slug(self, name, expected):
        assert company_service.generate_slug(name) == expected

    def test_unique_slug_appends_suffix(self, db_session, company_a):
        assert company_service.unique_slug("andes") == "andes-2"
        company_service.create_company(name="Andes")
        assert company_service.unique_slug("andes") == "andes-3"

    def test_explicit_duplicate_slug_conflicts(self, db_session, company_a):
        with pytest.raises(ConflictError):
            company_service.create_company(name="Otra", slug="andes")

    def test_default_settings(self, db_session):
        company = company_service.create_company(name="Minimarket Sur")
        assert company.slug == "minimarket-sur"
        assert company.settings["currency"] == "CLP"
        assert company.subscription == "trial"


class TestCompanyRoutes:

    def test_current_company(self, client, headers_a, company_a):
        resp = client.get("/api/companies/current", headers=headers_a)
        assert resp.status_code == 200
        assert resp.json["slug"] == "andes"

    def test_validate_slug(self, client, headers_a, company_a):
        taken = client.get("/api/companies/validate-slug?slug=andes", headers=headers_a).json
        assert taken["valid"] is True
        assert taken["available"] is False

        bad = client.get("/api/companies/validate-slug", query_string={"slug": "Mi Empresa"}, headers=headers_a).json
        assert bad["valid"] is False
        assert bad["normalized"] == "mi-empresa"

        free = client.get("/api/companies/validate-slug?slug=nueva", headers=headers_a).json
        assert free["available"] is True

    def test_duplicate_slug_is_400(self, client, super_headers, company_a):
        resp = client.post("/api/companies", json={"name": "X", "slug": "andes"}, headers=super_headers)
        assert resp.status_code == 400

    def test_super_admin_creates_company(self, client, super_headers):
        resp = client.post(
            "/api/companies",
            json={"name": "Textiles del Maule", "subscription": "basic"},
            headers=super_headers,
        )
        assert resp.status_code == 201
        assert resp.json["slug"] == "textiles-del-maule"

    def test_admin_cannot_raise_own_limits(self, client, headers_a, company_a):
        resp = client.put(f"/api/companies/{company_a.id}", json={"max_users": 500}, headers=headers_a)
        assert resp.status_code == 403

    def test_admin_updates_profile(self, client, headers_a, company_a):
        resp = client.put(f"/api/companies/{company_a.id}", json={"phone": "+56 2 2345 6789"}, headers=headers_a)
        assert resp.status_code == 200
        assert resp.json["phone"] == "+56 2 2345 6789"

    def test_stats(self, client, headers_a, company_a, product_a):
        resp = client.get(f"/api/companies/{company_a.id}/stats", headers=headers_a)
        assert resp.status_code == 200
        assert resp.json["product_count"] == 1
        assert resp.json["user_count"] == 1


class TestInvitations:

    def _invite(self, client, headers, company, email="nuevo@andes.cl", role="analyst"):
        return client.post(
            f"/api/companies/{company.id}/invitations",
            json={"email": email, "role": role},
            headers=headers,
        )

    def test_invite_and_accept(self, client, headers_a, company_a):
        resp = self._invite(client, headers_a, company_a)
        assert resp.status_code == 201
        token = resp.json["token"]

        info = client.get(f"/api/invitations/{token}")
        assert info.status_code == 200
        assert info.json["company_name"] == company_a.name

        accepted = client.post(
            f"/api/invitations/{token}/accept",
            json={"username": "nuevo", "password": "Password123!"},
        )
        assert accepted.status_code == 201
        assert accepted.json["user"]["role"] == "analyst"
        assert accepted.json["user"]["company_id"] == company_a.id

        # single use
        again = client.post(
            f"/api/invitations/{token}/accept",
            json={"username": "otro", "password": "Password123!"},
        )
        assert again.status_code == 404

    def test_expired_invitation_not_found(self, client, db_session, headers_a, company_a):
        token = self._invite(client, headers_a, company_a).json["token"]
        invitation = db_session.query(CompanyInvitation).filter_by(token=token).one()
        invitation.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()

        assert client.get(f"/api/invitations/{token}").status_code == 404

    def test_cannot_invite_super_admin(self, client, headers_a, company_a):
        assert self._invite(client, headers_a, company_a, role="super_admin").status_code == 400

    def test_cannot_invite_existing_email(self, client, headers_a, company_a):
        assert self._invite(client, headers_a, company_a, email="user_a@andes.cl").status_code == 409

    def test_cannot_invite_into_other_company(self, client, headers_a, company_b):
        assert self._invite(client, headers_a, company_b).status_code == 404

    def test_user_quota(self, client, db_session, headers_a, company_a):
        company_a.max_users = 1
        db_session.commit()
        assert self._invite(client, headers_a, company_a).status_code == 409
