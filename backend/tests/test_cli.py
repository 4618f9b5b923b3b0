# Overview: Pytest coverage for the flask CLI groups (system, companies, users, maintenance).

from insightbi.models import Company, StockAlert, User


def _invoke(app, *args):
    return app.test_cli_runner().invoke(args=list(args))


class TestCompaniesCommands:

    def test_create_and_list(self, app, db_session):
        result = _invoke(app, "companies", "create", "--name", "Ferretería Ñuñoa")
        assert result.exit_code == 0, result.output
        assert "ferreteria-nunoa" in result.output

        listed = _invoke(app, "companies", "list")
        assert "Ferretería Ñuñoa" in listed.output

    def test_duplicate_slug_fails(self, app, db_session, company_a):
        result = _invoke(app, "companies", "create", "--name", "Otra", "--slug", "andes")
        assert result.exit_code != 0
        assert db_session.query(Company).count() == 1

    def test_stats(self, app, company_a, user_a):
        result = _invoke(app, "companies", "stats", "andes")
        assert result.exit_code == 0
        assert "user_count: 1" in result.output

    def test_unknown_slug(self, app, db_session):
        result = _invoke(app, "companies", "stats", "nope")
        assert result.exit_code != 0
        assert "not found" in result.output


class TestUsersAndSystem:

    def test_users_create(self, app, db_session, company_a):
        result = _invoke(
            app, "users", "create",
            "--company-slug", "andes",
            "--username", "cajero",
            "--email", "cajero@andes.cl",
            "--password", "Password123!",
            "--role", "sales",
        )
        assert result.exit_code == 0, result.output
        user = db_session.query(User).filter_by(username="cajero").one()
        assert user.company_id == company_a.id
        assert user.role == "sales"

    def test_init_is_idempotent(self, app, db_session, company_a):
        first = _invoke(app, "system", "init")
        assert first.exit_code == 0, first.output
        assert db_session.query(User).filter_by(company_id=company_a.id).count() == 4

        second = _invoke(app, "system", "init")
        assert "already exists" in second.output
        assert db_session.query(User).count() == 4


class TestMaintenanceCommands:

    def test_sync_alerts(self, app, db_session, company_a, product_a):
        product_a.stock = 0
        db_session.commit()
        result = _invoke(app, "maintenance", "sync-alerts")
        assert result.exit_code == 0
        assert "'created': 1" in result.output
        assert db_session.query(StockAlert).filter_by(product_id=product_a.id).count() == 1

    def test_cleanup_sessions(self, app, client, user_a):
        client.post("/api/auth/login", json={"username": "user_a", "password": "Password123!"})
        result = _invoke(app, "maintenance", "cleanup-sessions", "--retention-days", "1")
        assert "Deleted 0 expired sessions" in result.output
