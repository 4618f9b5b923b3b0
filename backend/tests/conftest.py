"""
Pytest fixtures for InsightBI backend tests.

Provides test database setup, tenant isolation fixtures, and test client.
"""

import pytest
from insightbi import create_app
from insightbi.extensions import db
from insightbi.models import Company, Product
from insightbi.services.auth_service import create_user


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'GEMINI_API_KEY': '',
        'IMPORT_BATCH_SIZE': 2,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def company_a(db_session):
    """Create Company A (first tenant)."""
    company = Company(name="Comercial Andes SpA", slug="andes", subscription="pro", max_users=10)
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def company_b(db_session):
    """Create Company B (second tenant)."""
    company = Company(name="Distribuidora Biobío", slug="biobio", subscription="pro", max_users=10)
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def user_a(db_session, company_a):
    """company_admin of Company A."""
    return create_user(
        username="user_a", email="user_a@andes.cl", password=PASSWORD,
        company_id=company_a.id, role="company_admin",
    )


@pytest.fixture(scope='function')
def user_b(db_session, company_b):
    """company_admin of Company B."""
    return create_user(
        username="user_b", email="user_b@biobio.cl", password=PASSWORD,
        company_id=company_b.id, role="company_admin",
    )


@pytest.fixture(scope='function')
def viewer_a(db_session, company_a):
    """Read-only user in Company A."""
    return create_user(
        username="viewer_a", email="viewer_a@andes.cl", password=PASSWORD,
        company_id=company_a.id, role="viewer",
    )


@pytest.fixture(scope='function')
def super_admin(db_session, company_a):
    return create_user(
        username="root", email="root@insightbi.local", password=PASSWORD,
        company_id=company_a.id, role="super_admin",
    )


@pytest.fixture(scope='function')
def product_a(db_session, company_a):
    """Create Product in Company A."""
    product = Product(
        company_id=company_a.id,
        sku="PROD-A-001",
        name="Café en grano 1kg",
        price_cents=1_299_000,
        cost_cents=800_000,
        stock=20,
        min_stock=5,
        max_stock=100,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_b(db_session, company_b):
    """Create Product in Company B."""
    product = Product(
        company_id=company_b.id,
        sku="PROD-B-001",
        name="Té verde 100 bolsas",
        price_cents=499_000,
        cost_cents=250_000,
        stock=40,
    )
    db_session.add(product)
    db_session.commit()
    return product


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def login(client, username: str) -> dict:
    return auth_headers(get_auth_token(client, username))


@pytest.fixture(scope='function')
def headers_a(client, user_a):
    return login(client, "user_a")


@pytest.fixture(scope='function')
def headers_b(client, user_b):
    return login(client, "user_b")


@pytest.fixture(scope='function')
def viewer_headers(client, viewer_a):
    return login(client, "viewer_a")


@pytest.fixture(scope='function')
def super_headers(client, super_admin):
    return login(client, "root")
