"""
Pytest fixtures for kiosk backend tests.

Provides the app on an in-memory database, a per-test clean schema,
operators, an open shift, products and authenticated headers.
"""

from decimal import Decimal

import pytest

from kiosco import create_app
from kiosco.extensions import db
from kiosco.models import Product
from kiosco.permissions import AuthContext
from kiosco.services import shift_service
from kiosco.services.auth_service import create_user


PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'BCRYPT_ROUNDS': 4,
        'DISPLAY_TIMEZONE': 'America/Argentina/Buenos_Aires',
        'DEFAULT_BUSINESS_NAME': 'Kiosco Test',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Empty every table before the test, roll back whatever is left after it."""
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()


@pytest.fixture(scope='function')
def admin_user(db_session):
    return create_user(username="admin", password=PASSWORD, role="admin", full_name="Admin")


@pytest.fixture(scope='function')
def cashier_user(db_session):
    return create_user(username="cajero", password=PASSWORD, role="cashier", full_name="Cajero Uno")


@pytest.fixture(scope='function')
def admin_auth(admin_user):
    return AuthContext.for_user(admin_user)


@pytest.fixture(scope='function')
def cashier_auth(cashier_user):
    return AuthContext.for_user(cashier_user)


@pytest.fixture(scope='function')
def open_shift(admin_auth):
    """Open shift with no opening cash."""
    return shift_service.open_shift(admin_auth, "0")


@pytest.fixture(scope='function')
def shift_ctx(open_shift):
    return shift_service.shift_context(open_shift)


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product(code, name, price=..., stock=..., ...)."""
    def _make(code, name, price="10.00", stock=10, min_stock=2, category="Comida", cost="5.00", active=True):
        product = Product(
            code=code,
            name=name,
            category=category,
            price=Decimal(price),
            cost=Decimal(cost),
            stock=stock,
            min_stock=min_stock,
            active=active,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


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


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, "admin"))


@pytest.fixture(scope='function')
def cashier_headers(client, cashier_user):
    return auth_headers(get_auth_token(client, "cajero"))
