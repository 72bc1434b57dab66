"""
Pytest fixtures for shop ledger backend tests.

Provides an in-memory database, two isolated businesses with a user and a
stocked item each, and a fake push client that records outgoing batches.
"""

import pytest

from shopledger import create_app
from shopledger.extensions import db
from shopledger.models import Business, InventoryItem, User
from shopledger.services import customer_service
from shopledger.services.auth_service import hash_password


TEST_PASSWORD = "Password123"


class FakePushClient:
    """Stands in for ExpoPushClient; every token gets an ok ticket unless told otherwise."""

    def __init__(self):
        self.batches = []
        self.tickets = None
        self.error = None

    def send(self, messages):
        if self.error is not None:
            raise self.error
        self.batches.append(messages)
        if self.tickets is not None:
            return self.tickets
        return [{"status": "ok", "id": f"ticket-{i}"} for i, _ in enumerate(messages)]


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'PUSH_NOTIFICATIONS_ENABLED': False,
        'BUSINESS_DEFAULT_TIMEZONE': 'UTC',
        'LOW_STOCK_THRESHOLD': 5,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is slow on purpose; hash the shared test password once."""
    return hash_password(TEST_PASSWORD)


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
def push_client(app):
    fake = FakePushClient()
    app.extensions['push_client'] = fake
    app.config['PUSH_NOTIFICATIONS_ENABLED'] = True
    yield fake
    app.config['PUSH_NOTIFICATIONS_ENABLED'] = False
    app.extensions.pop('push_client', None)


@pytest.fixture(scope='function')
def business_a(db_session):
    """Business A (first tenant)."""
    business = Business(name="Mama Mboga Stores", code="MAMA", timezone="UTC", is_active=True)
    db_session.add(business)
    db_session.commit()
    return business


@pytest.fixture(scope='function')
def business_b(db_session):
    """Business B (second tenant)."""
    business = Business(name="Corner Duka", code="DUKA", timezone="UTC", is_active=True)
    db_session.add(business)
    db_session.commit()
    return business


def _make_user(db_session, business, username, password_hash):
    user = User(
        business_id=business.id if business is not None else None,
        username=username,
        email=f"{username}@shop.local",
        password_hash=password_hash,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def user_a(db_session, business_a, password_hash):
    return _make_user(db_session, business_a, "user_a", password_hash)


@pytest.fixture(scope='function')
def user_b(db_session, business_b, password_hash):
    return _make_user(db_session, business_b, "user_b", password_hash)


def make_item(db_session, business, name="sugar 1kg", quantity=20, cost=8000, retail=10000):
    item = InventoryItem(
        business_id=business.id,
        name=name,
        quantity_available=quantity,
        cost_price_cents=cost,
        retail_price_cents=retail,
    )
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def item_a(db_session, business_a):
    """20 units, cost 80.00, retail 100.00 (unit profit 20.00)."""
    return make_item(db_session, business_a)


@pytest.fixture(scope='function')
def item_b(db_session, business_b):
    return make_item(db_session, business_b, name="maize flour 2kg", quantity=10, cost=15000, retail=18000)


@pytest.fixture(scope='function')
def customer_a(db_session, business_a):
    """Customer linked to business A; returns the Customer id."""
    link = customer_service.add_customer(
        business_a.id,
        full_name="Wanjiku Kamau",
        phone_number="+254700000001",
    )
    return link.customer_id


@pytest.fixture(scope='function')
def customer_b(db_session, business_b):
    link = customer_service.add_customer(
        business_b.id,
        full_name="Otieno Ouma",
        phone_number="+254700000002",
    )
    return link.customer_id


def get_auth_token(client, username: str, password: str = TEST_PASSWORD) -> str:
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
