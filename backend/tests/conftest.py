"""
Pytest fixtures for laundromat backend tests.

Provides test database setup, seeded users, auth helpers, and fake
payment gateway / notifier collaborators.
"""

import pytest

from laundromat import create_app
from laundromat.extensions import db
from laundromat.models import Setting
from laundromat.models.auth import ROLE_ADMIN, ROLE_STAFF, ROLE_DRIVER
from laundromat.services import auth_service, catalog_service
from laundromat.services.notification_service import RESULT_DELIVERED
from laundromat.services.payment_gateway import ChargeResult


TEST_PASSWORD = "Password123!"


class FakeGateway:
    """Approves every charge unless decline_reason is set."""

    def __init__(self):
        self.calls = []
        self.decline_reason = None
        self.error = None

    def charge(self, card, amount, reference):
        self.calls.append({"last_four": card.last_four, "amount": amount, "reference": reference})
        if self.error is not None:
            raise self.error
        if self.decline_reason:
            return ChargeResult(approved=False, decline_reason=self.decline_reason)
        return ChargeResult(
            approved=True,
            transaction_id=f"txn_{len(self.calls)}",
            last_four=card.last_four,
        )


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def notify(self, channel, recipient, template, data):
        self.sent.append({"channel": channel, "recipient": recipient, "template": template, "data": data})
        return RESULT_DELIVERED

    def templates(self):
        return [m["template"] for m in self.sent]


def make_app(database_uri: str):
    return create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': database_uri,
        'SECRET_KEY': 'test-secret',
        'NOTIFY_SYNC': True,
        'BCRYPT_ROUNDS': 4,
        'BUSINESS_TIMEZONE': 'UTC',
        'DEFAULT_TAX_RATE': '8.875',
    })


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = make_app('sqlite:///:memory:')

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
def gateway(app, db_session):
    fake = FakeGateway()
    app.extensions["payment_gateway"] = fake
    yield fake
    app.extensions["payment_gateway"] = None


@pytest.fixture(scope='function')
def notifier(app, db_session):
    recorder = RecordingNotifier()
    app.extensions["notifier"] = recorder
    yield recorder
    app.extensions["notifier"] = None


@pytest.fixture(scope='function')
def seed(db_session, notifier):
    """Default users, catalog and tax rate. Returns users keyed by username."""
    users = {
        "admin": auth_service.create_user("admin", "Alice Admin", TEST_PASSWORD, ROLE_ADMIN),
        "staff": auth_service.create_user("staff", "Sam Staff", TEST_PASSWORD, ROLE_STAFF),
        "staff2": auth_service.create_user("staff2", "Sky Staff", TEST_PASSWORD, ROLE_STAFF),
        "driver": auth_service.create_user("driver", "Dee Driver", TEST_PASSWORD, ROLE_DRIVER),
    }
    catalog_service.seed_services()
    db_session.add(Setting(key="tax_rate", value="8.875"))
    db_session.commit()
    return users


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


@pytest.fixture(scope='function')
def admin_headers(client, seed):
    return auth_headers(get_auth_token(client, "admin"))


@pytest.fixture(scope='function')
def staff_headers(client, seed):
    return auth_headers(get_auth_token(client, "staff"))


@pytest.fixture(scope='function')
def driver_headers(client, seed):
    return auth_headers(get_auth_token(client, "driver"))
