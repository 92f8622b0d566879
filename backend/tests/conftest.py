"""
Pytest fixtures for claimdesk backend tests.

Provides test database setup, users per role, claim factories and an
authenticated test client helper.
"""

import pytest

from claimdesk import create_app
from claimdesk.config import TestingConfig
from claimdesk.extensions import db
from claimdesk.services import claim_service, identity_service
from claimdesk.validation import validate_claim_payload


PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app(TestingConfig)
    app.config['UPLOAD_FOLDER'] = str(tmp_path_factory.mktemp('uploads'))

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


def make_user(role: str, email: str, *, name: str | None = None, status: str = "active", department: str = "Operations", employee_id: str | None = None):
    return identity_service.create_user(
        name=name or email.split("@")[0].replace(".", " ").title(),
        email=email,
        password=PASSWORD,
        department=department,
        role=role,
        status=status,
        employee_id=employee_id,
    )


@pytest.fixture(scope='function')
def admin_user(db_session):
    return make_user("admin", "admin@example.com", department="Administration")


@pytest.fixture(scope='function')
def worker_user(db_session):
    return make_user("worker", "worker@example.com")


@pytest.fixture(scope='function')
def other_worker(db_session):
    return make_user("worker", "other.worker@example.com")


@pytest.fixture(scope='function')
def accountant_user(db_session):
    return make_user("accountant", "accountant@example.com", department="Finance")


@pytest.fixture(scope='function')
def approver_user(db_session):
    return make_user("approver", "approver@example.com", department="Finance")


def make_claim(owner, **overrides):
    """Create a claim through the service, as the owner."""
    payload = {
        "date": "2026-10-01",
        "category": "Travel",
        "description": "Train to client site",
        "amount": "120.00",
    }
    payload.update(overrides)
    return claim_service.create_claim(owner, validate_claim_payload(payload, partial=False))


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json['data']['token']
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.email))


@pytest.fixture(scope='function')
def worker_headers(client, worker_user):
    return auth_headers(get_auth_token(client, worker_user.email))


@pytest.fixture(scope='function')
def other_worker_headers(client, other_worker):
    return auth_headers(get_auth_token(client, other_worker.email))


@pytest.fixture(scope='function')
def accountant_headers(client, accountant_user):
    return auth_headers(get_auth_token(client, accountant_user.email))


@pytest.fixture(scope='function')
def approver_headers(client, approver_user):
    return auth_headers(get_auth_token(client, approver_user.email))
