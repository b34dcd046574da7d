"""
Shared pytest fixtures for the campus requests test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup, tables recreated after each test (autouse)
    - client: Flask test client (function-scoped)
    - users: One active account per role, with bearer headers
    - submit: Helper posting a request as a given account

Requests made through ``client`` run without an outer app context so that
each call gets its own ``g`` (Flask-Login caches the current user there) and
its own database session, the way production requests do. Tests that need
the ORM open ``app.app_context()`` themselves.
"""

from types import SimpleNamespace

import pytest

from config import TestingConfig
from campus_requests import create_app
from campus_requests.constants import Role
from campus_requests.extensions import db as _db
from campus_requests.models import User

PASSWORD = 'Secret@123'

# (key, nic, name, role, email)
ACCOUNTS = [
    ('admin', '199000000001', 'Ada Admin', Role.ADMIN, 'admin@uni.ac.lk'),
    ('student', '199000000002', 'Sam Student', Role.STUDENT, 'sam@uni.ac.lk'),
    ('other_student', '199000000003', 'Olu Student', Role.STUDENT, 'olu@uni.ac.lk'),
    ('lecturer', '199000000004', 'Lee Lecturer', Role.LECTURER, 'lee@uni.ac.lk'),
    ('hod', '199000000005', 'Hana HOD', Role.HOD, 'hana@uni.ac.lk'),
    ('dean', '199000000006', 'Dana Dean', Role.DEAN, 'dana@uni.ac.lk'),
    ('vc', '199000000007', 'Vic Chancellor', Role.VC, 'vic@uni.ac.lk'),
    ('staff', '199000000008', 'Sal Staff', Role.STAFF, 'sal@uni.ac.lk'),
]

EXCUSE = {
    'reason': 'Medical',
    'reason_details': 'Fever for three days',
    'reg_no': 'cs2021001',
    'absences': [
        {'course_code': 'CS101', 'date': '2026-03-02'},
        {'course_code': 'MA205', 'date': '2026-03-03'},
    ],
}

LEAVE = {
    'reason': 'Conference',
    'start_date': '2026-06-01',
    'end_date': '2026-06-05',
    'contact_during_leave': '0771234567',
}

LETTER = {
    'reason': 'Scholarship application',
    'letter_type': 'Studentship confirmation',
}


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app(TestingConfig)


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: recreate tables after the test so no state leaks."""
    yield
    with app.app_context():
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Accounts ─────────────────────────────────────────────────────────────


@pytest.fixture()
def users(app):
    """Creates one account per role; returns {key: namespace(id, nic, role, email, headers)}."""
    accounts = {}
    with app.app_context():
        created = []
        for key, nic, name, role, email in ACCOUNTS:
            user = User(nic=nic, name=name, role=role, email=email, department='Computer Science')
            user.set_password(PASSWORD)
            _db.session.add(user)
            created.append((key, user))
        _db.session.commit()
        for key, user in created:
            accounts[key] = SimpleNamespace(
                id=user.id, nic=user.nic, name=user.name, role=user.role, email=user.email,
                headers={'Authorization': f'Bearer {user.get_auth_token()}'},
            )
    return accounts


@pytest.fixture()
def submit(client):
    """Returns a helper: submit(account, kind, payload=None) -> response."""
    defaults = {'excuserequests': EXCUSE, 'leaverequests': LEAVE, 'letters': LETTER}

    def _submit(account, kind='excuserequests', payload=None):
        return client.post(f'/api/{kind}', json=payload or defaults[kind], headers=account.headers)

    return _submit


@pytest.fixture()
def decide(client):
    """Returns a helper: decide(account, kind, request_id, decision='approve', **body) -> response."""
    def _decide(account, kind, request_id, decision='approve', **body):
        return client.put(f'/api/{kind}/{request_id}/{decision}', json=body, headers=account.headers)

    return _decide
