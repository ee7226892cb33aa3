"""
Shared pytest fixtures for the eventflow test suite.

Provides:
    - app: Flask application built from TestingConfig (session-scoped)
    - session: per-test table recreation inside an app context (autouse)
    - client: Flask test client
    - users / actors: one account per role
    - intake: a valid Stage 1 payload
    - make_program: builds a program already sitting at a given stage
    - login_as: logs the test client in by role
"""

import itertools

import pytest

from config import TestingConfig
from eventflow import create_app
from eventflow.constants import Role
from eventflow.extensions import db as _db
from eventflow.models import Program, User
from eventflow.permissions import Actor

PASSWORD = 'password123'

_codes = itertools.count(1)


@pytest.fixture(scope="session")
def app(tmp_path_factory):
    class _Config(TestingConfig):
        UPLOAD_FOLDER = str(tmp_path_factory.mktemp("uploads"))

    return create_app(_Config)


@pytest.fixture(autouse=True)
def session(app):
    """Per-test: open app context, fresh tables, drop them afterwards."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


# ── Users ─────────────────────────────────────────────────────────────────


@pytest.fixture()
def users(session):
    created = {}
    for key, role in (('admin', Role.ADMIN), ('sales', Role.SALES),
                      ('ops', Role.OPS), ('finance', Role.FINANCE)):
        user = User(name=f"{role} User", email=f"{key}@example.com", role=role)
        user.set_password(PASSWORD)
        session.add(user)
        created[key] = user
    session.commit()
    return created


@pytest.fixture()
def actors(users):
    return {key: Actor(user.id, user.role) for key, user in users.items()}


# ── Programs ──────────────────────────────────────────────────────────────


@pytest.fixture()
def intake():
    return {
        'program_name': 'Leadership Offsite',
        'program_type': 'Outbound',
        'program_dates': '2026-11-12 to 2026-11-14',
        'location': 'Coorg',
        'min_pax': 20,
        'max_pax': 40,
        'company_name': 'Acme Corp',
        'client_poc_name': 'Priya Nair',
        'client_poc_phone': '9876543210',
        'client_poc_email': 'priya@acme.example',
        'objectives': 'Team bonding and leadership alignment',
        'delivery_budget': 250000,
        'agenda_document': '/uploads/documents/agenda_1a2b3c4d.pdf',
    }


STAGE_READY = {
    1: {},
    2: {'finance_approval_received': True, 'handover_accepted_by_ops': True},
    3: {'all_resources_blocked': True, 'logistics_list_locked': True,
        'prep_complete': True, 'facilitators_blocked': 'Ravi, Meena'},
    4: {'trip_expense_sheet': '/uploads/documents/trip_9f8e7d6c.xlsx',
        'packing_check_done': True, 'program_completed': True},
    5: {'zfd_rating': 4, 'expenses_bills_submitted': True,
        'ops_data_manager_updated': True},
}


@pytest.fixture()
def make_program(session, users, intake):
    """
    Factory for a program at ``stage`` with every earlier exit criterion met.

    ``ready=True`` also fills in the current stage's own exit criteria.
    """
    def _make(stage=1, ready=False, **fields):
        values = dict(intake)
        values.update(
            program_id=f"PRG-TEST-{next(_codes):06d}",
            sales_poc_id=users['sales'].id,
            current_stage=stage,
        )
        if stage >= 2:
            values['ops_spoc_id'] = users['ops'].id
        for s in range(2, stage + (2 if ready else 1)):
            values.update(STAGE_READY[s])
        if stage == 5:
            values['locked'] = True
        values.update(fields)

        program = Program(**values)
        session.add(program)
        session.commit()
        return program
    return _make


@pytest.fixture()
def login_as(client, users):
    """Logs the test client in as the user for ``key`` (admin, sales, ops, finance)."""
    def _login(key):
        res = client.post("/auth/login", json={"email": users[key].email, "password": PASSWORD})
        assert res.status_code == 200
        return client
    return _login
