"""
Shared pytest fixtures for the Accounting Back Office test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - tenant: Pre-created Tenant with a rank-1 "New" status
    - make_tenant / make_template: factories for extra rows
"""

import pytest

from backoffice import create_app
from backoffice.models import db as _db


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


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
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Factories ────────────────────────────────────────────────────────────


def _add_statuses(tenant_id, with_initial=True):
    from backoffice.models.task import TaskStatus
    if with_initial:
        _db.session.add(TaskStatus(tenant_id=tenant_id, name="New", rank=1))
    _db.session.add(TaskStatus(tenant_id=tenant_id, name="In Progress", rank=2))
    _db.session.add(TaskStatus(tenant_id=tenant_id, name="Done", rank=3))


@pytest.fixture()
def make_tenant():
    """Factory: create a tenant (with statuses unless told otherwise)."""
    from backoffice.models.tenant import Tenant

    counter = {"n": 0}

    def _make(name=None, *, is_active=True, with_statuses=True, with_initial=True):
        counter["n"] += 1
        slug = f"firm-{counter['n']}"
        t = Tenant(name=name or f"Firm {counter['n']}", slug=slug, is_active=is_active)
        _db.session.add(t)
        _db.session.flush()
        if with_statuses:
            _add_statuses(t.id, with_initial=with_initial)
        _db.session.commit()
        return t

    return _make


@pytest.fixture()
def tenant(make_tenant):
    """Default tenant with New / In Progress / Done statuses."""
    return make_tenant("Acme Accounting")


@pytest.fixture()
def service_type(tenant):
    from backoffice.models.task import ServiceType
    st = ServiceType(tenant_id=tenant.id, name="VAT Return", currency="EUR", rate=150.0)
    _db.session.add(st)
    _db.session.commit()
    return st


@pytest.fixture()
def make_template():
    """Factory: create a recurring template task for a tenant."""
    from backoffice.models.task import Task

    def _make(tenant_id, *, frequency="Monthly", duration="previous", **overrides):
        fields = {
            "tenant_id": tenant_id,
            "is_recurring": True,
            "task_type": "Regular",
            "client_id": 11,
            "entity_id": 21,
            "task_category_id": 3,
            "assignee_id": 7,
            "compliance_frequency": frequency,
            "compliance_duration": duration,
            "currency": "EUR",
            "service_rate": 120.0,
        }
        fields.update(overrides)
        template = Task(**fields)
        _db.session.add(template)
        _db.session.commit()
        return template

    return _make
