import itertools
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from directory_search.config import settings
from directory_search.database import get_engine, get_session_factory, init_db
from directory_search.main import create_app
from directory_search.models.employee import Employee
from directory_search.schemas.search import CandidateRecord
from directory_search.services.cache import InMemoryCacheStore
from directory_search.services.tenant_context import TokenTenantContextProvider


@pytest.fixture
def engine(tmp_path):
    engine = get_engine(f"sqlite:///{tmp_path / 'directory.sqlite'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return get_session_factory(engine)


@pytest.fixture
def add_employee(session_factory):
    """Insert an employee row and return its id."""
    counter = itertools.count(1)

    def _add(tenant_id="acme", first_name="Jane", last_name="Doe", **fields):
        employee_id = fields.pop("id", f"{tenant_id}-emp-{next(counter):03d}")
        employee = Employee(
            id=employee_id,
            tenant_id=tenant_id,
            first_name=first_name,
            last_name=last_name,
            email=fields.pop("email", f"{first_name}.{last_name}@example.com".lower()),
            title=fields.pop("title", None),
            department=fields.pop("department", None),
            skills=fields.pop("skills", []),
            bio=fields.pop("bio", None),
            is_active=fields.pop("is_active", True),
            created_at="2024-01-01T00:00:00Z",
            updated_at=fields.pop("updated_at", "2024-01-01T00:00:00Z"),
        )
        with session_factory() as db:
            db.add(employee)
            db.commit()
        return employee_id

    return _add


@pytest.fixture
def make_record():
    """Build an in-memory CandidateRecord for engine-level tests."""
    counter = itertools.count(1)

    def _make(first_name="Jane", last_name="Doe", tenant_id="acme", **fields):
        fields.setdefault("id", f"rec-{next(counter):03d}")
        fields.setdefault("updated_at", datetime(2024, 1, 1, tzinfo=timezone.utc))
        return CandidateRecord(tenant_id=tenant_id, first_name=first_name, last_name=last_name, **fields)

    return _make


@pytest.fixture
def tenant_provider():
    return TokenTenantContextProvider()


@pytest.fixture
def cache():
    return InMemoryCacheStore()


@pytest.fixture
def client(engine, tenant_provider, cache):
    app = create_app(engine=engine, cache=cache, tenant_provider=tenant_provider)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth(tenant_provider):
    def _auth(tenant_id="acme", role="employee", user_id="user-1"):
        token = tenant_provider.issue(tenant_id, user_id=user_id, role=role)
        return {"Authorization": f"Bearer {token}"}

    return _auth


@pytest.fixture
def fast_retry():
    """Shrink record source backoff and timeout for failure-path tests."""
    original = (settings.record_source_retry_backoff_seconds, settings.record_source_timeout_seconds)
    settings.record_source_retry_backoff_seconds = 0
    settings.record_source_timeout_seconds = 0.2
    yield
    settings.record_source_retry_backoff_seconds, settings.record_source_timeout_seconds = original
