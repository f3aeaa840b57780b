import pytest
import os
from datetime import date
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from hrms.database import get_db, init_db
from hrms.main import app
from hrms.core.tenant import Role, TenantContext
from hrms.services import company_service
from fastapi.testclient import TestClient


@pytest.fixture(scope="function")
def engine():
    """A fresh in-memory database per test; services commit and roll back freely."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture(scope="function")
def company(db_session):
    """A company onboarded with the default components, settings and leave setup."""
    return company_service.create_company(db_session, "Alpha Corp")


@pytest.fixture(scope="function")
def ctx(company):
    return TenantContext(company_id=company.id, user_id=1, role=Role.HR_ADMIN)


@pytest.fixture(scope="function")
def make_headers(company):
    def _make_headers(role: str = "hr_admin", user_id: int = 1, company_id: int = None):
        return {
            "X-Company-ID": str(company_id or company.id),
            "X-User-ID": str(user_id),
            "X-User-Role": role,
        }
    return _make_headers


@pytest.fixture(scope="function")
def headers(make_headers):
    return make_headers()


@pytest.fixture(scope="function")
def employee(db_session, ctx):
    return company_service.create_employee(db_session, ctx, {
        "full_name": "Asha Rao",
        "email": "asha@alphacorp.com",
        "department_name": "Engineering",
        "designation": "Engineer",
        "category": "confirmed",
        "date_of_joining": date(2020, 1, 6),
    })


@pytest.fixture(scope="function")
def client(db_session):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
