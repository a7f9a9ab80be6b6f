"""Pytest fixtures shared by unit and integration tests.

Provides reusable test fixtures for:
- In-memory SQLite database session (tables created per test)
- Test tenants
- Test users for every role (ADMIN, MANAGER, PHARMACIST, CASHIER)
- FastAPI test clients, anonymous and authenticated per role
- Audit log entries of a given age

Usage:
    def test_admin_endpoint(admin_client):
        response = admin_client.get("/api/v1/retention/settings")
        assert response.status_code == 200
"""

import os

# Set environment variables BEFORE any pharmaflow imports so settings pick them up
os.environ["DATABASE_URL"] = "sqlite://"

if "PASSWORD_PEPPER" not in os.environ:
    os.environ["PASSWORD_PEPPER"] = "test-pepper-secret-key-32-chars-long"

if "JWT_SECRET" not in os.environ:
    os.environ["JWT_SECRET"] = "test-jwt-secret-key-256-bits-minimum-length-required-for-security"

os.environ.setdefault("LOG_JSON", "false")

from datetime import datetime, timezone
from typing import Generator, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from pharmaflow.auth.jwt import create_access_token
from pharmaflow.auth.password import hash_password
from pharmaflow.database import get_db
from pharmaflow.main import app
from pharmaflow.models import AuditLog, Base, Tenant, User


# A single shared connection keeps the in-memory database alive across the
# threads TestClient runs endpoints in
test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

ADMIN_PASSWORD = "AdminPass123"
MANAGER_PASSWORD = "ManagerPass123"
PHARMACIST_PASSWORD = "PharmPass123"
CASHIER_PASSWORD = "CashierPass123"


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh database session for each test.

    Creates all tables before the test and drops them after.
    """
    Base.metadata.create_all(bind=test_engine)

    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


def _create_tenant(db_session: Session, code: str, name: str) -> Tenant:
    tenant = Tenant(code=code, name=name)
    db_session.add(tenant)
    db_session.commit()
    db_session.refresh(tenant)
    return tenant


@pytest.fixture(scope="function")
def test_tenant(db_session: Session) -> Tenant:
    """Create the primary test pharmacy."""
    return _create_tenant(db_session, "PHARM000001", "Test Pharmacy")


@pytest.fixture(scope="function")
def other_tenant(db_session: Session) -> Tenant:
    """Create a second pharmacy for tenant isolation tests."""
    return _create_tenant(db_session, "PHARM000002", "Other Pharmacy")


def create_user(
    db_session: Session,
    tenant: Tenant,
    username: str,
    role: str,
    password: str,
    is_active: bool = True,
) -> User:
    """Create and commit a user in tenant."""
    user = User(
        tenant_id=tenant.id,
        username=username,
        email=f"{username}@pharmacy.test",
        full_name=f"{role.title()} User",
        role=role,
        password_hash=hash_password(password),
        is_active=is_active,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture(scope="function")
def admin_user(db_session: Session, test_tenant: Tenant) -> User:
    """Create an ADMIN user for testing."""
    return create_user(db_session, test_tenant, "admin", "ADMIN", ADMIN_PASSWORD)


@pytest.fixture(scope="function")
def manager_user(db_session: Session, test_tenant: Tenant) -> User:
    """Create a MANAGER user for testing."""
    return create_user(db_session, test_tenant, "manager", "MANAGER", MANAGER_PASSWORD)


@pytest.fixture(scope="function")
def pharmacist_user(db_session: Session, test_tenant: Tenant) -> User:
    """Create a PHARMACIST user for testing."""
    return create_user(db_session, test_tenant, "pharmacist", "PHARMACIST", PHARMACIST_PASSWORD)


@pytest.fixture(scope="function")
def cashier_user(db_session: Session, test_tenant: Tenant) -> User:
    """Create a CASHIER user for testing."""
    return create_user(db_session, test_tenant, "cashier", "CASHIER", CASHIER_PASSWORD)


@pytest.fixture(scope="function")
def make_user(db_session: Session, test_tenant: Tenant):
    """Factory for extra users (defaults to an active PHARMACIST in test_tenant)."""

    def _make(
        username: str,
        role: str = "PHARMACIST",
        password: str = PHARMACIST_PASSWORD,
        is_active: bool = True,
        tenant: Optional[Tenant] = None,
    ) -> User:
        return create_user(db_session, tenant or test_tenant, username, role, password, is_active)

    return _make


@pytest.fixture(scope="function")
def make_audit_log(db_session: Session, test_tenant: Tenant):
    """Factory for audit log entries with explicit timestamps.

    Usage:
        entry = make_audit_log(created_at=eight_years_ago)
        entry = make_audit_log(created_at=old, archived_at=two_years_ago)
    """

    def _make(
        created_at: datetime,
        archived_at: Optional[datetime] = None,
        tenant: Optional[Tenant] = None,
        action: str = "UPDATE",
        entity_type: str = "Product",
        entity_id: str = "prod-1",
        **kwargs,
    ) -> AuditLog:
        entry = AuditLog(
            tenant_id=(tenant or test_tenant).id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            created_at=created_at,
            archived_at=archived_at,
            **kwargs,
        )
        db_session.add(entry)
        db_session.commit()
        return entry

    return _make


@pytest.fixture(scope="function")
def now() -> datetime:
    return datetime.now(timezone.utc)


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Create an unauthenticated test client.

    Useful for testing public endpoints and the login flow.
    """

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    yield TestClient(app)

    app.dependency_overrides.clear()


def _authenticated_client(user: User) -> TestClient:
    token = create_access_token(
        user_id=user.id,
        tenant_id=user.tenant_id,
        role=user.role,
        username=user.username,
    )

    test_client = TestClient(app)
    test_client.headers = {
        "Authorization": f"Bearer {token}"
    }
    return test_client


@pytest.fixture(scope="function")
def admin_client(client: TestClient, admin_user: User) -> TestClient:
    """Create a test client authenticated as ADMIN."""
    return _authenticated_client(admin_user)


@pytest.fixture(scope="function")
def manager_client(client: TestClient, manager_user: User) -> TestClient:
    """Create a test client authenticated as MANAGER."""
    return _authenticated_client(manager_user)


@pytest.fixture(scope="function")
def pharmacist_client(client: TestClient, pharmacist_user: User) -> TestClient:
    """Create a test client authenticated as PHARMACIST."""
    return _authenticated_client(pharmacist_user)


@pytest.fixture(scope="function")
def cashier_client(client: TestClient, cashier_user: User) -> TestClient:
    """Create a test client authenticated as CASHIER."""
    return _authenticated_client(cashier_user)
