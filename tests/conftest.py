"""
Test Configuration and Fixtures
================================

Central configuration for pytest with all shared fixtures.

Features:
- SQLite in-memory database for testing
- TestClient setup around the FastAPI application
- Two organizations with staff in every role
- A recording transport standing in for Socket.IO so broadcasts can be
  asserted without a network
"""

import os
import uuid
from typing import Any, Dict, Generator, List, Tuple

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Set testing environment before importing app modules
os.environ["ENVIRONMENT"] = "testing"
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only-min-32-chars"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["LOG_FORMAT"] = "console"
os.environ["RATE_LIMIT_ENABLED"] = "false"  # Disable rate limiting in tests

from statuspage.db.base import Base
from statuspage.db.session import get_db
from statuspage.main import fastapi_app
from statuspage.models.organization import Organization
from statuspage.models.role_enum import Role
from statuspage.models.user import User
from statuspage.realtime.broadcaster import BroadcastRouter
from statuspage.realtime.registry import TopicRegistry
from statuspage.realtime.socketio import get_broadcaster
from statuspage.schemas.auth import StaffIdentity
from statuspage.services.auth_service import AuthService
from statuspage.services.incident_lifecycle import IncidentLifecycle
from statuspage.services.service_lifecycle import ServiceLifecycle


PASSWORD = "StatusPassword123!"


# =====================================
# Database Configuration
# =====================================

# StaticPool keeps the same in-memory connection across sessions and threads
SQLALCHEMY_DATABASE_URL = "sqlite://"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Enable foreign key constraints for SQLite."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    bind=engine,
)


# =====================================
# Realtime Doubles
# =====================================

class RecordingTransport:
    """Transport that records deliveries instead of emitting them."""

    def __init__(self):
        self.sent: List[Tuple[str, str, Dict[str, Any]]] = []
        self.failing: set = set()

    def deliver(self, sid: str, event: str, payload: Dict[str, Any]) -> None:
        if sid in self.failing:
            raise ConnectionError(f"connection {sid} is gone")
        self.sent.append((sid, event, payload))

    def for_sid(self, sid: str) -> List[Tuple[str, Dict[str, Any]]]:
        return [(event, payload) for s, event, payload in self.sent if s == sid]

    def events(self) -> List[str]:
        return [event for _, event, _ in self.sent]


# =====================================
# Database Fixtures
# =====================================

@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """
    Create a fresh database session for each test.

    Creates all tables before each test and drops them after.
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


# =====================================
# Realtime Fixtures
# =====================================

@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def registry() -> TopicRegistry:
    return TopicRegistry()


@pytest.fixture
def broadcaster(registry: TopicRegistry, transport: RecordingTransport) -> BroadcastRouter:
    return BroadcastRouter(registry, transport)


@pytest.fixture(scope="function")
def client(db_session: Session, broadcaster: BroadcastRouter) -> Generator[TestClient, None, None]:
    """
    Create a TestClient with database and broadcaster overrides.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_broadcaster] = lambda: broadcaster

    with TestClient(fastapi_app) as test_client:
        yield test_client

    fastapi_app.dependency_overrides.clear()


# =====================================
# Organization Fixtures
# =====================================

@pytest.fixture
def sample_organization(db_session: Session) -> Organization:
    org = Organization(
        id=uuid.uuid4(),
        name="Acme Corporation",
        slug="acme",
        description="Acme platform status",
    )
    db_session.add(org)
    db_session.commit()
    db_session.refresh(org)
    return org


@pytest.fixture
def second_organization(db_session: Session) -> Organization:
    """Second tenant for cross-tenant testing."""
    org = Organization(
        id=uuid.uuid4(),
        name="Globex Inc",
        slug="globex",
    )
    db_session.add(org)
    db_session.commit()
    db_session.refresh(org)
    return org


# =====================================
# User Fixtures
# =====================================

def _make_user(db: Session, organization: Organization, email: str, role: Role, **extra) -> User:
    user = User(
        id=uuid.uuid4(),
        email=email,
        username=email.split("@")[0],
        hashed_password=AuthService.hash_password(PASSWORD),
        role=role.value,
        organization_id=organization.id if organization else None,
        **extra,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def sample_admin(db_session: Session, sample_organization: Organization) -> User:
    return _make_user(db_session, sample_organization, "admin@acme.io", Role.ADMIN)


@pytest.fixture
def sample_editor(db_session: Session, sample_organization: Organization) -> User:
    return _make_user(db_session, sample_organization, "editor@acme.io", Role.EDITOR)


@pytest.fixture
def sample_viewer(db_session: Session, sample_organization: Organization) -> User:
    return _make_user(db_session, sample_organization, "viewer@acme.io", Role.VIEWER)


@pytest.fixture
def sample_inactive_user(db_session: Session, sample_organization: Organization) -> User:
    return _make_user(
        db_session, sample_organization, "inactive@acme.io", Role.EDITOR, is_active=False
    )


@pytest.fixture
def second_org_admin(db_session: Session, second_organization: Organization) -> User:
    return _make_user(db_session, second_organization, "admin@globex.io", Role.ADMIN)


# =====================================
# Token Fixtures
# =====================================

def _token_for(user: User) -> str:
    return AuthService.create_access_token(
        user_id=user.id,
        organization_id=user.organization_id,
        role=user.role,
        token_version=user.token_version,
    )


@pytest.fixture
def admin_headers(sample_admin: User) -> dict:
    return {"Authorization": f"Bearer {_token_for(sample_admin)}"}


@pytest.fixture
def editor_headers(sample_editor: User) -> dict:
    return {"Authorization": f"Bearer {_token_for(sample_editor)}"}


@pytest.fixture
def viewer_headers(sample_viewer: User) -> dict:
    return {"Authorization": f"Bearer {_token_for(sample_viewer)}"}


@pytest.fixture
def second_org_headers(second_org_admin: User) -> dict:
    return {"Authorization": f"Bearer {_token_for(second_org_admin)}"}


# =====================================
# Identity / Service Layer Fixtures
# =====================================

@pytest.fixture
def admin_identity(sample_admin: User) -> StaffIdentity:
    return StaffIdentity(
        user_id=sample_admin.id,
        organization_id=sample_admin.organization_id,
        role=Role.ADMIN,
        email=sample_admin.email,
    )


@pytest.fixture
def second_org_identity(second_org_admin: User) -> StaffIdentity:
    return StaffIdentity(
        user_id=second_org_admin.id,
        organization_id=second_org_admin.organization_id,
        role=Role.ADMIN,
        email=second_org_admin.email,
    )


@pytest.fixture
def incident_lifecycle(db_session: Session, broadcaster: BroadcastRouter) -> IncidentLifecycle:
    return IncidentLifecycle(db_session, broadcaster)


@pytest.fixture
def service_lifecycle(db_session: Session, broadcaster: BroadcastRouter) -> ServiceLifecycle:
    return ServiceLifecycle(db_session, broadcaster)


@pytest.fixture
def api_service(service_lifecycle: ServiceLifecycle, sample_organization: Organization):
    return service_lifecycle.create(
        sample_organization.id, name="API", status="operational", display_order=1
    )


@pytest.fixture
def web_service(service_lifecycle: ServiceLifecycle, sample_organization: Organization):
    return service_lifecycle.create(
        sample_organization.id, name="Web", status="operational", display_order=2
    )


@pytest.fixture
def foreign_service(service_lifecycle: ServiceLifecycle, second_organization: Organization):
    return service_lifecycle.create(second_organization.id, name="Globex API")


@pytest.fixture
def staff_password() -> str:
    """Plain-text password shared by every user fixture."""
    return PASSWORD
