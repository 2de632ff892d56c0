"""
Test configuration and fixtures.

Provides:
- SQLite database file created once per test session
- Database session inside an outer transaction (rollback after each test)
- Clinic, status, role and user fixtures
- JWT session cookies for authenticated tests
- HTTPX AsyncClient with proper headers
"""
import os
import tempfile
import uuid
from collections.abc import AsyncGenerator, Callable, Generator
from dataclasses import dataclass

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session

_DB_DIR = tempfile.mkdtemp(prefix="helpdesk-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'helpdesk.db')}"
os.environ["TESTING"] = "1"
os.environ.setdefault("JWT_SECRET", "test-secret")

from helpdesk.main import app
from helpdesk.core.deps import get_db, COOKIE_NAME, CSRF_HEADER, CSRF_HEADER_VALUE
from helpdesk.core.permissions import PermissionKey
from helpdesk.core.security import create_session_token
from helpdesk.db.base import Base
from helpdesk.db.models import Category, Clinic, Role, Society, User
from helpdesk.db.session import engine
from helpdesk.services import (
    category_service,
    clinic_service,
    society_service,
    status_service,
    user_service,
)


# =============================================================================
# Database Fixtures (outer transaction, savepoint per commit)
# =============================================================================

@pytest.fixture(scope="session", autouse=True)
def schema() -> Generator[None, None, None]:
    """Create all tables once for the test session."""
    Base.metadata.create_all(engine)
    yield
    engine.dispose()


@pytest.fixture(scope="function")
def db_connection() -> Generator[Connection, None, None]:
    """
    Connection holding the outer test transaction.

    The transaction holds the SQLite write lock until the test ends, so tests
    that open their own connections (health check, threaded sequence
    allocation) must not request this fixture.
    """
    connection = engine.connect()
    transaction = connection.begin()
    yield connection
    transaction.rollback()
    connection.close()


@pytest.fixture(scope="function")
def db(db_connection: Connection) -> Generator[Session, None, None]:
    """
    Session bound to the test connection.

    App code can call commit(): it only releases a SAVEPOINT, and the outer
    transaction is rolled back at the end of the test.
    """
    session = Session(bind=db_connection, join_transaction_mode="create_savepoint")
    yield session
    session.close()


# =============================================================================
# Tenancy Fixtures
# =============================================================================

REQUESTER_PERMISSIONS = [PermissionKey.CREATE_TICKETS.value]
AGENT_PERMISSIONS = [
    PermissionKey.CREATE_TICKETS.value,
    PermissionKey.VIEW_ALL_TICKETS.value,
    PermissionKey.EDIT_TICKETS.value,
    PermissionKey.ASSIGN_TICKETS.value,
]
ADMIN_PERMISSIONS = [PermissionKey.FULL_ACCESS.value]


def _code(prefix: str) -> str:
    return f"{prefix}{uuid.uuid4().hex[:6]}".upper()


@pytest.fixture(scope="function")
def statuses(db: Session):
    """Default status directory (open, in_progress, closed)."""
    status_service.initialize_default_statuses(db)
    return {s.slug: s for s in status_service.list_active_statuses(db)}


@pytest.fixture(scope="function")
def clinic(db: Session, statuses) -> Clinic:
    return clinic_service.create_clinic(db, name="Test Clinic", code=_code("TC"))


@pytest.fixture(scope="function")
def other_clinic(db: Session) -> Clinic:
    return clinic_service.create_clinic(db, name="Other Clinic", code=_code("OC"))


@pytest.fixture(scope="function")
def roles(db: Session) -> dict[str, Role]:
    return {
        "requester": user_service.get_or_create_role(db, "Requester", REQUESTER_PERMISSIONS),
        "agent": user_service.get_or_create_role(db, "Agent", AGENT_PERMISSIONS),
        "admin": user_service.get_or_create_role(db, "Admin", ADMIN_PERMISSIONS),
    }


@pytest.fixture(scope="function")
def make_user(db: Session, clinic: Clinic, roles: dict[str, Role]) -> Callable[..., User]:
    """Factory: user with a role, member of `clinic` unless told otherwise."""

    def _make(role: str = "requester", member_of: Clinic | None = clinic, name: str = "User") -> User:
        user = user_service.create_user(
            db,
            email=f"{name.lower()}-{uuid.uuid4().hex[:8]}@test.com",
            display_name=name,
            role=roles[role],
        )
        if member_of is not None:
            clinic_service.add_user_to_clinic(db, user.id, member_of.id)
        return user

    return _make


@pytest.fixture(scope="function")
def requester(make_user) -> User:
    return make_user("requester", name="Requester")


@pytest.fixture(scope="function")
def agent(make_user) -> User:
    return make_user("agent", name="Agent")


@pytest.fixture(scope="function")
def admin(make_user) -> User:
    return make_user("admin", name="Admin")


@pytest.fixture(scope="function")
def society(db: Session) -> Society:
    return society_service.create_society(db, code=_code("SOC"), name="Cardiology Society")


@pytest.fixture(scope="function")
def category(db: Session) -> Category:
    return category_service.create_category(db, name=f"Network {uuid.uuid4().hex[:6]}")


@pytest.fixture(scope="function")
def scoped_category(db: Session, society: Society) -> Category:
    return category_service.create_category(
        db, name=f"Cardiology {uuid.uuid4().hex[:6]}", society_ids=[society.id]
    )


# =============================================================================
# Auth Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    user: User
    token: str
    cookie_name: str = COOKIE_NAME


def make_auth(user: User) -> TestAuth:
    token = create_session_token(user_id=user.id, token_version=user.token_version)
    return TestAuth(user=user, token=token)


def _build_client(auth: TestAuth | None) -> AsyncClient:
    kwargs = {}
    if auth is not None:
        kwargs["cookies"] = {auth.cookie_name: auth.token}
        kwargs["headers"] = {CSRF_HEADER: CSRF_HEADER_VALUE}
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test", **kwargs)


@pytest.fixture(scope="function")
def override_db(db: Session) -> Generator[None, None, None]:
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield
    app.dependency_overrides.clear()


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(override_db) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated AsyncClient."""
    async with _build_client(None) as c:
        yield c


@pytest.fixture(scope="function")
async def authed_client(override_db, requester: User) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient authenticated as a plain requester (JWT cookie + CSRF header)."""
    async with _build_client(make_auth(requester)) as c:
        yield c


@pytest.fixture(scope="function")
async def agent_client(override_db, agent: User) -> AsyncGenerator[AsyncClient, None]:
    async with _build_client(make_auth(agent)) as c:
        yield c


@pytest.fixture(scope="function")
async def admin_client(override_db, admin: User) -> AsyncGenerator[AsyncClient, None]:
    async with _build_client(make_auth(admin)) as c:
        yield c
