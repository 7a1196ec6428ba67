"""Shared fixtures for baseapp tests.

Tests run against in-memory SQLite (aiosqlite) so they need no running
PostgreSQL. Each test gets a fresh schema. Mail goes through the real Mailer
with an httpx.MockTransport standing in for the Resend API.
"""

import json
import re
from collections.abc import AsyncGenerator, Callable

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from baseapp.core.credentials import CredentialStore
from baseapp.core.email import Mailer
from baseapp.core.sessions import Session, SessionManager
from baseapp.models import Base
from baseapp.services.account_workflow import AccountWorkflow
from baseapp.services.token_service import TokenService

TEST_DATABASE_URL = "sqlite+aiosqlite://"

# Security: test-only secret. Production reads SESSION_SECRET from env.
TEST_SESSION_SECRET = "test-session-secret-that-is-at-least-32-chars"  # nosec B105  # gitleaks:allow

# Lowest cost bcrypt accepts; keeps the suite fast
_BCRYPT_ROUNDS = 4

_LINK_RE = re.compile(r"/account/(confirm|reset)/([A-Za-z0-9]+)")


class MailOutbox:
    """Records every message POSTed to the mock Resend endpoint."""

    def __init__(self, status_code: int = 200) -> None:
        self.status_code = status_code
        self.messages: list[dict] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.messages.append(json.loads(request.content))
        return httpx.Response(self.status_code, json={"id": "email-id"})

    def secret(self, kind: str, index: int = -1) -> str:
        """Pull the token secret out of a sent message's link."""
        match = _LINK_RE.search(self.messages[index]["text"])
        assert match is not None
        assert match.group(1) == kind
        return match.group(2)


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create a fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture
def credentials() -> CredentialStore:
    return CredentialStore(rounds=_BCRYPT_ROUNDS)


@pytest.fixture
def session_manager() -> SessionManager:
    return SessionManager(secret=TEST_SESSION_SECRET)


@pytest.fixture
def session() -> Session:
    """An empty, logged-out session."""
    return Session()


@pytest.fixture
def outbox() -> MailOutbox:
    return MailOutbox()


@pytest.fixture
def mailer(outbox: MailOutbox) -> Mailer:
    """Mailer with capability, delivering into outbox."""
    return Mailer(
        api_key="re_test_key",
        transport=httpx.MockTransport(outbox.handler),
    )


@pytest.fixture
def token_service(db_session: AsyncSession) -> TokenService:
    return TokenService(db_session)


@pytest.fixture
def make_workflow(
    db_session: AsyncSession,
    credentials: CredentialStore,
    session_manager: SessionManager,
) -> Callable[[Mailer], AccountWorkflow]:
    """Build a workflow around a given mailer."""

    def _make(mailer: Mailer) -> AccountWorkflow:
        return AccountWorkflow(
            db_session,
            credentials=credentials,
            tokens=TokenService(db_session),
            sessions=session_manager,
            mailer=mailer,
        )

    return _make


@pytest.fixture
def workflow(
    make_workflow: Callable[[Mailer], AccountWorkflow], mailer: Mailer
) -> AccountWorkflow:
    """Workflow with working mail."""
    return make_workflow(mailer)