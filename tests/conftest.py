"""
RepairDesk Backend - Test Configuration (conftest.py)
=======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.
When:  Fixtures are created per-test unless stated otherwise.

Fixture Hierarchy:
    Function-scoped:
    ├── db_engine:          module engine with a freshly created schema
    ├── db_session:         AsyncSession on that engine
    ├── mock_db_session:    AsyncMock session for pure unit tests
    ├── temp_storage:       temporary directory for document storage
    ├── application_fields: a valid submission payload
    ├── make_application:   factory inserting pending applications
    ├── fake_transport:     AsyncMock PushTransport
    ├── test_client:        HTTPX AsyncClient bound to the FastAPI app
    └── admin_headers:      Authorization header with an admin token
"""

import os
import tempfile

# Override settings for testing BEFORE any repairdesk imports: the engine and
# the document storage root are built at import time.
_TEST_DIR = tempfile.mkdtemp(prefix="repairdesk_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/test.db"
os.environ["STORAGE_ROOT"] = os.path.join(_TEST_DIR, "storage")
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["PUSH_ENABLED"] = "false"
os.environ["JWT_SECRET"] = "test-secret-not-real"

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from repairdesk.config import PushConfig
from repairdesk.database import Base, async_session_factory, create_tables, engine
from repairdesk.services.application_service import application_service
from repairdesk.services.auth_service import ROLE_ADMIN, create_access_token
from repairdesk.services.notification_dispatcher import NotificationDispatcher
from repairdesk.services.push_transport import DeliveryReport, PushTransport, TokenOutcome


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine():
    """
    Fresh schema per test on the temporary SQLite database.

    The engine is disposed afterwards so no pooled connection outlives the
    event loop of the test that opened it.
    """
    await create_tables(engine)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    async with async_session_factory() as session:
        yield session


@pytest.fixture
def mock_db_session():
    """
    A mock async database session for tests that never reach SQL.

    Usage:
        mock_db_session.execute.return_value.scalar_one_or_none.return_value = obj
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def temp_storage(tmp_path):
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return str(storage_dir)


# ══════════════════════════════════════════════════════════════════════════
# Domain Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def application_fields():
    """A complete submission, camelCase as the web form sends it."""
    return {
        "personalInfo": {
            "fullName": "Jean Pierre Dupont",
            "email": "a@b.com",
            "phone": "+33 6 12 34 56 78",
            "location": "Lyon",
        },
        "professionalInfo": {
            "specialization": "Réparation Matérielle",
            "yearsOfExperience": 3,
            "certifications": ["CompTIA A+", "Apple ACMT"],
        },
        "background": {"education": "BTS SN", "workHistory": "3 ans en atelier"},
        "additionalInfo": {"skills": "Soudure, Diagnostic", "languages": ["Français"]},
        "documents": {
            "cv": {"url": "https://files.example.com/cv.pdf", "filename": "cv.pdf"},
            "diplomas": [],
        },
    }


@pytest.fixture
def make_application(db_session, application_fields):
    """Factory: insert a pending application, optionally with another email."""

    async def _make(email=None, **overrides):
        fields = {**application_fields, **overrides}
        if email is not None:
            fields["personalInfo"] = {**fields["personalInfo"], "email": email}
        return await application_service.create_application(db_session, fields)

    return _make


@pytest.fixture
def fake_transport():
    """A PushTransport whose multicast reports every token as delivered."""
    transport = AsyncMock(spec=PushTransport)

    async def _multicast(tokens, message):
        report = DeliveryReport()
        for token in tokens:
            report.add(TokenOutcome(token=token, success=True, message_id=f"msg-{token}"))
        return report

    transport.send_multicast.side_effect = _multicast
    return transport


@pytest.fixture
def push_dispatcher(fake_transport):
    return NotificationDispatcher(PushConfig(enabled=True), transport=fake_transport)


# ══════════════════════════════════════════════════════════════════════════
# API Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(db_engine):
    """
    HTTPX AsyncClient talking to the FastAPI app through ASGITransport.

    The lifespan is not run: the app keeps the push-disabled dispatcher that
    create_app() installs.
    """
    from repairdesk.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def admin_headers():
    token = create_access_token(1, ROLE_ADMIN, "admin@it13.com")
    return {"Authorization": f"Bearer {token}"}
