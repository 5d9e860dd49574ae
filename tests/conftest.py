"""
Top-level pytest configuration.

Provides:
  - A test SQLite database (aiosqlite) with all tables created fresh per test.
  - A db_session fixture that rolls back each test in a transaction.
  - A session_factory fixture over a file-backed database, for tests that
    need several sessions committing independently.
  - An async_client fixture wired to the FastAPI app with ARQ mocked out and
    document storage pointed at a temporary directory.
  - Seeded applicant, reviewer, admin and published job fixtures plus their
    auth headers.
"""

from __future__ import annotations

import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator
from unittest.mock import AsyncMock

# ---------------------------------------------------------------------------
# Environment must be set BEFORE any app module is imported so that
# pydantic-settings picks up the test values.
# ---------------------------------------------------------------------------
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("POSTGRES_HOST", "localhost")
os.environ.setdefault("POSTGRES_USER", "test")
os.environ.setdefault("POSTGRES_PASSWORD", "test")
os.environ.setdefault("POSTGRES_DB", "test")
os.environ.setdefault("JWT_SECRET", "test-secret-key-that-is-long-enough-32c")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import JSON
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

TEST_DATABASE_URL = os.getenv(
    "TEST_DATABASE_URL",
    "sqlite+aiosqlite:///:memory:",
)

# Sections configured on the default test job
DEFAULT_REQUIRED_SECTIONS = [
    {"section_type": "personal", "is_mandatory": True, "requires_pdf": False, "min_items": None},
    {"section_type": "education", "is_mandatory": True, "requires_pdf": False, "min_items": 1},
    {"section_type": "sponsored_projects", "is_mandatory": False, "requires_pdf": False, "min_items": None},
    {"section_type": "consultancy_projects", "is_mandatory": False, "requires_pdf": False, "min_items": None},
    {"section_type": "phd_supervision", "is_mandatory": False, "requires_pdf": False, "min_items": None},
    {"section_type": "publications_journal", "is_mandatory": False, "requires_pdf": False, "min_items": None},
    {"section_type": "patents", "is_mandatory": False, "requires_pdf": False, "min_items": None},
    {"section_type": "credit_points", "is_mandatory": False, "requires_pdf": False, "min_items": None},
    {"section_type": "referees", "is_mandatory": True, "requires_pdf": False, "min_items": None},
    {"section_type": "photo", "is_mandatory": False, "requires_pdf": False, "min_items": None},
    {"section_type": "final_documents", "is_mandatory": False, "requires_pdf": False, "min_items": None},
    {"section_type": "declaration", "is_mandatory": True, "requires_pdf": False, "min_items": None},
]


def _patch_postgres_types_for_sqlite(metadata) -> None:
    """
    Replace PostgreSQL-specific column types that SQLite cannot compile.

    SQLAlchemy's UUID(as_uuid=True) and JSON both render fine on SQLite, but
    JSONB (from sqlalchemy.dialects.postgresql) does not.  Walk the metadata
    before DDL generation and swap any JSONB column for a plain JSON column.
    """
    from sqlalchemy.dialects.postgresql import JSONB

    for table in metadata.tables.values():
        for col in table.columns:
            if isinstance(col.type, JSONB):
                col.type = JSON()


# ---------------------------------------------------------------------------
# Per-test engine (SQLite in-memory, shared via StaticPool so all connections
# see the same data). Creating the schema is cheap and keeps the engine on the
# same event loop as the test.
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def engine():
    """Create the SQLite test engine and all tables."""
    # Import Base here (after env vars are set) to ensure models register.
    from app.core.database import Base

    # Force all model modules to load so their tables register on Base.metadata
    import app.models.user          # noqa: F401
    import app.models.job           # noqa: F401
    import app.models.application   # noqa: F401
    import app.models.audit_log     # noqa: F401

    # Swap JSONB → JSON so SQLite can render the DDL
    _patch_postgres_types_for_sqlite(Base.metadata)

    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


# ---------------------------------------------------------------------------
# Per-test DB session that rolls back after each test for isolation.
#
# Strategy: wrap each test in a single outer transaction that is rolled back.
# - The outer connection begins a real transaction.
# - A custom NonCommittingSession is used: commit() is overridden to only
#   flush, so service and endpoint code that calls session.commit() never
#   actually commits to the database.
# - At teardown the outer transaction is rolled back, erasing all writes.
#
# Integrity errors roll the session back, which ends the outer transaction;
# code paths that rely on a constraint violation are covered with mocked
# repositories instead.
# ---------------------------------------------------------------------------
class _NonCommittingSession(AsyncSession):
    """AsyncSession subclass where commit() becomes flush()."""

    async def commit(self) -> None:  # type: ignore[override]
        await self.flush()


@pytest_asyncio.fixture
async def db_session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a per-test database session that is fully rolled back on teardown."""
    async with engine.connect() as conn:
        await conn.begin()  # outer real transaction

        session = _NonCommittingSession(
            bind=conn,
            expire_on_commit=False,
        )

        try:
            yield session
        finally:
            await session.close()
            await conn.rollback()


# ---------------------------------------------------------------------------
# File-backed database for tests that need several independent sessions.
# Sessions from this factory commit for real; the file lives in tmp_path.
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """Session factory over a fresh file-backed SQLite database."""
    from app.core.database import Base

    import app.models.user          # noqa: F401
    import app.models.job           # noqa: F401
    import app.models.application   # noqa: F401
    import app.models.audit_log     # noqa: F401

    _patch_postgres_types_for_sqlite(Base.metadata)

    file_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'sessions.db'}")
    async with file_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(file_engine, expire_on_commit=False)
    await file_engine.dispose()


# ---------------------------------------------------------------------------
# ARQ task queue mock: prevents tests from trying to reach Redis for job queuing.
# ---------------------------------------------------------------------------
@pytest.fixture(autouse=True)
def mock_arq(monkeypatch) -> AsyncMock:
    """Stub out the ARQ task queue; the returned pool records enqueued jobs."""
    fake_arq = AsyncMock()
    fake_arq.enqueue_job = AsyncMock(return_value=None)

    async def _get_arq_pool():
        return fake_arq

    monkeypatch.setattr("app.core.arq.get_arq_pool", _get_arq_pool)
    return fake_arq


# ---------------------------------------------------------------------------
# Document storage rooted in a per-test temporary directory.
# ---------------------------------------------------------------------------
@pytest.fixture(autouse=True)
def local_storage(tmp_path, monkeypatch):
    """Point the shared document storage at tmp_path."""
    from app.services.application_service import application_service
    from app.services.storage_service import LocalDocumentStorage

    storage = LocalDocumentStorage(base_dir=tmp_path, base_url="/media")
    monkeypatch.setattr(application_service, "storage", storage)
    return storage


# ---------------------------------------------------------------------------
# Override FastAPI database dependency to use the test session.
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Provide an httpx AsyncClient backed by the FastAPI app.

    The app's get_db dependency is overridden to yield the test session so all
    requests in a test share the same transactional session and thus see any
    data seeded in that test.
    """
    from app.core.database import get_db
    from app.main import app

    async def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://testserver",
    ) as client:
        yield client

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Seeded fixtures
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def test_applicant(db_session: AsyncSession):
    """Persisted applicant user."""
    from app.models.user import User, UserRole

    user = User(
        id=uuid.uuid4(),
        email="candidate@example.com",
        full_name="Asha Candidate",
        role=UserRole.APPLICANT,
    )
    db_session.add(user)
    await db_session.flush()
    return user


@pytest_asyncio.fixture
async def other_applicant(db_session: AsyncSession):
    """A second applicant, for ownership checks."""
    from app.models.user import User, UserRole

    user = User(
        id=uuid.uuid4(),
        email="other@example.com",
        full_name="Other Candidate",
        role=UserRole.APPLICANT,
    )
    db_session.add(user)
    await db_session.flush()
    return user


@pytest_asyncio.fixture
async def test_reviewer(db_session: AsyncSession):
    """Persisted reviewer user."""
    from app.models.user import User, UserRole

    user = User(
        id=uuid.uuid4(),
        email="reviewer@institute.edu",
        full_name="Review Panel",
        role=UserRole.REVIEWER,
    )
    db_session.add(user)
    await db_session.flush()
    return user


@pytest_asyncio.fixture
async def test_admin(db_session: AsyncSession):
    """Persisted admin user."""
    from app.models.user import User, UserRole

    user = User(
        id=uuid.uuid4(),
        email="admin@institute.edu",
        full_name="Portal Admin",
        role=UserRole.ADMIN,
    )
    db_session.add(user)
    await db_session.flush()
    return user


@pytest_asyncio.fixture
async def test_job(db_session: AsyncSession):
    """Published job with an open deadline and the default section config."""
    from app.models.job import Job

    job = Job(
        id=uuid.uuid4(),
        title="Assistant Professor, Computer Science",
        advertisement_no="ADV-2026-07",
        department="Computer Science",
        status="published",
        application_end_date=datetime.now(timezone.utc) + timedelta(days=30),
        required_sections=DEFAULT_REQUIRED_SECTIONS,
    )
    db_session.add(job)
    await db_session.flush()
    return job


def _auth_headers(user) -> dict[str, str]:
    from app.core.security import create_access_token
    token = create_access_token(data={"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def applicant_headers(test_applicant) -> dict[str, str]:
    """Authorization headers for the applicant."""
    return _auth_headers(test_applicant)


@pytest.fixture
def other_applicant_headers(other_applicant) -> dict[str, str]:
    return _auth_headers(other_applicant)


@pytest.fixture
def reviewer_headers(test_reviewer) -> dict[str, str]:
    """Authorization headers for the reviewer."""
    return _auth_headers(test_reviewer)


@pytest.fixture
def admin_headers(test_admin) -> dict[str, str]:
    """Authorization headers for the admin."""
    return _auth_headers(test_admin)
