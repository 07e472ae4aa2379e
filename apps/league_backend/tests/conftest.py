"""
Shared pytest configuration for league_backend tests.

Defaults to a throwaway SQLite file through aiosqlite so the suite runs
without a database server; point TEST_DATABASE_URL at a PostgreSQL test
database to run the same tests against the production dialect.

SAFETY: This module REFUSES to run against any database whose name does not
contain the substring "test". This prevents accidental drops of the
development or production database when environment variables are missing
or misconfigured.
"""

import os

# Must be set before league_backend.config is imported anywhere
os.environ.setdefault("ENV", "test")
os.environ.setdefault(
    "TEST_DATABASE_URL", "sqlite+aiosqlite:///./league_backend_test.db"
)
os.environ.setdefault("DATABASE_URL", os.environ["TEST_DATABASE_URL"])

import asyncio  # noqa: E402

import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool  # noqa: E402

from league_backend.database.db import Base, enable_sqlite_foreign_keys  # noqa: E402
from league_backend.database.models import Role, UserRole  # noqa: E402
from league_backend.services import league_service, profile_service  # noqa: E402


def _resolve_test_database_url() -> str:
    """Return the test database URL, refusing anything not named like a test DB."""
    url = os.environ["TEST_DATABASE_URL"]

    # ── Safety gate: database name MUST contain "test" ──────────────────
    db_name = url.rsplit("/", 1)[-1].split("?")[0]
    if "test" not in db_name.lower():
        raise RuntimeError(
            f"\n{'=' * 70}\n"
            f"  SAFETY: Refusing to run tests against database '{db_name}'.\n"
            f"  The database name must contain 'test' to prevent accidental\n"
            f"  data loss in development or production databases.\n\n"
            f"  Resolved URL: {url}\n"
            f"{'=' * 70}"
        )
    return url


TEST_DATABASE_URL = _resolve_test_database_url()


def _session_maker(engine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Fresh schema per test on a NullPool engine."""
    # NullPool gives every session its own connection, which the
    # concurrent redemption tests rely on
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
    enable_sqlite_foreign_keys(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    from league_backend.database import db

    original_async_session_local = db.AsyncSessionLocal
    db.AsyncSessionLocal = _session_maker(engine)

    yield engine

    db.AsyncSessionLocal = original_async_session_local

    try:
        await asyncio.sleep(0.05)  # let in-flight connections finish
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(test_engine):
    """Session factory for tests that need several independent sessions."""
    return _session_maker(test_engine)


@pytest_asyncio.fixture
async def db_session(session_maker):
    """A session on the test database, closed after the test."""
    async with session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()


# ============================================================================
# Domain fixtures
# ============================================================================


@pytest_asyncio.fixture
async def commissioner(db_session):
    """Identity 'user-A' with a profile."""
    await profile_service.ensure_profile(
        db_session, "user-A", "commish@example.com", full_name="Casey Commish"
    )
    return "user-A"


@pytest_asyncio.fixture
async def player(db_session):
    """Identity 'user-B' with a profile."""
    await profile_service.ensure_profile(
        db_session, "user-B", "player@example.com", full_name="Pat Player"
    )
    return "user-B"


@pytest_asyncio.fixture
async def league(db_session, commissioner):
    """League 'Spring 2025' bootstrapped by user-A."""
    return await league_service.create_league_with_commissioner(
        db_session, commissioner, "Spring 2025", 2025
    )


@pytest_asyncio.fixture
async def team(db_session, league):
    """Team 'Tigers' in the league."""
    return await league_service.create_team(db_session, league.id, "Tigers", color="orange")


@pytest_asyncio.fixture
async def grant_role(db_session):
    """Insert a role grant directly, bypassing signup codes."""

    async def _grant(user_id, league_id, role: Role, team_id=None):
        db_session.add(
            UserRole(user_id=user_id, league_id=league_id, team_id=team_id, role=role.value)
        )
        await db_session.commit()

    return _grant
