"""Shared fixtures for the test suite.

Database fixtures run against a separate ``<name>_test`` PostgreSQL database
and skip when no server is reachable. Everything else runs in-process.
"""

import socket
import uuid
from collections.abc import AsyncGenerator, Iterator
from datetime import UTC, datetime

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from kajix.core.auth import hash_password
from kajix.core.config import settings
from kajix.models import Base, User

# Use separate test database
TEST_DATABASE_URL = settings.database_url.replace(
    settings.database_name, f"{settings.database_name}_test"
)

TEST_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
TEST_PASSWORD = "correct-horse-1"  # nosec B105

# Hashing at cost 12 is slow; hash once per session.
_TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


def _is_postgres_available() -> bool:
    """Check if PostgreSQL is accepting connections.

    Returns:
        True if PostgreSQL is reachable on port 5432, False otherwise.
    """
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(1)
        result = sock.connect_ex((settings.database_host, settings.database_port))
        sock.close()
        return result == 0
    except OSError:
        return False


# Check once at module load time
_POSTGRES_AVAILABLE = _is_postgres_available()


def skip_if_no_postgres() -> None:
    """Skip test if PostgreSQL is not available."""
    if not _POSTGRES_AVAILABLE:
        pytest.skip(
            "PostgreSQL not available on port 5432. "
            "Start database with: docker compose up -d"
        )


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine with a fresh schema.

    Skips test if PostgreSQL is not available.
    """
    skip_if_no_postgres()

    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

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


def make_user(
    *,
    user_id: uuid.UUID = TEST_USER_ID,
    email: str = "test@example.com",
    username: str = "tester",
) -> User:
    """Build a detached User with TEST_PASSWORD as its password."""
    now = datetime.now(UTC)
    return User(
        id=user_id,
        email=email,
        username=username,
        first_name="Test",
        last_name="User",
        password_hash=_TEST_PASSWORD_HASH,
        created_at=now,
        updated_at=now,
    )


@pytest.fixture
def test_user() -> User:
    """Detached user for tests that do not touch the database."""
    return make_user()


@pytest_asyncio.fixture
async def db_user(db_session: AsyncSession) -> User:
    """User persisted in the test database."""
    user = make_user()
    db_session.add(user)
    await db_session.flush()
    await db_session.refresh(user)
    return user


@pytest.fixture(autouse=True)
def disable_rate_limiting() -> Iterator[None]:
    """Disable rate limiting during tests.

    Rate limiting is tested separately; disable for other tests to avoid
    flaky failures from rate limit triggers.
    """
    from kajix.core.rate_limiting import limiter

    original_enabled = limiter.enabled
    limiter.enabled = False

    yield

    limiter.enabled = original_enabled
