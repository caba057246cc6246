"""Async engine, session factory and the per-request session dependency.

Request handlers get one session from ``get_db``: it commits after the
handler returns and rolls back if it raises. A scrape's page upserts and a
login's token rows therefore land together or not at all.

Sessions check out a connection at their first statement, not when they are
opened, so a scrape holds none while Playwright navigates before the first
upsert.

``async_session_factory`` is also used directly for writes that must
survive a failing request, such as flagging an expired token before the
401 is returned.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from kajix.core.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.environment == "development",
    pool_size=settings.database_pool_size,
    max_overflow=settings.database_max_overflow,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; commits on success, rolls back on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
