"""Repository for ScrapedContent operations.

Pages are upserted on their URL with PostgreSQL ``INSERT ... ON CONFLICT``
so two crawls of the same page race safely: the last writer's content wins
and only one row ever exists per URL.
"""

import uuid

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from kajix.models.scraped_content import ScrapedContent


class ScrapedContentRepository:
    """Stateless repository for ScrapedContent table operations.

    All methods are static; no instance state.
    """

    @staticmethod
    async def upsert(
        db: AsyncSession,
        *,
        base_url: str,
        scraped_url: str,
        html_content: str,
        markdown_content: str | None,
    ) -> ScrapedContent:
        """Insert a page or refresh the existing row for the same URL.

        Args:
            db: Async database session.
            base_url: Seed URL of the crawl.
            scraped_url: URL of the page.
            html_content: Full outer HTML.
            markdown_content: Markdown rendering, or None.

        Returns:
            The stored ScrapedContent (id and created_at preserved on update).
        """
        now = func.clock_timestamp()
        stmt = (
            insert(ScrapedContent)
            .values(
                base_url=base_url,
                scraped_url=scraped_url,
                html_content=html_content,
                markdown_content=markdown_content,
                last_scraped_at=now,
            )
            .on_conflict_do_update(
                index_elements=[ScrapedContent.scraped_url],
                set_={
                    "base_url": base_url,
                    "html_content": html_content,
                    "markdown_content": markdown_content,
                    "last_scraped_at": now,
                    "updated_at": now,
                },
            )
            .returning(ScrapedContent)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one()

    @staticmethod
    async def get_by_id(
        db: AsyncSession, content_id: uuid.UUID
    ) -> ScrapedContent | None:
        """Fetch a stored page by primary key.

        Args:
            db: Async database session.
            content_id: UUID primary key.

        Returns:
            ScrapedContent if found, None otherwise.
        """
        return await db.get(ScrapedContent, content_id)

    @staticmethod
    async def get_by_url(db: AsyncSession, scraped_url: str) -> ScrapedContent | None:
        """Fetch a stored page by its URL.

        Args:
            db: Async database session.
            scraped_url: URL of the page.

        Returns:
            ScrapedContent if found, None otherwise.
        """
        stmt = select(ScrapedContent).where(ScrapedContent.scraped_url == scraped_url)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_paginated(
        db: AsyncSession,
        *,
        base_url: str | None = None,
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[list[ScrapedContent], int]:
        """List stored pages, most recently scraped first.

        Args:
            db: Async database session.
            base_url: Only return pages stored by crawls of this seed.
            offset: Number of rows to skip.
            limit: Maximum number of rows to return.

        Returns:
            Tuple of (page of rows, total matching rows).
        """
        filters = []
        if base_url:
            filters.append(ScrapedContent.base_url == base_url)

        count_stmt = select(func.count()).select_from(ScrapedContent).where(*filters)
        total = (await db.execute(count_stmt)).scalar_one()

        stmt = (
            select(ScrapedContent)
            .where(*filters)
            .order_by(ScrapedContent.last_scraped_at.desc(), ScrapedContent.id)
            .offset(offset)
            .limit(limit)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all()), total
