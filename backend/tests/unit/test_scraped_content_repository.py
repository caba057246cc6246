"""Tests for ScrapedContentRepository.

Runs against the test database; skipped when PostgreSQL is unavailable.
"""

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from kajix.repositories.scraped_content_repository import ScrapedContentRepository

_SEED = "https://example.com"


async def _store(db: AsyncSession, url: str, *, base_url: str = _SEED, html="<p/>"):
    return await ScrapedContentRepository.upsert(
        db,
        base_url=base_url,
        scraped_url=url,
        html_content=html,
        markdown_content="md",
    )


class TestUpsert:
    """Test ScrapedContentRepository.upsert()."""

    async def test_insert(self, db_session: AsyncSession):
        row = await _store(db_session, "https://example.com/a")

        assert row.id is not None
        assert row.base_url == _SEED
        assert row.markdown_content == "md"
        assert row.last_scraped_at is not None

    async def test_rescrape_updates_in_place(self, db_session: AsyncSession):
        """Same URL keeps id and created_at; content and timestamps move."""
        first = await _store(db_session, "https://example.com/a", html="<p>old</p>")
        first_id = first.id
        first_created_at = first.created_at
        first_updated_at = first.updated_at
        first_scraped_at = first.last_scraped_at

        second = await ScrapedContentRepository.upsert(
            db_session,
            base_url="https://example.com/other-seed",
            scraped_url="https://example.com/a",
            html_content="<p>new</p>",
            markdown_content=None,
        )

        assert second.id == first_id
        assert second.created_at == first_created_at
        assert second.html_content == "<p>new</p>"
        assert second.markdown_content is None
        assert second.base_url == "https://example.com/other-seed"
        assert second.updated_at > first_updated_at
        assert second.last_scraped_at > first_scraped_at

    async def test_one_row_per_url(self, db_session: AsyncSession):
        await _store(db_session, "https://example.com/a")
        await _store(db_session, "https://example.com/a")

        _, total = await ScrapedContentRepository.list_paginated(db_session)

        assert total == 1


class TestReads:
    async def test_get_by_id_and_url(self, db_session: AsyncSession):
        row = await _store(db_session, "https://example.com/a")

        found = await ScrapedContentRepository.get_by_id(db_session, row.id)
        assert found is not None
        assert found.id == row.id
        by_url = await ScrapedContentRepository.get_by_url(
            db_session, "https://example.com/a"
        )
        assert by_url is not None
        assert by_url.id == row.id

    async def test_get_missing(self, db_session: AsyncSession):
        assert await ScrapedContentRepository.get_by_id(db_session, uuid.uuid4()) is None

    async def test_list_newest_first(self, db_session: AsyncSession):
        for path in ("a", "b", "c"):
            await _store(db_session, f"https://example.com/{path}")

        rows, total = await ScrapedContentRepository.list_paginated(db_session)

        assert total == 3
        assert [r.scraped_url for r in rows] == [
            "https://example.com/c",
            "https://example.com/b",
            "https://example.com/a",
        ]

    async def test_list_filters_by_base_url_and_pages(self, db_session: AsyncSession):
        for path in ("a", "b", "c"):
            await _store(db_session, f"https://example.com/{path}")
        await _store(db_session, "https://other.org/", base_url="https://other.org")

        rows, total = await ScrapedContentRepository.list_paginated(
            db_session, base_url=_SEED, offset=1, limit=1
        )

        assert total == 3
        assert [r.scraped_url for r in rows] == ["https://example.com/b"]
