"""Web scraping orchestration.

Pipeline for one scrape request:
1. Normalize and validate the seed URL.
2. Crawl the seed's hostname (WebCrawler).
3. Convert each page's HTML to Markdown; a failed conversion leaves the
   page without Markdown and never aborts the request.
4. Upsert every same-origin page keyed on its URL.

Also serves reads of previously stored pages.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from kajix.core.errors import BadRequestError, InternalError
from kajix.core.pagination import PaginationParams
from kajix.models.scraped_content import ScrapedContent
from kajix.repositories.scraped_content_repository import ScrapedContentRepository
from kajix.services.html_markdown import HtmlMarkdownConverter
from kajix.services.web_crawler import PageContent, WebCrawler, normalize_seed_url

logger = logging.getLogger(__name__)


@dataclass
class ScrapeResult:
    """Outcome of a scrape request."""

    source_url: str
    content: list[PageContent]
    scraped_at: datetime


class WebScrapingService:
    """Crawls sites and manages stored page content.

    Args:
        db: Async database session.
        crawler: Crawler bound to a browser.
        converter: HTML to Markdown converter.
    """

    def __init__(
        self,
        db: AsyncSession,
        crawler: WebCrawler,
        converter: HtmlMarkdownConverter,
    ) -> None:
        self._db = db
        self._crawler = crawler
        self._converter = converter

    async def scrape(self, raw_url: str) -> ScrapeResult:
        """Crawl a site from its seed URL and store every page found.

        Args:
            raw_url: Seed URL; ``https://`` is assumed when no scheme is given.

        Returns:
            ScrapeResult with the normalized seed and page contents.

        Raises:
            BadRequestError: Invalid URL, or the seed page failed to load.
            RequestTimeoutError: The seed page navigation timed out.
            InternalError: The pages could not be stored.
        """
        seed_url = normalize_seed_url(raw_url)
        logger.info("Scraping content from %s", seed_url)

        pages = await self._crawler.crawl(seed_url)
        for page in pages:
            page.markdown = await self._to_markdown(page)

        try:
            for page in pages:
                if page.is_external:
                    continue
                await ScrapedContentRepository.upsert(
                    self._db,
                    base_url=seed_url,
                    scraped_url=page.url,
                    html_content=page.html,
                    markdown_content=page.markdown,
                )
        except SQLAlchemyError as exc:
            logger.exception("Failed to store scraped content for %s", seed_url)
            raise InternalError() from exc

        return ScrapeResult(
            source_url=seed_url,
            content=pages,
            scraped_at=datetime.now(UTC),
        )

    async def _to_markdown(self, page: PageContent) -> str | None:
        try:
            return await self._converter.convert_async(page.html)
        except Exception as exc:
            logger.warning("Failed to convert HTML to Markdown for %s: %s", page.url, exc)
            return None

    async def list_content(
        self,
        pagination: PaginationParams,
        *,
        base_url: str | None = None,
    ) -> tuple[list[ScrapedContent], int]:
        """Page through stored content, most recently scraped first.

        Returns:
            Tuple of (rows, total matching rows).
        """
        try:
            return await ScrapedContentRepository.list_paginated(
                self._db,
                base_url=base_url,
                offset=pagination.offset,
                limit=pagination.limit,
            )
        except SQLAlchemyError as exc:
            logger.exception("Failed to list scraped content")
            raise InternalError() from exc

    async def get_content(self, content_id: str) -> ScrapedContent:
        """Fetch one stored page.

        Raises:
            BadRequestError: If the id is malformed or no such record exists.
        """
        try:
            parsed_id = uuid.UUID(content_id)
        except ValueError as exc:
            raise BadRequestError(f"Content with ID {content_id} not found") from exc

        try:
            content = await ScrapedContentRepository.get_by_id(self._db, parsed_id)
        except SQLAlchemyError as exc:
            logger.exception("Failed to load scraped content %s", content_id)
            raise InternalError() from exc

        if content is None:
            raise BadRequestError(f"Content with ID {content_id} not found")
        return content
