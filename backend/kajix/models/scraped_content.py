"""Scraped content model - one row per distinct crawled URL."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, Text, func, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from kajix.models.base import Base, TimestampMixin


class ScrapedContent(Base, TimestampMixin):
    """Stored HTML (and Markdown rendering) of a crawled page.

    Upserted on ``scraped_url``: a repeat crawl refreshes the content,
    ``last_scraped_at`` and ``updated_at`` while ``id`` and ``created_at``
    are preserved.

    Attributes:
        id: UUID primary key.
        base_url: Seed URL of the crawl that last stored this page.
        scraped_url: URL of the page itself (unique).
        html_content: Full outer HTML.
        markdown_content: Markdown rendering, None if conversion failed.
        last_scraped_at: When the page was last crawled.
    """

    __tablename__ = "scraped_contents"
    __table_args__ = (
        Index("ix_scraped_contents_base_url", "base_url"),
        Index("ix_scraped_contents_last_scraped_at", "last_scraped_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    base_url: Mapped[str] = mapped_column(
        Text(),
        nullable=False,
    )
    scraped_url: Mapped[str] = mapped_column(
        Text(),
        unique=True,
        nullable=False,
    )
    html_content: Mapped[str] = mapped_column(
        Text(),
        nullable=False,
    )
    markdown_content: Mapped[str | None] = mapped_column(
        Text(),
        nullable=True,
    )
    last_scraped_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
