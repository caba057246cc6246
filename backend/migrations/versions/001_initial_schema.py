"""Create users, temporary_tokens and scraped_contents.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

- users: credential records, unique email and username
- temporary_tokens: issued access/refresh tokens keyed by SHA-256 hash
- scraped_contents: crawled pages, unique on scraped_url for upserts
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    # pgcrypto provides gen_random_uuid() for UUID primary keys
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    op.create_table(
        "users",
        sa.Column(
            "id",
            UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            primary_key=True,
        ),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("username", sa.String(50), unique=True, nullable=False),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "temporary_tokens",
        sa.Column(
            "id",
            UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            primary_key=True,
        ),
        sa.Column("kind", sa.String(30), nullable=False),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("subject_email", sa.String(255), nullable=False),
        sa.Column("token_hash", sa.String(64), unique=True, nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "is_used", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        sa.Column(
            "is_expired", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "issued_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index(
        "ix_temporary_tokens_user_id_kind", "temporary_tokens", ["user_id", "kind"]
    )

    op.create_table(
        "scraped_contents",
        sa.Column(
            "id",
            UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            primary_key=True,
        ),
        sa.Column("base_url", sa.Text(), nullable=False),
        sa.Column("scraped_url", sa.Text(), unique=True, nullable=False),
        sa.Column("html_content", sa.Text(), nullable=False),
        sa.Column("markdown_content", sa.Text(), nullable=True),
        sa.Column(
            "last_scraped_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        *_timestamps(),
    )
    op.create_index("ix_scraped_contents_base_url", "scraped_contents", ["base_url"])
    op.create_index(
        "ix_scraped_contents_last_scraped_at", "scraped_contents", ["last_scraped_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_scraped_contents_last_scraped_at", table_name="scraped_contents")
    op.drop_index("ix_scraped_contents_base_url", table_name="scraped_contents")
    op.drop_table("scraped_contents")
    op.drop_index("ix_temporary_tokens_user_id_kind", table_name="temporary_tokens")
    op.drop_table("temporary_tokens")
    op.drop_table("users")
