"""Temporary token model - durable record of issued bearer tokens.

Rows are never deleted in normal operation: logout, rotation and revocation
flip flags so the table doubles as an audit trail. The plain token is never
stored, only its SHA-256 hash.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, func, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kajix.models.base import Base

if TYPE_CHECKING:
    from kajix.models.user import User


class TemporaryToken(Base):
    """Issued access or refresh token.

    A row authenticates only while ``is_used`` and ``is_expired`` are false,
    ``revoked_at`` is null and ``expires_at`` is in the future.

    Attributes:
        id: UUID primary key.
        kind: ``ACCESS_TOKEN`` or ``REFRESH_TOKEN``.
        user_id: Owner of the token.
        subject_email: Owner email at issuance time.
        token_hash: SHA-256 hex digest of the token value.
        expires_at: Natural expiry.
        is_used: Consumed by rotation or logout.
        is_expired: Expiry observed at validation time, or forced at logout.
        revoked_at: Set when all of the user's tokens were revoked.
        issued_at: Issuance timestamp.
    """

    __tablename__ = "temporary_tokens"
    __table_args__ = (
        Index("ix_temporary_tokens_user_id_kind", "user_id", "kind"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    kind: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    subject_email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    token_hash: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    is_used: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
        default=False,
    )
    is_expired: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
        default=False,
    )
    revoked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    issued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    user: Mapped["User"] = relationship("User", back_populates="tokens")
