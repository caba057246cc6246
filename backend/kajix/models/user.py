"""User model - credential record for password authentication."""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kajix.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from kajix.models.temporary_token import TemporaryToken

_DEFAULT_UUID = text("gen_random_uuid()")


class User(Base, TimestampMixin):
    """User account for authentication.

    Created at registration, read at login. The password hash is only ever
    replaced by a password change.

    Attributes:
        id: UUID primary key.
        email: Unique email address (stored lowercase).
        username: Unique handle, usable in place of the email at login.
        first_name: Optional given name.
        last_name: Optional family name.
        password_hash: bcrypt hash (salt embedded).
        created_at: Account creation timestamp (from TimestampMixin).
        updated_at: Last modification timestamp (from TimestampMixin).
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=_DEFAULT_UUID,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    username: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
    )
    first_name: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )
    last_name: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    tokens: Mapped[list["TemporaryToken"]] = relationship(
        "TemporaryToken",
        back_populates="user",
        cascade="all, delete-orphan",
    )
