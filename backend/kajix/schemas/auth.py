"""Pydantic schemas for authentication endpoints."""

import uuid
from datetime import datetime
from typing import Self

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator
from pydantic.alias_generators import to_camel


class LoginRequest(BaseModel):
    """Request body for POST /auth/login.

    ``email`` also accepts a username.
    """

    model_config = ConfigDict(extra="forbid")

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=128)


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""

    model_config = ConfigDict(
        extra="forbid", alias_generator=to_camel, populate_by_name=True
    )

    email: EmailStr
    username: str = Field(min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.-]+$")
    password: str = Field(min_length=1, max_length=128)
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)


class RefreshRequest(BaseModel):
    """Request body for POST /auth/refresh and POST /auth/logout."""

    model_config = ConfigDict(extra="forbid")

    refresh_token: str = Field(min_length=1)


class UserUpdateRequest(BaseModel):
    """Request body for PATCH /users/{id}.

    Only fields present in the body are changed. A password change must
    carry the current password.
    """

    model_config = ConfigDict(
        extra="forbid", alias_generator=to_camel, populate_by_name=True
    )

    email: EmailStr | None = None
    username: str | None = Field(
        None, min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.-]+$"
    )
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    password: str | None = Field(None, min_length=1, max_length=128)
    current_password: str | None = Field(None, min_length=1, max_length=128)

    @model_validator(mode="after")
    def _check_fields(self) -> Self:
        for field in ("email", "username", "password"):
            if field in self.model_fields_set and getattr(self, field) is None:
                msg = f"{field} cannot be null"
                raise ValueError(msg)
        if self.password is not None and self.current_password is None:
            msg = "currentPassword is required to change the password"
            raise ValueError(msg)
        return self

    def profile_changes(self) -> dict[str, str | None]:
        """Profile fields explicitly set in the body, password excluded."""
        return {
            field: getattr(self, field)
            for field in ("email", "username", "first_name", "last_name")
            if field in self.model_fields_set
        }


class UserRead(BaseModel):
    """Public view of a user. Never carries password material."""

    model_config = ConfigDict(
        from_attributes=True, alias_generator=to_camel, populate_by_name=True
    )

    id: uuid.UUID
    email: str
    username: str
    first_name: str | None = None
    last_name: str | None = None
    created_at: datetime
    updated_at: datetime


class TokenPairResponse(BaseModel):
    """Response for login and refresh."""

    access_token: str
    refresh_token: str
    user: UserRead
