"""Repository for User CRUD operations."""

import uuid

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from kajix.models.user import User

# Profile fields a user may change through update(). The password hash has
# its own method so it is never mass-assigned.
_UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {
        "email",
        "username",
        "first_name",
        "last_name",
    }
)


class UserRepository:
    """Stateless repository for User table operations.

    All methods are static; no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: uuid.UUID) -> User | None:
        """Fetch a user by primary key.

        Args:
            db: Async database session.
            user_id: UUID primary key.

        Returns:
            User if found, None otherwise.
        """
        return await db.get(User, user_id)

    @staticmethod
    async def get_by_identifier(db: AsyncSession, identifier: str) -> User | None:
        """Fetch a user by email (case-insensitive) or exact username.

        Args:
            db: Async database session.
            identifier: Email address or username.

        Returns:
            User if found, None otherwise.
        """
        stmt = select(User).where(
            or_(User.email == identifier.lower(), User.username == identifier)
        )
        result = await db.execute(stmt)
        return result.scalars().first()

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        username: str,
        password_hash: str,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> User:
        """Create a new user.

        Email is normalized to lowercase before storage.

        Args:
            db: Async database session.
            email: User email address.
            username: Unique handle.
            password_hash: bcrypt hash.
            first_name: Optional given name.
            last_name: Optional family name.

        Returns:
            Created User with database-generated fields populated.

        Raises:
            sqlalchemy.exc.IntegrityError: If email or username already exists.
        """
        user = User(
            email=email.lower(),
            username=username,
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
        )
        db.add(user)
        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def update(
        db: AsyncSession,
        user_id: uuid.UUID,
        **kwargs: str | None,
    ) -> User | None:
        """Update profile fields.

        Only fields in _UPDATABLE_FIELDS are allowed. Unknown field names
        raise ValueError. Email is normalized to lowercase.

        Args:
            db: Async database session.
            user_id: UUID of the user to update.
            **kwargs: Field names and values to update.

        Returns:
            Updated User if found, None if user does not exist.

        Raises:
            ValueError: If an unknown field name is passed.
            sqlalchemy.exc.IntegrityError: If the new email or username is taken.
        """
        unknown = set(kwargs) - _UPDATABLE_FIELDS
        if unknown:
            msg = f"Unknown fields: {', '.join(sorted(unknown))}"
            raise ValueError(msg)

        user = await db.get(User, user_id)
        if user is None:
            return None

        for field, value in kwargs.items():
            if field == "email" and value is not None:
                value = value.lower()
            setattr(user, field, value)

        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def set_password_hash(
        db: AsyncSession, user_id: uuid.UUID, password_hash: str
    ) -> User | None:
        """Replace a user's password hash.

        Separated from update() so the credential only changes on an
        explicit password change.

        Args:
            db: Async database session.
            user_id: UUID of the user.
            password_hash: New bcrypt hash.

        Returns:
            Updated User if found, None if user does not exist.
        """
        user = await db.get(User, user_id)
        if user is None:
            return None
        user.password_hash = password_hash
        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def delete(db: AsyncSession, user_id: uuid.UUID) -> bool:
        """Delete a user. Their tokens go with them (ON DELETE CASCADE).

        Args:
            db: Async database session.
            user_id: UUID of the user.

        Returns:
            True if a row was deleted, False if the user did not exist.
        """
        result = await db.execute(delete(User).where(User.id == user_id))
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count > 0
