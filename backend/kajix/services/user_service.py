"""User self-management: read, update profile, change password, delete.

Every operation acts on the caller's own record. Any other user id is
reported as not found.

A password change re-hashes the new password and revokes every live token
of the user, so all sessions (including the caller's) must log in again.
"""

import logging
import uuid

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from kajix.core.auth import hash_password, validate_password_strength, verify_password
from kajix.core.errors import (
    ConflictError,
    InternalError,
    NotFoundError,
    UnauthorizedError,
)
from kajix.models.user import User
from kajix.repositories.user_repository import UserRepository
from kajix.services.auth_service import AuthenticatedUser
from kajix.services.token_store import TokenStore

logger = logging.getLogger(__name__)


class UserService:
    """Operations on the authenticated caller's user record.

    Args:
        db: Async database session.
        token_store: Store whose tokens are revoked on password change and
            account deletion.
    """

    def __init__(self, db: AsyncSession, token_store: TokenStore) -> None:
        self._db = db
        self._store = token_store

    def _check_owner(self, identity: AuthenticatedUser, user_id: uuid.UUID) -> None:
        if identity.user_id != user_id:
            raise NotFoundError("User", str(user_id))

    async def get(self, identity: AuthenticatedUser, user_id: uuid.UUID) -> User:
        """Fetch the caller's record.

        Raises:
            NotFoundError: Unknown id, or not the caller's.
        """
        self._check_owner(identity, user_id)
        user = await UserRepository.get_by_id(self._db, user_id)
        if user is None:
            raise NotFoundError("User", str(user_id))
        return user

    async def update(
        self,
        identity: AuthenticatedUser,
        user_id: uuid.UUID,
        *,
        changes: dict[str, str | None],
        password: str | None = None,
        current_password: str | None = None,
    ) -> User:
        """Apply profile changes and, optionally, a password change.

        Args:
            identity: Authenticated caller.
            user_id: Target user; must be the caller.
            changes: Profile fields to set (email, username, names).
            password: New password, if changing it.
            current_password: Required together with ``password``.

        Returns:
            The updated User.

        Raises:
            NotFoundError: Unknown id, or not the caller's.
            UnauthorizedError: ``current_password`` does not match.
            ValidationError: The new password is too weak.
            ConflictError: The new email or username is taken.
            InternalError: Tokens could not be revoked.
        """
        user = await self.get(identity, user_id)

        if password is not None:
            if not verify_password(current_password or "", user.password_hash):
                raise UnauthorizedError("Current password is incorrect")
            validate_password_strength(password)

        if changes:
            try:
                updated = await UserRepository.update(self._db, user_id, **changes)
            except IntegrityError as exc:
                await self._db.rollback()
                raise ConflictError(
                    code="USER_ALREADY_EXISTS",
                    message="Email or username already exists",
                ) from exc
            if updated is None:
                raise NotFoundError("User", str(user_id))
            user = updated

        if password is not None:
            updated = await UserRepository.set_password_hash(
                self._db, user_id, hash_password(password)
            )
            if updated is None:
                raise NotFoundError("User", str(user_id))
            user = updated
            revoked = await self._revoke_tokens(user_id)
            logger.info(
                "Password changed for user %s; revoked %d tokens", user_id, revoked
            )

        return user

    async def delete(self, identity: AuthenticatedUser, user_id: uuid.UUID) -> None:
        """Delete the caller's account and end all of its sessions.

        Raises:
            NotFoundError: Unknown id, or not the caller's.
        """
        self._check_owner(identity, user_id)
        await self._revoke_tokens(user_id)
        if not await UserRepository.delete(self._db, user_id):
            raise NotFoundError("User", str(user_id))
        logger.info("Deleted user %s", user_id)

    async def _revoke_tokens(self, user_id: uuid.UUID) -> int:
        try:
            return await self._store.revoke_all(user_id)
        except SQLAlchemyError as exc:
            logger.exception("Token store failed during revoke")
            raise InternalError() from exc
