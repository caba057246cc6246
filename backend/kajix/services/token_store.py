"""Token liveness stores.

A signed JWT proves who issued a token, not whether it is still usable.
The token store records every issued token so logout, rotation and bulk
revocation can take effect before the token's natural expiry.

Two interchangeable backends implement the ``TokenStore`` protocol:

- ``DatabaseTokenStore``: rows in ``temporary_tokens``; state changes flip
  flags and rows are kept as an audit trail. Concurrent redemption of one
  refresh token is settled by a conditional UPDATE. Expiry flags commit in
  a session of their own, since the 401 that follows rolls back the
  request's session.
- ``MemoryTokenStore``: a dict keyed by ``{kind}:{user_id}:{token}``,
  entries removed on use. Safe under a single-threaded event loop (no await
  between check and mutation) but process-local, so only for
  single-instance development and tests.

The backend is chosen per deployment with ``TOKEN_STORE_BACKEND``.
"""

import hashlib
import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kajix.core.auth import TokenKind
from kajix.core.database import async_session_factory
from kajix.repositories.temporary_token_repository import TemporaryTokenRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenKey:
    """Identifies one issued token.

    Attributes:
        kind: Access or refresh token.
        user_id: Owner of the token.
        token: Encoded token value.
    """

    kind: TokenKind
    user_id: uuid.UUID
    token: str

    @property
    def storage_key(self) -> str:
        return f"{self.kind}:{self.user_id}:{self.token}"

    @property
    def token_hash(self) -> str:
        return hashlib.sha256(self.token.encode()).hexdigest()


class TokenStore(Protocol):
    """Capability interface for token liveness bookkeeping."""

    async def put(self, key: TokenKey, *, subject_email: str, ttl: timedelta) -> None:
        """Record a freshly issued token as valid for ``ttl``."""
        ...

    async def exists(self, key: TokenKey) -> bool:
        """Return True only if the token is recorded and still valid."""
        ...

    async def mark_used(self, key: TokenKey, *, expire: bool = False) -> bool:
        """Consume a valid token.

        Returns:
            True if this call performed the transition, False if the token
            was unknown or already not valid.
        """
        ...

    async def mark_expired(self, key: TokenKey) -> bool:
        """Record that a token's natural expiry has passed.

        Must persist even when the surrounding request fails with 401.

        Returns:
            True if a valid record was flagged.
        """
        ...

    async def delete(self, key: TokenKey) -> None:
        """Discard a token record outright."""
        ...

    async def revoke_all(self, user_id: uuid.UUID) -> int:
        """Revoke every valid token of a user. Returns how many."""
        ...


class DatabaseTokenStore:
    """Token store backed by the ``temporary_tokens`` table.

    Args:
        db: Async database session; the caller owns the transaction.
        session_factory: Opens the separate session that expiry flags are
            committed in. Defaults to the application's factory.
    """

    def __init__(
        self,
        db: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        self._db = db
        self._session_factory = session_factory or async_session_factory

    async def put(self, key: TokenKey, *, subject_email: str, ttl: timedelta) -> None:
        await TemporaryTokenRepository.create(
            self._db,
            kind=str(key.kind),
            user_id=key.user_id,
            subject_email=subject_email,
            token_hash=key.token_hash,
            expires_at=datetime.now(UTC) + ttl,
        )

    async def exists(self, key: TokenKey) -> bool:
        row = await TemporaryTokenRepository.get(
            self._db,
            kind=str(key.kind),
            user_id=key.user_id,
            token_hash=key.token_hash,
        )
        if row is None or row.is_used or row.is_expired or row.revoked_at:
            return False

        if row.expires_at <= datetime.now(UTC):
            await self.mark_expired(key)
            return False

        return True

    async def mark_used(self, key: TokenKey, *, expire: bool = False) -> bool:
        return await TemporaryTokenRepository.mark_used(
            self._db,
            kind=str(key.kind),
            user_id=key.user_id,
            token_hash=key.token_hash,
            expire=expire,
        )

    async def mark_expired(self, key: TokenKey) -> bool:
        # Own transaction: the request session is rolled back by the 401
        # that follows.
        async with self._session_factory() as session:
            flagged = await TemporaryTokenRepository.mark_expired(
                session,
                kind=str(key.kind),
                user_id=key.user_id,
                token_hash=key.token_hash,
            )
            await session.commit()
        if flagged:
            logger.info(
                "Recorded expiry of %s token for user %s", key.kind, key.user_id
            )
        return flagged

    async def delete(self, key: TokenKey) -> None:
        await TemporaryTokenRepository.delete(self._db, token_hash=key.token_hash)

    async def revoke_all(self, user_id: uuid.UUID) -> int:
        return await TemporaryTokenRepository.revoke_all_for_user(self._db, user_id)


@dataclass
class _MemoryEntry:
    user_id: uuid.UUID
    expires_at: datetime


class MemoryTokenStore:
    """Process-local token store.

    Entries disappear when used, revoked, or found expired, so a missing
    key means "not valid" whatever the reason.
    """

    def __init__(self) -> None:
        self._entries: dict[str, _MemoryEntry] = {}

    async def put(self, key: TokenKey, *, subject_email: str, ttl: timedelta) -> None:  # noqa: ARG002
        self.cleanup_expired()
        self._entries[key.storage_key] = _MemoryEntry(
            user_id=key.user_id,
            expires_at=datetime.now(UTC) + ttl,
        )

    async def exists(self, key: TokenKey) -> bool:
        entry = self._entries.get(key.storage_key)
        if entry is None:
            return False
        if datetime.now(UTC) >= entry.expires_at:
            del self._entries[key.storage_key]
            return False
        return True

    async def mark_used(self, key: TokenKey, *, expire: bool = False) -> bool:  # noqa: ARG002
        if not await self.exists(key):
            return False
        del self._entries[key.storage_key]
        return True

    async def mark_expired(self, key: TokenKey) -> bool:
        return self._entries.pop(key.storage_key, None) is not None

    async def delete(self, key: TokenKey) -> None:
        self._entries.pop(key.storage_key, None)

    async def revoke_all(self, user_id: uuid.UUID) -> int:
        revoked = [k for k, e in self._entries.items() if e.user_id == user_id]
        for storage_key in revoked:
            del self._entries[storage_key]
        return len(revoked)

    def cleanup_expired(self) -> int:
        """Remove all expired entries.

        Returns:
            Number of entries removed.
        """
        now = datetime.now(UTC)
        expired = [k for k, e in self._entries.items() if now >= e.expires_at]
        for storage_key in expired:
            del self._entries[storage_key]
        if expired:
            logger.debug("Removed %d expired tokens", len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
