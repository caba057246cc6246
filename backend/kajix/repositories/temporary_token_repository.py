"""Repository for TemporaryToken operations.

Tokens are looked up by the SHA-256 hash of their value, scoped to the
owning user and token kind. State changes are single conditional UPDATE
statements so concurrent requests racing on the same token are settled by
the database: the first to commit wins, the other updates zero rows.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from kajix.models.temporary_token import TemporaryToken


def _live_conditions(now: datetime) -> tuple:
    return (
        TemporaryToken.is_used.is_(False),
        TemporaryToken.is_expired.is_(False),
        TemporaryToken.revoked_at.is_(None),
        TemporaryToken.expires_at > now,
    )


class TemporaryTokenRepository:
    """Stateless repository for TemporaryToken table operations.

    All methods are static; no instance state.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        kind: str,
        user_id: uuid.UUID,
        subject_email: str,
        token_hash: str,
        expires_at: datetime,
    ) -> TemporaryToken:
        """Store a newly issued token.

        Args:
            db: Async database session.
            kind: Token kind.
            user_id: Owner of the token.
            subject_email: Owner email at issuance.
            token_hash: SHA-256 hash of the token value.
            expires_at: Natural expiry.

        Returns:
            Created TemporaryToken.
        """
        row = TemporaryToken(
            kind=kind,
            user_id=user_id,
            subject_email=subject_email,
            token_hash=token_hash,
            expires_at=expires_at,
        )
        db.add(row)
        await db.flush()
        return row

    @staticmethod
    async def get(
        db: AsyncSession,
        *,
        kind: str,
        user_id: uuid.UUID,
        token_hash: str,
    ) -> TemporaryToken | None:
        """Look up a token regardless of its state.

        Args:
            db: Async database session.
            kind: Token kind.
            user_id: Owner of the token.
            token_hash: SHA-256 hash of the token value.

        Returns:
            TemporaryToken if found, None otherwise.
        """
        stmt = select(TemporaryToken).where(
            TemporaryToken.kind == kind,
            TemporaryToken.user_id == user_id,
            TemporaryToken.token_hash == token_hash,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def mark_used(
        db: AsyncSession,
        *,
        kind: str,
        user_id: uuid.UUID,
        token_hash: str,
        expire: bool = False,
    ) -> bool:
        """Flip a live token to used.

        Args:
            db: Async database session.
            kind: Token kind.
            user_id: Owner of the token.
            token_hash: SHA-256 hash of the token value.
            expire: Also set is_expired (logout does, rotation does not).

        Returns:
            True if a live row was transitioned, False if none matched.
        """
        values: dict[str, bool] = {"is_used": True}
        if expire:
            values["is_expired"] = True
        stmt = (
            update(TemporaryToken)
            .where(
                TemporaryToken.kind == kind,
                TemporaryToken.user_id == user_id,
                TemporaryToken.token_hash == token_hash,
                *_live_conditions(datetime.now(UTC)),
            )
            .values(**values)
        )
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count > 0

    @staticmethod
    async def mark_expired(
        db: AsyncSession,
        *,
        kind: str,
        user_id: uuid.UUID,
        token_hash: str,
    ) -> bool:
        """Record that a token's natural expiry has passed.

        The caller has already seen the expiry, from the JWT ``exp`` claim or
        the row's ``expires_at``. Rows already used, expired or revoked keep
        their state.

        Args:
            db: Async database session.
            kind: Token kind.
            user_id: Owner of the token.
            token_hash: SHA-256 hash of the token value.

        Returns:
            True if a row was flagged, False if none matched.
        """
        stmt = (
            update(TemporaryToken)
            .where(
                TemporaryToken.kind == kind,
                TemporaryToken.user_id == user_id,
                TemporaryToken.token_hash == token_hash,
                TemporaryToken.is_used.is_(False),
                TemporaryToken.is_expired.is_(False),
                TemporaryToken.revoked_at.is_(None),
            )
            .values(is_expired=True)
        )
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count > 0

    @staticmethod
    async def revoke_all_for_user(db: AsyncSession, user_id: uuid.UUID) -> int:
        """Revoke every live token of a user.

        Args:
            db: Async database session.
            user_id: Owner whose tokens are revoked.

        Returns:
            Number of revoked rows.
        """
        now = datetime.now(UTC)
        stmt = (
            update(TemporaryToken)
            .where(TemporaryToken.user_id == user_id, *_live_conditions(now))
            .values(revoked_at=now)
        )
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count

    @staticmethod
    async def delete(db: AsyncSession, *, token_hash: str) -> None:
        """Physically remove a token row.

        Only used to discard half of a token pair whose other half could not
        be stored.

        Args:
            db: Async database session.
            token_hash: SHA-256 hash of the token value.
        """
        stmt = delete(TemporaryToken).where(TemporaryToken.token_hash == token_hash)
        await db.execute(stmt)
