"""Authentication service: credential checks and the token lifecycle.

Each issued token moves through ISSUED -> VALID -> USED | EXPIRED | REVOKED
and only VALID authenticates. Authentication therefore needs both a valid
signature and a live record in the token store; the store is what lets
logout and revocation take effect before a token's natural expiry.

Ordering rules:
- issue_tokens stores both halves of a pair or neither.
- rotate_refresh_token consumes the old refresh token before minting the
  new pair, so a replayed token can never observe a new pair first.
- A genuine token presented after its expiry is flagged expired in the
  store before the 401 is raised.
"""

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from kajix.core.auth import (
    TokenExpiredError,
    TokenKind,
    create_jwt,
    decode_jwt,
    hash_password,
    validate_password_strength,
    verify_password,
)
from kajix.core.config import settings
from kajix.core.errors import ConflictError, InternalError, UnauthorizedError
from kajix.models.user import User
from kajix.repositories.user_repository import UserRepository
from kajix.services.token_store import TokenKey, TokenStore

logger = logging.getLogger(__name__)

_INVALID_CREDENTIALS_MSG = "Invalid credentials"
_INVALID_TOKEN_MSG = "Invalid token"
_INVALID_REFRESH_MSG = "Invalid or expired refresh token"


@dataclass(frozen=True)
class AuthenticatedUser:
    """Identity carried by a validated access token.

    Attributes:
        user_id: Subject of the token.
        email: Email claim.
        username: Username claim.
        access_token: The bearer token that was validated.
    """

    user_id: uuid.UUID
    email: str
    username: str
    access_token: str


@dataclass(frozen=True)
class TokenPair:
    """Access and refresh token minted together."""

    access_token: str
    refresh_token: str


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Re-map unexpected store failures to InternalError.

    Driver exceptions never leak to callers; the traceback is logged here.
    """
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception("Token store failure during %s", operation)
        raise InternalError() from exc


def _subject_id(claims: dict) -> uuid.UUID:
    try:
        return uuid.UUID(claims["sub"])
    except (KeyError, ValueError, TypeError) as exc:
        raise UnauthorizedError(_INVALID_TOKEN_MSG) from exc


class AuthService:
    """Issues, validates, rotates and revokes bearer tokens.

    Args:
        db: Async database session for identity lookups.
        token_store: Liveness store for issued tokens.
        secret: JWT signing secret. Defaults to AUTH_SECRET.
        access_ttl: Access token lifetime. Defaults to settings.
        refresh_ttl: Refresh token lifetime. Defaults to settings.

    Raises:
        ValueError: If access_ttl is not shorter than refresh_ttl.
    """

    def __init__(
        self,
        db: AsyncSession,
        token_store: TokenStore,
        *,
        secret: str | None = None,
        access_ttl: timedelta | None = None,
        refresh_ttl: timedelta | None = None,
    ) -> None:
        self._db = db
        self._store = token_store
        self._secret = secret or settings.auth_secret.get_secret_value()
        self._access_ttl = access_ttl or settings.access_token_ttl
        self._refresh_ttl = refresh_ttl or settings.refresh_token_ttl
        if self._access_ttl >= self._refresh_ttl:
            msg = "Access token lifetime must be shorter than refresh token lifetime"
            raise ValueError(msg)

    @property
    def access_ttl(self) -> timedelta:
        return self._access_ttl

    @property
    def refresh_ttl(self) -> timedelta:
        return self._refresh_ttl

    async def register(
        self,
        *,
        email: str,
        username: str,
        password: str,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> User:
        """Create a credential record.

        Raises:
            ValidationError: If the password is too weak.
            ConflictError: If the email or username is taken.
        """
        validate_password_strength(password)

        try:
            user = await UserRepository.create(
                self._db,
                email=email,
                username=username,
                password_hash=hash_password(password),
                first_name=first_name,
                last_name=last_name,
            )
        except IntegrityError as exc:
            await self._db.rollback()
            raise ConflictError(
                code="USER_ALREADY_EXISTS",
                message="Email or username already exists",
            ) from exc

        logger.info("Registered user %s", user.id)
        return user

    async def validate_credentials(self, identifier: str, password: str) -> User:
        """Check an email/username and password pair.

        A bcrypt comparison always runs, against a dummy hash when the user
        is unknown, so timing does not reveal which accounts exist.

        Args:
            identifier: Email address or username.
            password: Plain-text password.

        Returns:
            The matching User.

        Raises:
            UnauthorizedError: If the user is unknown or the password is wrong.
        """
        user = await UserRepository.get_by_identifier(self._db, identifier)
        password_hash = user.password_hash if user else None

        if not verify_password(password, password_hash) or user is None:
            raise UnauthorizedError(_INVALID_CREDENTIALS_MSG)

        return user

    async def issue_tokens(self, user: User) -> TokenPair:
        """Mint and store an access/refresh pair for a user.

        Args:
            user: Identity the tokens are issued to.

        Returns:
            The new TokenPair.

        Raises:
            InternalError: If the pair could not be stored.
        """
        claims = {
            "user_id": str(user.id),
            "email": user.email,
            "username": user.username,
            "secret": self._secret,
        }
        access_token = create_jwt(
            **claims, kind=TokenKind.ACCESS, expires_delta=self._access_ttl
        )
        refresh_token = create_jwt(
            **claims, kind=TokenKind.REFRESH, expires_delta=self._refresh_ttl
        )
        access_key = TokenKey(TokenKind.ACCESS, user.id, access_token)
        refresh_key = TokenKey(TokenKind.REFRESH, user.id, refresh_token)

        with _store_errors("issue"):
            await self._store.put(
                access_key, subject_email=user.email, ttl=self._access_ttl
            )
            try:
                await self._store.put(
                    refresh_key, subject_email=user.email, ttl=self._refresh_ttl
                )
            except Exception:
                await self._discard(access_key)
                raise

        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    async def login(self, identifier: str, password: str) -> tuple[User, TokenPair]:
        """Validate credentials and issue a token pair."""
        user = await self.validate_credentials(identifier, password)
        tokens = await self.issue_tokens(user)
        logger.info("User %s logged in", user.id)
        return user, tokens

    async def validate_access_token(self, token: str) -> AuthenticatedUser:
        """Authenticate a bearer access token.

        Args:
            token: Encoded access token.

        Returns:
            AuthenticatedUser built from the token claims.

        Raises:
            UnauthorizedError: If the signature, expiry or kind is wrong, or
                the store has no valid record of the token.
        """
        try:
            claims = decode_jwt(token, secret=self._secret, kind=TokenKind.ACCESS)
        except TokenExpiredError as exc:
            await self._note_expiry(TokenKind.ACCESS, token, exc.claims)
            raise
        user_id = _subject_id(claims)

        with _store_errors("validate"):
            live = await self._store.exists(TokenKey(TokenKind.ACCESS, user_id, token))
        if not live:
            raise UnauthorizedError(_INVALID_TOKEN_MSG)

        return AuthenticatedUser(
            user_id=user_id,
            email=claims.get("email", ""),
            username=claims.get("username", ""),
            access_token=token,
        )

    async def rotate_refresh_token(self, refresh_token: str) -> tuple[User, TokenPair]:
        """Exchange a valid refresh token for a new pair.

        The old token is consumed first; of two concurrent calls with the
        same token exactly one succeeds.

        Args:
            refresh_token: Encoded refresh token.

        Returns:
            Tuple of (user, new TokenPair).

        Raises:
            UnauthorizedError: If the token is not currently valid (unknown,
                expired, already used, revoked, or not a refresh token) or
                the user no longer exists.
        """
        try:
            claims = decode_jwt(
                refresh_token, secret=self._secret, kind=TokenKind.REFRESH
            )
        except TokenExpiredError as exc:
            await self._note_expiry(TokenKind.REFRESH, refresh_token, exc.claims)
            raise UnauthorizedError(_INVALID_REFRESH_MSG) from exc
        except UnauthorizedError as exc:
            raise UnauthorizedError(_INVALID_REFRESH_MSG) from exc
        user_id = _subject_id(claims)

        with _store_errors("rotate"):
            consumed = await self._store.mark_used(
                TokenKey(TokenKind.REFRESH, user_id, refresh_token)
            )
        if not consumed:
            logger.warning("Rejected refresh token replay for user %s", user_id)
            raise UnauthorizedError(_INVALID_REFRESH_MSG)

        user = await UserRepository.get_by_id(self._db, user_id)
        if user is None:
            raise UnauthorizedError("User not found")

        return user, await self.issue_tokens(user)

    async def logout(
        self,
        identity: AuthenticatedUser,
        access_token: str,
        refresh_token: str,
    ) -> bool:
        """Consume both tokens of a session.

        Idempotent: tokens that are already not valid, or that belong to
        another user, are left untouched.

        Returns:
            Always True.
        """
        with _store_errors("logout"):
            await self._store.mark_used(
                TokenKey(TokenKind.ACCESS, identity.user_id, access_token),
                expire=True,
            )
            await self._store.mark_used(
                TokenKey(TokenKind.REFRESH, identity.user_id, refresh_token),
                expire=True,
            )
        logger.info("User %s logged out", identity.user_id)
        return True

    async def revoke_all(self, user_id: uuid.UUID) -> int:
        """Revoke every valid token of a user (forced logout everywhere).

        Returns:
            Number of tokens revoked.
        """
        with _store_errors("revoke"):
            revoked = await self._store.revoke_all(user_id)
        logger.info("Revoked %d tokens for user %s", revoked, user_id)
        return revoked

    async def _discard(self, key: TokenKey) -> None:
        """Best-effort removal of half a pair; the original error propagates."""
        try:
            await self._store.delete(key)
        except SQLAlchemyError:
            logger.exception("Failed to discard orphaned %s token", key.kind)

    async def _note_expiry(self, kind: TokenKind, token: str, claims: dict) -> None:
        """Flag the store record of a token past its ``exp``.

        Failures are logged only; the caller still gets its 401.
        """
        try:
            user_id = _subject_id(claims)
        except UnauthorizedError:
            return
        try:
            await self._store.mark_expired(TokenKey(kind, user_id, token))
        except SQLAlchemyError:
            logger.exception("Failed to record expiry of %s token", kind)
