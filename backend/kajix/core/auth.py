"""Authentication helpers for JWT minting/decoding and password handling.

Pipeline:
- create_jwt / decode_jwt: signed bearer tokens with a per-token nonce
- hash_password / verify_password: bcrypt, cost 12
- validate_password_strength: format rules (sync, no network)
- DUMMY_HASH: timing-safe constant for user enumeration defense
"""

import re
import secrets
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any

import bcrypt
import jwt

from kajix.core.config import settings
from kajix.core.errors import UnauthorizedError, ValidationError

_ALGORITHM = "HS256"

# bcrypt cost factor for password hashing
_BCRYPT_ROUNDS = 12

# 16 random bytes: two tokens minted for the same identity in the same
# second must never be byte-identical, since stores key on the token value.
_NONCE_BYTES = 16

# bcrypt only reads the first 72 bytes; newer releases reject longer input.
_BCRYPT_MAX_BYTES = 72

# Pre-computed bcrypt hash for timing-safe comparison on user-not-found.
# Security: prevents user enumeration via response time differences.
DUMMY_HASH = b"$2b$12$ZP2PVB8yI35X.mkRqcUPUuSzJA1CNRt4dZ7X3cyrfJu.2S3w.Qen2"


class TokenKind(StrEnum):
    """Kinds of bearer token issued by the API."""

    ACCESS = "ACCESS_TOKEN"
    REFRESH = "REFRESH_TOKEN"


def create_jwt(
    *,
    user_id: str,
    email: str,
    username: str,
    kind: TokenKind,
    secret: str,
    expires_delta: timedelta,
) -> str:
    """Create a signed JWT carrying identity claims and a unique nonce.

    Args:
        user_id: User UUID string for the sub claim.
        email: User email address.
        username: User handle.
        kind: Access or refresh token.
        secret: HMAC signing secret.
        expires_delta: Time until expiration.

    Returns:
        Encoded JWT string.
    """
    now = datetime.now(UTC)
    payload = {
        "sub": user_id,
        "email": email,
        "username": username,
        "kind": str(kind),
        "jti": secrets.token_hex(_NONCE_BYTES),
        "aud": settings.auth_audience,
        "iss": settings.auth_issuer,
        "exp": now + expires_delta,
        "iat": now,
    }
    return jwt.encode(payload, secret, algorithm=_ALGORITHM)


class TokenExpiredError(UnauthorizedError):
    """A correctly signed token whose ``exp`` has passed.

    Renders exactly like any other invalid token. ``claims`` holds the
    verified claims so the token's store record can be flagged expired.
    """

    def __init__(self, claims: dict[str, Any]) -> None:
        super().__init__("Invalid token")
        self.claims = claims


def _decode(token: str, secret: str, *, verify_exp: bool = True) -> dict[str, Any]:
    return jwt.decode(
        token,
        secret,
        algorithms=[_ALGORITHM],
        audience=settings.auth_audience,
        issuer=settings.auth_issuer,
        options={
            "require": ["sub", "exp", "iat", "jti"],
            "verify_exp": verify_exp,
        },
    )


def decode_jwt(token: str, *, secret: str, kind: TokenKind) -> dict[str, Any]:
    """Verify signature, expiry, audience, issuer and kind of a token.

    Security: the message is intentionally generic. Never tell the caller
    whether the signature, the expiry or the kind was wrong.

    Args:
        token: Encoded JWT.
        secret: HMAC signing secret.
        kind: Kind the caller expects.

    Returns:
        Decoded claims.

    Raises:
        TokenExpiredError: If the token is genuine but past its expiry.
        UnauthorizedError: If any other check fails.
    """
    try:
        payload = _decode(token, secret)
    except jwt.ExpiredSignatureError as exc:
        try:
            claims = _decode(token, secret, verify_exp=False)
        except jwt.InvalidTokenError:
            raise UnauthorizedError("Invalid token") from exc
        if claims.get("kind") != str(kind):
            raise UnauthorizedError("Invalid token") from exc
        raise TokenExpiredError(claims) from exc
    except jwt.InvalidTokenError as exc:
        raise UnauthorizedError("Invalid token") from exc

    if payload.get("kind") != str(kind):
        raise UnauthorizedError("Invalid token")
    return payload


def _password_bytes(password: str) -> bytes:
    return password.encode()[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    """Hash a plain-text password with bcrypt.

    Args:
        password: Plain-text password.

    Returns:
        bcrypt hash as a str (salt embedded).
    """
    return bcrypt.hashpw(
        _password_bytes(password), bcrypt.gensalt(rounds=_BCRYPT_ROUNDS)
    ).decode()


def verify_password(password: str, password_hash: str | None) -> bool:
    """Check a password against a stored bcrypt hash.

    When no hash is stored, the comparison still runs against DUMMY_HASH so
    the response time does not reveal whether the account exists.

    Args:
        password: Plain-text password.
        password_hash: Stored bcrypt hash, or None if the user is unknown.

    Returns:
        True if the password matches.
    """
    if not password_hash:
        bcrypt.checkpw(_password_bytes(password), DUMMY_HASH)
        return False
    return bcrypt.checkpw(_password_bytes(password), password_hash.encode())


def validate_password_strength(password: str) -> None:
    """Validate password meets strength requirements.

    8-128 chars, letter + number + special character.

    Args:
        password: Plain-text password to validate.

    Raises:
        ValidationError: If password doesn't meet requirements.
    """
    if len(password) < 8:
        raise ValidationError("Password must be at least 8 characters")
    if len(password) > 128:
        raise ValidationError("Password must be at most 128 characters")
    if not re.search(r"[a-zA-Z]", password):
        raise ValidationError("Password must contain at least one letter")
    if not re.search(r"\d", password):
        raise ValidationError("Password must contain at least one number")
    if not re.search(r"[^a-zA-Z\d]", password):
        raise ValidationError("Password must contain at least one special character")
