"""Authentication endpoints.

Bearer-token auth with short-lived access tokens and single-use refresh
tokens:
- login: email or username + password, returns a token pair (rate limited)
- register: creates the credential record
- refresh: exchanges a refresh token for a new pair; the old one is consumed
- logout: consumes the caller's access token and the supplied refresh token
- logout-all: revokes every live token of the caller
"""

from fastapi import APIRouter, Request

from kajix.api.deps import AuthServiceDep, CurrentIdentity
from kajix.core.config import settings
from kajix.core.rate_limiting import limiter
from kajix.models.user import User
from kajix.schemas.auth import (
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenPairResponse,
    UserRead,
)
from kajix.services.auth_service import TokenPair

router = APIRouter()


def _token_response(user: User, tokens: TokenPair) -> TokenPairResponse:
    return TokenPairResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        user=UserRead.model_validate(user),
    )


@router.post("/login", status_code=201)
@limiter.limit(lambda: settings.rate_limit_login)
async def login(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: LoginRequest,
    auth_service: AuthServiceDep,
) -> TokenPairResponse:
    """Validate credentials and issue an access/refresh token pair.

    Rate limit: RATE_LIMIT_LOGIN per IP (default 5 per 15 minutes).
    """
    user, tokens = await auth_service.login(body.email, body.password)
    return _token_response(user, tokens)


@router.post("/register", status_code=201)
async def register(body: RegisterRequest, auth_service: AuthServiceDep) -> UserRead:
    """Create a user. 409 if the email or username is taken."""
    user = await auth_service.register(
        email=body.email,
        username=body.username,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
    )
    return UserRead.model_validate(user)


@router.post("/refresh")
async def refresh(body: RefreshRequest, auth_service: AuthServiceDep) -> TokenPairResponse:
    """Rotate a refresh token. A token can be redeemed once."""
    user, tokens = await auth_service.rotate_refresh_token(body.refresh_token)
    return _token_response(user, tokens)


@router.post("/logout")
async def logout(
    body: RefreshRequest,
    identity: CurrentIdentity,
    auth_service: AuthServiceDep,
) -> bool:
    """End the caller's session.

    The access token comes from the Authorization header, the refresh token
    from the body. Once it has been used here, the access token no longer
    passes the bearer guard, so repeating the call returns 401.
    """
    return await auth_service.logout(
        identity, identity.access_token, body.refresh_token
    )


@router.post("/logout-all")
async def logout_all(
    identity: CurrentIdentity, auth_service: AuthServiceDep
) -> dict[str, int]:
    """Revoke every live token of the caller on all devices."""
    revoked = await auth_service.revoke_all(identity.user_id)
    return {"revoked": revoked}
