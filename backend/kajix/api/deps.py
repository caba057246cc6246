"""Shared dependencies for API endpoints.

Services are built per request from explicitly injected collaborators; the
long-lived ones (browser, in-memory token store) are created once in
``create_app`` and read from ``app.state``. Tests swap any of them through
``app.dependency_overrides``.
"""

from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from kajix.core.config import settings
from kajix.core.database import get_db
from kajix.core.errors import UnauthorizedError
from kajix.services.auth_service import AuthenticatedUser, AuthService
from kajix.services.browser import BrowserManager
from kajix.services.html_markdown import HtmlMarkdownConverter
from kajix.services.token_store import DatabaseTokenStore, TokenStore
from kajix.services.user_service import UserService
from kajix.services.web_crawler import WebCrawler
from kajix.services.web_scraping_service import WebScrapingService

_bearer_scheme = HTTPBearer(auto_error=False)

DbSession = Annotated[AsyncSession, Depends(get_db)]


def get_token_store(request: Request, db: DbSession) -> TokenStore:
    """Token store for the configured backend.

    ``memory`` shares the process-wide store on ``app.state``; ``database``
    binds a store to the request's session so token writes commit with it.
    """
    if settings.token_store_backend == "memory":
        return request.app.state.token_store
    return DatabaseTokenStore(db)


def get_auth_service(
    db: DbSession,
    token_store: Annotated[TokenStore, Depends(get_token_store)],
) -> AuthService:
    return AuthService(db, token_store)


AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]


def get_user_service(
    db: DbSession,
    token_store: Annotated[TokenStore, Depends(get_token_store)],
) -> UserService:
    return UserService(db, token_store)


UserServiceDep = Annotated[UserService, Depends(get_user_service)]


async def get_current_identity(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)
    ],
    auth_service: AuthServiceDep,
) -> AuthenticatedUser:
    """Authenticate the request's bearer access token.

    Args:
        credentials: Parsed Authorization header, if any.
        auth_service: Auth service (injected).

    Returns:
        Identity of the caller.

    Raises:
        UnauthorizedError: Missing, malformed, expired, used or revoked token.
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError()
    return await auth_service.validate_access_token(credentials.credentials)


CurrentIdentity = Annotated[AuthenticatedUser, Depends(get_current_identity)]


def get_browser(request: Request) -> BrowserManager:
    return request.app.state.browser


def get_web_scraping_service(
    db: DbSession,
    browser: Annotated[BrowserManager, Depends(get_browser)],
) -> WebScrapingService:
    crawler = WebCrawler(
        browser,
        timeout_ms=settings.scraping_timeout_ms,
        max_links_per_page=settings.scraping_max_links_per_page,
        max_pages=settings.scraping_max_pages,
        include_external_links=settings.scraping_include_external_links,
    )
    return WebScrapingService(db, crawler, HtmlMarkdownConverter())


WebScrapingServiceDep = Annotated[
    WebScrapingService, Depends(get_web_scraping_service)
]
