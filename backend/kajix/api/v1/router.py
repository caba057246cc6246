"""API router aggregator.

All endpoint routers are included here and mounted under ``/api``.
"""

from fastapi import APIRouter

from kajix.api.v1 import auth, users, web_scraping

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(
    web_scraping.router, prefix="/web-scraping", tags=["web-scraping"]
)
