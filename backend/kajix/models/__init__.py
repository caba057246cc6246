"""SQLAlchemy models.

Importing this package registers every table on ``Base.metadata``.
"""

from kajix.models.base import Base, TimestampMixin
from kajix.models.scraped_content import ScrapedContent
from kajix.models.temporary_token import TemporaryToken
from kajix.models.user import User

__all__ = [
    "Base",
    "ScrapedContent",
    "TemporaryToken",
    "TimestampMixin",
    "User",
]
