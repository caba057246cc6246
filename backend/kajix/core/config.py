"""Application configuration loaded from environment variables.

Settings for database, API, token lifetimes, the token store backend and
the web crawler. Uses pydantic-settings for validation and .env file support.
"""

from datetime import timedelta
from typing import Literal

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
_INSECURE_DEFAULT_PASSWORD = "kajix_dev_password"  # nosec B105

# Minimum length for AUTH_SECRET in production (256 bits = 32 bytes)
_MIN_AUTH_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "kajix"
    database_user: str = "kajix_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD
    # Connection pool per worker process
    database_pool_size: int = 5
    database_max_overflow: int = 10

    # API
    # 0.0.0.0 binds to all network interfaces (required for Docker containers)
    api_host: str = "0.0.0.0"  # nosec B104
    api_port: int = 3001
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Authentication
    auth_secret: SecretStr = SecretStr("dev-secret-change-me")
    auth_issuer: str = "kajix-api"
    auth_audience: str = "kajix"
    access_token_ttl_minutes: int = 15
    refresh_token_ttl_days: int = 7
    # "database" keeps an audit trail in temporary_tokens; "memory" is
    # process-local and only suitable for single-instance development.
    token_store_backend: Literal["database", "memory"] = "database"

    # Web scraping
    scraping_timeout_ms: int = 30_000
    scraping_max_links_per_page: int = 1000
    scraping_max_pages: int = 500
    scraping_user_agent: str = (
        "Mozilla/5.0 (compatible; KajixBot/1.0; +https://www.kajix.io/bot)"
    )
    scraping_include_external_links: bool = False
    scraping_headless: bool = True

    # Rate limiting
    rate_limit_login: str = "5/15minute"
    rate_limit_enabled: bool = True

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def database_url_sync(self) -> str:
        """Sync database URL for Alembic."""
        return (
            f"postgresql://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def access_token_ttl(self) -> timedelta:
        return timedelta(minutes=self.access_token_ttl_minutes)

    @property
    def refresh_token_ttl(self) -> timedelta:
        return timedelta(days=self.refresh_token_ttl_days)

    @model_validator(mode="after")
    def check_settings(self) -> "Settings":
        """Validate cross-field invariants and production security.

        Checks:
        - Token lifetimes are positive and access < refresh
        - Crawler bounds are positive
        - CORS must not use wildcard origin (incompatible with credentials)
        - Production must not use the default database password or a
          short AUTH_SECRET
        """
        if self.access_token_ttl_minutes <= 0 or self.refresh_token_ttl_days <= 0:
            msg = "Token lifetimes must be positive."
            raise ValueError(msg)

        if self.access_token_ttl >= self.refresh_token_ttl:
            msg = (
                "ACCESS_TOKEN_TTL_MINUTES must be shorter than REFRESH_TOKEN_TTL_DAYS. "
                f"Got: {self.access_token_ttl} >= {self.refresh_token_ttl}"
            )
            raise ValueError(msg)

        if (
            self.scraping_timeout_ms <= 0
            or self.scraping_max_links_per_page <= 0
            or self.scraping_max_pages <= 0
        ):
            msg = "Scraping timeout and limits must be positive."
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "Credentialed CORS requests are incompatible with wildcard origins."
            )
            raise ValueError(msg)

        if self.environment == "production":
            if self.database_password == _INSECURE_DEFAULT_PASSWORD:
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            if len(self.auth_secret.get_secret_value()) < _MIN_AUTH_SECRET_LENGTH:
                msg = (
                    f"AUTH_SECRET must be at least {_MIN_AUTH_SECRET_LENGTH} "
                    'characters in production. Generate with: python -c "import '
                    'secrets; print(secrets.token_hex(32))"'
                )
                raise ValueError(msg)

        return self


settings = Settings()
