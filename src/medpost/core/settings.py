"""Runtime configuration for the medpost publication backend.

Every option maps to one environment variable (see the ``alias`` on each
field); a local ``.env`` file is read as well. Only ``SECRET_KEY`` has no
default.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Async drivers that tooling (Alembic, scripts) cannot use directly.
_SYNC_DRIVERS = {
    "postgresql+asyncpg": "postgresql+psycopg",
    "sqlite+aiosqlite": "sqlite",
}


class Settings(BaseSettings):
    """Typed view over the process environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        validate_assignment=True,
    )

    app_name: str = Field(default="medpost", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Bearer tokens
    secret_key: str = Field(alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=24 * 60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # Storage
    database_url: str = Field(default="sqlite:///./medpost.db", alias="DATABASE_URL")
    # Points the app and migrations at a scratch database when USE_TEST_DATABASE is set
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Listings
    default_page_size: int = Field(default=10, alias="DEFAULT_PAGE_SIZE")
    max_page_size: int = Field(default=100, alias="MAX_PAGE_SIZE")

    # Real view counts come from an external analytics provider
    analytics_base_url: str | None = Field(default=None, alias="ANALYTICS_BASE_URL")
    analytics_api_key: str | None = Field(default=None, alias="ANALYTICS_API_KEY")
    analytics_timeout_seconds: float = Field(default=10.0, alias="ANALYTICS_TIMEOUT_SECONDS")
    views_sync_enabled: bool = Field(default=True, alias="VIEWS_SYNC_ENABLED")
    views_sync_interval_seconds: float = Field(default=3600.0, alias="VIEWS_SYNC_INTERVAL_SECONDS")

    # Browser clients
    cors_origins: list[str] = Field(default_factory=lambda: ["*"], alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default_factory=lambda: ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(default_factory=lambda: ["*"], alias="CORS_ALLOW_HEADERS")

    @property
    def effective_database_url(self) -> str:
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def database_url_sync(self) -> str:
        """The effective URL with any async driver swapped for its blocking twin."""
        url = self.effective_database_url
        for async_prefix, sync_prefix in _SYNC_DRIVERS.items():
            if url.startswith(async_prefix):
                return sync_prefix + url[len(async_prefix):]
        return url

    @property
    def analytics_enabled(self) -> bool:
        return bool(self.analytics_base_url)


settings = Settings()  # type: ignore[call-arg]
