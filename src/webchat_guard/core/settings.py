"""Application settings and configuration.

This module defines all configuration options for the Webchat Guard service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Webchat Guard", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    debug: bool = Field(default=False, alias="DEBUG")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    service_token_expire_minutes: int = Field(
        default=60 * 24,
        alias="SERVICE_TOKEN_EXPIRE_MINUTES",
    )

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./webchat_guard.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Human-proof challenge verification
    challenge_bypass_token: str | None = Field(
        default=None,
        alias="ONBOARDING_CHALLENGE_BYPASS_TOKEN",
    )
    challenge_verify_url: str | None = Field(
        default=None,
        alias="ONBOARDING_CHALLENGE_VERIFY_URL",
    )
    challenge_verify_secret: str | None = Field(
        default=None,
        alias="ONBOARDING_CHALLENGE_VERIFY_SECRET",
    )
    challenge_verify_timeout_seconds: float = Field(
        default=5.0,
        alias="ONBOARDING_CHALLENGE_VERIFY_TIMEOUT_SECONDS",
    )

    # Rate-limit ledger and abuse thresholds
    rate_limit_retention_hours: int = Field(default=26, alias="RATE_LIMIT_RETENTION_HOURS")
    challenge_risk_threshold: int = Field(default=45, alias="ABUSE_CHALLENGE_RISK_THRESHOLD")
    signal_risk_threshold: int = Field(default=45, alias="ABUSE_SIGNAL_RISK_THRESHOLD")

    # CORS configuration
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def rate_limit_retention_ms(self) -> int:
        """Return the ledger retention window in milliseconds."""
        return int(self.rate_limit_retention_hours) * 60 * 60 * 1000


settings = Settings()  # type: ignore[call-arg]
