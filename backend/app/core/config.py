"""Application configuration loaded from environment variables."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed settings exposed via dependency injection throughout the app."""

    # Read .env with BOM tolerance; case-sensitive keys
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8-sig",
        case_sensitive=True,
    )

    APP_NAME: str = "Collab API"
    ENV: str = "dev"  # dev | staging | prod
    DEBUG: bool = False

    # JWT issued by the identity provider
    SECRET_KEY: str  # set via env/.env
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    JWT_ISSUER: str = "collab-identity"
    JWT_AUDIENCE: str = "collab-api"

    # CORS
    CORS_ALLOWED_ORIGINS: list[str] = Field(default_factory=list)

    # DB
    DB_URL: str | None = None  # full SQLAlchemy URL; overrides the DB_* parts
    DB_HOST: str = "127.0.0.1"
    DB_PORT: int = 3306
    DB_USER: str = "appadmin"
    DB_PASSWORD: str = ""  # set via env/.env
    DB_NAME: str = "collab"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 3600
    DB_ISOLATION_LEVEL: str = "READ COMMITTED"
    DB_RETRY_ATTEMPTS: int = 4
    DB_RETRY_BASE_DELAY: float = 0.05
    DB_RETRY_JITTER: float = 0.025
    DB_CREATE_ALL: bool = False
    INNODB_LOCK_WAIT_TIMEOUT_SEC: int = 10
    DB_NOWAIT_LOCKS: bool = False

    # JSON bodies only; media goes straight to object storage.
    MAX_REQUEST_BYTES: int = 1024 * 1024

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # See app.core.rate_limit.limiter for syntax.
    APPLY_RATE: str = "10/minute"
    MESSAGE_SEND_RATE: str = "60/minute"

    # Outbound transactional email
    EMAIL_ENABLED: bool = True
    EMAIL_GATEWAY_URL: str | None = Field(default=None, description="Email gateway send endpoint")
    EMAIL_GATEWAY_TOKEN: str | None = Field(default=None, description="Email gateway API token")
    EMAIL_FROM: str = "contact@collab.local"
    EMAIL_TIMEOUT_SEC: int = 30
    # Caps concurrent blocking gateway calls running in worker threads.
    EMAIL_MAX_CONCURRENCY: int = 4
    APP_URL: str = "http://localhost:3000"

    # Notifications
    NOTIFICATION_PREVIEW_CHARS: int = 100
    MESSAGE_MAX_CHARS: int = 5000
    CRON_SECRET: str | None = None
    NUDGE_CREATOR_AFTER_HOURS: int = 24
    NUDGE_BRAND_AFTER_HOURS: int = 72
    BOOST_REMINDER_MIN_DAYS: int = 5
    BOOST_REMINDER_MAX_DAYS: int = 7

    @property
    def DATABASE_URL(self) -> str:
        if self.DB_URL:
            return self.DB_URL
        return (
            f"mysql+aiomysql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}?charset=utf8mb4"
        )


settings = Settings()
