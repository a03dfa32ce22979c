"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    # Proxy/Load Balancer Settings
    # Set to True when running behind nginx/Cloudflare to trust X-Forwarded-For
    TRUST_PROXY_HEADERS: bool = False

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800
    DB_STATEMENT_TIMEOUT_MS: int = 10000

    # Booking admission
    BOOKING_LOCK_TIMEOUT_MS: int = 5000  # Max wait for the per-member booking lock
    SLOT_INTERVAL_MINUTES: int = 15  # Step between candidate start times on /slots
    TRANSIENT_RETRY_AFTER_SECONDS: int = 2

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Rate Limiting
    REDIS_URL: str = "redis://localhost:6379/0"
    RATE_LIMIT_API: int = 60  # General API, requests per minute
    RATE_LIMIT_BOOKING: str = "10/minute"  # Public booking submissions per client IP

    # Background worker
    WORKER_POLL_INTERVAL: int = 10
    WORKER_BATCH_SIZE: int = 10

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
