import os
from typing import Optional, Dict, Any, Tuple
from pydantic_settings import BaseSettings, SettingsConfigDict


def normalize_database_url(url: str) -> str:
    """Point plain PostgreSQL URLs at the asyncpg driver.

    PaaS providers hand out ``postgres://`` URLs, which SQLAlchemy does not
    accept, and ``postgresql://`` resolves to a sync driver.
    """
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


class Settings(BaseSettings):
    """
    Configuration class for environment variables and service settings.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    SERVICE_NAME: str = os.getenv("SERVICE_NAME", "otterhound")
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # HTTP listener
    HOST: str = os.getenv("HOST", "::")
    PORT: int = int(os.getenv("PORT", "6868"))

    # Database settings
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")
    TEST_DATABASE_URL: str = os.getenv("TEST_DATABASE_URL", "")
    DB_POOL_SIZE: int = int(os.getenv("DB_POOL_SIZE", "5"))
    DB_MAX_OVERFLOW: int = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    DB_POOL_TIMEOUT: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    DB_POOL_RECYCLE: int = int(os.getenv("DB_POOL_RECYCLE", "1800"))  # 30 minutes

    # Stripe settings
    STRIPE_SECRET_KEY: str = os.getenv("STRIPE_SECRET_KEY", "")
    STRIPE_WEBHOOK_SECRET: str = os.getenv("STRIPE_WEBHOOK_SECRET", "") # Secret for verifying webhook signatures
    STRIPE_API_BASE: str = os.getenv("STRIPE_API_BASE", "https://api.stripe.com/v1")
    STRIPE_EVENTS_PAGE_LIMIT: int = int(os.getenv("STRIPE_EVENTS_PAGE_LIMIT", "100"))
    SIGNATURE_TOLERANCE_SECONDS: int = int(os.getenv("SIGNATURE_TOLERANCE_SECONDS", "300"))

    # Poll fallback channel
    POLL_ENABLED: bool = os.getenv("POLL_ENABLED", "true").lower() == "true"
    POLL_INTERVAL_SECONDS: float = float(os.getenv("POLL_INTERVAL_SECONDS", "2"))

    # Seconds to wait for in-flight deliveries on shutdown
    SHUTDOWN_DRAIN_SECONDS: float = float(os.getenv("SHUTDOWN_DRAIN_SECONDS", "30"))

    @property
    def async_database_url(self) -> str:
        return normalize_database_url(self.DATABASE_URL)

settings = Settings()


def validate_runtime_config(config: Optional[Settings] = None) -> Tuple[bool, Dict[str, Any]]:
    """
    Check that the settings needed by both ingress channels are present.

    Returns:
        Tuple[bool, Dict[str, Any]]:
            - Boolean indicating if configuration is valid
            - Dictionary with validation details
    """
    config = config or settings
    issues = []
    warnings = []

    if not config.DATABASE_URL:
        issues.append("DATABASE_URL is not set")
    if not config.STRIPE_WEBHOOK_SECRET:
        issues.append("STRIPE_WEBHOOK_SECRET is not set; every push delivery will be rejected")
    elif not config.STRIPE_WEBHOOK_SECRET.startswith("whsec_"):
        warnings.append("STRIPE_WEBHOOK_SECRET does not look like a Stripe signing secret")
    if not config.STRIPE_SECRET_KEY:
        issues.append("STRIPE_SECRET_KEY is not set; polling and subscription lookups will fail")
    if config.POLL_INTERVAL_SECONDS <= 0:
        issues.append("POLL_INTERVAL_SECONDS must be positive")

    return not issues, {"issues": issues, "warnings": warnings}
