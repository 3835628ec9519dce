"""Configuration settings for the application."""
import logging
from decimal import Decimal
from functools import lru_cache
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings."""

    # Application
    app_name: str = "Boardroom Buddy"
    app_version: str = "1.0.0"
    debug: bool = False

    # Database
    database_url: str
    database_echo: bool = False

    # Security
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24

    # CORS
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    # Free hours
    free_hours_exempt_organizations: list[str] = ["Lab Partners"]
    default_monthly_free_hours: Decimal = Decimal("10")

    # Business hours (24h clock, whole hours)
    business_hours_start: int = 8
    business_hours_end: int = 18

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


def validate_business_hours(current_settings: Settings) -> None:
    """Fail fast if the configured business hours make no sense."""
    start = current_settings.business_hours_start
    end = current_settings.business_hours_end
    if not (0 <= start < end <= 24):
        raise RuntimeError(
            f"Invalid business hours: start={start}, end={end}"
        )
    logger.info(f"Business hours: {start:02d}:00-{end:02d}:00")
    if current_settings.free_hours_exempt_organizations:
        exempt = ", ".join(current_settings.free_hours_exempt_organizations)
        logger.info(f"Free-hours exempt organizations: {exempt}")
