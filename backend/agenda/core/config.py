# backend/agenda/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import pytz

logger = logging.getLogger(__name__)


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    """Runtime configuration for the booking engine."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")

    # Database
    database_url: str = Field(default="sqlite:///./agenda.db")
    database_pool_size: int = Field(default=10, ge=1)
    database_max_overflow: int = Field(default=5, ge=0)

    # Booking concurrency
    redis_url: Optional[str] = Field(
        default=None, description="Enables the cross-process provider-date mutex"
    )
    lock_namespace: str = Field(default="agenda")
    booking_lock_timeout_seconds: float = Field(default=5.0, gt=0)
    booking_lock_ttl_seconds: int = Field(default=30, ge=1)
    default_appointment_status: Literal["pending", "confirmed"] = Field(default="pending")
    marketplace_timezone: str = Field(
        default="UTC", description="Timezone that decides which dates are in the past"
    )

    # Auth (tokens are issued by the identity service)
    secret_key: SecretStr = Field(default=SecretStr("change-me-in-production"))
    algorithm: str = Field(default="HS256")

    # Notifications
    notification_webhook_url: Optional[str] = Field(default=None)
    notification_timeout_seconds: float = Field(default=5.0, gt=0)

    # Completion codes
    completion_code_salt: SecretStr = Field(default=SecretStr("agenda_validation_salt"))
    completion_code_max_attempts: int = Field(default=3, ge=1)

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(f"Unknown log level: {value}")
        return normalized

    @field_validator("marketplace_timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            pytz.timezone(value)
        except pytz.UnknownTimeZoneError as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    def get_database_url(self) -> str:
        """Return the SQLAlchemy URL, upgrading legacy postgres:// schemes."""
        url = self.database_url
        if url.startswith("postgres://"):
            url = "postgresql://" + url[len("postgres://") :]
        return url


settings = Settings()
