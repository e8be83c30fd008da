"""Configuration management for the KHO MVG task service."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # SQLite Configuration
    sqlite_db_path: str = Field(default="data/khomvg.db", description="Path to the SQLite database file")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")

    environment: str = Field(default="development", description="Deployment environment name")

    # Scheduler Configuration
    enable_scheduler: bool = Field(default=True, description="Run the reminder scheduler inside the API process")

    # Pagination
    default_page_size: int = Field(default=20, description="Default page size for task listings")
    max_page_size: int = Field(default=100, description="Upper bound accepted for the 'limit' query parameter")

    @property
    def is_production(self) -> bool:
        """Whether the service runs in production."""
        return self.environment.lower() == "production"

    def require_credential(self, field_name: str, service_name: str) -> str:
        """Validate that a required credential is set, raising a clear error if missing.

        Args:
            field_name: Name of the field to check
            service_name: Human-readable service name for error message

        Returns:
            The credential value

        Raises:
            ValueError: If the credential is None or empty
        """
        value = getattr(self, field_name)
        if not value:
            raise ValueError(
                f"{service_name} credential not configured. "
                f"Set {field_name.upper()} environment variable or add to .env file."
            )
        return value


# Application Constants
class Constants:
    """Application-wide constants."""

    # HTTP Status Codes
    HTTP_BAD_REQUEST: int = 400
    HTTP_NOT_FOUND: int = 404
    HTTP_CONFLICT: int = 409
    HTTP_SERVER_ERROR: int = 500

    # Scheduler Configuration
    DAILY_REMINDER_HOUR: int = 7  # 7am, before the warehouse shift starts

    # Upper bound of the task form's reminder lead time
    MAX_NOTIFY_BEFORE_DAYS: int = 30

    # Job retries
    JOB_MAX_RETRIES: int = 3
    JOB_RETRY_BASE_DELAY_SECONDS: float = 2.0
    JOB_DEAD_LETTER_THRESHOLD: int = 3  # Consecutive failures before dead-lettering

    # Job Tracker Configuration
    TRACKER_DEAD_LETTER_QUEUE_MAXLEN: int = 100

    # Reminder job scans at most this many tasks per page
    REMINDER_SCAN_PAGE_SIZE: int = 500


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
