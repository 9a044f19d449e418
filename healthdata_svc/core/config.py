"""
Configuration module for Health Data Service API.
Uses Pydantic BaseSettings for validation - app fails fast if required config is missing.
"""
import sys
import logging
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings with validation.
    Required fields will cause the app to fail fast if not provided.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database Configuration
    healthdata_svc_db_dir: str = Field(default="data", description="Database directory")
    healthdata_svc_db_file: str = Field(default="health_data.db", description="Database filename")
    healthdata_svc_db_busy_timeout: int = Field(default=5000, description="SQLite busy timeout in milliseconds")
    healthdata_svc_appointment_lookup_timeout: int = Field(
        default=2000,
        description="Timeout in milliseconds for the treatment relationship lookup"
    )

    # API Configuration
    healthdata_svc_host: str = Field(default="0.0.0.0", description="API host")
    healthdata_svc_port: int = Field(default=8000, description="API port")
    healthdata_svc_reload: bool = Field(default=False, description="Enable hot reload")

    # Query Configuration
    healthdata_svc_default_page_size: int = Field(default=10, ge=1, description="Default page size for record listings")
    healthdata_svc_max_page_size: int = Field(default=100, ge=1, description="Maximum page size for record listings")
    healthdata_svc_vitals_history_days: int = Field(default=30, ge=1, description="Default vitals history window in days")
    healthdata_svc_vitals_history_max_days: int = Field(default=365, ge=1, description="Largest vitals history window in days")

    # API Authentication Configuration
    healthdata_svc_api_key: str = Field(
        ...,  # Required - no default means fail fast if missing
        description="API key for authenticating requests to the Health Data Service API",
        min_length=32,  # Enforce minimum key length for security
    )

    @model_validator(mode="after")
    def validate_limits(self) -> "Settings":
        """
        Validate query limits at startup and fail fast with clear error messages.
        """
        errors = []

        if self.healthdata_svc_default_page_size > self.healthdata_svc_max_page_size:
            errors.append(
                "HEALTHDATA_SVC_DEFAULT_PAGE_SIZE must not exceed HEALTHDATA_SVC_MAX_PAGE_SIZE"
            )

        if self.healthdata_svc_vitals_history_days > self.healthdata_svc_vitals_history_max_days:
            errors.append(
                "HEALTHDATA_SVC_VITALS_HISTORY_DAYS must not exceed HEALTHDATA_SVC_VITALS_HISTORY_MAX_DAYS"
            )

        if self.healthdata_svc_appointment_lookup_timeout > self.healthdata_svc_db_busy_timeout:
            logger.warning(
                "Appointment lookup timeout exceeds the database busy timeout - "
                "clinician access checks may wait longer than regular queries"
            )

        if errors:
            error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            logger.critical(error_msg)
            sys.exit(1)

        return self

    @property
    def database_path(self) -> str:
        """Get the full database path."""
        return str(Path(self.healthdata_svc_db_dir) / self.healthdata_svc_db_file)

    def ensure_directories(self) -> None:
        """Ensure required directories exist."""
        Path(self.healthdata_svc_db_dir).mkdir(parents=True, exist_ok=True)


# Create global settings instance - fails fast if required config is missing
settings = Settings()

# Ensure directories exist on import
settings.ensure_directories()

DATABASE_PATH = settings.database_path
DATABASE_BUSY_TIMEOUT = settings.healthdata_svc_db_busy_timeout

API_HOST = settings.healthdata_svc_host
API_PORT = settings.healthdata_svc_port
API_RELOAD = settings.healthdata_svc_reload

API_KEY = settings.healthdata_svc_api_key
