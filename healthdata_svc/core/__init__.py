"""
Core module for application configuration, logging, and shared constants.

This module provides:
- Settings: Application configuration via pydantic-settings
- Dependency injection: FastAPI Depends() functions for services and repositories
- Exceptions: Domain-specific exception classes with HTTP status codes
- Datetime utilities: UTC-first datetime handling
- Reference ranges: The clinical threshold table used by the rule engine
"""
from core.config import settings, Settings

# Dependency injection - import functions for FastAPI Depends()
from core.dependencies import (
    get_database,
    get_user_repository,
    get_appointment_repository,
    get_health_record_repository,
    get_access_gate,
    get_health_record_service,
    get_history_service,
    reset_database,
)

# Exception classes for consistent error handling
from core.exceptions import (
    HealthDataError,
    InvalidRecordDataError,
    InvalidInputError,
    RecordNotFoundError,
    PatientNotFoundError,
    AccessDeniedError,
    ConcurrentUpdateError,
    DatabaseError,
    DependencyTimeoutError,
    setup_exception_handlers,
)

# UTC datetime utilities
from core.datetime_utils import (
    utc_now,
    to_utc,
    parse_datetime,
    to_db_string,
    from_db_string,
)

# Reference range exports
from core.reference_ranges import (
    ReferenceRange,
    Severity,
    get_reference_range,
    list_reference_ranges,
)

__all__ = [
    # Settings
    "settings",
    "Settings",
    # Dependency injection
    "get_database",
    "get_user_repository",
    "get_appointment_repository",
    "get_health_record_repository",
    "get_access_gate",
    "get_health_record_service",
    "get_history_service",
    "reset_database",
    # Exceptions
    "HealthDataError",
    "InvalidRecordDataError",
    "InvalidInputError",
    "RecordNotFoundError",
    "PatientNotFoundError",
    "AccessDeniedError",
    "ConcurrentUpdateError",
    "DatabaseError",
    "DependencyTimeoutError",
    "setup_exception_handlers",
    # Datetime utilities
    "utc_now",
    "to_utc",
    "parse_datetime",
    "to_db_string",
    "from_db_string",
    # Reference ranges
    "ReferenceRange",
    "Severity",
    "get_reference_range",
    "list_reference_ranges",
]
