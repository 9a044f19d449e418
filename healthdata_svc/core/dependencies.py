"""
FastAPI Dependency Injection configuration for Health Data Service API.

This module provides the dependency injection (DI) infrastructure following
the Dependency Inversion Principle. It enables:
- Clean separation between API, Service, and Repository layers
- Easy testing with fake dependencies
- Centralized configuration of all dependencies

Architecture Flow:
    API Layer (Routers)
         ↓ Depends()
    Service Layer (HealthRecordService, HistoryService)
         ↓ Injected
    Access Control Gate
         ↓ Injected
    Repository Layer (users, appointments, health records)
         ↓ Injected
    Database (SQLite Connection)

Usage in Routers:
    from core.dependencies import get_health_record_service

    @router.post("")
    async def create_record(
        record: HealthRecordCreate,
        service: HealthRecordService = Depends(get_health_record_service)
    ):
        return service.create_record(record, requester)

Testing:
    # Override dependencies in tests
    app.dependency_overrides[get_database] = lambda: test_database
"""
import logging
from typing import Optional

from core.config import settings

logger = logging.getLogger(__name__)


# =============================================================================
# DATABASE DEPENDENCY
# =============================================================================

# Lazy import to avoid circular dependencies
# The Database class is imported when first needed
_database_instance: Optional["Database"] = None


def get_database() -> "Database":
    """
    Get the database instance (singleton pattern via FastAPI DI).

    The database is created on first use with WAL mode and the configured
    busy timeout.

    Note:
        Import here to avoid circular imports with repositories.
    """
    global _database_instance

    if _database_instance is None:
        from repositories.base import Database

        logger.info(f"Initializing database: {settings.database_path}")
        _database_instance = Database(
            db_path=settings.database_path,
            busy_timeout=settings.healthdata_svc_db_busy_timeout
        )
        logger.info("Database initialized successfully")

    return _database_instance


def reset_database() -> None:
    """
    Reset the database instance (for testing only).

    This allows tests to inject a fresh database instance.
    """
    global _database_instance
    _database_instance = None


# =============================================================================
# REPOSITORY DEPENDENCIES
# =============================================================================

def get_user_repository() -> "UserRepository":
    """
    Get a UserRepository instance with database injected.

    Returns:
        UserRepository: The user directory lookup.
    """
    from repositories import UserRepository

    return UserRepository(db=get_database())


def get_appointment_repository() -> "AppointmentRepository":
    """
    Get an AppointmentRepository using the configured lookup timeout.

    Returns:
        AppointmentRepository: The appointment registry lookup.
    """
    from repositories import AppointmentRepository

    return AppointmentRepository(
        db=get_database(),
        lookup_timeout=settings.healthdata_svc_appointment_lookup_timeout
    )


def get_health_record_repository() -> "HealthRecordRepository":
    """
    Get a HealthRecordRepository instance with database injected.

    Returns:
        HealthRecordRepository: Repository for health record CRUD operations.
    """
    from repositories import HealthRecordRepository

    return HealthRecordRepository(db=get_database())


# =============================================================================
# SERVICE DEPENDENCIES
# =============================================================================

def get_access_gate() -> "AccessControlGate":
    """
    Get an AccessControlGate backed by the appointment registry.
    """
    from services import AccessControlGate

    return AccessControlGate(appointment_repository=get_appointment_repository())


def get_health_record_service() -> "HealthRecordService":
    """
    Get a HealthRecordService instance with its collaborators injected.

    Returns:
        HealthRecordService: Service for the record lifecycle.
    """
    from services import HealthRecordService

    return HealthRecordService(
        user_repository=get_user_repository(),
        health_record_repository=get_health_record_repository(),
        access_gate=get_access_gate()
    )


def get_history_service() -> "HistoryService":
    """
    Get a HistoryService configured with the paging and window limits.

    Returns:
        HistoryService: Service for historical queries.
    """
    from services import HistoryService

    return HistoryService(
        user_repository=get_user_repository(),
        health_record_repository=get_health_record_repository(),
        access_gate=get_access_gate(),
        default_page_size=settings.healthdata_svc_default_page_size,
        max_page_size=settings.healthdata_svc_max_page_size,
        default_days=settings.healthdata_svc_vitals_history_days,
        max_days=settings.healthdata_svc_vitals_history_max_days
    )
