"""
Shared pytest fixtures for Health Data Service tests.

This module provides test fixtures that work with the dependency injection
architecture. Key patterns:

1. Database Isolation: Each test gets a fresh temporary database
2. DI Override: Use app.dependency_overrides to inject test dependencies
3. Service Injection: Services are created with test repositories
4. Deterministic Time: Services read the time from a controllable clock

Fixture Hierarchy:
    temp_db → repositories → people → access_gate → services → test_app → client
"""
import os
import tempfile
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from fastapi import FastAPI

# Set test configuration before importing config modules
# This must happen before any config imports
TEST_API_KEY = "test-api-key-for-testing-purposes-12345678"
os.environ.setdefault("HEALTHDATA_SVC_API_KEY", TEST_API_KEY)
os.environ.setdefault("HEALTHDATA_SVC_DB_DIR", tempfile.mkdtemp(prefix="healthdata-svc-tests-"))

from repositories.base import Database
from repositories import UserRepository, AppointmentRepository, HealthRecordRepository
from models.user import Requester
from services import AccessControlGate, HealthRecordService, HistoryService
from core.exceptions import setup_exception_handlers
from core import dependencies as deps
from core.auth import verify_api_key

FIXED_NOW = datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def temp_db():
    """
    Create a temporary database for testing.

    This fixture creates a fresh SQLite database in a temp file,
    ensuring complete isolation between tests.
    """
    fd, db_path = tempfile.mkstemp(suffix='.db')
    os.close(fd)

    db = Database(db_path=db_path)
    yield db

    # Cleanup, including WAL side files
    for path in (db_path, f"{db_path}-wal", f"{db_path}-shm"):
        if os.path.exists(path):
            os.unlink(path)


@pytest.fixture
def user_repo(temp_db):
    """Create a UserRepository with the test database."""
    return UserRepository(db=temp_db)


@pytest.fixture
def appointment_repo(temp_db):
    """Create an AppointmentRepository with the test database."""
    return AppointmentRepository(db=temp_db)


@pytest.fixture
def record_repo(temp_db):
    """Create a HealthRecordRepository with the test database."""
    return HealthRecordRepository(db=temp_db)


@pytest.fixture
def people(user_repo, appointment_repo):
    """
    Seed the user directory and appointment registry.

    - clinician has a confirmed appointment with patient
    - stranger_clinician only has a pending appointment with patient
    - nurse has a role the access control gate does not know
    """
    patient = user_repo.add("Asha Patel", "patient")
    other_patient = user_repo.add("Ben Okafor", "patient")
    clinician = user_repo.add("Dr. Chen", "clinician")
    stranger_clinician = user_repo.add("Dr. Silva", "clinician")
    admin = user_repo.add("Ops Admin", "admin")
    nurse = user_repo.add("Nurse Ray", "nurse")

    appointment_repo.add(clinician.id, patient.id, "confirmed")
    appointment_repo.add(stranger_clinician.id, patient.id, "pending")

    return SimpleNamespace(
        patient=Requester.from_user(patient),
        other_patient=Requester.from_user(other_patient),
        clinician=Requester.from_user(clinician),
        stranger_clinician=Requester.from_user(stranger_clinician),
        admin=Requester.from_user(admin),
        nurse=Requester.from_user(nurse),
    )


@pytest.fixture
def clock():
    """A clock frozen at FIXED_NOW until advanced."""
    return FakeClock()


@pytest.fixture
def access_gate(appointment_repo):
    """Create an AccessControlGate backed by the test appointment registry."""
    return AccessControlGate(appointment_repository=appointment_repo)


@pytest.fixture
def record_service(user_repo, record_repo, access_gate, clock):
    """Create a HealthRecordService with test collaborators."""
    return HealthRecordService(
        user_repository=user_repo,
        health_record_repository=record_repo,
        access_gate=access_gate,
        clock=clock
    )


@pytest.fixture
def history_service(user_repo, record_repo, access_gate, clock):
    """Create a HistoryService with test collaborators."""
    return HistoryService(
        user_repository=user_repo,
        health_record_repository=record_repo,
        access_gate=access_gate,
        clock=clock
    )


@pytest.fixture
def test_app(temp_db, user_repo, appointment_repo, record_repo, access_gate,
             record_service, history_service):
    """
    Create a FastAPI test app with dependency overrides.

    This fixture creates a full FastAPI app and overrides the DI dependencies
    to use test instances. This approach:
    - Uses the real routers (testing actual endpoint code)
    - Injects test database and services via dependency_overrides
    - Registers exception handlers for proper error response testing
    - Keeps the real requester resolution so X-User-Id is exercised
    """
    from api.routers import health_router, records_router, analytics_router

    app = FastAPI(title="Health Data Service API Test")

    # Register exception handlers (same as production)
    setup_exception_handlers(app)

    app.dependency_overrides[deps.get_database] = lambda: temp_db
    app.dependency_overrides[deps.get_user_repository] = lambda: user_repo
    app.dependency_overrides[deps.get_appointment_repository] = lambda: appointment_repo
    app.dependency_overrides[deps.get_health_record_repository] = lambda: record_repo
    app.dependency_overrides[deps.get_access_gate] = lambda: access_gate
    app.dependency_overrides[deps.get_health_record_service] = lambda: record_service
    app.dependency_overrides[deps.get_history_service] = lambda: history_service

    # Override auth to skip API key verification in tests
    async def skip_auth():
        return TEST_API_KEY
    app.dependency_overrides[verify_api_key] = skip_auth

    # Include the real routers (not test copies)
    app.include_router(health_router)
    app.include_router(records_router)
    app.include_router(analytics_router)

    yield app

    # Cleanup: Clear dependency overrides
    app.dependency_overrides.clear()


@pytest.fixture
def client(test_app):
    """Create a test client for the API."""
    return TestClient(test_app)


@pytest.fixture
def as_user():
    """Build the headers identifying a requester to the API."""
    def _headers(requester: Requester) -> dict:
        return {"X-User-Id": str(requester.id)}
    return _headers
