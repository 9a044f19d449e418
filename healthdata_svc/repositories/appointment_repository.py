"""
Repository for the appointment registry.

Only the existence check the access control gate needs lives here; the
booking workflow itself belongs to another service.
"""
import sqlite3
import logging
from typing import Optional

from repositories.base import Database
from core.exceptions import DependencyTimeoutError

logger = logging.getLogger(__name__)

# Appointment statuses that establish a treatment relationship
TREATMENT_STATUSES = ("confirmed", "completed")

# Messages SQLite uses for SQLITE_BUSY and SQLITE_LOCKED
_LOCK_MESSAGES = ("database is locked", "database table is locked")


def _is_lock_timeout(error: sqlite3.OperationalError) -> bool:
    message = str(error).lower()
    return any(text in message for text in _LOCK_MESSAGES)


class AppointmentRepository:
    """
    Repository for appointment lookups.

    It should be instantiated via core.dependencies.get_appointment_repository().
    """

    def __init__(self, db: Database, lookup_timeout: Optional[int] = None):
        """
        Args:
            db: Database instance for data access.
            lookup_timeout: Busy timeout in milliseconds for the relationship lookup.
                Defaults to the database busy timeout.
        """
        self._db = db
        self._lookup_timeout = lookup_timeout

    def add(self, clinician_id: int, patient_id: int, status: str) -> int:
        """Record an appointment between a clinician and a patient."""
        conn = self._db.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute(
                "INSERT INTO appointments (clinician_id, patient_id, status) VALUES (?, ?, ?)",
                (clinician_id, patient_id, status)
            )
            appointment_id = cursor.lastrowid
            conn.commit()
            return appointment_id
        finally:
            conn.close()

    def has_treatment_relationship(self, clinician_id: int, patient_id: int) -> bool:
        """
        Check whether any confirmed or completed appointment links the pair.

        Raises:
            DependencyTimeoutError: If the lookup could not acquire the database
                within the configured timeout.
            sqlite3.OperationalError: Any other database failure.
        """
        conn = self._db.get_connection(busy_timeout=self._lookup_timeout)
        cursor = conn.cursor()

        try:
            cursor.execute(
                f"""
                SELECT 1 FROM appointments
                WHERE clinician_id = ? AND patient_id = ?
                  AND status IN ({", ".join("?" for _ in TREATMENT_STATUSES)})
                LIMIT 1
                """,
                (clinician_id, patient_id, *TREATMENT_STATUSES)
            )
            return cursor.fetchone() is not None
        except sqlite3.OperationalError as e:
            if not _is_lock_timeout(e):
                raise
            logger.warning(
                "Appointment lookup timed out",
                extra={"clinician_id": clinician_id, "patient_id": patient_id, "error": str(e)}
            )
            raise DependencyTimeoutError(dependency="Appointment registry") from e
        finally:
            conn.close()
