"""
Repository for health record database operations.

This module contains all database access for health record-related operations.
Uses single-transaction patterns so a write and the read of its result are atomic.

Architecture:
    HealthRecordRepository is the data access layer for health records.
    It should be injected via core.dependencies.get_health_record_repository().

Ordering:
    Listings order by (created_at, id) so records sharing a timestamp keep a
    stable insertion order across pages.

All SQL is encapsulated in this repository - no SQL in service or API layers.
"""
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from repositories.base import Database
from models.health_record import AbnormalValue, HealthRecord
from core.datetime_utils import to_db_string

logger = logging.getLogger(__name__)

_SELECT_COLUMNS = """
    SELECT id, patient_id, recorded_by_id, created_at, updated_at,
           source, body, is_abnormal, abnormal_values, version
    FROM health_records
"""


def _dump_abnormal_values(abnormal_values: List[AbnormalValue]) -> str:
    return json.dumps([value.to_dict() for value in abnormal_values], ensure_ascii=False)


class HealthRecordRepository:
    """
    Repository for health record CRUD operations.

    This repository encapsulates all database operations for health records.
    It should be instantiated via core.dependencies.get_health_record_repository().
    """

    def __init__(self, db: Database):
        """
        Initialize the health record repository.

        Args:
            db: Database instance for data access.
        """
        self._db = db

    def create(
        self,
        patient_id: int,
        recorded_by_id: int,
        created_at: datetime,
        source: str,
        body: Dict[str, Any],
        is_abnormal: bool,
        abnormal_values: List[AbnormalValue]
    ) -> HealthRecord:
        """
        Insert a health record and return it as stored.

        Uses a single transaction to insert and retrieve the record.
        """
        conn = self._db.get_connection()
        cursor = conn.cursor()

        try:
            timestamp = to_db_string(created_at)
            cursor.execute("""
                INSERT INTO health_records
                (patient_id, recorded_by_id, created_at, updated_at, source,
                 body, is_abnormal, abnormal_values, version)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, 1)
            """, (
                patient_id,
                recorded_by_id,
                timestamp,
                timestamp,
                source,
                json.dumps(body, ensure_ascii=False),
                int(is_abnormal),
                _dump_abnormal_values(abnormal_values),
            ))
            record_id = cursor.lastrowid

            cursor.execute(_SELECT_COLUMNS + " WHERE id = ?", (record_id,))
            row = cursor.fetchone()

            conn.commit()
            return HealthRecord.from_row(row)
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def get_by_id(self, record_id: int) -> Optional[HealthRecord]:
        """Fetch a single record by id, or None."""
        conn = self._db.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute(_SELECT_COLUMNS + " WHERE id = ?", (record_id,))
            row = cursor.fetchone()
        finally:
            conn.close()

        return HealthRecord.from_row(row) if row else None

    def update(
        self,
        record_id: int,
        expected_version: int,
        updated_at: datetime,
        source: str,
        body: Dict[str, Any],
        is_abnormal: bool,
        abnormal_values: List[AbnormalValue]
    ) -> Optional[HealthRecord]:
        """
        Replace the mutable columns of a record if its version is unchanged.

        patient_id, recorded_by_id and created_at are never written here.

        Returns:
            The updated record, or None if the record is gone or its version
            no longer matches ``expected_version`` (nothing is written then).
        """
        conn = self._db.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE health_records
                SET updated_at = ?, source = ?, body = ?, is_abnormal = ?,
                    abnormal_values = ?, version = version + 1
                WHERE id = ? AND version = ?
            """, (
                to_db_string(updated_at),
                source,
                json.dumps(body, ensure_ascii=False),
                int(is_abnormal),
                _dump_abnormal_values(abnormal_values),
                record_id,
                expected_version,
            ))

            if cursor.rowcount == 0:
                conn.rollback()
                return None

            cursor.execute(_SELECT_COLUMNS + " WHERE id = ?", (record_id,))
            row = cursor.fetchone()

            conn.commit()
            return HealthRecord.from_row(row)
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def delete(self, record_id: int) -> bool:
        """Delete a record. Returns False if it did not exist."""
        conn = self._db.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute("DELETE FROM health_records WHERE id = ?", (record_id,))
            deleted = cursor.rowcount > 0
            conn.commit()
            return deleted
        finally:
            conn.close()

    @staticmethod
    def _build_filters(
        patient_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        abnormal_only: bool = False
    ) -> Tuple[str, List[Any]]:
        """Build the WHERE clause shared by listings and counts."""
        clause = " WHERE patient_id = ?"
        params: List[Any] = [patient_id]

        if start is not None:
            clause += " AND created_at >= ?"
            params.append(to_db_string(start))

        if end is not None:
            clause += " AND created_at <= ?"
            params.append(to_db_string(end))

        if abnormal_only:
            clause += " AND is_abnormal = 1"

        return clause, params

    def find_by_patient(
        self,
        patient_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        abnormal_only: bool = False,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[HealthRecord]:
        """
        List a patient's records newest first.

        Args:
            patient_id: Patient whose records to list.
            start: Inclusive lower bound on created_at (optional).
            end: Inclusive upper bound on created_at (optional).
            abnormal_only: Only return records flagged abnormal.
            limit: Maximum number of records to return (optional).
            offset: Number of records to skip.
        """
        clause, params = self._build_filters(patient_id, start, end, abnormal_only)
        query = _SELECT_COLUMNS + clause + " ORDER BY created_at DESC, id DESC"

        if limit is not None:
            query += " LIMIT ? OFFSET ?"
            params.extend([limit, offset])

        conn = self._db.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute(query, params)
            rows = cursor.fetchall()
        finally:
            conn.close()

        return [HealthRecord.from_row(row) for row in rows]

    def count_by_patient(
        self,
        patient_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        abnormal_only: bool = False
    ) -> int:
        """Count a patient's records matching the same filters as find_by_patient."""
        clause, params = self._build_filters(patient_id, start, end, abnormal_only)

        conn = self._db.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT COUNT(*) FROM health_records" + clause, params)
            return cursor.fetchone()[0]
        finally:
            conn.close()

    def get_latest(self, patient_id: int) -> Optional[HealthRecord]:
        """Most recent record of a patient, or None."""
        records = self.find_by_patient(patient_id, limit=1)
        return records[0] if records else None

    def find_since(self, patient_id: int, since: datetime) -> List[HealthRecord]:
        """Records created at or after ``since``, oldest first."""
        clause, params = self._build_filters(patient_id, start=since)

        conn = self._db.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute(_SELECT_COLUMNS + clause + " ORDER BY created_at ASC, id ASC", params)
            rows = cursor.fetchall()
        finally:
            conn.close()

        return [HealthRecord.from_row(row) for row in rows]
