"""
Domain models for health records.
"""
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from core.datetime_utils import from_db_string
from core.reference_ranges import Severity

# Top-level keys of the measured/free-text part of a record, stored as one JSON document
RECORD_BODY_FIELDS = (
    "vitals",
    "measurements",
    "labResults",
    "symptoms",
    "medications",
    "lifestyle",
    "notes",
)


@dataclass(frozen=True)
class AbnormalValue:
    """A measurement that fell outside its reference range."""

    field: str
    value: float
    normal_range: str
    severity: Severity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field,
            "value": self.value,
            "normalRange": self.normal_range,
            "severity": self.severity.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AbnormalValue":
        return cls(
            field=data["field"],
            value=data["value"],
            normal_range=data["normalRange"],
            severity=Severity(data["severity"]),
        )


@dataclass
class HealthRecord:
    """
    One snapshot of a patient's measurements at a point in time.

    ``body`` holds the record groups keyed as in RECORD_BODY_FIELDS, with
    camelCase keys matching the API payload. ``is_abnormal`` and
    ``abnormal_values`` are derived and always written together.
    """

    id: int
    patient_id: int
    recorded_by_id: int
    created_at: datetime
    updated_at: datetime
    body: Dict[str, Any]
    source: str
    is_abnormal: bool
    abnormal_values: List[AbnormalValue] = field(default_factory=list)
    version: int = 1

    def measurement(self, *path: str) -> Optional[Any]:
        """Read a nested value from the body, returning None when any level is missing."""
        current: Any = self.body
        for key in path:
            if not isinstance(current, dict) or key not in current:
                return None
            current = current[key]
        return current

    def to_dict(self) -> Dict[str, Any]:
        """Convert record to the camelCase dictionary used for API responses."""
        result: Dict[str, Any] = {
            "id": self.id,
            "patientId": self.patient_id,
            "recordedById": self.recorded_by_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "source": self.source,
            "isAbnormal": self.is_abnormal,
            "abnormalValues": [value.to_dict() for value in self.abnormal_values],
            "version": self.version,
        }
        for key in RECORD_BODY_FIELDS:
            if key in self.body:
                result[key] = self.body[key]
        return result

    @classmethod
    def from_row(cls, row: tuple) -> "HealthRecord":
        """
        Create a HealthRecord from a database row tuple.

        Args:
            row: Tuple of (id, patient_id, recorded_by_id, created_at, updated_at,
                 source, body, is_abnormal, abnormal_values, version).
        """
        return cls(
            id=row[0],
            patient_id=row[1],
            recorded_by_id=row[2],
            created_at=from_db_string(row[3]),
            updated_at=from_db_string(row[4]),
            source=row[5],
            body=json.loads(row[6]) if row[6] else {},
            is_abnormal=bool(row[7]),
            abnormal_values=[AbnormalValue.from_dict(item) for item in json.loads(row[8] or "[]")],
            version=row[9],
        )
