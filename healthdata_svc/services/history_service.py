"""
Service layer for historical queries over health records.

Paginated listings, the latest record, abnormal-only listings and the
vitals history used for charts. Every operation checks access to the
patient before reading anything.

Architecture:
    API Layer (routers) → HistoryService → AccessControlGate
                                         → HealthRecordRepository → Database

Dependency Injection:
    Use core.dependencies.get_history_service() in routers with Depends().
"""
import logging
import math
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from repositories import HealthRecordRepository, UserRepository
from models.health_record import HealthRecord
from models.user import Requester
from schemas.health_record import HealthRecordResponse, PaginatedRecordsResponse, PaginationInfo
from schemas.analytics import (
    BloodPressurePoint,
    HistoryPeriod,
    MetricPoint,
    VitalsChartData,
    VitalsHistoryResponse,
    VitalsSummary,
)
from services.access_control import AccessControlGate
from services.health_record_service import to_response
from core.datetime_utils import ensure_utc, utc_now
from core.exceptions import InvalidRecordDataError, PatientNotFoundError, RecordNotFoundError

logger = logging.getLogger(__name__)

# Single-value series of the vitals chart: series name -> path inside a record
_METRIC_SERIES = {
    "heart_rate": ("vitals", "heartRate", "value"),
    "temperature": ("vitals", "temperature", "value"),
    "oxygen_saturation": ("vitals", "oxygenSaturation", "value"),
    "weight": ("measurements", "weight", "value"),
    "bmi": ("measurements", "bmi"),
}


def build_chart_data(records: List[HealthRecord]) -> VitalsChartData:
    """
    Extract per-vital time series from records in chronological order.

    Blood pressure points are kept when either reading is present; other
    series drop records without a value.
    """
    chart = VitalsChartData()

    for record in records:
        systolic = record.measurement("vitals", "bloodPressure", "systolic")
        diastolic = record.measurement("vitals", "bloodPressure", "diastolic")
        if systolic is not None or diastolic is not None:
            chart.blood_pressure.append(
                BloodPressurePoint(date=record.created_at, systolic=systolic, diastolic=diastolic)
            )

        for series, path in _METRIC_SERIES.items():
            value = record.measurement(*path)
            if value is not None:
                getattr(chart, series).append(MetricPoint(date=record.created_at, value=value))

    return chart


class HistoryService:
    """
    Read-only queries over a patient's health record history.
    """

    def __init__(
        self,
        user_repository: UserRepository,
        health_record_repository: HealthRecordRepository,
        access_gate: AccessControlGate,
        clock: Callable[[], datetime] = utc_now,
        default_page_size: int = 10,
        max_page_size: int = 100,
        default_days: int = 30,
        max_days: int = 365
    ):
        """
        Initialize the history service.

        Args:
            user_repository: User directory used to check the patient exists.
            health_record_repository: Persistence for health records.
            access_gate: Gate deciding who may read which patient's records.
            clock: Source of the current UTC time (injectable for tests).
            default_page_size: Page size when none is requested.
            max_page_size: Largest page size a caller may request.
            default_days: Vitals history window when none is requested.
            max_days: Largest vitals history window a caller may request.
        """
        self._user_repo = user_repository
        self._record_repo = health_record_repository
        self._gate = access_gate
        self._clock = clock
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size
        self._default_days = default_days
        self._max_days = max_days

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def _authorize(self, patient_id: int, requester: Requester) -> None:
        """Gate the request, then make sure the patient exists."""
        self._gate.require_access(patient_id, requester)

        patient = self._user_repo.resolve_user(patient_id)
        if patient is None or not patient.is_patient:
            raise PatientNotFoundError(patient_id=patient_id)

    def _validate_paging(self, page: int, limit: int) -> None:
        if page < 1:
            raise InvalidRecordDataError(detail="page must be at least 1", page=page)
        if limit < 1 or limit > self._max_page_size:
            raise InvalidRecordDataError(
                detail=f"limit must be between 1 and {self._max_page_size}",
                limit=limit
            )

    def _paginate(
        self,
        patient_id: int,
        page: int,
        limit: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        abnormal_only: bool = False
    ) -> PaginatedRecordsResponse:
        total = self._record_repo.count_by_patient(patient_id, start, end, abnormal_only)
        records = self._record_repo.find_by_patient(
            patient_id,
            start=start,
            end=end,
            abnormal_only=abnormal_only,
            limit=limit,
            offset=(page - 1) * limit
        )

        return PaginatedRecordsResponse(
            records=[to_response(record) for record in records],
            pagination=PaginationInfo(
                current_page=page,
                total_pages=math.ceil(total / limit),
                total_records=total,
                has_next_page=page * limit < total,
                has_prev_page=page > 1,
            )
        )

    # =========================================================================
    # QUERIES
    # =========================================================================

    def list_records(
        self,
        patient_id: int,
        requester: Requester,
        page: int = 1,
        limit: Optional[int] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ) -> PaginatedRecordsResponse:
        """
        List a patient's records newest first, one page at a time.

        Args:
            patient_id: Patient whose records to list.
            requester: Who is asking.
            page: 1-based page number.
            limit: Page size (defaults to the configured page size).
            start_date: Inclusive lower bound on creation time (optional).
            end_date: Inclusive upper bound on creation time (optional).

        Raises:
            AccessDeniedError: If the requester may not read the patient's records.
            PatientNotFoundError: If no such patient exists.
            InvalidRecordDataError: On invalid paging or an inverted date range.
        """
        self._authorize(patient_id, requester)

        limit = self._default_page_size if limit is None else limit
        self._validate_paging(page, limit)

        start, end = ensure_utc(start_date), ensure_utc(end_date)
        if start is not None and end is not None and start > end:
            raise InvalidRecordDataError(detail="startDate must not be after endDate")

        return self._paginate(patient_id, page, limit, start=start, end=end)

    def get_latest(self, patient_id: int, requester: Requester) -> HealthRecordResponse:
        """
        Most recent record of a patient.

        Raises:
            AccessDeniedError: If the requester may not read the patient's records.
            PatientNotFoundError: If no such patient exists.
            RecordNotFoundError: If the patient has no records.
        """
        self._authorize(patient_id, requester)

        record = self._record_repo.get_latest(patient_id)
        if record is None:
            raise RecordNotFoundError(detail=f"No health records found for patient {patient_id}")
        return to_response(record)

    def list_abnormal(
        self,
        patient_id: int,
        requester: Requester,
        page: int = 1,
        limit: Optional[int] = None
    ) -> PaginatedRecordsResponse:
        """List a patient's abnormal records newest first, one page at a time."""
        self._authorize(patient_id, requester)

        limit = self._default_page_size if limit is None else limit
        self._validate_paging(page, limit)

        return self._paginate(patient_id, page, limit, abnormal_only=True)

    def get_vitals_history(
        self,
        patient_id: int,
        requester: Requester,
        days: Optional[int] = None
    ) -> VitalsHistoryResponse:
        """
        Records of the last ``days`` days with their vitals as chart series.

        Raises:
            AccessDeniedError: If the requester may not read the patient's records.
            PatientNotFoundError: If no such patient exists.
            InvalidRecordDataError: If ``days`` is outside 1..max_days.
        """
        self._authorize(patient_id, requester)

        days = self._default_days if days is None else days
        if days < 1 or days > self._max_days:
            raise InvalidRecordDataError(
                detail=f"days must be between 1 and {self._max_days}",
                days=days
            )

        end = self._clock()
        start = end - timedelta(days=days)
        records = self._record_repo.find_since(patient_id, start)

        logger.debug(
            f"Vitals history loaded for patient {patient_id}",
            extra={"patient_id": patient_id, "days": days, "count": len(records)}
        )

        responses = [to_response(record) for record in records]
        return VitalsHistoryResponse(
            period=HistoryPeriod(start_date=start, end_date=end),
            records=responses,
            chart_data=build_chart_data(records),
            summary=VitalsSummary(
                total_records=len(records),
                abnormal_records=sum(1 for record in records if record.is_abnormal),
                latest_record=responses[-1] if responses else None,
            )
        )
