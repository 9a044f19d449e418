"""
Health data router - health record lifecycle and history endpoints.

All endpoints require API key authentication and act for the user named
in the X-User-Id header.

Architecture:
    HTTP Request → Router (this file) → Services → Repositories → Database

Dependency Injection:
    Services are injected via FastAPI's Depends() mechanism.
    The DI chain is defined in core/dependencies.py.

    Example flow for create_record:
    1. Request arrives at /api/v1/health-data (POST)
    2. verify_api_key() checks the X-API-Key header
    3. get_current_requester() resolves X-User-Id through the user directory
    4. get_health_record_service() builds the service with its repositories and gate
    5. Endpoint handler receives the fully configured service
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from schemas import (
    HealthRecordCreate,
    HealthRecordUpdate,
    HealthRecordResponse,
    PaginatedRecordsResponse,
    VitalsHistoryResponse,
)
from services import HealthRecordService, HistoryService
from models.user import Requester
from core.auth import get_current_requester, verify_api_key
from core.dependencies import get_health_record_service, get_history_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/health-data",
    tags=["Health Data"],
    dependencies=[Depends(verify_api_key)],  # Require API key for all endpoints
)


# =============================================================================
# RECORD LIFECYCLE
# =============================================================================
# Note: Services are injected via Depends(). No module-level instantiation.
# Domain exceptions are converted to responses by setup_exception_handlers().

@router.post(
    "",
    response_model=HealthRecordResponse,
    response_model_exclude_none=True,
    status_code=201,
    summary="Create a health record",
    description="Record vitals, body measurements, lab results, symptoms, medications and lifestyle "
                "data for a patient. BMI and abnormal values are computed by the service."
)
async def create_record(
    record: HealthRecordCreate,
    requester: Requester = Depends(get_current_requester),
    service: HealthRecordService = Depends(get_health_record_service)
):
    """
    Create a new health record.

    - Patients record for themselves; **patientId** is ignored.
    - Clinicians and admins must send **patientId** of an existing patient.
    - Clinicians need a confirmed or completed appointment with the patient.

    Raises:
    - 400 Bad Request: Missing or invalid patientId (InvalidRecordDataError)
    - 403 Forbidden: Requester may not record for the patient (AccessDeniedError)
    """
    return service.create_record(record, requester)


@router.get(
    "/records/{record_id}",
    response_model=HealthRecordResponse,
    response_model_exclude_none=True,
    summary="Get a health record"
)
async def get_record(
    record_id: int,
    requester: Requester = Depends(get_current_requester),
    service: HealthRecordService = Depends(get_health_record_service)
):
    return service.get_record(record_id, requester)


@router.put(
    "/records/{record_id}",
    response_model=HealthRecordResponse,
    response_model_exclude_none=True,
    summary="Update a health record",
    description="Partially update a record. Nested groups are merged, lists are replaced, "
                "and null clears a value. Derived fields are recomputed."
)
async def update_record(
    record_id: int,
    patch: HealthRecordUpdate,
    requester: Requester = Depends(get_current_requester),
    service: HealthRecordService = Depends(get_health_record_service)
):
    """
    Update a health record.

    Raises:
    - 404 Not Found: Record doesn't exist (RecordNotFoundError)
    - 403 Forbidden: Requester may not modify the patient's records (AccessDeniedError)
    - 409 Conflict: The record changed concurrently (ConcurrentUpdateError)
    """
    return service.update_record(record_id, patch, requester)


@router.delete(
    "/records/{record_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a health record",
    description="Only the owning patient or an admin may delete a record."
)
async def delete_record(
    record_id: int,
    requester: Requester = Depends(get_current_requester),
    service: HealthRecordService = Depends(get_health_record_service)
) -> Response:
    service.delete_record(record_id, requester)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# PATIENT HISTORY
# =============================================================================

@router.get(
    "/patients/{patient_id}",
    response_model=PaginatedRecordsResponse,
    response_model_exclude_none=True,
    summary="List a patient's health records",
    description="Records newest first with pagination and an optional inclusive date range."
)
async def list_patient_records(
    patient_id: int,
    page: int = Query(1, description="1-based page number", examples=[1]),
    limit: Optional[int] = Query(None, description="Records per page", examples=[10]),
    start_date: Optional[datetime] = Query(None, alias="startDate", description="Inclusive lower bound"),
    end_date: Optional[datetime] = Query(None, alias="endDate", description="Inclusive upper bound"),
    requester: Requester = Depends(get_current_requester),
    service: HistoryService = Depends(get_history_service)
):
    return service.list_records(
        patient_id,
        requester,
        page=page,
        limit=limit,
        start_date=start_date,
        end_date=end_date
    )


@router.get(
    "/patients/{patient_id}/latest",
    response_model=HealthRecordResponse,
    response_model_exclude_none=True,
    summary="Get a patient's most recent health record"
)
async def get_latest_record(
    patient_id: int,
    requester: Requester = Depends(get_current_requester),
    service: HistoryService = Depends(get_history_service)
):
    return service.get_latest(patient_id, requester)


@router.get(
    "/patients/{patient_id}/abnormal",
    response_model=PaginatedRecordsResponse,
    response_model_exclude_none=True,
    summary="List a patient's abnormal health records"
)
async def list_abnormal_records(
    patient_id: int,
    page: int = Query(1, description="1-based page number"),
    limit: Optional[int] = Query(None, description="Records per page"),
    requester: Requester = Depends(get_current_requester),
    service: HistoryService = Depends(get_history_service)
):
    return service.list_abnormal(patient_id, requester, page=page, limit=limit)


@router.get(
    "/patients/{patient_id}/vitals-history",
    response_model=VitalsHistoryResponse,
    response_model_exclude_none=True,
    summary="Get a patient's vitals history",
    description="Records of the last N days with vitals series ready for charting."
)
async def get_vitals_history(
    patient_id: int,
    days: Optional[int] = Query(None, description="Window size in days", examples=[30]),
    requester: Requester = Depends(get_current_requester),
    service: HistoryService = Depends(get_history_service)
):
    return service.get_vitals_history(patient_id, requester, days=days)
