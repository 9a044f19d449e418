"""
Analytics router - trend summaries over a patient's vitals.

Architecture:
    HTTP Request → Router (this file) → HistoryService → trend_service
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from schemas import TrendResponse, VitalsTrendsResponse
from services import HistoryService
from services.trend_service import compute_vitals_trends
from models.user import Requester
from core.auth import get_current_requester, verify_api_key
from core.dependencies import get_history_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/analytics",
    tags=["Analytics"],
    dependencies=[Depends(verify_api_key)],
)


@router.get(
    "/patients/{patient_id}/vitals-trends",
    response_model=VitalsTrendsResponse,
    response_model_exclude_none=True,
    summary="Get vitals trends",
    description="Direction and size of change of each vital sign over the last N days. "
                "A change above 5% is a trend; blood pressure is trended on systolic. "
                "Series starting at zero have no defined trend and are left out."
)
async def get_vitals_trends(
    patient_id: int,
    days: Optional[int] = Query(None, description="Window size in days", examples=[30]),
    requester: Requester = Depends(get_current_requester),
    service: HistoryService = Depends(get_history_service)
):
    """
    Raises:
    - 403 Forbidden: Requester may not read the patient's records (AccessDeniedError)
    - 400 Bad Request: days out of range (InvalidRecordDataError)
    """
    history = service.get_vitals_history(patient_id, requester, days=days)
    trends = compute_vitals_trends(history.chart_data.model_dump(by_alias=True))

    return VitalsTrendsResponse(
        period=history.period,
        trends={name: TrendResponse(**result.to_dict()) for name, result in trends.items()},
        summary=history.summary
    )
