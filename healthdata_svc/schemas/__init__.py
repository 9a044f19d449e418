"""
Pydantic schemas for API request/response validation.

This module contains all Pydantic models used at API boundaries.
"""
from schemas.health_record import (
    HealthRecordCreate,
    HealthRecordUpdate,
    HealthRecordResponse,
    AbnormalValueResponse,
    PaginationInfo,
    PaginatedRecordsResponse,
)
from schemas.analytics import (
    VitalsChartData,
    VitalsHistoryResponse,
    TrendResponse,
    VitalsTrendsResponse,
)

__all__ = [
    # Health record schemas
    "HealthRecordCreate",
    "HealthRecordUpdate",
    "HealthRecordResponse",
    "AbnormalValueResponse",
    "PaginationInfo",
    "PaginatedRecordsResponse",
    # Analytics schemas
    "VitalsChartData",
    "VitalsHistoryResponse",
    "TrendResponse",
    "VitalsTrendsResponse",
]
