"""
Domain models for the health data service.

This module contains internal domain models.
"""
from models.health_record import AbnormalValue, HealthRecord, RECORD_BODY_FIELDS
from models.trend import TrendDirection, TrendResult
from models.user import Requester, Role, User

__all__ = [
    "AbnormalValue",
    "HealthRecord",
    "RECORD_BODY_FIELDS",
    "TrendDirection",
    "TrendResult",
    "Requester",
    "Role",
    "User",
]
