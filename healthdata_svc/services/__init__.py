"""
Service layer for business logic.

This module contains all business logic and orchestration services.
The rule engine and trend computation are plain functions; import them
directly from services.rule_engine and services.trend_service.
"""
from services.access_control import AccessControlGate, AccessDecision, DenialReason
from services.health_record_service import HealthRecordService
from services.history_service import HistoryService

__all__ = [
    "AccessControlGate",
    "AccessDecision",
    "DenialReason",
    "HealthRecordService",
    "HistoryService",
]
