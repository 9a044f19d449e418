"""
Repository layer for database access.

This module contains all database access operations, encapsulating SQL and data persistence logic.
"""
from repositories.base import Database
from repositories.user_repository import UserRepository
from repositories.appointment_repository import AppointmentRepository
from repositories.health_record_repository import HealthRecordRepository

__all__ = [
    "Database",
    "UserRepository",
    "AppointmentRepository",
    "HealthRecordRepository",
]
