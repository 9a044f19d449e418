"""
Service layer for the health record lifecycle.

This service owns create, read, update and delete of health records. Every
write runs the record body through the rule engine so the derived fields
(BMI, abnormal values, abnormality flag) always match the stored data.

Architecture:
    API Layer (routers) → HealthRecordService → AccessControlGate
                                              → HealthRecordRepository → Database

Dependency Injection:
    HealthRecordService receives its collaborators via constructor injection.
    Use core.dependencies.get_health_record_service() in routers with Depends().
"""
import copy
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Union

from pydantic import ValidationError

from repositories import HealthRecordRepository, UserRepository
from models.health_record import RECORD_BODY_FIELDS, HealthRecord
from models.user import Requester, Role
from schemas.health_record import HealthRecordCreate, HealthRecordResponse, HealthRecordUpdate
from services.access_control import AccessControlGate
from services.rule_engine import DerivedFields, apply_derived_fields
from core.datetime_utils import utc_now
from core.exceptions import (
    ConcurrentUpdateError,
    DatabaseError,
    InvalidRecordDataError,
    RecordNotFoundError,
)

logger = logging.getLogger(__name__)


def deep_merge(base: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge ``patch`` into a copy of ``base``.

    Nested dicts merge key by key, lists and scalars replace the stored
    value, and a ``None`` in the patch removes the key.

    Example:
        >>> deep_merge({"a": {"x": 1, "y": 2}}, {"a": {"y": None, "z": 3}})
        {'a': {'x': 1, 'z': 3}}
    """
    result = copy.deepcopy(base)
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        elif isinstance(value, dict):
            current = result.get(key)
            result[key] = deep_merge(current if isinstance(current, dict) else {}, value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def to_response(record: HealthRecord) -> HealthRecordResponse:
    """Convert a stored record into its API schema."""
    return HealthRecordResponse.model_validate(record.to_dict())


class HealthRecordService:
    """
    Service layer for health record lifecycle operations.

    Handles target patient resolution, access checks, derived field
    computation and optimistic concurrency on update.
    """

    def __init__(
        self,
        user_repository: UserRepository,
        health_record_repository: HealthRecordRepository,
        access_gate: AccessControlGate,
        clock: Callable[[], datetime] = utc_now
    ):
        """
        Initialize the health record service.

        Args:
            user_repository: User directory used to validate target patients.
            health_record_repository: Persistence for health records.
            access_gate: Gate deciding who may touch which patient's records.
            clock: Source of the current UTC time (injectable for tests).
        """
        self._user_repo = user_repository
        self._record_repo = health_record_repository
        self._gate = access_gate
        self._clock = clock

    # =========================================================================
    # CREATE
    # =========================================================================

    def _resolve_target_patient(self, payload: HealthRecordCreate, requester: Requester) -> int:
        """
        Work out whose record is being created.

        Patients always record for themselves. Clinicians and admins must
        name an existing patient.
        """
        if requester.role == Role.PATIENT:
            return requester.id

        if requester.role not in (Role.CLINICIAN, Role.ADMIN):
            # Denied by the gate with role_not_permitted
            self._gate.require_access(payload.patient_id or requester.id, requester)

        if payload.patient_id is None:
            raise InvalidRecordDataError(detail="patientId is required when recording for a patient")

        patient = self._user_repo.resolve_user(payload.patient_id)
        if patient is None or not patient.is_patient:
            logger.warning(
                f"Invalid target patient: {payload.patient_id}",
                extra={"patient_id": payload.patient_id}
            )
            raise InvalidRecordDataError(
                detail="patientId does not refer to a patient",
                patient_id=payload.patient_id
            )
        return patient.id

    def create_record(self, payload: HealthRecordCreate, requester: Requester) -> HealthRecordResponse:
        """
        Create a health record.

        Args:
            payload: Validated record data.
            requester: Who is recording.

        Returns:
            HealthRecordResponse: The stored record with derived fields.

        Raises:
            InvalidRecordDataError: Missing or invalid target patient.
            AccessDeniedError: Requester may not record for the patient.
            DatabaseError: If a database error occurs.
        """
        patient_id = self._resolve_target_patient(payload, requester)
        self._gate.require_access(patient_id, requester)

        body = payload.model_dump(mode="json", by_alias=True, exclude_none=True)
        body = {key: value for key, value in body.items() if key in RECORD_BODY_FIELDS}
        derived = apply_derived_fields(body)

        try:
            record = self._record_repo.create(
                patient_id=patient_id,
                recorded_by_id=requester.id,
                created_at=self._clock(),
                source=payload.source,
                body=derived.data,
                is_abnormal=derived.is_abnormal,
                abnormal_values=derived.abnormal_values
            )
        except Exception as e:
            logger.error(f"Database error creating health record: {e}", exc_info=True)
            raise DatabaseError(operation="create_record") from e

        logger.info(
            f"Health record created: {record.id}",
            extra={"record_id": record.id, "patient_id": patient_id, "recorded_by_id": requester.id}
        )
        self._log_abnormal(record.id, derived)
        return to_response(record)

    # =========================================================================
    # READ
    # =========================================================================

    def _load(self, record_id: int) -> HealthRecord:
        record = self._record_repo.get_by_id(record_id)
        if record is None:
            raise RecordNotFoundError(record_id=record_id)
        return record

    def get_record(self, record_id: int, requester: Requester) -> HealthRecordResponse:
        """
        Fetch one record.

        Raises:
            RecordNotFoundError: If the record doesn't exist.
            AccessDeniedError: If the requester may not see the patient's records.
        """
        record = self._load(record_id)
        self._gate.require_access(record.patient_id, requester)
        return to_response(record)

    # =========================================================================
    # UPDATE
    # =========================================================================

    def update_record(
        self,
        record_id: int,
        patch: Union[HealthRecordUpdate, Dict[str, Any]],
        requester: Requester
    ) -> HealthRecordResponse:
        """
        Apply a partial update to a record.

        Only the fields present in ``patch`` change. Plain dict patches are
        validated against HealthRecordUpdate before anything is merged, which
        also drops the ownership fields. Derived fields are recomputed from
        the merged body and the write only succeeds if nobody else updated
        the record meanwhile.

        Raises:
            RecordNotFoundError: If the record doesn't exist.
            InvalidRecordDataError: If the patch fails validation.
            AccessDeniedError: If the requester may not modify the patient's records.
            ConcurrentUpdateError: If the record changed since it was read.
            DatabaseError: If a database error occurs.
        """
        record = self._load(record_id)
        self._gate.require_access(record.patient_id, requester)

        if not isinstance(patch, HealthRecordUpdate):
            try:
                patch = HealthRecordUpdate.model_validate(patch)
            except ValidationError as e:
                logger.warning(
                    f"Rejected invalid patch for health record {record_id}",
                    extra={"record_id": record_id, "errors": e.error_count()}
                )
                raise InvalidRecordDataError(
                    detail="Invalid update data",
                    errors=[
                        {"loc": list(error["loc"]), "msg": error["msg"]}
                        for error in e.errors(include_url=False)
                    ]
                ) from e

        changes = patch.model_dump(mode="json", by_alias=True, exclude_unset=True)

        source = changes.pop("source", None) or record.source
        body = deep_merge(
            record.body,
            {key: value for key, value in changes.items() if key in RECORD_BODY_FIELDS}
        )
        derived = apply_derived_fields(body)

        try:
            updated = self._record_repo.update(
                record_id=record_id,
                expected_version=record.version,
                updated_at=self._clock(),
                source=source,
                body=derived.data,
                is_abnormal=derived.is_abnormal,
                abnormal_values=derived.abnormal_values
            )
        except Exception as e:
            logger.error(f"Database error updating health record {record_id}: {e}", exc_info=True)
            raise DatabaseError(operation="update_record") from e

        if updated is None:
            if self._record_repo.get_by_id(record_id) is None:
                raise RecordNotFoundError(record_id=record_id)
            logger.warning(
                f"Concurrent update detected for health record {record_id}",
                extra={"record_id": record_id, "expected_version": record.version}
            )
            raise ConcurrentUpdateError(record_id=record_id)

        logger.info(
            f"Health record updated: {record_id}",
            extra={"record_id": record_id, "version": updated.version, "updated_by_id": requester.id}
        )
        self._log_abnormal(record_id, derived)
        return to_response(updated)

    # =========================================================================
    # DELETE
    # =========================================================================

    def delete_record(self, record_id: int, requester: Requester) -> None:
        """
        Delete a record. Only the owning patient or an admin may do this.

        Raises:
            RecordNotFoundError: If the record doesn't exist.
            AccessDeniedError: If the requester may not delete it.
            DatabaseError: If a database error occurs.
        """
        record = self._load(record_id)
        self._gate.require_delete(record.patient_id, requester)

        try:
            deleted = self._record_repo.delete(record_id)
        except Exception as e:
            logger.error(f"Database error deleting health record {record_id}: {e}", exc_info=True)
            raise DatabaseError(operation="delete_record") from e

        if not deleted:
            raise RecordNotFoundError(record_id=record_id)

        logger.info(
            f"Health record deleted: {record_id}",
            extra={"record_id": record_id, "patient_id": record.patient_id, "deleted_by_id": requester.id}
        )

    @staticmethod
    def _log_abnormal(record_id: int, derived: DerivedFields) -> None:
        if derived.is_abnormal:
            logger.info(
                f"Abnormal values found in health record {record_id}",
                extra={
                    "record_id": record_id,
                    "abnormal_fields": [value.field for value in derived.abnormal_values],
                }
            )
