"""
Access control gate for patient health data.

Decides whether a requester may read or modify the records of a patient.
The decision is made by a closed table of per-role policies; roles outside
the table are always denied.

Architecture:
    HealthRecordService / HistoryService → AccessControlGate → AppointmentRepository

Policies:
    patient   - only their own records
    clinician - patients with a confirmed or completed appointment
    admin     - everything
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from repositories import AppointmentRepository
from models.user import Requester, Role
from core.exceptions import AccessDeniedError, DependencyTimeoutError

logger = logging.getLogger(__name__)


class DenialReason(str, Enum):
    """Stable codes explaining why access was denied."""
    NOT_OWN_RECORD = "not_own_record"
    NO_TREATMENT_RELATIONSHIP = "no_treatment_relationship"
    ROLE_NOT_PERMITTED = "role_not_permitted"
    CLINICIAN_DELETE_FORBIDDEN = "clinician_delete_forbidden"


_DENIAL_MESSAGES = {
    DenialReason.NOT_OWN_RECORD: "Patients can only access their own health records",
    DenialReason.NO_TREATMENT_RELATIONSHIP: "No treatment relationship with this patient",
    DenialReason.ROLE_NOT_PERMITTED: "Role is not permitted to access health records",
    DenialReason.CLINICIAN_DELETE_FORBIDDEN: "Clinicians cannot delete health records",
}


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: Optional[DenialReason] = None

    @classmethod
    def allow(cls) -> "AccessDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DenialReason) -> "AccessDecision":
        return cls(allowed=False, reason=reason)


class AccessControlGate:
    """
    Role-based gate in front of every record operation.

    It should be instantiated via core.dependencies.get_access_gate().
    """

    def __init__(self, appointment_repository: AppointmentRepository):
        """
        Args:
            appointment_repository: Registry answering treatment relationship lookups.
        """
        self._appointment_repo = appointment_repository
        self._policies: Dict[str, Callable[[int, Requester], AccessDecision]] = {
            Role.PATIENT.value: self._patient_policy,
            Role.CLINICIAN.value: self._clinician_policy,
            Role.ADMIN.value: self._admin_policy,
        }

    # =========================================================================
    # POLICIES
    # =========================================================================

    @staticmethod
    def _patient_policy(target_patient_id: int, requester: Requester) -> AccessDecision:
        if requester.id == target_patient_id:
            return AccessDecision.allow()
        return AccessDecision.deny(DenialReason.NOT_OWN_RECORD)

    def _clinician_policy(self, target_patient_id: int, requester: Requester) -> AccessDecision:
        try:
            related = self._appointment_repo.has_treatment_relationship(
                clinician_id=requester.id,
                patient_id=target_patient_id
            )
        except (DependencyTimeoutError, TimeoutError) as e:
            logger.warning(
                f"Treatment relationship lookup failed, denying access: {e}",
                extra={"clinician_id": requester.id, "patient_id": target_patient_id}
            )
            related = None

        if related:
            return AccessDecision.allow()
        return AccessDecision.deny(DenialReason.NO_TREATMENT_RELATIONSHIP)

    @staticmethod
    def _admin_policy(target_patient_id: int, requester: Requester) -> AccessDecision:
        return AccessDecision.allow()

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def can_access(self, target_patient_id: int, requester: Requester) -> AccessDecision:
        """
        Decide whether ``requester`` may read or write the records of a patient.

        Returns:
            AccessDecision with a DenialReason when not allowed.
        """
        policy = self._policies.get(requester.role)
        if policy is None:
            return AccessDecision.deny(DenialReason.ROLE_NOT_PERMITTED)
        return policy(target_patient_id, requester)

    def can_delete(self, record_patient_id: int, requester: Requester) -> AccessDecision:
        """
        Decide whether ``requester`` may delete a record of a patient.

        Only the owning patient or an admin may delete; clinicians never can.
        """
        if requester.role == Role.CLINICIAN:
            return AccessDecision.deny(DenialReason.CLINICIAN_DELETE_FORBIDDEN)
        return self.can_access(record_patient_id, requester)

    def require_access(self, target_patient_id: int, requester: Requester) -> None:
        """
        Raises:
            AccessDeniedError: If can_access() denies the requester.
        """
        self._enforce(self.can_access(target_patient_id, requester), target_patient_id, requester)

    def require_delete(self, record_patient_id: int, requester: Requester) -> None:
        """
        Raises:
            AccessDeniedError: If can_delete() denies the requester.
        """
        self._enforce(self.can_delete(record_patient_id, requester), record_patient_id, requester)

    @staticmethod
    def _enforce(decision: AccessDecision, target_patient_id: int, requester: Requester) -> None:
        if decision.allowed:
            return

        logger.warning(
            f"Access denied: {decision.reason.value}",
            extra={
                "requester_id": requester.id,
                "requester_role": requester.role,
                "patient_id": target_patient_id,
                "reason": decision.reason.value,
            }
        )
        raise AccessDeniedError(
            detail=_DENIAL_MESSAGES[decision.reason],
            reason=decision.reason.value
        )
