"""
Domain models for users of the health data service.
"""
from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """Roles the access control gate knows about. Any other role string is denied."""
    PATIENT = "patient"
    CLINICIAN = "clinician"
    ADMIN = "admin"


@dataclass(frozen=True)
class User:
    """A user as resolved from the user directory."""

    id: int
    name: str
    role: str

    @property
    def is_patient(self) -> bool:
        return self.role == Role.PATIENT

    @classmethod
    def from_row(cls, row: tuple) -> "User":
        """Create a User from a (id, name, role) row."""
        return cls(id=row[0], name=row[1], role=row[2])


@dataclass(frozen=True)
class Requester:
    """Identity and role of whoever is calling a service operation."""

    id: int
    role: str

    @classmethod
    def from_user(cls, user: User) -> "Requester":
        return cls(id=user.id, role=user.role)
