"""Models for panel responses and patient forms."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, field_validator

from clinic_admin.auth.models import UserResponse

from .patients import PatientDetails

if TYPE_CHECKING:
    from clinic_admin.auth import NavigationEntry
    from clinic_admin.profiles import StaffMember

    from .patients import Patient


class NavigationEntryResponse(BaseModel):
    label: str
    path: str

    @classmethod
    def from_entry(cls, entry: NavigationEntry) -> NavigationEntryResponse:
        return cls(label=entry.label, path=entry.path)


class DashboardResponse(BaseModel):
    """Counts shown on the dashboard.

    :param user: The signed-in staff member
    :param staff_count: Number of staff profiles
    :param patient_count: Number of patient records
    """

    user: UserResponse
    staff_count: int
    patient_count: int


class StaffMemberResponse(BaseModel):
    identity_id: str
    name: str
    email: str | None
    role: str
    created_at: str

    @classmethod
    def from_member(cls, member: StaffMember) -> StaffMemberResponse:
        return cls(
            identity_id=member.identity_id,
            name=member.name,
            email=member.email,
            role=member.role.label,
            created_at=member.created_at,
        )


class PatientForm(BaseModel):
    """Patient fields as submitted by the add and edit dialogs.

    Blank optional fields are stored as missing.
    """

    first_name: str
    last_name: str
    email: str | None = None
    phone: str | None = None
    address: str | None = None

    @field_validator("first_name", "last_name")
    @classmethod
    def _require_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            msg = "must not be blank"
            raise ValueError(msg)
        return value

    @field_validator("email", "phone", "address")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    def to_details(self) -> PatientDetails:
        return PatientDetails(
            first_name=self.first_name,
            last_name=self.last_name,
            email=self.email,
            phone=self.phone,
            address=self.address,
        )


class PatientResponse(BaseModel):
    patient_id: int
    first_name: str
    last_name: str
    email: str | None
    phone: str | None
    address: str | None
    created_at: str

    @classmethod
    def from_patient(cls, patient: Patient) -> PatientResponse:
        return cls(
            patient_id=patient.patient_id,
            first_name=patient.first_name,
            last_name=patient.last_name,
            email=patient.email,
            phone=patient.phone,
            address=patient.address,
            created_at=patient.created_at,
        )


class MessageResponse(BaseModel):
    message: str
