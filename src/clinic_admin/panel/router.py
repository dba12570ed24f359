"""Router for the staff-facing panel pages.

Every route sits behind the gate; the staff routes additionally require the
admin role. Record store faults surface through the application's
``StoreError`` handler.
"""

import logging
from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, Depends, Form, HTTPException, status

from clinic_admin.auth import navigation_entries
from clinic_admin.auth.models import UserResponse
from clinic_admin.common import ResolvedUser, Role

from .models import (
    DashboardResponse,
    MessageResponse,
    NavigationEntryResponse,
    PatientForm,
    PatientResponse,
    StaffMemberResponse,
)

if TYPE_CHECKING:
    from clinic_admin.auth import Validate
    from clinic_admin.profiles import ProfileQueries

    from .patients import PatientQueries

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)

STAFF_DENIED_DETAIL = "You must be an administrator to manage staff."


async def _update_staff_role(
    profiles: "ProfileQueries",
    identity_id: str,
    role: str,
    admin: ResolvedUser,
) -> MessageResponse:
    """Change a staff member's role.

    The change reaches that member's own session on its next session change.
    """
    if identity_id == admin.identity_id:
        LOGGER.debug("Admin %s attempted to change own role", admin.email)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot change your own role",
        )

    try:
        new_role = Role.parse(role)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e

    if not await profiles.update_role(identity_id, new_role):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Staff member not found",
        )

    LOGGER.info("%s set role of %s to %s", admin.email, identity_id, new_role.label)
    return MessageResponse(message=f"Role updated to {new_role.label}")


def configure_panel_router(
    router: APIRouter,
    validate: "Validate",
    profiles: "ProfileQueries",
    patients: "PatientQueries",
) -> APIRouter:
    """Configure the panel router.

    :param router: The APIRouter to configure
    :param validate: Gate dependencies
    :param profiles: Staff profile store
    :param patients: Patient record store
    :return: The configured APIRouter
    """
    staff_member = validate.staff
    administrator = validate.role(Role.ADMIN, STAFF_DENIED_DETAIL)

    @router.get("/navigation", response_model=list[NavigationEntryResponse])
    def get_navigation(
        user: Annotated[ResolvedUser, Depends(staff_member)],
    ) -> list[NavigationEntryResponse]:
        return [
            NavigationEntryResponse.from_entry(entry)
            for entry in navigation_entries(user)
        ]

    @router.get("/dashboard", response_model=DashboardResponse)
    async def get_dashboard(
        user: Annotated[ResolvedUser, Depends(staff_member)],
    ) -> DashboardResponse:
        return DashboardResponse(
            user=UserResponse.from_user(user),
            staff_count=await profiles.count(),
            patient_count=await patients.count(),
        )

    @router.get("/staff", response_model=list[StaffMemberResponse])
    async def list_staff(
        _admin: Annotated[ResolvedUser, Depends(administrator)],
    ) -> list[StaffMemberResponse]:
        return [
            StaffMemberResponse.from_member(member)
            for member in await profiles.list_profiles()
        ]

    @router.patch("/staff/{identity_id}/role", response_model=MessageResponse)
    async def update_staff_role(
        identity_id: str,
        role: Annotated[str, Form()],
        admin: Annotated[ResolvedUser, Depends(administrator)],
    ) -> MessageResponse:
        return await _update_staff_role(profiles, identity_id, role, admin)

    @router.get("/patients", response_model=list[PatientResponse])
    async def list_patients(
        _user: Annotated[ResolvedUser, Depends(staff_member)],
    ) -> list[PatientResponse]:
        return [
            PatientResponse.from_patient(patient)
            for patient in await patients.list_patients()
        ]

    @router.post(
        "/patients",
        response_model=PatientResponse,
        status_code=status.HTTP_201_CREATED,
    )
    async def add_patient(
        form: Annotated[PatientForm, Form()],
        user: Annotated[ResolvedUser, Depends(staff_member)],
    ) -> PatientResponse:
        patient = await patients.insert(form.to_details())
        LOGGER.debug("%s added patient %d", user.email, patient.patient_id)
        return PatientResponse.from_patient(patient)

    @router.put("/patients/{patient_id}", response_model=PatientResponse)
    async def edit_patient(
        patient_id: int,
        form: Annotated[PatientForm, Form()],
        _user: Annotated[ResolvedUser, Depends(staff_member)],
    ) -> PatientResponse:
        patient = None
        if await patients.update(patient_id, form.to_details()):
            patient = await patients.get_patient(patient_id)
        if patient is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Patient not found",
            )
        return PatientResponse.from_patient(patient)

    @router.delete("/patients/{patient_id}", response_model=MessageResponse)
    async def delete_patient(
        patient_id: int,
        user: Annotated[ResolvedUser, Depends(staff_member)],
    ) -> MessageResponse:
        if not await patients.delete(patient_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Patient not found",
            )
        LOGGER.debug("%s deleted patient %d", user.email, patient_id)
        return MessageResponse(message="Patient deleted")

    @router.get("/settings", response_model=MessageResponse)
    def get_settings(
        _user: Annotated[ResolvedUser, Depends(staff_member)],
    ) -> MessageResponse:
        return MessageResponse(
            message="Manage your account settings and preferences.",
        )

    return router
