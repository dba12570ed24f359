"""Models for auth-related responses."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel

from clinic_admin.common import Profile, ResolvedUser

if TYPE_CHECKING:
    from .synchronizer import AuthState


class UserResponse(BaseModel):
    """A resolved staff user.

    :param identity_id: Identity id of the session
    :param email: Email of the session
    :param name: Display name from the staff profile
    :param role: Role label from the staff profile
    """

    identity_id: str
    email: str
    name: str
    role: str

    @classmethod
    def from_user(cls, user: ResolvedUser) -> UserResponse:
        return cls(
            identity_id=user.identity_id,
            email=user.email,
            name=user.name,
            role=user.role.label,
        )


class AuthStateResponse(BaseModel):
    loading: bool
    user: UserResponse | None

    @classmethod
    def from_state(cls, state: AuthState) -> AuthStateResponse:
        user = UserResponse.from_user(state.user) if state.user else None
        return cls(loading=state.loading, user=user)


class LoginResponse(BaseModel):
    """Response model for login requests.

    :param access_token: Session token to send as a bearer credential
    :param token_type: Always ``bearer``
    :param redirect_to: Where the client should go next
    :param user: The resolved staff user
    """

    access_token: str
    token_type: str = "bearer"
    redirect_to: str
    user: UserResponse


class LogoutResponse(BaseModel):
    redirect_to: str


class RegisterResponse(BaseModel):
    identity_id: str
    name: str
    email: str
    role: str
    message: str

    @classmethod
    def from_profile(cls, profile: Profile, email: str) -> RegisterResponse:
        return cls(
            identity_id=profile.identity_id,
            name=profile.name,
            email=email,
            role=profile.role.label,
            message="Account created. You can now sign in.",
        )
