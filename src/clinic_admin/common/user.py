"""Fundamental staff and session data models for the panel."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Self


class Role(IntEnum):
    """Staff roles, ordered from most to least privileged."""

    ADMIN = 0
    DENTIST = 1
    ASSISTANT = 2
    RECEPTIONIST = 3

    def check_permission(self, required_role: Role) -> bool:
        """Check if the current role has permission for the required role.

        :param required_role: The least privileged role allowed through
        :return: True if the current role has permission, False otherwise
        """
        return self.value <= required_role.value

    @property
    def label(self) -> str:
        """Lower case name used in forms, JSON and configuration."""
        return self.name.lower()

    @classmethod
    def parse(cls, value: str | int) -> Self:
        """Parse a role from its label or its integer value.

        :param value: A label such as ``"dentist"`` or an integer value
        :return: The matching role
        :raises ValueError: If the value names no role
        """
        if isinstance(value, int) or value.isdigit():
            return cls(int(value))
        try:
            return cls[value.strip().upper()]
        except KeyError:
            msg = f"Unknown role: {value}"
            raise ValueError(msg) from None


@dataclass(frozen=True)
class Session:
    """A live identity provider session.

    The panel treats it as opaque apart from the identity id and email.

    :param identity_id: Provider-issued identity id
    :param email: Contact address the identity signed in with
    :param access_token: Provider token backing the session
    :param raw: Provider payload, kept for diagnostics
    """

    identity_id: str
    email: str
    access_token: str = field(default="", repr=False)
    raw: dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass(frozen=True)
class Profile:
    """Authorization profile of a staff member, keyed by identity id."""

    identity_id: str
    name: str
    role: Role


@dataclass(frozen=True)
class ResolvedUser:
    """A signed-in staff member whose session and profile agree.

    :param identity_id: Identity id shared by the session and the profile
    :param email: Taken from the session
    :param name: Taken from the profile
    :param role: Taken from the profile
    """

    identity_id: str
    email: str
    name: str
    role: Role

    @classmethod
    def from_session(cls, session: Session, profile: Profile) -> Self:
        """Combine a live session with its profile."""
        return cls(
            identity_id=session.identity_id,
            email=session.email,
            name=profile.name,
            role=profile.role,
        )

    def is_admin(self) -> bool:
        return self.role is Role.ADMIN
