"""Common data models and exceptions shared across the application."""

from .exceptions import (
    InvalidCredentialsError,
    OrphanedIdentityError,
    PartialRegistrationError,
    SignUpError,
    StoreError,
)
from .user import Profile, ResolvedUser, Role, Session

__all__ = [
    "InvalidCredentialsError",
    "OrphanedIdentityError",
    "PartialRegistrationError",
    "Profile",
    "ResolvedUser",
    "Role",
    "Session",
    "SignUpError",
    "StoreError",
]
