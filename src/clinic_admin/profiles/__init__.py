"""Staff profile store."""

from .lookup import ProfileAbsent, ProfileFound, ProfileLookup, ProfileLookupFailed
from .queries import ProfileQueries, StaffMember

__all__ = [
    "ProfileAbsent",
    "ProfileFound",
    "ProfileLookup",
    "ProfileLookupFailed",
    "ProfileQueries",
    "StaffMember",
]
