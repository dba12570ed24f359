"""Result variants of a profile lookup.

A lookup either finds the profile, finds nothing, or fails. Callers check
which with ``isinstance`` and must handle all three.
"""

from dataclasses import dataclass

from clinic_admin.common import Profile, StoreError


@dataclass(frozen=True)
class ProfileFound:
    profile: Profile


@dataclass(frozen=True)
class ProfileAbsent:
    identity_id: str


@dataclass(frozen=True)
class ProfileLookupFailed:
    identity_id: str
    error: StoreError


ProfileLookup = ProfileFound | ProfileAbsent | ProfileLookupFailed
