"""Route admission decisions and role-filtered navigation.

Everything here is a pure function of an :class:`AuthState`; the FastAPI
dependencies in :mod:`clinic_admin.auth.validation` turn decisions into
responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING
from urllib.parse import urlencode

from clinic_admin.common import ResolvedUser, Role

if TYPE_CHECKING:
    from collections.abc import Callable

    from .synchronizer import AuthState

    RolePredicate = Callable[[Role], bool]

LOGIN_PATH = "/auth/login"
DEFAULT_LANDING_PATH = "/panel/dashboard"


class GateOutcome(StrEnum):
    """What the gate decided for a requested location."""

    PENDING = "pending"
    REDIRECT = "redirect"
    DENIED = "denied"
    ADMIT = "admit"


@dataclass(frozen=True)
class GateDecision:
    """Outcome of evaluating one requested location.

    :param outcome: The decision
    :param user: The resolved user the decision was made for
    :param redirect_to: Login location carrying ``next``, for REDIRECT only
    """

    outcome: GateOutcome
    user: ResolvedUser | None = None
    redirect_to: str | None = None


def requires(role: Role) -> RolePredicate:
    """Build a predicate admitting ``role`` and every more privileged role."""

    def predicate(candidate: Role) -> bool:
        return candidate.check_permission(role)

    return predicate


def login_location(requested: str) -> str:
    """Return the login entry point that remembers ``requested``."""
    return f"{LOGIN_PATH}?{urlencode({'next': requested})}"


def evaluate_access(
    state: AuthState,
    requested: str,
    required: RolePredicate | None = None,
) -> GateDecision:
    """Decide whether the current user may open ``requested``.

    Never redirects while the first resolution is still loading.

    :param state: Current synchronizer state
    :param requested: The location being opened, kept for the return trip
    :param required: Role predicate of the location, None if any staff may enter
    :return: The gate decision
    """
    if state.loading:
        return GateDecision(GateOutcome.PENDING)

    user = state.user
    if user is None:
        return GateDecision(GateOutcome.REDIRECT, redirect_to=login_location(requested))

    if required is not None and not required(user.role):
        return GateDecision(GateOutcome.DENIED, user=user)

    return GateDecision(GateOutcome.ADMIT, user=user)


@dataclass(frozen=True)
class NavigationEntry:
    label: str
    path: str
    required: Role | None = None


NAVIGATION = (
    NavigationEntry("Dashboard", "/panel/dashboard"),
    NavigationEntry("Staff", "/panel/staff", required=Role.ADMIN),
    NavigationEntry("Patients", "/panel/patients"),
    NavigationEntry("Settings", "/panel/settings"),
)


def navigation_entries(user: ResolvedUser | None) -> list[NavigationEntry]:
    """Navigation entries visible to ``user``; gated entries are left out."""
    if user is None:
        return []
    return [
        entry
        for entry in NAVIGATION
        if entry.required is None or user.role.check_permission(entry.required)
    ]
