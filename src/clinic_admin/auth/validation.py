"""FastAPI dependency validators for authentication and authorization.

A request is treated as the signed-in user only when it carries that user's
session token as a bearer credential. Requests without one are anonymous,
whoever is signed in to the panel.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import HTTPException, Request, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from clinic_admin.common import ResolvedUser

from .gate import GateOutcome, evaluate_access, requires
from .synchronizer import AuthState

if TYPE_CHECKING:
    from collections.abc import Callable

    from clinic_admin.common import Role
    from clinic_admin.identity import SecurityManager

    from .gate import RolePredicate
    from .synchronizer import SessionSynchronizer

bearer_scheme = HTTPBearer(auto_error=False)

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)

RETRY_PENDING_SECONDS = 1
ANONYMOUS = AuthState(user=None, loading=False)


def _requested_location(request: Request) -> str:
    if request.url.query:
        return f"{request.url.path}?{request.url.query}"
    return request.url.path


class Validate:
    """Holds gate dependencies bound to one session synchronizer."""

    def __init__(
        self,
        synchronizer: SessionSynchronizer,
        security_manager: SecurityManager,
    ) -> None:
        """Create a new validator instance.

        :param synchronizer: Source of the current authentication state
        :param security_manager: Verifies the session tokens requests carry
        """
        self.synchronizer = synchronizer
        self.security_manager = security_manager

    def _holds_session(self, token: str) -> bool:
        """Check that ``token`` is a valid session token of the resolved user."""
        user = self.synchronizer.user
        session = self.security_manager.verify_session_token(token)
        return (
            user is not None
            and session is not None
            and session.identity_id == user.identity_id
        )

    def request_state(
        self,
        credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),  # noqa: B008
    ) -> AuthState:
        """The auth state as seen by one request.

        Never raises; a missing or foreign token yields no user.
        """
        state = self.synchronizer.state
        if state.loading:
            return state
        if credentials is None or not self._holds_session(credentials.credentials):
            return ANONYMOUS
        return state

    def _enforce(
        self,
        request: Request,
        credentials: HTTPAuthorizationCredentials | None,
        required: RolePredicate | None,
        denied_detail: str,
    ) -> ResolvedUser:
        requested = _requested_location(request)
        state = self.synchronizer.state

        if not state.loading and credentials is None:
            state = ANONYMOUS
        elif not state.loading and not self._holds_session(credentials.credentials):
            LOGGER.debug("Session token validation failed on %s", requested)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Could not validate credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )

        decision = evaluate_access(state, requested, required)

        if decision.outcome is GateOutcome.PENDING:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Session is still being resolved",
                headers={"Retry-After": str(RETRY_PENDING_SECONDS)},
            )

        if decision.outcome is GateOutcome.REDIRECT:
            LOGGER.debug("Redirecting anonymous request for %s", requested)
            raise HTTPException(
                status_code=status.HTTP_307_TEMPORARY_REDIRECT,
                detail="Authentication required",
                headers={"Location": decision.redirect_to},
            )

        if decision.outcome is GateOutcome.DENIED:
            LOGGER.debug(
                "Role validation failed for %s on %s",
                decision.user.email,
                requested,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=denied_detail,
            )

        return decision.user

    def staff(
        self,
        request: Request,
        credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),  # noqa: B008
    ) -> ResolvedUser:
        """Admit any signed-in staff member."""
        return self._enforce(request, credentials, None, "Access denied")

    def role(
        self,
        required_role: Role,
        denied_detail: str | None = None,
    ) -> Callable[..., ResolvedUser]:
        """Return a dependency admitting ``required_role`` or better."""
        predicate = requires(required_role)
        detail = (
            denied_detail or f"Access denied: requires the {required_role.label} role"
        )

        def validator(
            request: Request,
            credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),  # noqa: B008
        ) -> ResolvedUser:
            return self._enforce(request, credentials, predicate, detail)

        return validator
