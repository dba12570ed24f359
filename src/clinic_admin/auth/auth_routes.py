"""Authentication routes for the FastAPI application.

Provides endpoints for the current auth state, login, logout and
self-registration of staff.
"""

import logging
from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, Depends, Form, HTTPException, status

from clinic_admin.common import (
    InvalidCredentialsError,
    PartialRegistrationError,
    ResolvedUser,
    SignUpError,
)

from .gate import DEFAULT_LANDING_PATH, LOGIN_PATH
from .models import (
    AuthStateResponse,
    LoginResponse,
    LogoutResponse,
    RegisterResponse,
    UserResponse,
)
from .synchronizer import AuthState

if TYPE_CHECKING:
    from .synchronizer import SessionSynchronizer
    from .validation import Validate

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)

INVALID_CREDENTIALS_DETAIL = (
    "Failed to log in. Please check your credentials or confirm your email."
)
UNRESOLVED_PROFILE_DETAIL = (
    "Your account has no usable staff profile. Please contact an administrator."
)


def _safe_next(next_location: str | None) -> str:
    """Only follow local, absolute paths after login."""
    if (
        next_location
        and next_location.startswith("/")
        and not next_location.startswith("//")
    ):
        return next_location
    return DEFAULT_LANDING_PATH


async def _login(
    synchronizer: "SessionSynchronizer",
    email: str,
    password: str,
    next_location: str | None,
) -> LoginResponse:
    try:
        session = await synchronizer.login(email, password)
    except InvalidCredentialsError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=INVALID_CREDENTIALS_DETAIL,
        ) from e

    # the session change, not the login call, sets the resolved user
    state = await synchronizer.settled()
    if state.user is None or state.user.identity_id != session.identity_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=UNRESOLVED_PROFILE_DETAIL,
        )

    LOGGER.debug("User %s logged in successfully", state.user.email)
    return LoginResponse(
        access_token=session.access_token,
        redirect_to=_safe_next(next_location),
        user=UserResponse.from_user(state.user),
    )


async def _register(
    synchronizer: "SessionSynchronizer",
    name: str,
    email: str,
    password: str,
) -> RegisterResponse:
    if synchronizer.user is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Already signed in",
        )

    try:
        profile = await synchronizer.register(name, email, password)
    except SignUpError as e:
        LOGGER.debug("Sign-up rejected for %s: %s", email, e)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e
    except PartialRegistrationError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "code": "partial_registration",
                "identity_id": e.identity_id,
                "message": str(e),
            },
        ) from e

    return RegisterResponse.from_profile(profile, email.strip().lower())


def configure_auth_router(
    router: APIRouter,
    validate: "Validate",
) -> APIRouter:
    """Configure the authentication router.

    :param router: The APIRouter to configure
    :param validate: Gate dependencies, holding the session synchronizer
    :return: The configured APIRouter
    """
    synchronizer = validate.synchronizer

    @router.get("/state", response_model=AuthStateResponse)
    def get_state(
        state: Annotated[AuthState, Depends(validate.request_state)],
    ) -> AuthStateResponse:
        return AuthStateResponse.from_state(state)

    @router.post("/login", response_model=LoginResponse)
    async def login(
        email: Annotated[str, Form()],
        password: Annotated[str, Form()],
        next_location: Annotated[str | None, Form(alias="next")] = None,
    ) -> LoginResponse:
        return await _login(synchronizer, email, password, next_location)

    @router.post("/logout", response_model=LogoutResponse)
    async def logout(
        _user: Annotated[ResolvedUser, Depends(validate.staff)],
    ) -> LogoutResponse:
        """Clears the resolved user at once; the provider confirms later."""
        await synchronizer.logout()
        return LogoutResponse(redirect_to=LOGIN_PATH)

    @router.post(
        "/register",
        response_model=RegisterResponse,
        status_code=status.HTTP_201_CREATED,
    )
    async def register(
        name: Annotated[str, Form()],
        email: Annotated[str, Form()],
        password: Annotated[str, Form()],
    ) -> RegisterResponse:
        return await _register(synchronizer, name, email, password)

    return router
