"""Contract between the panel and an identity provider.

The session synchronizer depends only on :class:`IdentityProvider`, so the
local provider can be swapped for a hosted one without touching the core.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Callable

    from clinic_admin.common import Session

    SessionListener = Callable[[Session | None], None]

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)


class Subscription:
    """Handle for one session-change listener.

    :param release: Called once to detach the listener from its provider
    """

    def __init__(self, release: Callable[[], None]) -> None:
        self._release: Callable[[], None] | None = release

    @property
    def active(self) -> bool:
        return self._release is not None

    def unsubscribe(self) -> None:
        """Detach the listener. Calling this more than once does nothing."""
        release, self._release = self._release, None
        if release is None:
            return
        release()
        LOGGER.debug("Session listener released")


class IdentityProvider(Protocol):
    """Session lifecycle operations the panel consumes."""

    def subscribe(self, on_change: SessionListener) -> Subscription:
        """Register a listener for session changes.

        The listener is called once with the current session (or None) soon
        after subscribing, then on every sign-in and sign-out, in order.
        """
        ...

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        """Open a session.

        :raises InvalidCredentialsError: If the email and password do not match
        """
        ...

    async def sign_out(self) -> None:
        """Close the current session, if any."""
        ...

    async def sign_up(self, email: str, password: str) -> str:
        """Create an account without opening a session.

        :return: The new identity id
        :raises SignUpError: If the account cannot be created
        """
        ...
