"""Identity provider backed by the panel's own SQLite database.

Accounts live in the ``identity_accounts`` table. The current session is a
signed token written to a session file, so a session opened before a restart
is reported to new subscribers as the initial session.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from clinic_admin.common import InvalidCredentialsError, Session, SignUpError

from .provider import Subscription

if TYPE_CHECKING:
    from .provider import SessionListener
    from .queries import IdentityQueries
    from .security_manager import SecurityManager

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)


class LocalIdentityProvider:
    """Password identity provider with a persisted single session.

    :param queries: Account repository
    :param security_manager: Password policy and session token signing
    :param session_file: Where the session token is persisted, or None to keep
        sessions in memory only
    """

    def __init__(
        self,
        queries: IdentityQueries,
        security_manager: SecurityManager,
        session_file: str | Path | None = None,
    ) -> None:
        self._queries = queries
        self._security_manager = security_manager
        self._session_file = Path(session_file) if session_file else None
        self._listeners: list[SessionListener] = []
        self._session: Session | None = None
        self._restored = False

    @property
    def session(self) -> Session | None:
        """The current session, restoring it from the session file once."""
        if not self._restored:
            self._restored = True
            self._session = self._restore_session()
        return self._session

    def subscribe(self, on_change: SessionListener) -> Subscription:
        """Register a listener and schedule delivery of the current session."""
        self._listeners.append(on_change)
        current = self.session

        def deliver_initial() -> None:
            if on_change in self._listeners:
                on_change(current)

        asyncio.get_running_loop().call_soon(deliver_initial)
        LOGGER.debug("Session listener subscribed (%d active)", len(self._listeners))
        return Subscription(lambda: self._listeners.remove(on_change))

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        """Open a session for a matching email and password.

        :raises InvalidCredentialsError: If no account matches
        """
        identity_id = await self._queries.authenticate(email, password)
        if identity_id is None:
            raise InvalidCredentialsError("Invalid login credentials")

        email = email.strip().lower()
        token = self._security_manager.create_session_token(identity_id, email)
        session = self._security_manager.verify_session_token(token)
        if session is None:
            msg = "Freshly issued session token failed verification"
            raise RuntimeError(msg)

        self._set_session(session)
        LOGGER.info("Identity %s signed in", identity_id)
        return session

    async def sign_out(self) -> None:
        """Close the current session and notify listeners."""
        previous = self.session
        self._set_session(None)
        if previous is not None:
            LOGGER.info("Identity %s signed out", previous.identity_id)

    async def sign_up(self, email: str, password: str) -> str:
        """Create an account; the new identity is not signed in.

        :raises SignUpError: If the password is too weak or the email is taken
        """
        error = self._security_manager.validate_password(password)
        if error:
            raise SignUpError(error)

        identity_id = await self._queries.create_account(email, password)
        LOGGER.info("Identity %s created", identity_id)
        return identity_id

    def _set_session(self, session: Session | None) -> None:
        self._restored = True
        self._session = session
        self._persist_session(session)
        for listener in list(self._listeners):
            listener(session)

    def _restore_session(self) -> Session | None:
        if self._session_file is None or not self._session_file.exists():
            return None

        token = self._session_file.read_text(encoding="utf-8").strip()
        session = self._security_manager.verify_session_token(token)
        if session is None:
            LOGGER.info("Discarding stale session file %s", self._session_file)
            self._session_file.unlink(missing_ok=True)
            return None

        LOGGER.debug("Restored session for identity %s", session.identity_id)
        return session

    def _persist_session(self, session: Session | None) -> None:
        if self._session_file is None:
            return

        if session is None:
            self._session_file.unlink(missing_ok=True)
            return

        self._session_file.parent.mkdir(parents=True, exist_ok=True)
        self._session_file.write_text(session.access_token, encoding="utf-8")
        self._session_file.chmod(0o600)
