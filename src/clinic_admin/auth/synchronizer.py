"""Session synchronizer that resolves identity sessions into staff users.

The synchronizer subscribes to an identity provider and turns every session
change into an :class:`AuthState`: the resolved user (session plus staff
profile) and whether the first resolution is still pending.

**Ordering:**

The provider's listener only pushes sessions onto a queue. A single consumer
task resolves them one at a time, in the order they arrived, so a slow
resolution can never be overwritten by an older one finishing late.

A logout starts a new generation. Sessions queued or being resolved before it
are dropped instead of published, so a login still in flight cannot bring the
signed-out user back.

**Consistency policy:**

A resolved user always has both a live session and a profile. A session whose
profile is missing is an orphaned identity: the synchronizer signs it out and
publishes no user. A profile store fault also publishes no user, but leaves
the session alone; the next session change retries the lookup.

**Example Usage:**

.. code-block:: python

    async with SessionSynchronizer(provider, profiles) as synchronizer:
        await synchronizer.wait_until_ready()
        await synchronizer.login("a@clinic.com", "secret")
        await synchronizer.settled()
        print(synchronizer.state.user)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Self

from clinic_admin.common import (
    OrphanedIdentityError,
    PartialRegistrationError,
    Profile,
    ResolvedUser,
    Role,
    StoreError,
)
from clinic_admin.profiles import ProfileAbsent, ProfileFound, ProfileLookupFailed

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from clinic_admin.common import Session
    from clinic_admin.identity import IdentityProvider, Subscription
    from clinic_admin.profiles import ProfileQueries

    StateListener = Callable[[AuthState], None]

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)


@dataclass(frozen=True)
class AuthState:
    """Published view of the current authentication.

    :param user: The resolved staff user, or None when nobody is signed in
    :param loading: True only until the first session change is resolved
    """

    user: ResolvedUser | None
    loading: bool


async def register_account(
    identity_provider: IdentityProvider,
    profiles: ProfileQueries,
    name: str,
    email: str,
    password: str,
    role: Role,
) -> Profile:
    """Create an identity account and then its staff profile.

    The two writes are not atomic and the account is not rolled back when
    the profile write fails.

    :raises SignUpError: If the identity provider refuses the account
    :raises PartialRegistrationError: If the account exists but the profile
        could not be stored
    """
    identity_id = await identity_provider.sign_up(email, password)

    profile = Profile(identity_id=identity_id, name=name.strip(), role=role)
    try:
        await profiles.insert(profile, email=email.strip().lower())
    except StoreError as e:
        LOGGER.error(
            "Account %s created for %s but its profile failed: %s",
            identity_id,
            email,
            e,
        )
        raise PartialRegistrationError(identity_id, email) from e

    LOGGER.info("Registered %s as %s", email, role.label)
    return profile


class SessionSynchronizer:
    """Keeps the resolved staff user in step with the identity provider.

    Use it as an async context manager: entering subscribes to the provider
    and starts the consumer task, exiting releases the subscription exactly
    once and stops the consumer.

    :param identity_provider: Source of session changes and auth operations
    :param profiles: Profile store queried on every session change
    :param default_role: Role given to staff who register themselves
    """

    def __init__(
        self,
        identity_provider: IdentityProvider,
        profiles: ProfileQueries,
        default_role: Role = Role.ASSISTANT,
    ) -> None:
        self._identity_provider = identity_provider
        self._profiles = profiles
        self._default_role = default_role

        self._state = AuthState(user=None, loading=True)
        self._ready = asyncio.Event()
        self._listeners: list[StateListener] = []

        self._generation = 0
        self._queue: asyncio.Queue[tuple[int, Session | None]] = asyncio.Queue()
        self._consumer: asyncio.Task[None] | None = None
        self._subscription: Subscription | None = None

    async def __aenter__(self) -> Self:
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def user(self) -> ResolvedUser | None:
        return self._state.user

    @property
    def loading(self) -> bool:
        return self._state.loading

    def start(self) -> None:
        """Subscribe to the identity provider and start resolving sessions.

        :raises RuntimeError: If the synchronizer was already started
        """
        if self._consumer is not None:
            msg = "Session synchronizer already started"
            raise RuntimeError(msg)

        self._consumer = asyncio.create_task(self._consume())
        self._subscription = self._identity_provider.subscribe(self._on_session_change)
        LOGGER.debug("Session synchronizer started")

    async def close(self) -> None:
        """Release the subscription and stop the consumer task."""
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

        self._queue.shutdown(immediate=True)

        if self._consumer is not None:
            self._consumer.cancel()
            await asyncio.gather(self._consumer, return_exceptions=True)

        LOGGER.debug("Session synchronizer closed")

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """Call ``listener`` with every newly published state.

        :return: A function that removes the listener again
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def wait_until_ready(self) -> AuthState:
        """Wait until the first session change has been resolved."""
        await self._ready.wait()
        return self._state

    async def settled(self) -> AuthState:
        """Wait until every session change received so far has been resolved."""
        await self._queue.join()
        return self._state

    async def login(self, email: str, password: str) -> Session:
        """Sign in at the identity provider.

        The resolved user is not set here; it follows from the session change
        the provider emits.

        :return: The provider session, carrying its access token
        :raises InvalidCredentialsError: If the provider rejects the attempt
        """
        return await self._identity_provider.sign_in_with_password(email, password)

    async def logout(self) -> None:
        """Sign out and clear the resolved user without waiting for confirmation.

        Session changes received before the logout are discarded.
        """
        self._generation += 1
        try:
            await self._identity_provider.sign_out()
        finally:
            self._publish(None)

    async def register(self, name: str, email: str, password: str) -> Profile:
        """Register a staff member with the default role.

        :raises SignUpError: If the identity account cannot be created
        :raises PartialRegistrationError: If the account was created but the
            profile was not
        """
        return await register_account(
            self._identity_provider,
            self._profiles,
            name,
            email,
            password,
            self._default_role,
        )

    def _on_session_change(self, session: Session | None) -> None:
        try:
            self._queue.put_nowait((self._generation, session))
        except asyncio.QueueShutDown:
            LOGGER.debug("Session change received after shutdown, ignoring")

    async def _consume(self) -> None:
        while True:
            try:
                generation, session = await self._queue.get()
            except asyncio.QueueShutDown:
                break

            try:
                await self._process(generation, session)
            except Exception:
                LOGGER.exception("Resolving a session change failed")
                self._publish(None)
            finally:
                self._queue.task_done()

    def _is_stale(self, generation: int) -> bool:
        if generation == self._generation:
            return False
        LOGGER.debug("Dropping a session change received before logout")
        return True

    async def _process(self, generation: int, session: Session | None) -> None:
        if self._is_stale(generation):
            return

        if session is None:
            self._publish(None)
            return

        try:
            user = await self._resolve(session)
        except StoreError as e:
            LOGGER.warning(
                "Profile lookup for %s failed, treating as signed out: %s",
                session.identity_id,
                e,
            )
            user = None
        except OrphanedIdentityError as e:
            if self._is_stale(generation):
                return
            LOGGER.warning("%s, forcing sign-out", e)
            await self._force_sign_out()
            user = None

        # a logout may have happened while the lookup was pending
        if not self._is_stale(generation):
            self._publish(user)

    async def _resolve(self, session: Session) -> ResolvedUser:
        lookup = await self._profiles.get_by_identity_id(session.identity_id)

        if isinstance(lookup, ProfileFound):
            return ResolvedUser.from_session(session, lookup.profile)
        if isinstance(lookup, ProfileAbsent):
            raise OrphanedIdentityError(lookup.identity_id)
        if isinstance(lookup, ProfileLookupFailed):
            raise lookup.error

        msg = f"Unexpected profile lookup result: {lookup!r}"
        raise TypeError(msg)

    async def _force_sign_out(self) -> None:
        try:
            await self._identity_provider.sign_out()
        except Exception:
            LOGGER.exception("Forced sign-out of an orphaned identity failed")

    def _publish(self, user: ResolvedUser | None) -> None:
        previous = self._state
        self._state = AuthState(user=user, loading=False)
        self._ready.set()

        if previous.user != user:
            LOGGER.debug(
                "Resolved user changed: %s -> %s",
                previous.user.email if previous.user else None,
                user.email if user else None,
            )

        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                LOGGER.exception("Auth state listener failed")
