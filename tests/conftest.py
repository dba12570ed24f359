"""Shared fixtures: in-memory stores and a scriptable identity provider."""

from collections.abc import AsyncIterator, Callable

import aiosqlite
import pytest
import pytest_asyncio

from clinic_admin.common import (
    InvalidCredentialsError,
    Profile,
    Role,
    Session,
    SignUpError,
    StoreError,
)
from clinic_admin.identity import IdentityQueries, SecurityManager, Subscription
from clinic_admin.panel import PatientQueries
from clinic_admin.profiles import (
    ProfileAbsent,
    ProfileFound,
    ProfileLookup,
    ProfileLookupFailed,
    ProfileQueries,
)

TEST_SECRET_KEY = "0123456789abcdef" * 4  # noqa: S105


class FakeIdentityProvider:
    """Identity provider whose session changes are emitted by the test."""

    def __init__(self) -> None:
        self.listeners: list[Callable[[Session | None], None]] = []
        self.accounts: dict[str, tuple[str, str]] = {}
        self.subscribe_count = 0
        self.release_count = 0
        self.sign_out_count = 0
        self.fail_sign_out = False

    def subscribe(self, on_change: Callable[[Session | None], None]) -> Subscription:
        self.subscribe_count += 1
        self.listeners.append(on_change)

        def release() -> None:
            self.release_count += 1
            self.listeners.remove(on_change)

        return Subscription(release)

    def emit(self, session: Session | None) -> None:
        for listener in list(self.listeners):
            listener(session)

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        account = self.accounts.get(email)
        if account is None or account[1] != password:
            raise InvalidCredentialsError("Invalid login credentials")
        session = Session(identity_id=account[0], email=email)
        self.emit(session)
        return session

    async def sign_out(self) -> None:
        self.sign_out_count += 1
        if self.fail_sign_out:
            msg = "provider unreachable"
            raise ConnectionError(msg)
        self.emit(None)

    async def sign_up(self, email: str, password: str) -> str:
        if email in self.accounts:
            msg = "An account with this email already exists"
            raise SignUpError(msg)
        identity_id = f"id-{len(self.accounts) + 1}"
        self.accounts[email] = (identity_id, password)
        return identity_id


class FakeProfileStore:
    """Profile store kept in a dict, with switchable faults."""

    def __init__(self) -> None:
        self.profiles: dict[str, Profile] = {}
        self.lookups: list[str] = []
        self.fail_lookup = False
        self.fail_insert = False

    async def get_by_identity_id(self, identity_id: str) -> ProfileLookup:
        self.lookups.append(identity_id)
        if self.fail_lookup:
            return ProfileLookupFailed(identity_id, StoreError("database is locked"))
        profile = self.profiles.get(identity_id)
        if profile is None:
            return ProfileAbsent(identity_id)
        return ProfileFound(profile)

    async def insert(self, profile: Profile, email: str | None = None) -> None:
        if self.fail_insert:
            msg = "disk I/O error"
            raise StoreError(msg)
        self.profiles[profile.identity_id] = profile

    def add(self, identity_id: str, name: str, role: Role) -> Profile:
        profile = Profile(identity_id=identity_id, name=name, role=role)
        self.profiles[identity_id] = profile
        return profile


@pytest.fixture
def security_manager() -> SecurityManager:
    """Create a security manager with a fixed key and short passwords."""
    return SecurityManager(secret_key=TEST_SECRET_KEY, password_min_length=6)


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def profile_store() -> FakeProfileStore:
    return FakeProfileStore()


@pytest_asyncio.fixture
async def connection() -> AsyncIterator[aiosqlite.Connection]:
    """Open an in-memory database for one test."""
    async with aiosqlite.connect(":memory:") as db_connection:
        yield db_connection


@pytest_asyncio.fixture
async def identity_queries(connection: aiosqlite.Connection) -> IdentityQueries:
    queries = IdentityQueries(connection)
    await queries.initialize_tables()
    return queries


@pytest_asyncio.fixture
async def profile_queries(connection: aiosqlite.Connection) -> ProfileQueries:
    queries = ProfileQueries(connection)
    await queries.initialize_tables()
    return queries


@pytest_asyncio.fixture
async def patient_queries(connection: aiosqlite.Connection) -> PatientQueries:
    queries = PatientQueries(connection)
    await queries.initialize_tables()
    return queries


@pytest.fixture
def other_identity_provider() -> FakeIdentityProvider:
    """Create a second provider, standing in for another signed-in panel."""
    return FakeIdentityProvider()
