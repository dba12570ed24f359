"""Queries for the staff profile store.

Profiles map an identity id to a display name and role. They are written at
registration and by administrators editing roles, and never deleted here.
"""

import logging
from dataclasses import dataclass

import aiosqlite

from clinic_admin.common import Profile, Role, StoreError

from .lookup import ProfileAbsent, ProfileFound, ProfileLookup, ProfileLookupFailed

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)


@dataclass(frozen=True)
class StaffMember:
    """A profile row as listed on the staff management page."""

    identity_id: str
    name: str
    email: str | None
    role: Role
    created_at: str


class ProfileQueries:
    """Repository for staff profiles."""

    CREATE_PROFILES_TABLE = """
        CREATE TABLE IF NOT EXISTS staff_profiles (
            identity_id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            email TEXT,
            -- 0: admin, 1: dentist, 2: assistant, 3: receptionist
            role INTEGER NOT NULL DEFAULT 2,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );
        """

    GET_PROFILE = """
        SELECT identity_id, name, role FROM staff_profiles WHERE identity_id = ?;
        """

    ADD_PROFILE = """
        INSERT INTO staff_profiles (identity_id, name, email, role) VALUES (?, ?, ?, ?);
        """

    UPDATE_ROLE = """
        UPDATE staff_profiles SET role = ? WHERE identity_id = ?;
        """

    LIST_PROFILES = """
        SELECT identity_id, name, email, role, created_at
        FROM staff_profiles ORDER BY created_at DESC, rowid DESC;
        """

    COUNT_PROFILES = """SELECT COUNT(*) FROM staff_profiles;"""

    def __init__(self, connection: aiosqlite.Connection) -> None:
        self.connection = connection

    async def initialize_tables(self) -> None:
        """Create the profiles table if it does not exist."""
        await self.connection.execute(ProfileQueries.CREATE_PROFILES_TABLE)
        await self.connection.commit()

    async def get_by_identity_id(self, identity_id: str) -> ProfileLookup:
        """Look up the profile of an identity.

        Store faults are returned as :class:`ProfileLookupFailed`, not raised.

        :param identity_id: The identity to look up
        :return: ProfileFound, ProfileAbsent or ProfileLookupFailed
        """
        try:
            async with self.connection.execute(
                ProfileQueries.GET_PROFILE,
                (identity_id,),
            ) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            return ProfileLookupFailed(identity_id, StoreError(str(e)))

        if row is None:
            return ProfileAbsent(identity_id)

        try:
            role = Role(int(row[2]))
        except ValueError:
            return ProfileLookupFailed(
                identity_id,
                StoreError(f"Profile {identity_id} has unknown role {row[2]}"),
            )

        return ProfileFound(Profile(identity_id=row[0], name=row[1], role=role))

    async def insert(self, profile: Profile, email: str | None = None) -> None:
        """Insert a new profile.

        :param profile: The profile to store
        :param email: Contact address shown on the staff page
        :raises StoreError: If the write fails
        """
        try:
            await self.connection.execute(
                ProfileQueries.ADD_PROFILE,
                (profile.identity_id, profile.name, email, int(profile.role)),
            )
            await self.connection.commit()
        except aiosqlite.Error as e:
            await self.connection.rollback()
            LOGGER.error("Error inserting profile %s: %s", profile.identity_id, e)
            raise StoreError(str(e)) from e

    async def update_role(self, identity_id: str, role: Role) -> bool:
        """Change the role of a profile.

        :param identity_id: The profile to update
        :param role: The new role
        :return: True if a profile was updated, False if none exists
        :raises StoreError: If the write fails
        """
        try:
            cursor = await self.connection.execute(
                ProfileQueries.UPDATE_ROLE,
                (int(role), identity_id),
            )
            await self.connection.commit()
        except aiosqlite.Error as e:
            await self.connection.rollback()
            LOGGER.error("Error updating role of %s: %s", identity_id, e)
            raise StoreError(str(e)) from e

        return cursor.rowcount > 0

    async def list_profiles(self) -> list[StaffMember]:
        """List all profiles, newest first.

        :raises StoreError: If the read fails
        """
        try:
            async with self.connection.execute(ProfileQueries.LIST_PROFILES) as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StoreError(str(e)) from e

        return [
            StaffMember(
                identity_id=identity_id,
                name=name,
                email=email,
                role=Role(int(role)),
                created_at=str(created_at),
            )
            for identity_id, name, email, role, created_at in rows
        ]

    async def count(self) -> int:
        """Return the number of profiles.

        :raises StoreError: If the read fails
        """
        try:
            async with self.connection.execute(ProfileQueries.COUNT_PROFILES) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StoreError(str(e)) from e
        return row[0] if row else 0
