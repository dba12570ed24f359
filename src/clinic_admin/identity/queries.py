"""Queries for the local identity provider's account table.

Using the IdentityQueries class as a repository for
account-related queries.
"""

import logging
import uuid

import aiosqlite
from bcrypt import checkpw, gensalt, hashpw

from clinic_admin.common import SignUpError

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)


class IdentityQueries:
    """Repository for identity accounts (email and password hash)."""

    CREATE_ACCOUNTS_TABLE = """
        CREATE TABLE IF NOT EXISTS identity_accounts (
            identity_id TEXT PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            hashed_password BLOB NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );
        """

    GET_ACCOUNT_BY_EMAIL = """
        SELECT identity_id, hashed_password FROM identity_accounts WHERE email = ?;
        """

    ADD_ACCOUNT = """
        INSERT INTO identity_accounts (identity_id, email, hashed_password)
        VALUES (?, ?, ?);
        """

    def __init__(self, connection: aiosqlite.Connection) -> None:
        self.connection = connection

    async def initialize_tables(self) -> None:
        """Create the accounts table if it does not exist.

        This method should be called during application startup.
        """
        await self.connection.execute(IdentityQueries.CREATE_ACCOUNTS_TABLE)
        await self.connection.commit()

    async def authenticate(self, email: str, password: str) -> str | None:
        """Check an email and password pair.

        :param email: The email the account was created with
        :param password: The plaintext password to verify
        :return: The identity id if the pair matches, None otherwise
        """
        async with self.connection.execute(
            IdentityQueries.GET_ACCOUNT_BY_EMAIL,
            (email.strip().lower(),),
        ) as cursor:
            row = await cursor.fetchone()

        if row is None:
            return None

        identity_id, stored_hashed_password = row
        if checkpw(password.encode(), stored_hashed_password):
            return identity_id
        return None

    async def create_account(self, email: str, password: str) -> str:
        """Create an account and return its new identity id.

        :param email: Contact address, stored lower case
        :param password: Plaintext password, already validated by the caller
        :return: The generated identity id
        :raises SignUpError: If the email is taken or the write fails
        """
        email = email.strip().lower()
        identity_id = str(uuid.uuid4())
        hashed_password = hashpw(password.encode(), gensalt())

        try:
            await self.connection.execute(
                IdentityQueries.ADD_ACCOUNT,
                (identity_id, email, hashed_password),
            )
            await self.connection.commit()
        except aiosqlite.IntegrityError as e:
            await self.connection.rollback()
            msg = "An account with this email already exists"
            raise SignUpError(msg) from e
        except aiosqlite.Error as e:
            await self.connection.rollback()
            LOGGER.error("Error creating account for %s: %s", email, e)
            msg = "Failed to create account"
            raise SignUpError(msg) from e

        return identity_id
