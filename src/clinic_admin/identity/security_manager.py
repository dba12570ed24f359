"""Password policy and session token helpers for the local identity provider.

Includes password requirement checks, the interactive admin prompt, and
session token creation and verification.
"""

import getpass
import logging
import os
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt

from clinic_admin.common import Session

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)


@dataclass
class SecurityManager:
    """Manager for password and session token settings.

    :param str secret_key: Secret key for session token signing (generated if not provided)
    :param str algorithm: JWT signing algorithm
    :param int expire_minutes: Session lifetime in minutes
    :param int password_min_length: Minimum length for new passwords
    """

    DEFAULT_JWT_ALGORITHM = "HS512"
    DEFAULT_SESSION_EXPIRE_MINUTES = 60 * 24
    DEFAULT_PASSWORD_MIN_LENGTH = 6
    MINIMUM_JWT_SECRET_KEY_LENGTH = 32
    TOKEN_TYPE = "session"

    secret_key: str | None = None
    algorithm: str = DEFAULT_JWT_ALGORITHM
    expire_minutes: int = DEFAULT_SESSION_EXPIRE_MINUTES
    password_min_length: int = DEFAULT_PASSWORD_MIN_LENGTH

    def __post_init__(self) -> None:
        """Generate secret key if not provided."""
        if (
            self.secret_key is None
            or len(self.secret_key) < self.MINIMUM_JWT_SECRET_KEY_LENGTH
        ):
            self.secret_key = os.urandom(64).hex()

    def validate_password(self, password: str) -> str | None:
        """Validate password against configured requirements (just length for now).

        :param str password: The password to validate
        :return: An error message if the password does not meet requirements,
            None otherwise
        """
        if len(password) >= self.password_min_length:
            return None

        return (
            f"Password should be at least {self.password_min_length} characters long."
        )

    def prompt_admin_account(self) -> tuple[str, str, str]:
        """Prompt on the command line for the first administrator account.

        :return: A tuple of (name, email, password)
        """
        name = ""
        while not name:
            name = input("Please enter the administrator's full name: ").strip()
        email = ""
        while "@" not in email:
            email = input("Please enter the administrator's email: ").strip()
        admin_password = None
        while not admin_password:
            admin_password = getpass.getpass("Please enter the password: ")
            error = self.validate_password(admin_password)
            if error:
                LOGGER.error(error)
                admin_password = None
                continue
            admin_password_confirm = getpass.getpass("Please re-enter the password: ")
            if admin_password != admin_password_confirm:
                LOGGER.error("Passwords do not match. Please try again.")
                admin_password = None
                continue
        return name, email, admin_password

    def create_session_token(self, identity_id: str, email: str) -> str:
        """Create a signed session token for an identity.

        :param identity_id: The identity the session belongs to
        :param email: The email the identity signed in with
        :return: A JWT as a string
        """
        issued_at = datetime.now(UTC)
        payload = {
            "sub": identity_id,
            "email": email,
            "iat": issued_at,
            "exp": issued_at + timedelta(minutes=self.expire_minutes),
            "type": self.TOKEN_TYPE,
        }

        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify_session_token(self, token: str) -> Session | None:
        """Verify and decode a session token.

        :param token: The JWT string to verify
        :return: The Session if the token is valid and unexpired, None otherwise
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
            )
        except jwt.ExpiredSignatureError:
            LOGGER.debug("Session token has expired")
            return None
        except jwt.InvalidTokenError:
            LOGGER.debug("Session token is invalid")
            return None

        if payload.get("type") != self.TOKEN_TYPE:
            return None

        identity_id = payload.get("sub")
        email = payload.get("email")
        if identity_id is None or email is None:
            return None

        return Session(
            identity_id=identity_id,
            email=email,
            access_token=token,
            raw=payload,
        )
