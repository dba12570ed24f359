"""Exceptions raised by the identity, profile and session layers."""


class InvalidCredentialsError(Exception):
    """Raised when the identity provider rejects an email and password."""


class SignUpError(Exception):
    """Raised when the identity provider refuses to create an account."""


class StoreError(Exception):
    """Raised when a record store cannot be read or written."""


class OrphanedIdentityError(Exception):
    """Raised when a live session has no staff profile behind it."""

    def __init__(self, identity_id: str) -> None:
        super().__init__(f"Identity {identity_id} has no staff profile")
        self.identity_id = identity_id


class PartialRegistrationError(Exception):
    """Raised when an account was created but its staff profile was not.

    The account exists at the identity provider and needs manual repair;
    until then every sign-in on it is terminated as an orphaned identity.
    """

    def __init__(self, identity_id: str, email: str) -> None:
        super().__init__(
            f"Account created for {email}, but its staff profile could not be saved",
        )
        self.identity_id = identity_id
        self.email = email
