"""Identity provider contract and the local SQLite-backed provider."""

from .local_provider import LocalIdentityProvider
from .provider import IdentityProvider, Subscription
from .queries import IdentityQueries
from .security_manager import SecurityManager

__all__ = [
    "IdentityProvider",
    "IdentityQueries",
    "LocalIdentityProvider",
    "SecurityManager",
    "Subscription",
]
