"""Session synchronization, the authorization gate and auth routes."""

from .auth_routes import configure_auth_router
from .gate import (
    GateDecision,
    GateOutcome,
    NavigationEntry,
    evaluate_access,
    navigation_entries,
    requires,
)
from .synchronizer import AuthState, SessionSynchronizer, register_account
from .validation import Validate

__all__ = [
    "AuthState",
    "GateDecision",
    "GateOutcome",
    "NavigationEntry",
    "SessionSynchronizer",
    "Validate",
    "configure_auth_router",
    "evaluate_access",
    "navigation_entries",
    "register_account",
    "requires",
]
