"""authlite – client-side session management for identity toolkit sign-in."""

from authlite.config import AuthConfig
from authlite.session import (
    Auth,
    AuthError,
    MissingRedirectTargetError,
    NotAuthenticatedError,
    OrphanedLinkAttemptError,
    PersistenceError,
    RemoteOperationError,
    Session,
)

__version__ = "0.1.0"

__all__ = [
    "Auth",
    "AuthConfig",
    "AuthError",
    "MissingRedirectTargetError",
    "NotAuthenticatedError",
    "OrphanedLinkAttemptError",
    "PersistenceError",
    "RemoteOperationError",
    "Session",
]
