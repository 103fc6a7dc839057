"""Session core package.

This namespace hosts the building blocks that keep one signed-in session
consistent across concurrent tasks, processes sharing a storage, and redirect
round trips to identity providers.

Sub-modules
-----------
clock
    Test-friendly time abstraction.
models
    Immutable dataclasses for sessions, tokens and redirect-flow state.
errors
    Exception types raised by the session core.
storage
    Persistence contract plus memory and disk adapters.
remote
    ``httpx`` client for the identity toolkit REST API.
credentials
    :class:`CredentialStore`, owner of the current session.
refresher
    :class:`TokenRefresher`, single-flight id-token refresh.
navigation
    The location surface redirect flows drive.
redirect
    :class:`RedirectFlowCoordinator` for provider and email-link callbacks.
service
    :class:`Auth`, the facade wiring everything together.
log_utils
    Structured logging helpers (thin wrapper around :pymod:`logging`).

All public objects are re-exported here for convenience.
"""

from __future__ import annotations

from .clock import Clock, default_clock, fixed_clock  # noqa: F401
from .models import (  # noqa: F401
    FlowState,
    PendingRedirectFlow,
    ProviderOptions,
    Session,
    TokenManager,
)
from .errors import (  # noqa: F401
    AuthError,
    MissingRedirectTargetError,
    NotAuthenticatedError,
    OrphanedLinkAttemptError,
    PersistenceError,
    RemoteOperationError,
)
from .storage import (  # noqa: F401
    DiskStorage,
    MemoryStorage,
    PersistenceAdapter,
    StorageEvent,
    StorageKeys,
    WatchableStorage,
)
from .remote import RemoteAuth, RemoteAuthClient, RemoteResponse  # noqa: F401
from .credentials import CredentialStore  # noqa: F401
from .refresher import TokenRefresher  # noqa: F401
from .navigation import Location, MemoryLocation  # noqa: F401
from .redirect import RedirectFlowCoordinator  # noqa: F401
from .service import Auth  # noqa: F401
from .log_utils import get_session_logger  # noqa: F401

__all__ = [
    # clock
    "Clock",
    "default_clock",
    "fixed_clock",
    # models
    "FlowState",
    "PendingRedirectFlow",
    "ProviderOptions",
    "Session",
    "TokenManager",
    # errors
    "AuthError",
    "MissingRedirectTargetError",
    "NotAuthenticatedError",
    "OrphanedLinkAttemptError",
    "PersistenceError",
    "RemoteOperationError",
    # storage
    "DiskStorage",
    "MemoryStorage",
    "PersistenceAdapter",
    "StorageEvent",
    "StorageKeys",
    "WatchableStorage",
    # remote
    "RemoteAuth",
    "RemoteAuthClient",
    "RemoteResponse",
    # core
    "CredentialStore",
    "TokenRefresher",
    "Location",
    "MemoryLocation",
    "RedirectFlowCoordinator",
    "Auth",
    # logging helpers
    "get_session_logger",
]
