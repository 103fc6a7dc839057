"""Exception types raised by the session core.

Only lightweight, **data-carrying** exceptions live here so that callers can
transform them into UI messages or HTTP responses.  None of them ever carries a
token, refresh token or provider session id.
"""

from __future__ import annotations

from typing import Any, Final

# Server reasons meaning the stored refresh token can never be used again.
_REFRESH_TOKEN_DEAD: Final[frozenset[str]] = frozenset(
    {
        "TOKEN_EXPIRED",
        "INVALID_REFRESH_TOKEN",
        "USER_DISABLED",
        "USER_NOT_FOUND",
    }
)


class AuthError(RuntimeError):
    """Base class of every error raised by :mod:`authlite.session`."""

    code: str = "auth_error"
    default_message: str = "Authentication error."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    def to_payload(self) -> dict[str, Any]:
        """Return a JSON-serialisable payload **without secrets**."""
        return {"error": self.code, "message": str(self)}


class NotAuthenticatedError(AuthError):
    """Raised when an operation requiring a signed-in user finds none."""

    code = "not_authenticated"
    default_message = "The user must be signed in to use this method."


class MissingRedirectTargetError(AuthError):
    """Raised when a redirect flow is requested without a redirect URI."""

    code = "missing_redirect_target"
    default_message = (
        "A redirect URI must be configured to sign in with an identity provider."
    )


class OrphanedLinkAttemptError(AuthError):
    """The user signed out while a link-account redirect was in progress."""

    code = "orphaned_link_attempt"
    default_message = (
        "A request to link an account was made, but the user is no longer signed in."
    )


class RemoteOperationError(AuthError):
    """Raised when the remote identity service rejects an operation."""

    code = "remote_operation_failed"

    def __init__(
        self,
        *,
        operation: str,
        reason: str,
        status: int | None = None,
        message: str | None = None,
    ) -> None:
        super().__init__(message or reason)
        self.operation: str = operation
        self.reason: str = reason
        self.status: int | None = status

    @property
    def is_refresh_token_invalid(self) -> bool:
        """True when the failure means the session cannot be refreshed anymore."""
        return self.reason in _REFRESH_TOKEN_DEAD

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload.update(
            {"operation": self.operation, "reason": self.reason, "status": self.status}
        )
        return payload


class PersistenceError(AuthError):
    """Raised when the storage capability rejects a read or write."""

    code = "persistence_failed"

    def __init__(self, *, key: str, message: str | None = None) -> None:
        super().__init__(message or f"Storage operation failed for key {key!r}.")
        self.key: str = key

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["key"] = self.key
        return payload
