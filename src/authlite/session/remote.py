"""HTTP client for the identity toolkit REST API.

Every operation is a single ``POST``:

* ``token`` goes to the secure-token endpoint (refresh-token grant);
* anything else goes to ``<accounts_url>:<operation>``.

Successful responses are returned as :class:`RemoteResponse`, a ``dict`` that
additionally carries ``expires_at``: the server ``Date`` header plus one hour,
which is how long an id token issued in that response stays valid.  Failures
become :class:`~authlite.session.errors.RemoteOperationError` with the server
reason code (``EMAIL_NOT_FOUND``, ``TOKEN_EXPIRED``…) and nothing else.
"""

from __future__ import annotations

import json
import logging
import re
from email.utils import parsedate_to_datetime
from typing import Any, Final, Mapping, Protocol, runtime_checkable

import httpx

from authlite.config import DEFAULT_ACCOUNTS_URL, DEFAULT_HTTP_TIMEOUT, DEFAULT_TOKEN_URL
from authlite.session.clock import Clock, default_clock
from authlite.session.errors import RemoteOperationError
from authlite.session.models import TokenManager

_LOG = logging.getLogger("authlite.session.remote")

TOKEN_VALIDITY_SECONDS: Final[int] = 3600
NETWORK_FAILURE: Final[str] = "NETWORK_REQUEST_FAILED"

# "WEAK_PASSWORD : Password should be at least 6 characters" -> "WEAK_PASSWORD"
_REASON_SUFFIX = re.compile(r"\s*: [\w ,.'\"()]+$")


class RemoteResponse(dict):
    """Parsed JSON body of a successful call plus the derived token expiry."""

    def __init__(self, data: Mapping[str, Any] | None = None, *, expires_at: float) -> None:
        super().__init__(data or {})
        self.expires_at: float = expires_at


@runtime_checkable
class RemoteAuth(Protocol):
    """What the session core needs from a remote client."""

    async def invoke(
        self, operation: str, payload: Mapping[str, Any] | str
    ) -> RemoteResponse: ...


def classify_reason(body: Any, status: int) -> str:
    """Extract the bare server reason code from an error body."""
    try:
        message = body["error"]["message"]
    except (KeyError, TypeError):
        return f"HTTP_{status}"
    if not isinstance(message, str) or not message:
        return f"HTTP_{status}"
    return _REASON_SUFFIX.sub("", message)


def response_expiry(date_header: str | None, *, clock: Clock = default_clock) -> float:
    """Token expiry derived from the server's ``Date`` header."""
    issued_at: float | None = None
    if date_header:
        try:
            issued_at = parsedate_to_datetime(date_header).timestamp()
        except (TypeError, ValueError):
            _LOG.debug("Unparseable Date header %r, using local clock", date_header)
    if issued_at is None:
        issued_at = clock()
    return issued_at + TOKEN_VALIDITY_SECONDS


def tokens_from_response(data: RemoteResponse, operation: str) -> TokenManager:
    """Token material of a sign-in or refresh response."""
    try:
        return TokenManager.from_response(data, data.expires_at)
    except ValueError:
        raise RemoteOperationError(operation=operation, reason="INVALID_RESPONSE") from None


class RemoteAuthClient:
    """``httpx``-based implementation of :class:`RemoteAuth`."""

    def __init__(
        self,
        api_key: str,
        *,
        accounts_url: str = DEFAULT_ACCOUNTS_URL,
        token_url: str = DEFAULT_TOKEN_URL,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
        clock: Clock = default_clock,
    ) -> None:
        self.api_key = api_key
        self.accounts_url = accounts_url.rstrip("/")
        self.token_url = token_url
        self._clock = clock
        self._owns_client = http_client is None
        self.http = http_client or httpx.AsyncClient(timeout=timeout)

    def url_for(self, operation: str) -> str:
        if operation == "token":
            return self.token_url
        return f"{self.accounts_url}:{operation}"

    async def invoke(
        self, operation: str, payload: Mapping[str, Any] | str
    ) -> RemoteResponse:
        """POST *payload* to *operation* and return the parsed response."""
        if isinstance(payload, str):
            content = payload
        else:
            # unset optional fields are omitted from the body entirely
            content = json.dumps({k: v for k, v in payload.items() if v is not None})

        try:
            resp = await self.http.post(
                self.url_for(operation),
                params={"key": self.api_key},
                content=content,
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as exc:
            _LOG.warning("Remote %s failed before a response: %s", operation, type(exc).__name__)
            raise RemoteOperationError(operation=operation, reason=NETWORK_FAILURE) from exc

        try:
            body = resp.json()
        except ValueError:
            body = None

        if not resp.is_success:
            reason = classify_reason(body, resp.status_code)
            _LOG.info("Remote %s rejected status=%s reason=%s", operation, resp.status_code, reason)
            raise RemoteOperationError(
                operation=operation, reason=reason, status=resp.status_code
            )

        if not isinstance(body, Mapping):
            raise RemoteOperationError(
                operation=operation, reason="INVALID_RESPONSE", status=resp.status_code
            )

        _LOG.debug("Remote %s succeeded status=%s", operation, resp.status_code)
        return RemoteResponse(
            body, expires_at=response_expiry(resp.headers.get("date"), clock=self._clock)
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self.http.aclose()
