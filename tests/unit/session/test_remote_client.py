"""Unit tests for RemoteAuthClient (``httpx.MockTransport`` – no network).

Coverage:
* URL routing for accounts operations vs. the token endpoint, API key param
* ``None`` fields dropped from JSON bodies, raw string bodies passed through
* ``expires_at`` = ``Date`` header + 1h, clock fallback
* error classification incl. explanatory suffix stripping
* transport errors and non-JSON bodies
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from email.utils import format_datetime

import httpx
import pytest

from authlite.session.clock import fixed_clock
from authlite.session.errors import RemoteOperationError
from authlite.session.remote import (
    NETWORK_FAILURE,
    RemoteAuthClient,
    classify_reason,
    response_expiry,
)

DATE = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def _client(handler, *, clock=None) -> RemoteAuthClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RemoteAuthClient(
        "api-key",
        accounts_url="https://id.example.com/v1/accounts",
        token_url="https://token.example.com/v1/token",
        http_client=http,
        clock=clock or fixed_clock(1_000.0),
    )


# --------------------------------------------------------------------------- #
# Requests                                                                    #
# --------------------------------------------------------------------------- #
@pytest.mark.anyio
async def test_accounts_operation_request_shape() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"kind": "k", "users": []},
            headers={"Date": format_datetime(DATE, usegmt=True)},
        )

    data = await _client(handler).invoke("lookup", {"idToken": "tok", "unused": None})

    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/v1/accounts:lookup"
    assert request.url.params["key"] == "api-key"
    assert json.loads(request.content) == {"idToken": "tok"}
    assert data == {"kind": "k", "users": []}
    assert data.expires_at == DATE.timestamp() + 3600


@pytest.mark.anyio
async def test_token_operation_goes_to_token_endpoint() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id_token": "i", "refresh_token": "r"})

    data = await _client(handler).invoke("token", {"grant_type": "refresh_token"})

    assert seen[0].url.host == "token.example.com"
    assert seen[0].url.path == "/v1/token"
    # no Date header -> local clock
    assert data.expires_at == 1_000.0 + 3600


@pytest.mark.anyio
async def test_string_payload_sent_verbatim() -> None:
    seen: list[bytes] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.content)
        return httpx.Response(200, json={})

    await _client(handler).invoke("delete", '{"idToken": "t"}')
    assert seen == [b'{"idToken": "t"}']


# --------------------------------------------------------------------------- #
# Failures                                                                    #
# --------------------------------------------------------------------------- #
@pytest.mark.anyio
async def test_error_reason_suffix_stripped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400,
            json={"error": {"message": "WEAK_PASSWORD : Password should be at least 6 characters"}},
        )

    with pytest.raises(RemoteOperationError) as exc_info:
        await _client(handler).invoke("signUp", {"email": "a@example.com", "password": "1"})

    err = exc_info.value
    assert err.reason == "WEAK_PASSWORD"
    assert err.status == 400
    assert err.operation == "signUp"
    assert err.to_payload()["error"] == "remote_operation_failed"


@pytest.mark.anyio
async def test_refresh_token_errors_are_flagged() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"message": "TOKEN_EXPIRED"}})

    with pytest.raises(RemoteOperationError) as exc_info:
        await _client(handler).invoke("token", {"refresh_token": "r"})
    assert exc_info.value.is_refresh_token_invalid is True


@pytest.mark.anyio
async def test_transport_error_classified() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RemoteOperationError) as exc_info:
        await _client(handler).invoke("lookup", {"idToken": "t"})

    assert exc_info.value.reason == NETWORK_FAILURE
    assert exc_info.value.status is None
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
    assert exc_info.value.is_refresh_token_invalid is False


@pytest.mark.anyio
async def test_non_json_success_body_rejected() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>proxy</html>")

    with pytest.raises(RemoteOperationError) as exc_info:
        await _client(handler).invoke("lookup", {"idToken": "t"})
    assert exc_info.value.reason == "INVALID_RESPONSE"


@pytest.mark.parametrize(
    ("body", "status", "expected"),
    [
        ({"error": {"message": "EMAIL_NOT_FOUND"}}, 400, "EMAIL_NOT_FOUND"),
        (
            {"error": {"message": "TOO_MANY_ATTEMPTS_TRY_LATER : Try again later."}},
            400,
            "TOO_MANY_ATTEMPTS_TRY_LATER",
        ),
        ({"error": "nope"}, 403, "HTTP_403"),
        (None, 502, "HTTP_502"),
    ],
)
def test_classify_reason(body, status: int, expected: str) -> None:
    assert classify_reason(body, status) == expected


def test_response_expiry_bad_header_uses_clock() -> None:
    assert response_expiry("not a date", clock=fixed_clock(10.0)) == 10.0 + 3600
