"""Unit tests for session records.

Coverage:
* TokenManager expiry with a frozen clock and all-or-nothing construction
* Session persisted form keeps ``tokenManager`` reserved
* ProviderOptions normalisation of string / mapping / instance input
"""

from __future__ import annotations

import json

import pytest

from authlite.session.clock import fixed_clock
from authlite.session.models import ProviderOptions, Session, TokenManager


# --------------------------------------------------------------------------- #
# TokenManager                                                                #
# --------------------------------------------------------------------------- #
def test_token_manager_expiry_boundary() -> None:
    tm = TokenManager(id_token="id", refresh_token="rt", expires_at=1_000)
    assert tm.is_expired(clock=fixed_clock(999)) is False
    assert tm.is_expired(clock=fixed_clock(1_000)) is True


@pytest.mark.parametrize(
    "kwargs",
    [
        {"id_token": "", "refresh_token": "rt", "expires_at": 1.0},
        {"id_token": "id", "refresh_token": "", "expires_at": 1.0},
        {"id_token": "id", "refresh_token": "rt", "expires_at": None},
    ],
)
def test_token_manager_rejects_partial_material(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        TokenManager(**kwargs)


def test_token_manager_from_either_response_shape() -> None:
    accounts = TokenManager.from_response({"idToken": "a", "refreshToken": "b"}, 5.0)
    secure_token = TokenManager.from_response({"id_token": "a", "refresh_token": "b"}, 5.0)
    assert accounts == secure_token == TokenManager("a", "b", 5.0)


# --------------------------------------------------------------------------- #
# Session                                                                     #
# --------------------------------------------------------------------------- #
def test_session_json_shape_and_decode(make_session) -> None:
    session = make_session(displayName="Ada")
    data = json.loads(session.to_json())

    assert data["email"] == "test@example.com"
    assert data["tokenManager"] == {
        "idToken": "id-1",
        "refreshToken": "rt-1",
        "expiresAt": session.token_manager.expires_at,
    }
    assert Session.from_json(session.to_json()) == session


def test_session_profile_never_holds_token_manager() -> None:
    tm = TokenManager("id", "rt", 1.0)
    session = Session(token_manager=tm, profile={"tokenManager": {"bogus": 1}, "a": 1})
    assert dict(session.profile) == {"a": 1}
    assert session.email is None


@pytest.mark.parametrize("raw", [None, "null"])
def test_session_from_json_absent(raw: str | None) -> None:
    assert Session.from_json(raw) is None


def test_session_from_json_without_tokens_is_invalid() -> None:
    with pytest.raises(ValueError):
        Session.from_json('{"email": "x@example.com"}')


def test_with_tokens_keeps_profile(make_session) -> None:
    session = make_session(displayName="Ada")
    new_tm = TokenManager("id-2", "rt-2", 42.0)
    updated = session.with_tokens(new_tm)
    assert updated.profile == session.profile
    assert updated.token_manager is new_tm


# --------------------------------------------------------------------------- #
# ProviderOptions                                                             #
# --------------------------------------------------------------------------- #
def test_provider_options_string_shorthand() -> None:
    assert ProviderOptions.normalize("google.com") == ProviderOptions(provider="google.com")


def test_provider_options_camel_case_mapping() -> None:
    opts = ProviderOptions.normalize(
        {"provider": "github.com", "linkAccount": True, "oauthScope": "repo", "context": "c"}
    )
    assert opts == ProviderOptions(
        provider="github.com", oauth_scope="repo", context="c", link_account=True
    )


def test_provider_options_instance_passthrough() -> None:
    opts = ProviderOptions(provider="p", link_account=True)
    assert ProviderOptions.normalize(opts) is opts


def test_provider_options_require_provider() -> None:
    with pytest.raises(ValueError):
        ProviderOptions.normalize({"link_account": True})
