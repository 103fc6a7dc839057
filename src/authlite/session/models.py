"""Typed, immutable records used by the session core."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Final, Mapping

from authlite.session.clock import Clock, default_clock

# Reserved profile field holding the serialized token material.
TOKEN_MANAGER_FIELD: Final[str] = "tokenManager"


@dataclass(frozen=True, slots=True)
class TokenManager:
    """Access token, refresh token and the instant the access token expires."""

    id_token: str
    refresh_token: str
    expires_at: float

    def __post_init__(self) -> None:
        if not self.id_token or not self.refresh_token or self.expires_at is None:
            raise ValueError("token manager requires id_token, refresh_token and expires_at")

    def is_expired(self, *, clock: Clock = default_clock) -> bool:
        """Return *True* once the access token can no longer be used."""
        return not clock() < self.expires_at

    @classmethod
    def from_response(cls, data: Mapping[str, Any], expires_at: float) -> "TokenManager":
        """Build from a remote response (accounts API or secure-token API shape)."""
        return cls(
            id_token=data.get("idToken") or data.get("id_token") or "",
            refresh_token=data.get("refreshToken") or data.get("refresh_token") or "",
            expires_at=expires_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "idToken": self.id_token,
            "refreshToken": self.refresh_token,
            "expiresAt": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TokenManager":
        return cls(
            id_token=data.get("idToken") or "",
            refresh_token=data.get("refreshToken") or "",
            expires_at=float(data["expiresAt"]),
        )


@dataclass(frozen=True, slots=True)
class Session:
    """The signed-in user: provider profile fields plus token material."""

    token_manager: TokenManager
    profile: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        clean = {k: v for k, v in dict(self.profile).items() if k != TOKEN_MANAGER_FIELD}
        object.__setattr__(self, "profile", MappingProxyType(clean))

    @property
    def id_token(self) -> str:
        return self.token_manager.id_token

    @property
    def email(self) -> str | None:
        return self.profile.get("email")

    def with_tokens(self, token_manager: TokenManager) -> "Session":
        """Return a copy with the same profile and new token material."""
        return replace(self, token_manager=token_manager)

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.profile)
        data[TOKEN_MANAGER_FIELD] = self.token_manager.to_dict()
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), sort_keys=True)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Session":
        tm = data.get(TOKEN_MANAGER_FIELD)
        if not isinstance(tm, Mapping):
            raise ValueError("session data has no token manager")
        return cls(token_manager=TokenManager.from_dict(tm), profile=data)

    @classmethod
    def from_json(cls, raw: str | None) -> "Session | None":
        """Decode the persisted form; ``None`` / ``"null"`` mean *no session*."""
        if raw is None:
            return None
        data = json.loads(raw)
        if data is None:
            return None
        if not isinstance(data, Mapping):
            raise ValueError("session data must be a JSON object")
        return cls.from_dict(data)


@dataclass(frozen=True, slots=True)
class PendingRedirectFlow:
    """Flow-resumption state persisted across the identity-provider redirect."""

    session_id: str | None = None
    link_account: bool = False


_OPTION_ALIASES: Final[dict[str, str]] = {
    "oauthScope": "oauth_scope",
    "linkAccount": "link_account",
}


@dataclass(frozen=True, slots=True)
class ProviderOptions:
    """Normalized options of a federated sign-in."""

    provider: str
    oauth_scope: str | None = None
    context: str | None = None
    link_account: bool = False

    @classmethod
    def normalize(cls, options: "ProviderOptions | Mapping[str, Any] | str") -> "ProviderOptions":
        """Accept a provider name, a mapping or an existing instance."""
        if isinstance(options, ProviderOptions):
            return options
        if isinstance(options, str):
            return cls(provider=options)
        kwargs = {_OPTION_ALIASES.get(k, k): v for k, v in options.items()}
        if not kwargs.get("provider"):
            raise ValueError("provider options require a 'provider' name")
        kwargs["link_account"] = bool(kwargs.get("link_account", False))
        return cls(**kwargs)


class FlowState(str, Enum):
    """Lifecycle of a redirect sign-in as seen from one process."""

    IDLE = "idle"
    AWAITING_REDIRECT = "awaiting_redirect"
    RESOLVING_CALLBACK = "resolving_callback"
    RESOLVED = "resolved"
    FAILED = "failed"
