"""Configuration for :class:`~authlite.session.service.Auth`.

Environment variables
---------------------
AUTHLITE_API_KEY
    API key of the identity toolkit project.  Required.
AUTHLITE_INSTANCE_NAME
    Discriminator for several Auth instances sharing one storage.
    Defaults to ``default``.
AUTHLITE_REDIRECT_URI
    Where identity providers and email links send the user back.
AUTHLITE_ACCOUNTS_URL / AUTHLITE_TOKEN_URL
    Base URLs of the accounts and secure-token endpoints.
AUTHLITE_HTTP_TIMEOUT
    Timeout in seconds applied to every remote call (default ``10``).
AUTHLITE_CROSS_TAB_SYNC
    Adopt session changes written by other processes (default ``true``).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from authlite.utils.environment import env_flag, env_float, env_str

DEFAULT_ACCOUNTS_URL: Final[str] = "https://identitytoolkit.googleapis.com/v1/accounts"
DEFAULT_TOKEN_URL: Final[str] = "https://securetoken.googleapis.com/v1/token"
DEFAULT_HTTP_TIMEOUT: Final[float] = 10.0


@dataclass(frozen=True, slots=True)
class AuthConfig:
    """Settings of one Auth instance."""

    api_key: str
    name: str = "default"
    redirect_uri: str | None = None
    accounts_url: str = DEFAULT_ACCOUNTS_URL
    token_url: str = DEFAULT_TOKEN_URL
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    cross_tab_sync: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.api_key, str) or not self.api_key:
            raise ValueError('The argument "api_key" is required')

    @classmethod
    def from_env(cls, **overrides: object) -> "AuthConfig":
        """Build a config from ``AUTHLITE_*`` variables; *overrides* win."""
        values: dict[str, object] = {
            "api_key": env_str("AUTHLITE_API_KEY", ""),
            "name": env_str("AUTHLITE_INSTANCE_NAME", "default"),
            "redirect_uri": env_str("AUTHLITE_REDIRECT_URI"),
            "accounts_url": env_str("AUTHLITE_ACCOUNTS_URL", DEFAULT_ACCOUNTS_URL),
            "token_url": env_str("AUTHLITE_TOKEN_URL", DEFAULT_TOKEN_URL),
            "http_timeout": env_float("AUTHLITE_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
            "cross_tab_sync": env_flag("AUTHLITE_CROSS_TAB_SYNC", True),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)  # type: ignore[arg-type]
