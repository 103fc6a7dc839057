"""Auth – the facade applications talk to.

One ``Auth`` instance owns one :class:`CredentialStore`, one
:class:`TokenRefresher` and one :class:`RedirectFlowCoordinator`, all sharing
the same storage and remote client.  The remaining operations (sign up,
password sign-in, out-of-band codes, profile updates…) are single remote calls
whose only coordination is establishing or refreshing the session.

When constructed inside a running event loop, the persisted session is
restored in a background task; :meth:`Auth.ready` waits for it.  Outside a
loop, call ``await auth.ready()`` once a loop is available.

**Secrets are never logged**: tokens and codes only appear masked.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Literal, Mapping
from urllib.parse import urlencode

import httpx

from authlite.config import AuthConfig
from authlite.session.clock import Clock, default_clock
from authlite.session.credentials import CredentialStore, Observer
from authlite.session.errors import NotAuthenticatedError, RemoteOperationError
from authlite.session.models import ProviderOptions, Session, TokenManager
from authlite.session.navigation import Location, MemoryLocation
from authlite.session.redirect import RedirectFlowCoordinator
from authlite.session.refresher import TokenRefresher
from authlite.session.remote import RemoteAuth, RemoteAuthClient, tokens_from_response
from authlite.session.storage import MemoryStorage, PersistenceAdapter, StorageKeys

_LOG = logging.getLogger("authlite.session.service")

OobRequestType = Literal["PASSWORD_RESET", "VERIFY_EMAIL", "EMAIL_SIGNIN"]


def _strip_kind(data: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if k != "kind"}


# --------------------------------------------------------------------------- #
# Public service                                                              #
# --------------------------------------------------------------------------- #
class Auth:
    """Email/password and federated sign-in with a persisted session."""

    def __init__(
        self,
        config: AuthConfig | None = None,
        *,
        api_key: str | None = None,
        name: str | None = None,
        redirect_uri: str | None = None,
        storage: PersistenceAdapter | None = None,
        client: RemoteAuth | None = None,
        location: Location | None = None,
        clock: Clock = default_clock,
    ) -> None:
        if config is None:
            config = AuthConfig(
                api_key=api_key,  # type: ignore[arg-type]
                name=name or "default",
                redirect_uri=redirect_uri,
            )
        self.config = config
        self.name = config.name
        self.redirect_uri = config.redirect_uri
        self.storage = storage if storage is not None else MemoryStorage()
        self.location = location if location is not None else MemoryLocation()
        self.client: RemoteAuth = client or RemoteAuthClient(
            config.api_key,
            accounts_url=config.accounts_url,
            token_url=config.token_url,
            timeout=config.http_timeout,
            clock=clock,
        )
        self.keys = StorageKeys.for_instance(config.api_key, config.name)

        self.store = CredentialStore(self.storage, key=self.keys.user)
        self.refresher = TokenRefresher(self.client, clock=clock)
        self.redirects = RedirectFlowCoordinator(
            self.store,
            self.refresher,
            self.client,
            keys=self.keys,
            location=self.location,
            establish=self.fetch_profile,
            redirect_uri=config.redirect_uri,
            instance=config.name,
        )
        if config.cross_tab_sync:
            self.store.attach()

        self._restore_task: asyncio.Task[Session | None] | None = None
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            _LOG.debug("No running event loop; session restore deferred to ready()")
        else:
            self._start_restore()

    # ------------------------------------------------------------------ #
    # Session state                                                      #
    # ------------------------------------------------------------------ #
    @property
    def current_user(self) -> Session | None:
        return self.store.current()

    def listen(self, observer: Observer) -> Callable[[], None]:
        """Call *observer* with the session whenever it changes."""
        return self.store.subscribe(observer)

    def _start_restore(self) -> "asyncio.Task[Session | None]":
        if self._restore_task is None:
            self._restore_task = asyncio.ensure_future(
                self.store.restore(self.refresher, self.fetch_profile)
            )
            self._restore_task.add_done_callback(self._restore_done)
        return self._restore_task

    def _restore_done(self, task: "asyncio.Task[Session | None]") -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _LOG.error("Restoring the session of instance=%s failed: %s", self.name, exc)

    async def ready(self) -> Session | None:
        """Wait until the persisted session has been restored."""
        return await self._start_restore()

    async def close(self) -> None:
        self.store.detach()
        if isinstance(self.client, RemoteAuthClient):
            await self.client.aclose()

    async def enforce_auth(self) -> Session:
        """Return the session with a usable id token or raise NotAuthenticatedError."""
        await self.refresher.ensure_fresh(self.store)
        session = self.store.current()
        if session is None:
            raise NotAuthenticatedError()
        return session

    async def get_id_token(self) -> str | None:
        """The current id token, refreshed when needed; ``None`` when signed out."""
        if self.store.current() is None:
            return None
        return (await self.enforce_auth()).id_token

    async def sign_out(self) -> None:
        await self.store.sign_out()

    # ------------------------------------------------------------------ #
    # Sign in / sign up                                                  #
    # ------------------------------------------------------------------ #
    async def sign_up(self, email: str | None = None, password: str | None = None) -> Session:
        """Create an account (anonymous without arguments) and sign it in."""
        data = await self.client.invoke(
            "signUp", {"email": email, "password": password, "returnSecureToken": True}
        )
        return await self.fetch_profile(tokens_from_response(data, "signUp"))

    async def sign_in(self, email: str, password: str) -> Session:
        data = await self.client.invoke(
            "signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        return await self.fetch_profile(tokens_from_response(data, "signInWithPassword"))

    async def sign_in_with_custom_token(self, token: str) -> Session:
        data = await self.client.invoke(
            "signInWithCustomToken", {"token": token, "returnSecureToken": True}
        )
        return await self.fetch_profile(tokens_from_response(data, "signInWithCustomToken"))

    async def sign_in_with_provider(
        self, options: ProviderOptions | Mapping[str, Any] | str
    ) -> None:
        """Navigate to a federated identity provider (see RedirectFlowCoordinator.start)."""
        await self.redirects.start(options)

    async def handle_sign_in_redirect(self, url: str | None = None) -> Any:
        """Finish a provider or email-link sign-in; no-op when *url* is no callback."""
        return await self.redirects.resolve(url)

    # ------------------------------------------------------------------ #
    # Account operations                                                 #
    # ------------------------------------------------------------------ #
    async def send_oob_code(self, request_type: OobRequestType, email: str | None = None) -> None:
        """Send a password-reset, email-verification or sign-in-link email.

        ``VERIFY_EMAIL`` targets the signed-in user and ignores *email*.
        """
        id_token: str | None = None
        if request_type == "VERIFY_EMAIL":
            session = await self.enforce_auth()
            email, id_token = session.email, session.id_token

        continue_url = None
        if self.redirect_uri:
            continue_url = f"{self.redirect_uri}?{urlencode({'email': email or ''})}"

        await self.client.invoke(
            "sendOobCode",
            {
                "idToken": id_token,
                "requestType": request_type,
                "email": email,
                "continueUrl": continue_url,
            },
        )

    async def reset_password(self, oob_code: str, new_password: str | None = None) -> str | None:
        """Set a new password with a reset code; without a password only verifies it.

        Returns the email of the account the code was issued for.
        """
        data = await self.client.invoke(
            "resetPassword", {"oobCode": oob_code, "newPassword": new_password}
        )
        return data.get("email")

    async def fetch_providers_for_email(self, email: str) -> dict[str, Any]:
        """Providers and sign-in methods known for *email*."""
        data = await self.client.invoke(
            "createAuthUri", {"identifier": email, "continueUri": self.location.href}
        )
        return _strip_kind(data)

    async def fetch_profile(self, token_manager: TokenManager | None = None) -> Session:
        """Load the user profile and make it the current session.

        Without *token_manager* the signed-in user's tokens are used.
        """
        if token_manager is None:
            token_manager = (await self.enforce_auth()).token_manager

        data = await self.client.invoke("lookup", {"idToken": token_manager.id_token})
        users = data.get("users")
        if not users or not isinstance(users[0], Mapping):
            raise RemoteOperationError(operation="lookup", reason="INVALID_RESPONSE")
        session = Session(token_manager=token_manager, profile=_strip_kind(users[0]))
        await self.store.replace(session)
        return session

    async def update_profile(self, **fields: Any) -> Session:
        """Overwrite profile fields (``displayName``, ``photoUrl``, ``password``…)."""
        current = await self.enforce_auth()
        data = await self.client.invoke(
            "update",
            {**fields, "idToken": current.id_token, "returnSecureToken": True},
        )
        token_manager = current.token_manager
        if data.get("idToken"):
            token_manager = tokens_from_response(data, "update")

        profile = {
            k: v
            for k, v in _strip_kind(data).items()
            if k not in ("idToken", "refreshToken", "expiresIn")
        }
        session = Session(token_manager=token_manager, profile=profile)
        await self.store.replace(session)
        return session

    async def delete_account(self) -> None:
        """Delete the signed-in account and sign out."""
        session = await self.enforce_auth()
        await self.client.invoke("delete", {"idToken": session.id_token})
        _LOG.info("Deleted account of instance=%s", self.name)
        await self.sign_out()

    async def authorized_request(
        self,
        method: str,
        url: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request carrying ``Authorization: Bearer <id token>`` when signed in."""
        headers = httpx.Headers(kwargs.pop("headers", None))
        id_token = await self.get_id_token()
        if id_token:
            headers["Authorization"] = f"Bearer {id_token}"

        if http_client is not None:
            return await http_client.request(method, url, headers=headers, **kwargs)
        if isinstance(self.client, RemoteAuthClient):
            return await self.client.http.request(method, url, headers=headers, **kwargs)
        async with httpx.AsyncClient(timeout=self.config.http_timeout) as http:
            return await http.request(method, url, headers=headers, **kwargs)
