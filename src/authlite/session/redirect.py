"""Redirect-based sign-in that survives a full page navigation.

Before leaving for the identity provider, :meth:`RedirectFlowCoordinator.start`
persists the provider ``sessionId`` and, for link-account flows, a
``LinkAccount`` marker.  When the application is loaded again on the callback
URL, :meth:`RedirectFlowCoordinator.resolve` consumes that state exactly once,
exchanges the callback for tokens and removes the callback parameters from the
location so that reloading the page cannot replay the exchange.

Email sign-in links (``oobCode`` + ``email`` in the URL) are resolved by the
same entry point without any persisted state.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Mapping
from urllib.parse import parse_qs, urlsplit

from authlite.session.credentials import CredentialStore
from authlite.session.errors import (
    MissingRedirectTargetError,
    OrphanedLinkAttemptError,
    RemoteOperationError,
)
from authlite.session.log_utils import get_session_logger
from authlite.session.models import (
    FlowState,
    PendingRedirectFlow,
    ProviderOptions,
    Session,
    TokenManager,
)
from authlite.session.navigation import Location, strip_query
from authlite.session.refresher import TokenRefresher
from authlite.session.remote import RemoteAuth, tokens_from_response
from authlite.session.storage import PersistenceAdapter, StorageKeys, storage_errors

_LOGGER_NAME = "authlite.session.redirect"
_LOG = logging.getLogger(_LOGGER_NAME)

_LINK_ACCOUNT_MARKER = "true"

Establish = Callable[[TokenManager], Awaitable[Session]]


class RedirectFlowCoordinator:
    """Starts provider sign-ins and resolves the callbacks they come back with."""

    def __init__(
        self,
        store: CredentialStore,
        refresher: TokenRefresher,
        client: RemoteAuth,
        *,
        keys: StorageKeys,
        location: Location,
        establish: Establish,
        redirect_uri: str | None = None,
        storage: PersistenceAdapter | None = None,
        instance: str = "default",
    ) -> None:
        self.store = store
        self.refresher = refresher
        self.client = client
        self.keys = keys
        self.location = location
        self.redirect_uri = redirect_uri
        self.storage = storage or store.storage
        self.instance = instance
        self._establish = establish
        self.state = FlowState.IDLE

    # ------------------------------------------------------------------ #
    # Leaving for the identity provider                                  #
    # ------------------------------------------------------------------ #
    async def start(self, options: ProviderOptions | Mapping[str, Any] | str) -> None:
        """Persist flow state and navigate to the provider's authorization URL.

        Raises
        ------
        MissingRedirectTargetError
            No redirect URI is configured.
        NotAuthenticatedError
            ``link_account`` was requested without a signed-in user.  Nothing
            has been written at that point.
        """
        if not self.redirect_uri:
            raise MissingRedirectTargetError()
        opts = ProviderOptions.normalize(options)
        log = get_session_logger(
            base_logger_name=_LOGGER_NAME, instance=self.instance, provider=opts.provider
        )

        if opts.link_account:
            await self.refresher.ensure_fresh(self.store)

        data = await self.client.invoke(
            "createAuthUri",
            {
                "continueUri": self.redirect_uri,
                "authFlowType": "CODE_FLOW",
                "providerId": opts.provider,
                "oauthScope": opts.oauth_scope,
                "context": opts.context,
            },
        )
        auth_uri, session_id = data.get("authUri"), data.get("sessionId")
        if not auth_uri or not session_id:
            raise RemoteOperationError(operation="createAuthUri", reason="INVALID_RESPONSE")

        with storage_errors(self.keys.session_id):
            await self.storage.set(self.keys.session_id, session_id)
        with storage_errors(self.keys.link_account):
            if opts.link_account:
                await self.storage.set(self.keys.link_account, _LINK_ACCOUNT_MARKER)
            else:
                await self.storage.remove(self.keys.link_account)

        self.state = FlowState.AWAITING_REDIRECT
        log.info("Redirecting to identity provider (link_account=%s)", opts.link_account)
        self.location.assign(auth_uri)

    async def pending(self) -> PendingRedirectFlow:
        """Return the persisted flow state without consuming it."""
        with storage_errors(self.keys.session_id):
            session_id = await self.storage.get(self.keys.session_id)
        with storage_errors(self.keys.link_account):
            marker = await self.storage.get(self.keys.link_account)
        return PendingRedirectFlow(
            session_id=session_id,
            link_account=(marker or "").lower() == _LINK_ACCOUNT_MARKER,
        )

    async def _consume(self) -> PendingRedirectFlow:
        flow = await self.pending()
        with storage_errors(self.keys.link_account):
            await self.storage.remove(self.keys.link_account)
        with storage_errors(self.keys.session_id):
            await self.storage.remove(self.keys.session_id)
        return flow

    # ------------------------------------------------------------------ #
    # Coming back                                                        #
    # ------------------------------------------------------------------ #
    async def resolve(self, url: str | None = None) -> Any:
        """Finish a redirect sign-in if *url* (default: current location) is a callback.

        Returns the ``context`` given to :meth:`start` for provider flows and
        ``None`` otherwise, including when *url* is not a callback at all.
        """
        href = self.location.href if url is None else url
        params = parse_qs(urlsplit(href).query)
        if "code" in params:
            return await self._finish_provider_sign_in(href)
        if "oobCode" in params:
            await self._finish_email_link(href, params)
        return None

    async def _finish_provider_sign_in(self, href: str) -> Any:
        self.state = FlowState.RESOLVING_CALLBACK
        try:
            flow = await self._consume()
            log = get_session_logger(
                base_logger_name=_LOGGER_NAME, instance=self.instance, flow_id=flow.session_id
            )

            id_token: str | None = None
            if flow.link_account:
                if self.store.current() is None:
                    raise OrphanedLinkAttemptError()
                await self.refresher.ensure_fresh(self.store)
                session = self.store.current()
                if session is None:
                    raise OrphanedLinkAttemptError()
                id_token = session.id_token

            data = await self.client.invoke(
                "signInWithIdp",
                {
                    "idToken": id_token,
                    "requestUri": href,
                    "sessionId": flow.session_id,
                    "returnSecureToken": True,
                },
            )
            await self._establish(tokens_from_response(data, "signInWithIdp"))
        except Exception:
            self.state = FlowState.FAILED
            raise
        finally:
            self._clean_location(href)

        self.state = FlowState.RESOLVED
        log.info("Provider sign-in resolved (link_account=%s)", flow.link_account)
        return data.get("context")

    async def _finish_email_link(self, href: str, params: dict[str, list[str]]) -> None:
        self.state = FlowState.RESOLVING_CALLBACK
        try:
            data = await self.client.invoke(
                "signInWithEmailLink",
                {
                    "oobCode": params["oobCode"][0],
                    "email": params.get("email", [None])[0],
                },
            )
            await self._establish(tokens_from_response(data, "signInWithEmailLink"))
        except Exception:
            self.state = FlowState.FAILED
            raise
        finally:
            self._clean_location(href)

        self.state = FlowState.RESOLVED
        _LOG.info("Email link sign-in resolved")

    def _clean_location(self, href: str) -> None:
        self.location.replace_state(strip_query(href))
