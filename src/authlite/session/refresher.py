"""Single-flight id-token refresh.

However many tasks find an expired id token at the same moment, only one
refresh request is sent per :class:`~authlite.session.credentials.CredentialStore`.
The first caller starts the refresh task; everyone arriving while it runs
awaits that same task and observes the same result or the same exception.
"""

from __future__ import annotations

import asyncio
import logging
import weakref

from authlite.session.clock import Clock, default_clock
from authlite.session.credentials import CredentialStore
from authlite.session.errors import NotAuthenticatedError
from authlite.session.remote import RemoteAuth, tokens_from_response
from authlite.utils.logging import mask_sensitive

_LOG = logging.getLogger("authlite.session.refresher")


class TokenRefresher:
    """Keeps the id token of a store's session usable."""

    def __init__(self, client: RemoteAuth, *, clock: Clock = default_clock) -> None:
        self.client = client
        self._clock = clock
        # store -> outstanding refresh; an entry exists only while it runs
        self._inflight: "weakref.WeakKeyDictionary[CredentialStore, asyncio.Task[None]]" = (
            weakref.WeakKeyDictionary()
        )

    def in_flight(self, store: CredentialStore) -> bool:
        return store in self._inflight

    async def ensure_fresh(self, store: CredentialStore) -> None:
        """Refresh the id token of *store*'s session if it has expired.

        Raises
        ------
        NotAuthenticatedError
            The store holds no session.
        RemoteOperationError
            The refresh request failed; the store is left untouched.
        """
        session = store.current()
        if session is None:
            raise NotAuthenticatedError()
        if not session.token_manager.is_expired(clock=self._clock):
            return

        # check-and-set without a suspension point in between
        task = self._inflight.get(store)
        if task is None:
            task = asyncio.ensure_future(self._refresh(store, session.token_manager.refresh_token))
            self._inflight[store] = task
            task.add_done_callback(lambda t, s=store: self._settle(s, t))
        else:
            _LOG.debug("Joining outstanding refresh")

        # waiters may give up; the refresh itself always runs to completion
        await asyncio.shield(task)

    def _settle(self, store: CredentialStore, task: "asyncio.Task[None]") -> None:
        if self._inflight.get(store) is task:
            del self._inflight[store]
        if not task.cancelled():
            # mark the exception retrieved even when every waiter went away
            task.exception()

    async def _refresh(self, store: CredentialStore, refresh_token: str) -> None:
        _LOG.debug("Refreshing id token with refresh_token=%s", mask_sensitive(refresh_token))
        data = await self.client.invoke(
            "token",
            {"grant_type": "refresh_token", "refresh_token": refresh_token},
        )
        token_manager = tokens_from_response(data, "token")

        latest = store.current()
        if latest is None:
            _LOG.info("Session ended while its token was refreshing; discarding new tokens")
            return
        if latest.token_manager.refresh_token != refresh_token:
            # another user (or another tab's refresh) took over the store
            _LOG.info("Session replaced while its token was refreshing; discarding new tokens")
            return
        await store.replace(latest.with_tokens(token_manager), persist=True, notify=False)
        _LOG.info(
            "Refreshed id token (expires in %ss)",
            int(token_manager.expires_at - self._clock()),
        )
