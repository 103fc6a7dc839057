"""CredentialStore – owner of the current session.

The store is the only writer of the ``User`` storage key.  Everything else
reads the session through :meth:`CredentialStore.current` and writes it
through :meth:`CredentialStore.replace`.

Observers are called synchronously, in registration order, after the
in-memory value changed.  Each observer runs in isolation: an exception is
logged and the remaining observers are still notified.
"""

from __future__ import annotations

import itertools
import logging
from typing import TYPE_CHECKING, Awaitable, Callable

from authlite.session.errors import RemoteOperationError
from authlite.session.models import Session
from authlite.session.storage import (
    PersistenceAdapter,
    StorageEvent,
    WatchableStorage,
    storage_errors,
)

if TYPE_CHECKING:  # pragma: no cover
    from authlite.session.refresher import TokenRefresher

_LOG = logging.getLogger("authlite.session.credentials")

Observer = Callable[[Session | None], None]


def decode_session(raw: str | None, *, key: str) -> Session | None:
    """Decode a persisted session; undecodable values count as no session."""
    try:
        return Session.from_json(raw)
    except (ValueError, TypeError, KeyError):
        _LOG.warning("Discarding malformed session data stored under %s", key)
        return None


class CredentialStore:
    """Holds, persists and broadcasts the current :class:`Session`."""

    def __init__(self, storage: PersistenceAdapter, *, key: str) -> None:
        self.storage = storage
        self.key = key
        self._session: Session | None = None
        self._observers: dict[int, Observer] = {}
        self._ids = itertools.count()
        self._unwatch: Callable[[], None] | None = None
        # bumped on every change of the in-memory value
        self._version = 0

    # ------------------------------------------------------------------ #
    # State access                                                       #
    # ------------------------------------------------------------------ #
    def current(self) -> Session | None:
        return self._session

    async def replace(
        self,
        session: Session | None,
        *,
        persist: bool = True,
        notify: bool = True,
    ) -> None:
        """Make *session* current, optionally persisting and notifying.

        Raises
        ------
        PersistenceError
            The storage write failed.  The in-memory value keeps *session*
            and observers are not called.
        """
        self._session = session
        self._version += 1
        if persist:
            await self._persist(session)
        if notify:
            self._notify()

    async def sign_out(self) -> None:
        await self.replace(None)

    async def _persist(self, session: Session | None) -> None:
        with storage_errors(self.key):
            if session is None:
                await self.storage.remove(self.key)
            else:
                await self.storage.set(self.key, session.to_json())

    # ------------------------------------------------------------------ #
    # Observers                                                          #
    # ------------------------------------------------------------------ #
    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register *observer*; the returned callable removes this registration."""
        token = next(self._ids)
        self._observers[token] = observer

        def _unsubscribe() -> None:
            self._observers.pop(token, None)

        return _unsubscribe

    def _notify(self) -> None:
        session = self._session
        for observer in list(self._observers.values()):
            try:
                observer(session)
            except Exception:  # noqa: BLE001
                _LOG.exception("Session observer %r failed", observer)

    # ------------------------------------------------------------------ #
    # Loading & restore                                                  #
    # ------------------------------------------------------------------ #
    async def load(self) -> Session | None:
        """Adopt the persisted session, if any.  No network activity.

        A session made current while the read was pending wins over the
        value read; it is returned instead.
        """
        session, _ = await self._load()
        return session

    async def _load(self) -> tuple[Session | None, bool]:
        version = self._version
        with storage_errors(self.key):
            raw = await self.storage.get(self.key)
        if self._version != version:
            _LOG.debug("Session changed while loading %s; keeping the newer value", self.key)
            return self._session, False
        session = decode_session(raw, key=self.key)
        await self.replace(session, persist=False)
        return session, True

    async def restore(
        self,
        refresher: "TokenRefresher",
        fetch_profile: Callable[[], Awaitable[object]] | None = None,
    ) -> Session | None:
        """Load the persisted session and bring it up to date.

        A dead refresh token signs the user out silently; other remote
        failures are logged and leave the loaded session in place.  Only
        :class:`PersistenceError` escapes.
        """
        session, adopted = await self._load()
        if session is None or not adopted:
            return session
        try:
            await refresher.ensure_fresh(self)
            if fetch_profile is not None:
                await fetch_profile()
        except RemoteOperationError as exc:
            if exc.is_refresh_token_invalid:
                _LOG.info("Stored session can no longer be refreshed (%s); signing out", exc.reason)
                await self.sign_out()
            else:
                _LOG.warning("Could not update restored session: %s", exc.reason)
        return self._session

    # ------------------------------------------------------------------ #
    # Changes made by other processes                                    #
    # ------------------------------------------------------------------ #
    def apply_external_change(self, event: StorageEvent) -> None:
        """Adopt a session written elsewhere; never re-persisted."""
        if event.key != self.key:
            return
        self._session = decode_session(event.new_value, key=self.key)
        self._version += 1
        _LOG.debug("Adopted external session change (signed_in=%s)", self._session is not None)
        self._notify()

    def attach(self) -> bool:
        """Listen for external writes when the storage can report them."""
        if self._unwatch is not None:
            return True
        if not isinstance(self.storage, WatchableStorage):
            _LOG.debug("Storage %s reports no external changes", type(self.storage).__name__)
            return False
        self._unwatch = self.storage.watch(self.apply_external_change)
        return True

    def detach(self) -> None:
        if self._unwatch is not None:
            self._unwatch()
            self._unwatch = None
