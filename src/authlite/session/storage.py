"""Asynchronous key/value persistence for session state.

This module introduces a *narrow* persistence interface
(:class:`PersistenceAdapter`) and two implementations:

* :class:`MemoryStorage` – process-local mapping.  Sibling views created with
  :meth:`MemoryStorage.sibling` share the same data and receive
  :class:`StorageEvent` notifications for writes made through *other* views,
  which is how browser tabs observe each other's ``localStorage`` writes.
* :class:`DiskStorage` – one JSON file per key, written with
  *temp-file + os.replace* so readers never observe a half-written value.

Keys follow ``<namespace>:<purpose>:<discriminator>`` (see :class:`StorageKeys`).

Environment variables
---------------------
AUTHLITE_STORAGE_DIR
    Base directory for :class:`DiskStorage`.
    Defaults to ``~/.authlite/storage`` when unset.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
import os
import re
from contextlib import contextmanager
from dataclasses import dataclass
from hashlib import sha256
from pathlib import Path
from typing import Callable, Final, Iterator, Protocol, runtime_checkable

from authlite.session.errors import PersistenceError

_LOG = logging.getLogger("authlite.session.storage")

KEY_NAMESPACE: Final[str] = "Auth"

StorageListener = Callable[["StorageEvent"], None]

# --------------------------------------------------------------------------- #
# keys & events                                                               #
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class StorageKeys:
    """Storage keys owned by one Auth instance."""

    discriminator: str
    namespace: str = KEY_NAMESPACE

    @classmethod
    def for_instance(cls, api_key: str, name: str = "default") -> "StorageKeys":
        return cls(discriminator=f"{api_key}:{name}")

    def _key(self, purpose: str) -> str:
        return f"{self.namespace}:{purpose}:{self.discriminator}"

    @property
    def user(self) -> str:
        return self._key("User")

    @property
    def session_id(self) -> str:
        return self._key("SessionId")

    @property
    def link_account(self) -> str:
        return self._key("LinkAccount")


@dataclass(frozen=True, slots=True)
class StorageEvent:
    """A key changed through another view of the same storage."""

    key: str
    new_value: str | None


# --------------------------------------------------------------------------- #
# public interface                                                            #
# --------------------------------------------------------------------------- #


@runtime_checkable
class PersistenceAdapter(Protocol):
    """Minimal persistence contract used by the session core."""

    async def set(self, key: str, value: str) -> None: ...
    async def get(self, key: str) -> str | None: ...
    async def remove(self, key: str) -> None: ...


@runtime_checkable
class WatchableStorage(PersistenceAdapter, Protocol):
    """Storage that can report writes made by other processes or views."""

    def watch(self, listener: StorageListener) -> Callable[[], None]: ...


@contextmanager
def storage_errors(key: str) -> Iterator[None]:
    """Re-raise any adapter failure for *key* as :class:`PersistenceError`."""
    try:
        yield
    except PersistenceError:
        raise
    except Exception as exc:  # noqa: BLE001 - adapters raise whatever their backend raises
        raise PersistenceError(key=key) from exc


# --------------------------------------------------------------------------- #
# Memory implementation                                                       #
# --------------------------------------------------------------------------- #


class MemoryStorage:
    """In-memory :class:`WatchableStorage`."""

    def __init__(self, data: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = {} if data is None else data
        self._peers: list[MemoryStorage] = [self]
        self._listeners: dict[int, StorageListener] = {}
        self._ids = itertools.count()

    def sibling(self) -> "MemoryStorage":
        """Return another view sharing this storage's data (another "tab")."""
        other = MemoryStorage(self._data)
        other._peers = self._peers
        self._peers.append(other)
        return other

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._broadcast(StorageEvent(key, value))

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def remove(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._broadcast(StorageEvent(key, None))

    def watch(self, listener: StorageListener) -> Callable[[], None]:
        token = next(self._ids)
        self._listeners[token] = listener

        def _unwatch() -> None:
            self._listeners.pop(token, None)

        return _unwatch

    # writes are not reported back to the view that made them
    def _broadcast(self, event: StorageEvent) -> None:
        for peer in list(self._peers):
            if peer is not self:
                peer._deliver(event)

    def _deliver(self, event: StorageEvent) -> None:
        for listener in list(self._listeners.values()):
            try:
                listener(event)
            except Exception:  # noqa: BLE001 - one listener must not starve the others
                _LOG.exception("Storage listener failed for key=%s", event.key)


# --------------------------------------------------------------------------- #
# Disk implementation                                                         #
# --------------------------------------------------------------------------- #


def _hash(text: str, length: int = 12) -> str:
    return sha256(text.encode()).hexdigest()[:length]


def _slug(text: str, max_len: int = 48) -> str:
    """Filesystem-safe slug."""
    text = (text or "").strip().lower()
    text = re.sub(r"[^a-z0-9._-]+", "-", text)
    text = re.sub(r"-{2,}", "-", text).strip("-")
    return text[:max_len] or "unknown"


def _atomic_write(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with tmp.open("w", encoding="utf-8") as fh:
        json.dump(data, fh, separators=(",", ":"), sort_keys=True)
    os.replace(tmp, path)  # atomic on POSIX


class DiskStorage:
    """JSON-file implementation of :class:`PersistenceAdapter`.

    Each key lives in its own file named after a slug of the key plus a short
    hash, so keys differing only in unsafe characters never collide.  No
    change events are produced; cross-process sync is simply unavailable.
    """

    def __init__(self, base_dir: str | os.PathLike | None = None) -> None:
        self.base_dir = Path(
            base_dir
            or os.getenv("AUTHLITE_STORAGE_DIR")
            or Path.home() / ".authlite" / "storage"
        ).expanduser()

    def _path(self, key: str) -> Path:
        return self.base_dir / f"{_slug(key)}-{_hash(key)}.json"

    def _write(self, key: str, value: str) -> None:
        _atomic_write(self._path(key), {"key": key, "value": value})

    def _read(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        with path.open(encoding="utf-8") as fh:
            data = json.load(fh)
        return data.get("value")

    def _delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    async def set(self, key: str, value: str) -> None:
        try:
            await asyncio.to_thread(self._write, key, value)
        except (OSError, TypeError) as exc:
            raise PersistenceError(key=key) from exc

    async def get(self, key: str) -> str | None:
        try:
            return await asyncio.to_thread(self._read, key)
        except (OSError, ValueError) as exc:
            raise PersistenceError(key=key) from exc

    async def remove(self, key: str) -> None:
        try:
            await asyncio.to_thread(self._delete, key)
        except OSError as exc:
            raise PersistenceError(key=key) from exc
