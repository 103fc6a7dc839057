"""Shared fixtures: a scripted remote client, frozen clock and memory storage."""

from __future__ import annotations

import asyncio
from typing import Any, Callable

import pytest

from authlite.session.clock import fixed_clock
from authlite.session.credentials import CredentialStore
from authlite.session.models import Session, TokenManager
from authlite.session.remote import RemoteResponse
from authlite.session.storage import MemoryStorage, StorageKeys

NOW = 1_700_000_000.0


class FakeRemote:
    """Scripted stand-in for RemoteAuthClient recording every call.

    ``on(operation, result)`` registers a response body, an exception
    instance, or a callable receiving the payload and returning either.
    ``yields`` makes each call suspend that many times before answering, so
    concurrent callers really overlap.
    """

    def __init__(self, now: float = NOW) -> None:
        self.now = now
        self.calls: list[tuple[str, Any]] = []
        self.handlers: dict[str, Any] = {}
        self.yields = 0

    def on(self, operation: str, result: Any) -> "FakeRemote":
        self.handlers[operation] = result
        return self

    def count(self, operation: str) -> int:
        return sum(1 for op, _ in self.calls if op == operation)

    def payload(self, operation: str, index: int = -1) -> Any:
        return [p for op, p in self.calls if op == operation][index]

    async def invoke(self, operation: str, payload: Any) -> RemoteResponse:
        self.calls.append((operation, payload))
        for _ in range(self.yields):
            await asyncio.sleep(0)
        if operation not in self.handlers:
            raise AssertionError(f"unexpected remote call {operation!r}")
        result = self.handlers[operation]
        if callable(result):
            result = result(payload)
        if isinstance(result, BaseException):
            raise result
        return RemoteResponse(result, expires_at=self.now + 3600)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def now() -> float:
    return NOW


@pytest.fixture
def clock():
    return fixed_clock(NOW)


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote(NOW)


@pytest.fixture
def keys() -> StorageKeys:
    return StorageKeys.for_instance("key", "default")


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def store(storage: MemoryStorage, keys: StorageKeys) -> CredentialStore:
    return CredentialStore(storage, key=keys.user)


@pytest.fixture
def make_session() -> Callable[..., Session]:
    """Factory for sessions; ``expires_in`` is relative to ``NOW``."""

    def _make(
        *,
        expires_in: float = 3600,
        id_token: str = "id-1",
        refresh_token: str = "rt-1",
        **profile: Any,
    ) -> Session:
        profile.setdefault("email", "test@example.com")
        return Session(
            token_manager=TokenManager(
                id_token=id_token,
                refresh_token=refresh_token,
                expires_at=NOW + expires_in,
            ),
            profile=profile,
        )

    return _make


def pytest_addoption(parser):
    """Add integration option to pytest."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests against a real identity toolkit project",
    )
