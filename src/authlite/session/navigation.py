"""The navigation surface a redirect sign-in drives.

In a browser this is ``window.location`` plus ``history.replaceState``.  Other
hosts (desktop shells, test harnesses, server-side renderers) provide their own
:class:`Location`; :class:`MemoryLocation` is the minimal one.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable
from urllib.parse import urlsplit, urlunsplit


@runtime_checkable
class Location(Protocol):
    """Current URL plus the two ways the redirect flow changes it."""

    @property
    def href(self) -> str: ...

    def assign(self, url: str) -> None:
        """Navigate away; the current process is not expected to survive it."""

    def replace_state(self, url: str) -> None:
        """Rewrite the current URL in place without navigating."""


def strip_query(href: str) -> str:
    """Return *href* reduced to ``scheme://host/path``."""
    parts = urlsplit(href)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


class MemoryLocation:
    """A :class:`Location` kept in memory."""

    def __init__(self, href: str = "http://localhost/") -> None:
        self.href = href
        self.navigations: list[str] = []

    def assign(self, url: str) -> None:
        self.navigations.append(url)
        self.href = url

    def replace_state(self, url: str) -> None:
        self.href = url

    def __repr__(self) -> str:
        return f"MemoryLocation(href={self.href!r})"
