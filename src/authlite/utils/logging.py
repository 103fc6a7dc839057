"""Logging helpers that keep credentials out of log output."""

from __future__ import annotations


def mask_sensitive(value: str | None, keep: int = 4) -> str:
    """Return *value* with everything after the first *keep* characters masked.

    >>> mask_sensitive("abcdef123456", 4)
    'abcd****'
    >>> mask_sensitive(None)
    '<none>'
    """
    if value is None:
        return "<none>"
    if keep <= 0 or len(value) <= keep:
        return "****"
    return f"{value[:keep]}****"
