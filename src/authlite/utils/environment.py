"""Utility functions for reading settings from the environment."""

import logging
import os
from typing import Final, Tuple

logger = logging.getLogger("authlite.utils.environment")

_TRUTHY: Final[Tuple[str, ...]] = ("true", "1", "yes", "y", "on")
_FALSY: Final[Tuple[str, ...]] = ("false", "0", "no", "n", "off")


def _truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in _TRUTHY


def env_flag(name: str, default: bool = False) -> bool:
    """
    Return the boolean value of ``name``.

    Unset or empty variables yield *default*; unrecognised values are logged
    and also fall back to *default*.
    """
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    if raw in _TRUTHY or raw in _FALSY:
        return _truthy(raw)
    logger.warning("Ignoring unrecognised boolean %s=%r", name, raw)
    return default


def env_str(name: str, default: str | None = None) -> str | None:
    """Return the stripped value of ``name`` or *default* when unset/blank."""
    value = (os.getenv(name) or "").strip()
    return value or default


def env_float(name: str, default: float) -> float:
    """Return ``name`` parsed as float, or *default* when unset or invalid."""
    raw = env_str(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r", name, raw)
        return default
