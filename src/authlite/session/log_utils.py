"""Structured logging helpers for session components.

This module purposefully restricts **which** contextual attributes are attached
to log records in order to avoid accidentally leaking secrets.  All helpers
ONLY inject the following *non-sensitive* fields:

- ``instance``       – Name of the :class:`~authlite.session.service.Auth` instance
- ``provider``       – Identity provider of a redirect flow (``google.com``…)
- ``flow_id``        – Provider session id of a redirect flow (first 6 chars kept)
- ``correlation_id`` – Optional identifier supplied by the host application

Usage
-----
>>> from authlite.session.log_utils import get_session_logger
>>> log = get_session_logger(
...     base_logger_name="authlite.session.redirect",
...     instance="default",
...     provider="google.com",
... )
>>> log.info("Starting provider sign-in")
INFO authlite.session.redirect instance=default provider=google.com ...

The adapter is a thin wrapper around :class:`logging.LoggerAdapter`.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, MutableMapping


class _SessionLoggerAdapter(logging.LoggerAdapter):
    """Inject whitelisted session context into log records."""

    extra_keys = ("instance", "provider", "flow_id", "correlation_id")

    def __init__(self, logger: logging.Logger, extra: Mapping[str, Any] | None = None):
        extra_clean: MutableMapping[str, Any] = {}
        for k in self.extra_keys:
            if k == "flow_id" and extra and extra.get("flow_id"):
                # provider session ids are replay material, keep a short prefix only
                extra_clean[k] = str(extra["flow_id"])[:6]
            elif extra and k in extra and extra[k] is not None:
                extra_clean[k] = extra[k]
        super().__init__(logger, extra_clean)

    def process(self, msg: str, kwargs: MutableMapping[str, Any]):
        if "extra" not in kwargs or kwargs["extra"] is None:
            kwargs["extra"] = {}
        # merge but do not overwrite call-site provided extras
        for k, v in self.extra.items():
            kwargs["extra"].setdefault(k, v)
        return msg, kwargs


def get_session_logger(
    *,
    base_logger_name: str = "authlite.session",
    instance: str | None = None,
    provider: str | None = None,
    flow_id: str | None = None,
    correlation_id: str | None = None,
) -> logging.LoggerAdapter:
    """Return a LoggerAdapter pre-filled with session context."""
    logger = logging.getLogger(base_logger_name)
    return _SessionLoggerAdapter(
        logger,
        {
            "instance": instance,
            "provider": provider,
            "flow_id": flow_id,
            "correlation_id": correlation_id,
        },
    )
