# topicrelay_app/errors.py
"""Relay exception types.

Routes catch :class:`RelayError` and turn it into a system-error notice for
whoever sent the message that failed. Anything that is not a ``RelayError``
is a bug and is logged with a traceback as well.
"""
from typing import Optional


class RelayError(Exception):
    """Base class for relay failures surfaced to the original sender."""

    def __init__(self, reason: Optional[str] = None):
        self.reason = reason or "unknown error"
        super().__init__(self.reason)


class FatalDeliveryError(RelayError):
    """The gateway rejected a delivery in a way that cannot be repaired locally
    (group not found, missing operator rights, network failure, user unreachable)."""


class ThreadCreationError(RelayError):
    """createForumTopic failed, so the user has no usable thread."""


class ReconciliationError(RelayError):
    """The single retry after recreating a vanished thread failed as well."""


class ConfigurationError(RelayError):
    """Required settings are missing or malformed."""


__all__ = [
    "RelayError",
    "FatalDeliveryError",
    "ThreadCreationError",
    "ReconciliationError",
    "ConfigurationError",
]
