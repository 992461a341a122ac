"""Error taxonomy for the dispatcher.

All errors subclass `RuntimeError` so callers that only know the sender
contract ("raise on failure") keep working.
"""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Missing or invalid configuration. Fatal at startup."""


class ProviderFetchError(RuntimeError):
    """Reading tenants or bookings from the provider failed."""


class SendError(RuntimeError):
    """A transport rejected or failed to deliver a message."""


class PersistenceError(RuntimeError):
    """The idempotency store could not be written."""
