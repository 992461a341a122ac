"""Scheduled appointment reminders and confirmations for multiple businesses."""

from .application.dispatch import (
    DispatchPolicy,
    confirmation_policy,
    reminder_policy,
    run_dispatch_cycle,
)
from .application.notifier import Notifier
from .domain.phone import normalize_phone_e164
from .domain.window import WindowPhase, evaluate_trigger_window
from .errors import ConfigurationError, PersistenceError, ProviderFetchError, SendError

__all__ = [
    "ConfigurationError",
    "DispatchPolicy",
    "Notifier",
    "PersistenceError",
    "ProviderFetchError",
    "SendError",
    "WindowPhase",
    "confirmation_policy",
    "evaluate_trigger_window",
    "normalize_phone_e164",
    "reminder_policy",
    "run_dispatch_cycle",
]
