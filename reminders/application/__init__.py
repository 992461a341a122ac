"""Application layer: dispatch cycles and channel selection."""

from .dispatch import (
    DispatchPolicy,
    confirmation_policy,
    reminder_policy,
    run_dispatch_cycle,
)
from .notifier import Notifier, build_context

__all__ = [
    "DispatchPolicy",
    "Notifier",
    "build_context",
    "confirmation_policy",
    "reminder_policy",
    "run_dispatch_cycle",
]
