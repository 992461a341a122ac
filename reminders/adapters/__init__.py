"""Adapter layer: provider reads, dedup stores, senders, scheduling and HTTP."""

from .fake_provider import InMemoryBookingProvider
from .fake_senders import send_email_via_console, send_sms_via_console, send_whatsapp_via_console
from .idempotency_store import InMemoryIdempotencyStore, JsonFileIdempotencyStore
from .payload import parse_booking, parse_tenant
from .provider import Base44BookingProvider
from .real_senders import (
    send_email_via_mailgun_from_env,
    send_sms_via_twilio_from_env,
    send_whatsapp_via_twilio_from_env,
)
from .scheduler import ClockAlignedSchedule, FixedIntervalSchedule, PollScheduler

__all__ = [
    "Base44BookingProvider",
    "ClockAlignedSchedule",
    "FixedIntervalSchedule",
    "InMemoryBookingProvider",
    "InMemoryIdempotencyStore",
    "JsonFileIdempotencyStore",
    "PollScheduler",
    "parse_booking",
    "parse_tenant",
    "send_email_via_console",
    "send_email_via_mailgun_from_env",
    "send_sms_via_console",
    "send_sms_via_twilio_from_env",
    "send_whatsapp_via_console",
    "send_whatsapp_via_twilio_from_env",
]
