"""Shared type aliases for the reminders package."""

from __future__ import annotations

from typing import Any, Callable, Mapping

Tenant = Mapping[str, Any]
Booking = Mapping[str, Any]
TenantDict = dict[str, Any]
BookingDict = dict[str, Any]
MessageContext = Mapping[str, Any]
ChannelResult = dict[str, Any]
CycleResult = dict[str, Any]

SendEmailFn = Callable[..., None]
SendSMSFn = Callable[..., None]
SendWhatsAppFn = Callable[..., None]

EMAIL = "email"
SMS = "sms"
WHATSAPP = "whatsapp"
CHANNELS = (EMAIL, SMS, WHATSAPP)

REMINDER = "reminder"
CONFIRMATION = "confirmation"
UPDATE = "update"
BROADCAST = "broadcast"
