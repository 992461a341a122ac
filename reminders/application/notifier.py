"""Channel selection across the configured senders.

The dispatch cycle and the control-plane API both talk to a `Notifier`; it
routes one notification to the channel's domain rules with the injected
sender for that channel.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from ..domain.email import send_email_notification
from ..domain.phone import DEFAULT_COUNTRY_CODE, normalize_phone_e164
from ..domain.sms import send_sms_notification
from ..domain.whatsapp import send_whatsapp_notification
from ..types import (
    EMAIL,
    SMS,
    WHATSAPP,
    Booking,
    ChannelResult,
    MessageContext,
    SendEmailFn,
    SendSMSFn,
    SendWhatsAppFn,
    Tenant,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notifier:
    send_email: SendEmailFn | None = None
    send_sms: SendSMSFn | None = None
    send_whatsapp: SendWhatsAppFn | None = None
    whatsapp_templates: Mapping[str, str] = field(default_factory=dict)
    country_code: str = DEFAULT_COUNTRY_CODE

    def channels(self) -> list[str]:
        """Channels that have a sender wired in."""
        available = []
        if self.send_email is not None:
            available.append(EMAIL)
        if self.send_sms is not None:
            available.append(SMS)
        if self.send_whatsapp is not None:
            available.append(WHATSAPP)
        return available

    def supports(self, channel: str) -> bool:
        return channel in self.channels()

    def has_destination(self, channel: str, context: MessageContext) -> bool:
        """True when the client is reachable and opted in on `channel`."""
        if not context.get(f"notify_{channel}", True):
            return False
        if channel == EMAIL:
            return bool(context.get("client_email"))
        if channel in (SMS, WHATSAPP):
            return normalize_phone_e164(context.get("client_phone"), self.country_code) is not None
        return False

    def notify(self, channel: str, kind: str, context: MessageContext) -> ChannelResult:
        if channel == EMAIL and self.send_email is not None:
            result = send_email_notification(kind, context, self.send_email)
        elif channel == SMS and self.send_sms is not None:
            result = send_sms_notification(kind, context, self.send_sms, self.country_code)
        elif channel == WHATSAPP and self.send_whatsapp is not None:
            result = send_whatsapp_notification(
                kind,
                context,
                self.send_whatsapp,
                self.whatsapp_templates,
                self.country_code,
            )
        else:
            result = {
                "channel": channel,
                "kind": kind,
                "requested": True,
                "success": False,
                "error": f"channel {channel!r} is not configured",
            }

        if result["requested"] and not result["success"]:
            logger.warning(
                "[SEND FAILED] channel=%s kind=%s error=%s",
                channel,
                kind,
                result["error"],
            )
        return result


def build_context(tenant: Tenant, booking: Booking, **extra: Any) -> dict[str, Any]:
    """Flatten a tenant and one of its bookings into template context."""
    context = {
        "business_name": tenant.get("name", ""),
        "client_name": booking.get("client_name"),
        "client_email": booking.get("client_email"),
        "client_phone": booking.get("client_phone"),
        "date": booking.get("date"),
        "time": booking.get("time"),
        "service_name": booking.get("service_name"),
        "duration_minutes": booking.get("duration_minutes"),
        "notes": booking.get("notes"),
        "notify_email": booking.get("notify_email", True),
        "notify_sms": booking.get("notify_sms", True),
        "notify_whatsapp": booking.get("notify_whatsapp", True),
    }
    context.update(extra)
    return context
