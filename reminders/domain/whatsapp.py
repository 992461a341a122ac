"""WhatsApp channel decision logic.

WhatsApp business messages outside a conversation window must use
provider-approved templates, so this channel sends a template id plus
positional variables instead of free text.
"""

from __future__ import annotations

from typing import Mapping

from ..types import WHATSAPP, ChannelResult, MessageContext, SendWhatsAppFn
from .phone import DEFAULT_COUNTRY_CODE, normalize_phone_e164
from .templates import whatsapp_variables


def send_whatsapp_notification(
    kind: str,
    context: MessageContext,
    send_whatsapp: SendWhatsAppFn,
    template_ids: Mapping[str, str],
    country_code: str = DEFAULT_COUNTRY_CODE,
) -> ChannelResult:
    """Run WhatsApp-channel rules and return a plain channel result dictionary."""
    if not context.get("notify_whatsapp", True):
        return _result(
            kind, requested=False, success=False, error="client opted out of whatsapp"
        )

    phone = normalize_phone_e164(context.get("client_phone"), country_code)
    if not phone:
        return _result(kind, requested=True, success=False, error="client phone is missing")

    template_id = template_ids.get(kind)
    if not template_id:
        return _result(
            kind,
            requested=True,
            success=False,
            error=f"no whatsapp template configured for {kind}",
        )

    try:
        send_whatsapp(
            to_phone_e164=phone,
            template_id=template_id,
            variables=whatsapp_variables(kind, context),
        )
    except Exception as exc:
        return _result(kind, requested=True, success=False, error=str(exc))

    return _result(kind, requested=True, success=True, error=None)


def _result(kind: str, *, requested: bool, success: bool, error: str | None) -> ChannelResult:
    return {
        "channel": WHATSAPP,
        "kind": kind,
        "requested": requested,
        "success": success,
        "error": error,
    }
