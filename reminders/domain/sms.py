"""SMS channel decision logic."""

from __future__ import annotations

from ..types import SMS, ChannelResult, MessageContext, SendSMSFn
from .phone import DEFAULT_COUNTRY_CODE, normalize_phone_e164
from .templates import render_sms


def send_sms_notification(
    kind: str,
    context: MessageContext,
    send_sms: SendSMSFn,
    country_code: str = DEFAULT_COUNTRY_CODE,
) -> ChannelResult:
    """Run SMS-channel rules and return a plain channel result dictionary."""
    if not context.get("notify_sms", True):
        return _result(kind, requested=False, success=False, error="client opted out of sms")

    phone = normalize_phone_e164(context.get("client_phone"), country_code)
    if not phone:
        return _result(kind, requested=True, success=False, error="client phone is missing")

    message = render_sms(kind, context)
    try:
        send_sms(to_phone_e164=phone, message=message)
    except Exception as exc:
        return _result(kind, requested=True, success=False, error=str(exc))

    return _result(kind, requested=True, success=True, error=None)


def _result(kind: str, *, requested: bool, success: bool, error: str | None) -> ChannelResult:
    return {
        "channel": SMS,
        "kind": kind,
        "requested": requested,
        "success": success,
        "error": error,
    }
