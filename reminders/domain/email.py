"""Email channel decision logic.

Mental model refresher:
- Domain modules hold channel/business rules.
- They decide what should happen for this channel:
  - has the client opted in?
  - is a destination address present?
  - what subject and body should be sent?
- They do not fetch bookings, evaluate reminder windows or record dedup keys.
"""

from __future__ import annotations

from ..types import EMAIL, ChannelResult, MessageContext, SendEmailFn
from .templates import render_text


def send_email_notification(
    kind: str,
    context: MessageContext,
    send_email: SendEmailFn,
) -> ChannelResult:
    """Run email-channel rules and return a plain channel result dictionary."""
    if not context.get("notify_email", True):
        return _result(kind, requested=False, success=False, error="client opted out of email")

    to_email = context.get("client_email")
    if not to_email:
        return _result(kind, requested=True, success=False, error="client email is missing")

    subject, body = render_text(kind, context)
    try:
        send_email(
            from_name=str(context.get("business_name") or ""),
            to_email=str(to_email),
            subject=subject,
            body=body,
        )
    except Exception as exc:
        return _result(kind, requested=True, success=False, error=str(exc))

    return _result(kind, requested=True, success=True, error=None)


def _result(kind: str, *, requested: bool, success: bool, error: str | None) -> ChannelResult:
    return {
        "channel": EMAIL,
        "kind": kind,
        "requested": requested,
        "success": success,
        "error": error,
    }
