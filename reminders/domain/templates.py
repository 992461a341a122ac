"""Message content per notification kind.

Email and SMS get free text. WhatsApp uses provider-approved templates, so
for that channel only the ordered template variables are produced here.
"""

from __future__ import annotations

from datetime import date, datetime

from ..types import BROADCAST, CONFIRMATION, REMINDER, UPDATE, MessageContext

DEFAULT_CLIENT_NAME = "לקוח יקר"

HEBREW_MONTHS = (
    "ינואר",
    "פברואר",
    "מרץ",
    "אפריל",
    "מאי",
    "יוני",
    "יולי",
    "אוגוסט",
    "ספטמבר",
    "אוקטובר",
    "נובמבר",
    "דצמבר",
)


def parse_date(value: object) -> date | None:
    text = str(value or "").strip()[:10]
    try:
        return datetime.strptime(text, "%Y-%m-%d").date()
    except ValueError:
        return None


def format_date_short(value: object) -> str:
    """`2025-12-10` -> `10.12.2025`. Unparseable input is returned as-is."""
    parsed = parse_date(value)
    if parsed is None:
        return str(value or "")
    return f"{parsed.day}.{parsed.month}.{parsed.year}"


def format_date_hebrew(value: object) -> str:
    """`2025-12-10` -> `10 בדצמבר`."""
    parsed = parse_date(value)
    if parsed is None:
        return str(value or "")
    return f"{parsed.day} ב{HEBREW_MONTHS[parsed.month - 1]}"


def whatsapp_variables(kind: str, context: MessageContext) -> list[str]:
    client_name = str(context.get("client_name") or "")
    business_name = str(context.get("business_name") or "")
    if kind == REMINDER:
        return [
            client_name or DEFAULT_CLIENT_NAME,
            business_name,
            format_date_hebrew(context.get("date")),
            str(context.get("time") or ""),
        ]
    if kind == CONFIRMATION:
        return [
            client_name,
            business_name,
            format_date_short(context.get("date")),
            str(context.get("time") or ""),
        ]
    if kind == UPDATE:
        return [client_name, business_name]
    if kind == BROADCAST:
        return [
            client_name or DEFAULT_CLIENT_NAME,
            business_name,
            str(context.get("message") or ""),
        ]
    raise ValueError(f"Unknown notification kind: {kind!r}")


def render_text(kind: str, context: MessageContext) -> tuple[str, str]:
    """Return `(subject, body)` for the free-text channels."""
    client_name = str(context.get("client_name") or "") or "there"
    business_name = str(context.get("business_name") or "")
    when = _describe_when(context)

    if kind == REMINDER:
        subject = f"Reminder: your appointment with {business_name}"
        lines = [
            f"Hi {client_name},",
            "",
            f"This is a reminder of your appointment with {business_name} {when}.",
        ]
        lines.extend(_detail_lines(context))
        return subject, "\n".join(lines)

    if kind == CONFIRMATION:
        subject = f"Appointment confirmed: {business_name}"
        lines = [
            f"Hi {client_name},",
            "",
            f"Your appointment with {business_name} {when} is confirmed. See you soon!",
        ]
        lines.extend(_detail_lines(context))
        return subject, "\n".join(lines)

    if kind == UPDATE:
        subject = f"Your appointment with {business_name} was updated"
        body = (
            f"Hi {client_name},\n\n"
            f"Your appointment with {business_name} was updated. "
            "The latest details are available in the app."
        )
        return subject, body

    if kind == BROADCAST:
        subject = f"A message from {business_name}"
        body = f"Hi {client_name},\n\n{context.get('message') or ''}\n\n{business_name}"
        return subject, body

    raise ValueError(f"Unknown notification kind: {kind!r}")


def render_sms(kind: str, context: MessageContext) -> str:
    business_name = str(context.get("business_name") or "")
    when = _describe_when(context)
    if kind == REMINDER:
        return f"Reminder: your appointment with {business_name} {when}."
    if kind == CONFIRMATION:
        return f"Your appointment with {business_name} {when} is confirmed."
    if kind == UPDATE:
        return f"Your appointment with {business_name} was updated. Check the app for details."
    if kind == BROADCAST:
        return f"{business_name}: {context.get('message') or ''}"
    raise ValueError(f"Unknown notification kind: {kind!r}")


def _describe_when(context: MessageContext) -> str:
    day = format_date_short(context.get("date"))
    time_text = str(context.get("time") or "")
    if day and time_text:
        return f"on {day} at {time_text}"
    if day:
        return f"on {day}"
    return ""


def _detail_lines(context: MessageContext) -> list[str]:
    lines: list[str] = []
    if context.get("service_name"):
        lines.append(f"Service: {context['service_name']}")
    if context.get("duration_minutes"):
        lines.append(f"Duration: {context['duration_minutes']} minutes")
    if context.get("notes"):
        lines.append(f"Notes: {context['notes']}")
    if lines:
        lines.insert(0, "")
    return lines
