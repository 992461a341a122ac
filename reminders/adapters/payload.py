"""Payload adapter functions.

Mental model refresher:
- This is an adapter/edge module.
- It translates provider-shaped entity records (Business, Booking) into the
  internal tenant and booking dictionaries used by application/domain code.
- Booking date/time are wall-clock values in the business's reference
  timezone, not UTC; `starts_at` is localized here once.
"""

from __future__ import annotations

from datetime import datetime, tzinfo
from typing import Any, Mapping

import pytz

from ..types import BookingDict, TenantDict

DEFAULT_TIMEZONE = "Asia/Jerusalem"
DEFAULT_REMINDER_HOURS = 12.0


def parse_tenant(record: Mapping[str, Any], *, default_channel: str | None = None) -> TenantDict:
    """Normalize a `Business` entity into a tenant dictionary."""
    return {
        "business_id": _as_required_str(record.get("id"), "business.id"),
        "name": str(record.get("name") or ""),
        "reminder_hours_before": _as_hours(record.get("reminder_hours_before")),
        "reminder_enabled": record.get("reminder_enabled") is not False,
        "channel": _as_optional_str(record.get("notification_channel")) or default_channel,
        "owner_email": _as_optional_str(record.get("created_by")),
    }


def parse_booking(
    record: Mapping[str, Any],
    *,
    timezone_name: str = DEFAULT_TIMEZONE,
) -> BookingDict:
    """Normalize a `Booking` entity into a booking dictionary."""
    tz = pytz.timezone(timezone_name)
    booking_date = str(record.get("date") or "").strip()[:10]
    booking_time = _as_time_str(record.get("time"))

    return {
        "booking_id": _as_required_str(record.get("id"), "booking.id"),
        "business_id": str(record.get("business_id") or ""),
        "date": booking_date,
        "time": booking_time,
        "starts_at": localize_schedule(booking_date, booking_time, tz),
        "status": str(record.get("status") or "").strip().lower(),
        "client_name": _as_optional_str(record.get("client_name")),
        "client_email": _as_optional_str(record.get("client_email")),
        "client_phone": _as_optional_str(record.get("client_phone")),
        "service_name": _as_optional_str(record.get("service_name")),
        "duration_minutes": record.get("duration"),
        "notes": _as_optional_str(record.get("notes")),
        "notify_email": record.get("email_notifications_enabled") is not False,
        "notify_sms": record.get("sms_notifications_enabled") is not False,
        "notify_whatsapp": record.get("whatsapp_notifications_enabled") is not False,
        "created_by": _as_optional_str(record.get("created_by")),
        "created_at": _as_timestamp(record.get("created_date")),
        "updated_at": _as_timestamp(record.get("updated_date")),
    }


def localize_schedule(booking_date: str, booking_time: str, tz: tzinfo) -> datetime | None:
    """Combine `YYYY-MM-DD` and `HH:MM` into an aware datetime in `tz`."""
    if not booking_date or not booking_time:
        return None
    try:
        naive = datetime.strptime(f"{booking_date} {booking_time}", "%Y-%m-%d %H:%M")
    except ValueError:
        return None
    if hasattr(tz, "localize"):
        return tz.localize(naive)
    return naive.replace(tzinfo=tz)


def _as_time_str(value: Any) -> str:
    text = str(value or "").strip()
    parts = text.split(":")
    if len(parts) < 2 or not parts[0].isdigit() or not parts[1].isdigit():
        return text
    return f"{int(parts[0]):02d}:{int(parts[1]):02d}"


def _as_hours(value: Any) -> float:
    try:
        hours = float(value)
    except (TypeError, ValueError):
        return DEFAULT_REMINDER_HOURS
    return hours if hours > 0 else DEFAULT_REMINDER_HOURS


def _as_timestamp(value: Any) -> datetime | None:
    text = str(value or "").strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = pytz.utc.localize(parsed)
    return parsed


def _as_required_str(value: Any, field_name: str) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValueError(f"Missing required field: {field_name}")
    return text


def _as_optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
