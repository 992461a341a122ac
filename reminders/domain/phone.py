"""Phone number normalization for SMS and WhatsApp destinations."""

from __future__ import annotations

import re

DEFAULT_COUNTRY_CODE = "972"

_NON_DIGITS = re.compile(r"\D")


def normalize_phone_e164(
    raw: str | None,
    country_code: str = DEFAULT_COUNTRY_CODE,
) -> str | None:
    """Return `+<digits>` for a local or international number.

    Non-digits are stripped, then a `00` international prefix, then a single
    local trunk `0`. The country code is prepended unless already present.

    >>> normalize_phone_e164("050-123-4567")
    '+972501234567'
    """
    if raw is None:
        return None

    digits = _NON_DIGITS.sub("", str(raw))
    if digits.startswith("00"):
        digits = digits[2:]
    elif digits.startswith("0"):
        digits = digits[1:]
    if not digits:
        return None

    if not digits.startswith(country_code):
        digits = f"{country_code}{digits}"
    return f"+{digits}"


def whatsapp_address(phone_e164: str) -> str:
    """Twilio WhatsApp address; an already prefixed value is returned as-is."""
    if phone_e164.startswith("whatsapp:"):
        return phone_e164
    return f"whatsapp:{phone_e164}"
