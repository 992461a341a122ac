"""Real provider adapters for production sending.

Mental model refresher:
- This module is an outbound adapter.
- It integrates with Mailgun (email) and Twilio (SMS, WhatsApp) using
  environment-variable config.
- Domain/application code only sees simple keyword-only sender callables
  that return None on success and raise `SendError` on failure.
"""

from __future__ import annotations

import base64
import json
import os
import urllib.error
import urllib.parse
import urllib.request
from typing import Iterable, Sequence

from ..errors import ConfigurationError, SendError
from ..domain.phone import whatsapp_address
from ..types import BROADCAST, CONFIRMATION, EMAIL, REMINDER, SMS, UPDATE, WHATSAPP

REQUIRED_ENV_BY_CHANNEL: dict[str, tuple[str, ...]] = {
    EMAIL: ("MAILGUN_API_KEY", "MAILGUN_DOMAIN", "MAILGUN_FROM_EMAIL"),
    SMS: ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_FROM_PHONE"),
    WHATSAPP: (
        "TWILIO_ACCOUNT_SID",
        "TWILIO_AUTH_TOKEN",
        "TWILIO_WHATSAPP_NUMBER",
        "TWILIO_TEMPLATE_SID",
    ),
}

WHATSAPP_TEMPLATE_ENV: dict[str, str] = {
    REMINDER: "TWILIO_TEMPLATE_SID",
    CONFIRMATION: "TWILIO_CONFIRMATION_TEMPLATE_SID",
    UPDATE: "TWILIO_UPDATE_TEMPLATE_SID",
    BROADCAST: "TWILIO_BROADCAST_TEMPLATE_SID",
}


def send_email_via_mailgun_from_env(
    *, from_name: str, to_email: str, subject: str, body: str
) -> None:
    """Send email via Mailgun REST API using environment-variable config.

    `from_name` becomes the display name in front of `MAILGUN_FROM_EMAIL`.
    """
    api_key = _required_env("MAILGUN_API_KEY")
    domain = _required_env("MAILGUN_DOMAIN")
    from_email = _required_env("MAILGUN_FROM_EMAIL")
    base_url = os.getenv("MAILGUN_API_BASE_URL", "https://api.mailgun.net").rstrip("/")
    timeout_seconds = float(os.getenv("MAILGUN_TIMEOUT_SECONDS", "10"))

    sender = f"{from_name} <{from_email}>" if from_name and "<" not in from_email else from_email
    encoded_domain = urllib.parse.quote(domain, safe="")
    endpoint = f"{base_url}/v3/{encoded_domain}/messages"
    payload = urllib.parse.urlencode(
        {"from": sender, "to": to_email, "subject": subject, "text": body}
    ).encode("utf-8")

    _post_form(
        endpoint,
        payload,
        auth_header=_basic_auth_header("api", api_key),
        timeout_seconds=timeout_seconds,
        provider="Mailgun email",
    )


def send_sms_via_twilio_from_env(*, to_phone_e164: str, message: str) -> None:
    """Send SMS via Twilio REST API using environment-variable config."""
    account_sid = _required_env("TWILIO_ACCOUNT_SID")
    auth_token = _required_env("TWILIO_AUTH_TOKEN")
    from_phone = _required_env("TWILIO_FROM_PHONE")

    payload = urllib.parse.urlencode(
        {"To": to_phone_e164, "From": from_phone, "Body": message}
    ).encode("utf-8")

    _post_form(
        _twilio_messages_endpoint(account_sid),
        payload,
        auth_header=_basic_auth_header(account_sid, auth_token),
        timeout_seconds=float(os.getenv("TWILIO_TIMEOUT_SECONDS", "10")),
        provider="Twilio SMS",
    )


def send_whatsapp_via_twilio_from_env(
    *, to_phone_e164: str, template_id: str, variables: Sequence[str]
) -> None:
    """Send a WhatsApp content-template message via Twilio.

    Variables are positional: the first fills `{{1}}`, the second `{{2}}`...
    """
    account_sid = _required_env("TWILIO_ACCOUNT_SID")
    auth_token = _required_env("TWILIO_AUTH_TOKEN")
    from_number = _required_env("TWILIO_WHATSAPP_NUMBER")

    content_variables = {str(index): value for index, value in enumerate(variables, start=1)}
    payload = urllib.parse.urlencode(
        {
            "To": whatsapp_address(to_phone_e164),
            "From": whatsapp_address(from_number),
            "ContentSid": template_id,
            "ContentVariables": json.dumps(content_variables, ensure_ascii=False),
        }
    ).encode("utf-8")

    _post_form(
        _twilio_messages_endpoint(account_sid),
        payload,
        auth_header=_basic_auth_header(account_sid, auth_token),
        timeout_seconds=float(os.getenv("TWILIO_TIMEOUT_SECONDS", "10")),
        provider="Twilio WhatsApp",
    )


def whatsapp_templates_from_env() -> dict[str, str]:
    """Template SIDs per notification kind; unset kinds are omitted."""
    templates = {}
    for kind, env_name in WHATSAPP_TEMPLATE_ENV.items():
        value = os.getenv(env_name, "").strip()
        if value:
            templates[kind] = value
    return templates


def missing_channel_env(channel: str) -> list[str]:
    return [
        name
        for name in REQUIRED_ENV_BY_CHANNEL.get(channel, ())
        if not os.getenv(name, "").strip()
    ]


def missing_template_env(kinds: Iterable[str]) -> list[str]:
    """WhatsApp template variables that must be set to send `kinds`."""
    names = [WHATSAPP_TEMPLATE_ENV[kind] for kind in kinds if kind in WHATSAPP_TEMPLATE_ENV]
    return [name for name in names if not os.getenv(name, "").strip()]


def _post_form(
    endpoint: str,
    payload: bytes,
    *,
    auth_header: str,
    timeout_seconds: float,
    provider: str,
) -> None:
    request = urllib.request.Request(endpoint, data=payload, method="POST")
    request.add_header("Authorization", auth_header)
    request.add_header("Content-Type", "application/x-www-form-urlencoded")

    try:
        with urllib.request.urlopen(request, timeout=timeout_seconds) as response:
            status = int(response.getcode())
            if status < 200 or status >= 300:
                raise SendError(f"{provider} send failed with status {status}")
            response.read()
    except urllib.error.HTTPError as exc:
        details = exc.read().decode("utf-8", errors="replace")
        raise SendError(f"{provider} send failed HTTP {exc.code}: {details[:300]}") from exc
    except urllib.error.URLError as exc:
        raise SendError(f"{provider} send failed: {exc.reason}") from exc
    except TimeoutError as exc:
        raise SendError(f"{provider} send timed out") from exc


def _twilio_messages_endpoint(account_sid: str) -> str:
    base_url = os.getenv("TWILIO_API_BASE_URL", "https://api.twilio.com").rstrip("/")
    return f"{base_url}/2010-04-01/Accounts/{account_sid}/Messages.json"


def _required_env(name: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        raise ConfigurationError(f"Missing required environment variable: {name}")
    return value.strip()


def _basic_auth_header(username: str, password: str) -> str:
    token = f"{username}:{password}".encode("utf-8")
    encoded = base64.b64encode(token).decode("ascii")
    return f"Basic {encoded}"
