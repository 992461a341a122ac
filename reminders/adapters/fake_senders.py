"""Fake sender adapters for local smoke tests.

Mental model refresher:
- This is outbound adapter code.
- The real adapters call Mailgun and Twilio; these print instead.
- Domain code calls these through injected functions; domain does not know
  which provider implementation is underneath.
"""

from __future__ import annotations

from typing import Sequence


def send_email_via_console(*, from_name: str, to_email: str, subject: str, body: str) -> None:
    print("[EMAIL]")
    print(f"from={from_name}")
    print(f"to={to_email}")
    print(f"subject={subject}")
    print(f"body={body}")


def send_sms_via_console(*, to_phone_e164: str, message: str) -> None:
    print("[SMS]")
    print(f"to={to_phone_e164}")
    print(f"message={message}")


def send_whatsapp_via_console(
    *, to_phone_e164: str, template_id: str, variables: Sequence[str]
) -> None:
    print("[WHATSAPP]")
    print(f"to=whatsapp:{to_phone_e164}")
    print(f"template={template_id}")
    print(f"variables={list(variables)}")
