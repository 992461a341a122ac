from __future__ import annotations

import io
import json
import os
import unittest
import urllib.error
import urllib.parse
from unittest import mock

from reminders.adapters.real_senders import (
    missing_channel_env,
    missing_template_env,
    send_email_via_mailgun_from_env,
    send_sms_via_twilio_from_env,
    send_whatsapp_via_twilio_from_env,
    whatsapp_templates_from_env,
)
from reminders.errors import ConfigurationError, SendError

MAILGUN_ENV = {
    "MAILGUN_API_KEY": "key-123",
    "MAILGUN_DOMAIN": "mg.studio.example",
    "MAILGUN_FROM_EMAIL": "bookings@mg.studio.example",
}

TWILIO_ENV = {
    "TWILIO_ACCOUNT_SID": "AC-studio",
    "TWILIO_AUTH_TOKEN": "auth-token",
    "TWILIO_FROM_PHONE": "+15005550006",
    "TWILIO_WHATSAPP_NUMBER": "+14155238886",
    "TWILIO_TEMPLATE_SID": "HX-reminder",
}


def http_error(code: int, body: bytes) -> urllib.error.HTTPError:
    return urllib.error.HTTPError(
        url="https://provider.example/messages",
        code=code,
        msg="error",
        hdrs=None,
        fp=io.BytesIO(body),
    )


class SenderTestCase(unittest.TestCase):
    env: dict[str, str] = {}

    def setUp(self) -> None:
        env_patcher = mock.patch.dict(os.environ, self.env, clear=True)
        env_patcher.start()
        self.addCleanup(env_patcher.stop)

        urlopen_patcher = mock.patch("reminders.adapters.real_senders.urllib.request.urlopen")
        self.urlopen = urlopen_patcher.start()
        self.addCleanup(urlopen_patcher.stop)

        response = self.urlopen.return_value.__enter__.return_value
        response.getcode.return_value = 201
        response.read.return_value = b'{"sid":"SM1"}'

    def posted_form(self) -> dict[str, str]:
        request_obj = self.urlopen.call_args.args[0]
        parsed = urllib.parse.parse_qs((request_obj.data or b"").decode("utf-8"))
        return {key: values[0] for key, values in parsed.items()}


class MailgunSenderTests(SenderTestCase):
    env = MAILGUN_ENV | {"MAILGUN_TIMEOUT_SECONDS": "5"}

    def test_posts_message_with_business_display_name(self) -> None:
        send_email_via_mailgun_from_env(
            from_name="Studio Dana",
            to_email="noa@example.com",
            subject="Reminder",
            body="See you tomorrow",
        )

        request_obj = self.urlopen.call_args.args[0]
        self.assertEqual(
            request_obj.full_url, "https://api.mailgun.net/v3/mg.studio.example/messages"
        )
        self.assertTrue((request_obj.get_header("Authorization") or "").startswith("Basic "))
        self.assertEqual(self.urlopen.call_args.kwargs["timeout"], 5.0)
        self.assertEqual(
            self.posted_form(),
            {
                "from": "Studio Dana <bookings@mg.studio.example>",
                "to": "noa@example.com",
                "subject": "Reminder",
                "text": "See you tomorrow",
            },
        )

    def test_http_error_becomes_send_error(self) -> None:
        self.urlopen.side_effect = http_error(401, b'{"message":"Forbidden"}')

        with self.assertRaises(SendError) as exc:
            send_email_via_mailgun_from_env(
                from_name="", to_email="noa@example.com", subject="x", body="y"
            )

        self.assertIn("HTTP 401", str(exc.exception))
        self.assertIn("Forbidden", str(exc.exception))


class MissingCredentialTests(SenderTestCase):
    env = {}

    def test_email_requires_mailgun_settings(self) -> None:
        with self.assertRaises(ConfigurationError):
            send_email_via_mailgun_from_env(
                from_name="", to_email="noa@example.com", subject="x", body="y"
            )
        self.urlopen.assert_not_called()

    def test_sms_requires_twilio_settings(self) -> None:
        with self.assertRaises(RuntimeError):
            send_sms_via_twilio_from_env(to_phone_e164="+972501234567", message="hello")
        self.urlopen.assert_not_called()


class TwilioSenderTests(SenderTestCase):
    env = TWILIO_ENV | {"TWILIO_TIMEOUT_SECONDS": "7"}

    def test_sms_posts_to_account_messages(self) -> None:
        send_sms_via_twilio_from_env(to_phone_e164="+972501234567", message="hello")

        request_obj = self.urlopen.call_args.args[0]
        self.assertEqual(
            request_obj.full_url,
            "https://api.twilio.com/2010-04-01/Accounts/AC-studio/Messages.json",
        )
        self.assertEqual(self.urlopen.call_args.kwargs["timeout"], 7.0)
        self.assertEqual(
            self.posted_form(),
            {"To": "+972501234567", "From": "+15005550006", "Body": "hello"},
        )

    def test_sms_http_error_becomes_send_error(self) -> None:
        self.urlopen.side_effect = http_error(400, b'{"message":"invalid To"}')

        with self.assertRaises(SendError) as exc:
            send_sms_via_twilio_from_env(to_phone_e164="+972501234567", message="hello")

        self.assertIn("HTTP 400", str(exc.exception))

    def test_whatsapp_posts_content_template(self) -> None:
        send_whatsapp_via_twilio_from_env(
            to_phone_e164="+972501234567",
            template_id="HX-reminder",
            variables=["Noa", "Studio Dana", "10 במרץ", "20:05"],
        )

        form = self.posted_form()
        self.assertEqual(form["To"], "whatsapp:+972501234567")
        self.assertEqual(form["From"], "whatsapp:+14155238886")
        self.assertEqual(form["ContentSid"], "HX-reminder")
        self.assertEqual(
            json.loads(form["ContentVariables"]),
            {"1": "Noa", "2": "Studio Dana", "3": "10 במרץ", "4": "20:05"},
        )

    def test_whatsapp_sender_number_is_not_double_prefixed(self) -> None:
        with mock.patch.dict(os.environ, {"TWILIO_WHATSAPP_NUMBER": "whatsapp:+14155238886"}):
            send_whatsapp_via_twilio_from_env(
                to_phone_e164="+972501234567", template_id="HX-reminder", variables=["Noa"]
            )

        self.assertEqual(self.posted_form()["From"], "whatsapp:+14155238886")

    def test_whatsapp_network_error_becomes_send_error(self) -> None:
        self.urlopen.side_effect = urllib.error.URLError("connection refused")

        with self.assertRaises(SendError) as exc:
            send_whatsapp_via_twilio_from_env(
                to_phone_e164="+972501234567", template_id="HX-reminder", variables=[]
            )

        self.assertIn("connection refused", str(exc.exception))

    def test_non_success_status_becomes_send_error(self) -> None:
        self.urlopen.return_value.__enter__.return_value.getcode.return_value = 302

        with self.assertRaises(SendError):
            send_sms_via_twilio_from_env(to_phone_e164="+972501234567", message="hello")


class ChannelEnvTests(unittest.TestCase):
    @mock.patch.dict(
        os.environ,
        {
            "TWILIO_TEMPLATE_SID": "HX-reminder",
            "TWILIO_CONFIRMATION_TEMPLATE_SID": " HX-confirm ",
            "TWILIO_UPDATE_TEMPLATE_SID": "",
        },
        clear=True,
    )
    def test_whatsapp_templates_from_env(self) -> None:
        self.assertEqual(
            whatsapp_templates_from_env(),
            {"reminder": "HX-reminder", "confirmation": "HX-confirm"},
        )

    @mock.patch.dict(os.environ, {"TWILIO_ACCOUNT_SID": "AC-studio"}, clear=True)
    def test_missing_channel_env(self) -> None:
        self.assertEqual(
            missing_channel_env("whatsapp"),
            ["TWILIO_AUTH_TOKEN", "TWILIO_WHATSAPP_NUMBER", "TWILIO_TEMPLATE_SID"],
        )
        self.assertEqual(missing_channel_env("pigeon"), [])

    @mock.patch.dict(os.environ, {"TWILIO_TEMPLATE_SID": "HX-reminder"}, clear=True)
    def test_missing_template_env(self) -> None:
        self.assertEqual(
            missing_template_env(["reminder", "confirmation"]),
            ["TWILIO_CONFIRMATION_TEMPLATE_SID"],
        )
        self.assertEqual(missing_template_env(["reminder"]), [])


if __name__ == "__main__":
    unittest.main()
