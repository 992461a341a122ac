from __future__ import annotations

import os
import tempfile
import unittest
from dataclasses import replace
from pathlib import Path
from unittest import mock

from reminders.adapters.fake_provider import InMemoryBookingProvider
from reminders.adapters.runtime import build_notifier, build_runtime
from reminders.adapters.scheduler import ClockAlignedSchedule, FixedIntervalSchedule
from reminders.application.notifier import Notifier
from reminders.config import Settings, load_settings, validate_settings
from reminders.errors import ConfigurationError

BASE_ENV = {
    "BASE44_API_URL": "https://base44.example/api/apps/app-1",
    "BASE44_API_KEY": "secret-key",
    "CONTROL_API_SECRET": "control-secret",
    "TWILIO_ACCOUNT_SID": "AC123",
    "TWILIO_AUTH_TOKEN": "token-xyz",
    "TWILIO_WHATSAPP_NUMBER": "+14155238886",
    "TWILIO_TEMPLATE_SID": "HX-reminder",
    "TWILIO_CONFIRMATION_TEMPLATE_SID": "HX-confirm",
}


class LoadSettingsTests(unittest.TestCase):
    @mock.patch.dict(os.environ, BASE_ENV, clear=True)
    def test_defaults(self) -> None:
        settings = load_settings()

        self.assertEqual(settings.default_channel, "whatsapp")
        self.assertEqual(settings.enabled_channels, ("whatsapp",))
        self.assertEqual(settings.timezone_name, "Asia/Jerusalem")
        self.assertEqual(settings.reminder_tolerance_minutes, 10.0)
        self.assertEqual(settings.reminder_poll_minutes, 15)
        self.assertEqual(settings.reminder_schedule_mode, "aligned")
        self.assertTrue(settings.confirmations_enabled)
        self.assertEqual(settings.port, 3000)
        self.assertEqual(
            build_notifier(settings).whatsapp_templates,
            {"reminder": "HX-reminder", "confirmation": "HX-confirm"},
        )

    @mock.patch.dict(os.environ, {"BASE44_API_KEY": "k"}, clear=True)
    def test_missing_provider_url(self) -> None:
        with self.assertRaises(ConfigurationError):
            load_settings(check_credentials=False, serve_http=False)

    @mock.patch.dict(
        os.environ,
        BASE_ENV | {"ENABLED_CHANNELS": "whatsapp,email", "DEFAULT_CHANNEL": "whatsapp"},
        clear=True,
    )
    def test_missing_channel_credentials(self) -> None:
        with self.assertRaises(ConfigurationError) as exc:
            load_settings()

        self.assertIn("MAILGUN_API_KEY", str(exc.exception))

    @mock.patch.dict(
        os.environ, BASE_ENV | {"TWILIO_CONFIRMATION_TEMPLATE_SID": ""}, clear=True
    )
    def test_confirmation_template_required_when_confirmations_run_on_whatsapp(self) -> None:
        with self.assertRaises(ConfigurationError) as exc:
            load_settings()

        self.assertIn("TWILIO_CONFIRMATION_TEMPLATE_SID", str(exc.exception))

    @mock.patch.dict(
        os.environ,
        BASE_ENV | {"TWILIO_CONFIRMATION_TEMPLATE_SID": "", "CONFIRMATIONS_ENABLED": "false"},
        clear=True,
    )
    def test_confirmation_template_optional_when_confirmations_disabled(self) -> None:
        self.assertFalse(load_settings().confirmations_enabled)

    @mock.patch.dict(
        os.environ,
        {
            "BASE44_API_URL": "https://base44.example",
            "BASE44_API_KEY": "k",
            "DEFAULT_CHANNEL": "sms",
            "TWILIO_ACCOUNT_SID": "AC123",
            "TWILIO_AUTH_TOKEN": "token-xyz",
            "TWILIO_FROM_PHONE": "+15005550006",
        },
        clear=True,
    )
    def test_confirmation_template_not_needed_without_whatsapp(self) -> None:
        self.assertEqual(load_settings(serve_http=False).enabled_channels, ("sms",))

    @mock.patch.dict(os.environ, BASE_ENV | {"CONTROL_API_SECRET": ""}, clear=True)
    def test_control_secret_required_only_when_serving_http(self) -> None:
        with self.assertRaises(ConfigurationError):
            load_settings()

        self.assertIsNone(load_settings(serve_http=False).control_api_secret)

    @mock.patch.dict(os.environ, BASE_ENV | {"CONFIRMATIONS_ENABLED": "maybe"}, clear=True)
    def test_invalid_boolean(self) -> None:
        with self.assertRaises(ConfigurationError):
            load_settings()

    @mock.patch.dict(os.environ, BASE_ENV | {"REMINDER_POLL_MINUTES": "often"}, clear=True)
    def test_invalid_integer(self) -> None:
        with self.assertRaises(ConfigurationError):
            load_settings()


class ValidateSettingsTests(unittest.TestCase):
    def setUp(self) -> None:
        self.settings = Settings(
            base44_api_url="https://base44.example",
            base44_api_key="k",
            control_api_secret="s",
        )

    def assert_invalid(self, **changes: object) -> None:
        with self.assertRaises(ConfigurationError):
            validate_settings(replace(self.settings, **changes), check_credentials=False)

    def test_valid_settings(self) -> None:
        validate_settings(self.settings, check_credentials=False)

    def test_poll_must_be_shorter_than_twice_the_tolerance(self) -> None:
        self.assert_invalid(reminder_poll_minutes=20, reminder_tolerance_minutes=10)
        validate_settings(
            replace(self.settings, reminder_poll_minutes=19, reminder_tolerance_minutes=10),
            check_credentials=False,
        )

    def test_invalid_values(self) -> None:
        self.assert_invalid(enabled_channels=("pigeon",))
        self.assert_invalid(enabled_channels=())
        self.assert_invalid(default_channel="sms")
        self.assert_invalid(timezone_name="Mars/Olympus")
        self.assert_invalid(reminder_schedule_mode="cron")
        self.assert_invalid(reminder_poll_minutes=0)
        self.assert_invalid(confirmation_poll_seconds=0)
        self.assert_invalid(confirmation_lookback_hours=24 * 7)


class RuntimeWiringTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        tmp = Path(self._tmp.name)
        self.settings = Settings(
            base44_api_url="https://base44.example",
            base44_api_key="k",
            reminder_store_path=str(tmp / "sent-reminders.json"),
            confirmation_store_path=str(tmp / "sent-confirmations.json"),
        )

    def test_build_runtime_registers_both_cadences(self) -> None:
        runtime = build_runtime(
            self.settings,
            provider=InMemoryBookingProvider(),
            notifier=Notifier(send_whatsapp=lambda **kwargs: None),
        )

        self.assertEqual(sorted(runtime.cycles), ["confirmations", "reminders"])
        schedules = {name: item[1] for name, item in runtime.scheduler._cadences.items()}
        self.assertIsInstance(schedules["reminders"], ClockAlignedSchedule)
        self.assertIsInstance(schedules["confirmations"], FixedIntervalSchedule)

        result = runtime.cycles["reminders"]()
        self.assertEqual(result["policy"], "reminder")
        self.assertEqual(result["tenants"], [])

    def test_interval_mode_and_confirmations_disabled(self) -> None:
        settings = replace(
            self.settings, reminder_schedule_mode="interval", confirmations_enabled=False
        )

        runtime = build_runtime(
            settings,
            provider=InMemoryBookingProvider(),
            notifier=Notifier(send_whatsapp=lambda **kwargs: None),
        )

        self.assertEqual(list(runtime.cycles), ["reminders"])
        schedule = runtime.scheduler._cadences["reminders"][1]
        self.assertIsInstance(schedule, FixedIntervalSchedule)
        self.assertEqual(schedule.seconds, 15 * 60)

    @mock.patch.dict(os.environ, {"TWILIO_TEMPLATE_SID": "HX-reminder"}, clear=True)
    def test_build_notifier_wires_enabled_channels(self) -> None:
        notifier = build_notifier(replace(self.settings, enabled_channels=("whatsapp", "sms")))

        self.assertEqual(notifier.channels(), ["sms", "whatsapp"])
        self.assertEqual(notifier.whatsapp_templates, {"reminder": "HX-reminder"})


if __name__ == "__main__":
    unittest.main()
