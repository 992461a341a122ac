from __future__ import annotations

import unittest
from datetime import datetime

import pytz

from reminders.adapters.payload import localize_schedule, parse_booking, parse_tenant


class TenantPayloadTests(unittest.TestCase):
    def test_parse_tenant_defaults(self) -> None:
        tenant = parse_tenant({"id": 42, "name": " Studio "}, default_channel="whatsapp")

        self.assertEqual(tenant["business_id"], "42")
        self.assertEqual(tenant["reminder_hours_before"], 12.0)
        self.assertTrue(tenant["reminder_enabled"])
        self.assertEqual(tenant["channel"], "whatsapp")
        self.assertIsNone(tenant["owner_email"])

    def test_parse_tenant_invalid_hours_fall_back(self) -> None:
        for value in (0, -3, "soon", None):
            with self.subTest(value=value):
                tenant = parse_tenant({"id": "b", "reminder_hours_before": value})
                self.assertEqual(tenant["reminder_hours_before"], 12.0)

    def test_parse_tenant_explicit_settings(self) -> None:
        tenant = parse_tenant(
            {
                "id": "b",
                "reminder_hours_before": "24",
                "reminder_enabled": False,
                "notification_channel": "sms",
                "created_by": "owner@example.com",
            },
            default_channel="whatsapp",
        )

        self.assertEqual(tenant["reminder_hours_before"], 24.0)
        self.assertFalse(tenant["reminder_enabled"])
        self.assertEqual(tenant["channel"], "sms")
        self.assertEqual(tenant["owner_email"], "owner@example.com")

    def test_parse_tenant_requires_id(self) -> None:
        with self.assertRaises(ValueError):
            parse_tenant({"name": "nameless"})


class BookingPayloadTests(unittest.TestCase):
    def test_parse_booking_localizes_wall_clock_time(self) -> None:
        booking = parse_booking(
            {
                "id": "bk-1",
                "business_id": "biz-1",
                "date": "2026-07-01T00:00:00",
                "time": "9:30",
                "status": "Confirmed",
                "sms_notifications_enabled": False,
                "updated_date": "2026-06-30T10:00:00Z",
                "created_date": "2026-06-29T10:00:00",
            },
            timezone_name="Asia/Jerusalem",
        )

        self.assertEqual(booking["date"], "2026-07-01")
        self.assertEqual(booking["time"], "09:30")
        self.assertEqual(booking["status"], "confirmed")
        self.assertEqual(
            booking["starts_at"].astimezone(pytz.utc),
            pytz.utc.localize(datetime(2026, 7, 1, 6, 30)),
        )
        self.assertFalse(booking["notify_sms"])
        self.assertTrue(booking["notify_whatsapp"])
        self.assertEqual(booking["updated_at"], pytz.utc.localize(datetime(2026, 6, 30, 10, 0)))
        self.assertEqual(booking["created_at"], pytz.utc.localize(datetime(2026, 6, 29, 10, 0)))

    def test_parse_booking_with_unusable_schedule(self) -> None:
        booking = parse_booking({"id": "bk-1", "date": "tomorrow", "time": "noon"})

        self.assertIsNone(booking["starts_at"])
        self.assertIsNone(booking["updated_at"])

    def test_localize_schedule_handles_dst(self) -> None:
        tz = pytz.timezone("Asia/Jerusalem")

        winter = localize_schedule("2026-01-15", "12:00", tz)
        summer = localize_schedule("2026-07-15", "12:00", tz)

        self.assertEqual(winter.utcoffset().total_seconds(), 2 * 3600)
        self.assertEqual(summer.utcoffset().total_seconds(), 3 * 3600)


if __name__ == "__main__":
    unittest.main()
