#!/usr/bin/env python3
"""Run one reminder cycle and one confirmation cycle locally.

Uses an in-memory provider seeded with sample businesses and bookings, an
in-memory dedup store and console senders. Nothing leaves the machine.
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import pytz

# Allow running this file directly from repository root.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from reminders.adapters.fake_provider import InMemoryBookingProvider  # noqa: E402
from reminders.adapters.fake_senders import (  # noqa: E402
    send_email_via_console,
    send_sms_via_console,
    send_whatsapp_via_console,
)
from reminders.adapters.idempotency_store import InMemoryIdempotencyStore  # noqa: E402
from reminders.application.dispatch import (  # noqa: E402
    confirmation_policy,
    reminder_policy,
    run_dispatch_cycle,
    summarize,
)
from reminders.application.notifier import Notifier  # noqa: E402
from reminders.config import configure_logging  # noqa: E402

TIMEZONE = "Asia/Jerusalem"


def main() -> int:
    args = parse_args()
    configure_logging("INFO")
    tz = pytz.timezone(TIMEZONE)
    now = datetime.now(tz=tz)
    data = load_data(args.data_file, now)

    provider = InMemoryBookingProvider(
        data["businesses"], data["bookings"], timezone_name=TIMEZONE, default_channel="whatsapp"
    )
    notifier = Notifier(
        send_email=send_email_via_console,
        send_sms=send_sms_via_console,
        send_whatsapp=send_whatsapp_via_console,
        whatsapp_templates={
            "reminder": "HX-demo-reminder",
            "confirmation": "HX-demo-confirmation",
        },
    )

    results = []
    for policy in (reminder_policy(args.tolerance_minutes), confirmation_policy()):
        store = InMemoryIdempotencyStore()
        results.append(run_dispatch_cycle(provider, store, notifier, policy, now=now))
        # Second pass against the same store must not resend anything.
        results.append(run_dispatch_cycle(provider, store, notifier, policy, now=now))

    print("")
    print("[SUMMARY]")
    for result in results:
        print(
            f"policy={result['policy']} sent={result['sent']} "
            f"skipped={result['skipped']} failed={result['failed']}"
        )
    totals = summarize(results)
    print(f"total_sent={totals['sent']} total_skipped={totals['skipped']}")
    return 0 if totals["failed"] == 0 else 1


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run reminder/confirmation cycles against sample data with console senders."
    )
    parser.add_argument(
        "--data-file",
        type=Path,
        default=None,
        help='Optional JSON file: {"businesses": [...], "bookings": [...]}.',
    )
    parser.add_argument("--tolerance-minutes", type=float, default=10.0)
    return parser.parse_args()


def load_data(data_file: Path | None, now: datetime) -> dict[str, Any]:
    if data_file is None:
        return sample_data(now)
    with data_file.open("r", encoding="utf-8") as file_handle:
        return json.load(file_handle)


def sample_data(now: datetime) -> dict[str, Any]:
    due = now + timedelta(hours=12, minutes=5)
    later = now + timedelta(days=2)
    return {
        "businesses": [
            {
                "id": "biz-demo-1",
                "name": "Demo Salon",
                "reminder_hours_before": 12,
                "created_by": "owner@example.com",
            },
            {
                "id": "biz-demo-2",
                "name": "Quiet Clinic",
                "reminder_enabled": False,
                "notification_channel": "email",
            },
        ],
        "bookings": [
            {
                "id": "bk-demo-1",
                "business_id": "biz-demo-1",
                "date": due.strftime("%Y-%m-%d"),
                "time": due.strftime("%H:%M"),
                "status": "confirmed",
                "client_name": "Dana",
                "client_phone": "050-123-4567",
                "service_name": "Haircut",
                "created_by": "owner@example.com",
            },
            {
                "id": "bk-demo-2",
                "business_id": "biz-demo-1",
                "date": later.strftime("%Y-%m-%d"),
                "time": "10:30",
                "status": "confirmed",
                "client_name": "Noa",
                "client_phone": "0521112222",
                "created_by": "noa@example.com",
                "updated_date": now.isoformat(),
            },
            {
                "id": "bk-demo-3",
                "business_id": "biz-demo-2",
                "date": due.strftime("%Y-%m-%d"),
                "time": due.strftime("%H:%M"),
                "status": "confirmed",
                "client_name": "Yael",
                "client_email": "yael@example.com",
            },
        ],
    }


if __name__ == "__main__":
    sys.exit(main())
