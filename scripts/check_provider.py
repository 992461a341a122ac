#!/usr/bin/env python3
"""Check connectivity to the booking provider.

Lists businesses with their reminder settings and counts the bookings that
are eligible for reminders. Reads BASE44_API_URL / BASE44_API_KEY.
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

# Allow running this file directly from repository root.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from reminders.adapters.provider import Base44BookingProvider  # noqa: E402
from reminders.config import configure_logging  # noqa: E402


def main() -> int:
    args = parse_args()
    configure_logging("WARNING")
    api_url = os.getenv("BASE44_API_URL", "").strip()
    api_key = os.getenv("BASE44_API_KEY", "").strip()
    if not api_url or not api_key:
        print("BASE44_API_URL and BASE44_API_KEY must be set")
        return 2

    provider = Base44BookingProvider(api_url, api_key, timezone_name=args.timezone)
    tenants = provider.list_tenants()
    print(f"businesses={len(tenants)}")
    if not tenants:
        return 1

    for tenant in tenants:
        bookings = provider.list_events(tenant["business_id"])
        confirmed = [item for item in bookings if item["status"] == "confirmed"]
        print(
            f"- name={tenant['name']} id={tenant['business_id']} "
            f"reminders={'on' if tenant['reminder_enabled'] else 'off'} "
            f"hours_before={tenant['reminder_hours_before']:g} "
            f"bookings={len(bookings)} confirmed={len(confirmed)}"
        )
    return 0


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="List businesses and booking counts.")
    parser.add_argument("--timezone", default="Asia/Jerusalem")
    return parser.parse_args()


if __name__ == "__main__":
    sys.exit(main())
