"""In-memory booking provider for local demos and tests."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from ..types import BookingDict, TenantDict
from .payload import DEFAULT_TIMEZONE, parse_booking, parse_tenant


class InMemoryBookingProvider:
    """Serves provider-shaped `Business`/`Booking` records from memory."""

    def __init__(
        self,
        businesses: Iterable[Mapping[str, Any]] = (),
        bookings: Iterable[Mapping[str, Any]] = (),
        *,
        timezone_name: str = DEFAULT_TIMEZONE,
        default_channel: str | None = None,
    ) -> None:
        self.businesses = [dict(item) for item in businesses]
        self.bookings = [dict(item) for item in bookings]
        self.timezone_name = timezone_name
        self.default_channel = default_channel

    def list_tenants(self) -> list[TenantDict]:
        return [
            parse_tenant(record, default_channel=self.default_channel)
            for record in self.businesses
        ]

    def list_events(self, tenant_id: str | None = None) -> list[BookingDict]:
        return [
            parse_booking(record, timezone_name=self.timezone_name)
            for record in self.bookings
            if tenant_id is None or str(record.get("business_id")) == tenant_id
        ]
