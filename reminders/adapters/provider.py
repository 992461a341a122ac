"""Booking/tenant provider backed by the Base44 entity API.

Mental model refresher:
- This module is an inbound data adapter: authenticated HTTP reads only.
- Failures never propagate into a dispatch cycle. They are logged and the
  caller sees an empty list, i.e. "zero candidates this cycle".
- Server-side filtering by business id has proven unreliable, so tenant
  scoped reads are always re-filtered client side.
"""

from __future__ import annotations

import http.client
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Any

from ..errors import ProviderFetchError
from ..types import BookingDict, TenantDict
from .payload import DEFAULT_TIMEZONE, parse_booking, parse_tenant

logger = logging.getLogger(__name__)


class Base44BookingProvider:
    def __init__(
        self,
        api_url: str,
        api_key: str,
        *,
        timezone_name: str = DEFAULT_TIMEZONE,
        default_channel: str | None = None,
        timeout_seconds: float = 10,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.timezone_name = timezone_name
        self.default_channel = default_channel
        self.timeout_seconds = timeout_seconds

    def list_tenants(self) -> list[TenantDict]:
        try:
            records = self._get_entities("Business")
        except ProviderFetchError as exc:
            logger.error("[PROVIDER ERROR] entity=Business error=%s", exc)
            return []

        tenants = []
        for record in records:
            try:
                tenants.append(parse_tenant(record, default_channel=self.default_channel))
            except ValueError as exc:
                logger.warning("[PROVIDER SKIP] entity=Business error=%s", exc)
        return tenants

    def list_events(self, tenant_id: str | None = None) -> list[BookingDict]:
        query = {"filter": f"business_id:{tenant_id}"} if tenant_id else None
        try:
            records = self._get_entities("Booking", query)
        except ProviderFetchError as exc:
            logger.error(
                "[PROVIDER ERROR] entity=Booking business_id=%s error=%s", tenant_id, exc
            )
            return []

        bookings = []
        for record in records:
            if tenant_id and str(record.get("business_id") or "") != tenant_id:
                continue
            try:
                bookings.append(parse_booking(record, timezone_name=self.timezone_name))
            except ValueError as exc:
                logger.warning("[PROVIDER SKIP] entity=Booking error=%s", exc)
        return bookings

    def _get_entities(
        self,
        entity: str,
        query: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        endpoint = f"{self.api_url}/entities/{entity}"
        if query:
            endpoint = f"{endpoint}?{urllib.parse.urlencode(query)}"

        request = urllib.request.Request(endpoint, method="GET")
        request.add_header("api_key", self.api_key)
        request.add_header("Content-Type", "application/json")

        try:
            with urllib.request.urlopen(request, timeout=self.timeout_seconds) as response:
                status = int(response.getcode())
                if status < 200 or status >= 300:
                    raise ProviderFetchError(f"{entity} fetch failed with status {status}")
                body = response.read()
        except urllib.error.HTTPError as exc:
            details = exc.read().decode("utf-8", errors="replace")
            raise ProviderFetchError(
                f"{entity} fetch failed HTTP {exc.code}: {details[:300]}"
            ) from exc
        except urllib.error.URLError as exc:
            raise ProviderFetchError(f"{entity} fetch failed: {exc.reason}") from exc
        except TimeoutError as exc:
            raise ProviderFetchError(f"{entity} fetch timed out") from exc
        except (OSError, http.client.HTTPException) as exc:
            raise ProviderFetchError(f"{entity} fetch failed: {exc!r}") from exc

        try:
            parsed = json.loads(body.decode("utf-8"))
        except ValueError as exc:
            raise ProviderFetchError(f"{entity} response is not valid JSON") from exc
        if not isinstance(parsed, list):
            raise ProviderFetchError(f"{entity} response must be a JSON array")
        return [item for item in parsed if isinstance(item, dict)]
