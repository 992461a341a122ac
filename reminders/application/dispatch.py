"""Application orchestration for scheduled notification dispatch.

Mental model refresher:
- One call to `run_dispatch_cycle` is one full pass over every tenant.
- A `DispatchPolicy` decides which bookings are due and which dedup key
  identifies "this notification for this exact schedule".
- The cycle itself is policy-agnostic:
  1) read tenants and bookings from the provider
  2) filter to confirmed bookings reachable on the tenant's channel
  3) ask the policy whether the booking is due
  4) skip keys already in the idempotency store
  5) send, and record the key only after a successful send
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Callable, Protocol, Sequence

from ..domain.window import WindowPhase, evaluate_trigger_window, minutes_until
from ..types import (
    CONFIRMATION,
    REMINDER,
    WHATSAPP,
    Booking,
    BookingDict,
    CycleResult,
    Tenant,
    TenantDict,
)
from .notifier import Notifier, build_context

logger = logging.getLogger(__name__)

CONFIRMED = "confirmed"


class BookingProvider(Protocol):
    def list_tenants(self) -> list[TenantDict]: ...

    def list_events(self, tenant_id: str | None = None) -> list[BookingDict]: ...


class IdempotencyStore(Protocol):
    def contains(self, key: str) -> bool: ...

    def record(self, key: str) -> None: ...


EvaluateFn = Callable[[Tenant, Booking, datetime], str | None]


@dataclass(frozen=True)
class DispatchPolicy:
    """What a cycle sends, to whom, and how it is deduplicated.

    `evaluate` returns `None` when the booking is due, otherwise a short skip
    reason used in logs and cycle summaries.
    """

    name: str
    kind: str
    tenant_filter: Callable[[Tenant], bool]
    evaluate: EvaluateFn
    dedup_key: Callable[[Booking], str]


def reminder_key(booking: Booking) -> str:
    return f"{booking['booking_id']}-{booking.get('date', '')}-{booking.get('time', '')}"


def confirmation_key(booking: Booking) -> str:
    return f"{booking['booking_id']}-confirmed"


def reminder_policy(tolerance_minutes: float) -> DispatchPolicy:
    """Time-based reminder `reminder_hours_before` each appointment."""

    def evaluate(tenant: Tenant, booking: Booking, now: datetime) -> str | None:
        starts_at = booking.get("starts_at")
        if starts_at is None:
            return "invalid_schedule"
        phase = evaluate_trigger_window(
            starts_at,
            now,
            float(tenant.get("reminder_hours_before") or 12),
            tolerance_minutes,
        )
        if phase is WindowPhase.IN_WINDOW:
            return None
        return phase.value

    return DispatchPolicy(
        name="reminder",
        kind=REMINDER,
        tenant_filter=lambda tenant: bool(tenant.get("reminder_enabled", True)),
        evaluate=evaluate,
        dedup_key=reminder_key,
    )


def confirmation_policy(lookback_hours: float = 24) -> DispatchPolicy:
    """One-time confirmation once a client-made booking becomes confirmed.

    A booking counts as "just confirmed" when it was last changed within
    `lookback_hours`; the lookback must stay below the dedup retention
    horizon or old confirmations would be sent again after pruning.
    """
    lookback = timedelta(hours=lookback_hours)

    def evaluate(tenant: Tenant, booking: Booking, now: datetime) -> str | None:
        owner = str(tenant.get("owner_email") or "").strip().lower()
        creator = str(booking.get("created_by") or "").strip().lower()
        if owner and creator == owner:
            return "created_by_owner"

        starts_at = booking.get("starts_at")
        if starts_at is None or starts_at <= now:
            return "appointment_passed"

        changed_at = booking.get("updated_at") or booking.get("created_at")
        if changed_at is None:
            return "no_change_timestamp"
        if now - changed_at > lookback:
            return "stale_confirmation"
        return None

    return DispatchPolicy(
        name="confirmation",
        kind=CONFIRMATION,
        tenant_filter=lambda tenant: True,
        evaluate=evaluate,
        dedup_key=confirmation_key,
    )


def run_dispatch_cycle(
    provider: BookingProvider,
    store: IdempotencyStore,
    notifier: Notifier,
    policy: DispatchPolicy,
    *,
    default_channel: str = WHATSAPP,
    now: datetime | None = None,
) -> CycleResult:
    """Run one full pass of `policy` over every tenant."""
    now = now or datetime.now(tz=UTC)
    tenants = provider.list_tenants()
    logger.info(
        "[CYCLE START] policy=%s tenants=%d now=%s",
        policy.name,
        len(tenants),
        now.isoformat(),
    )

    tenant_results = [
        process_tenant(
            tenant,
            provider,
            store,
            notifier,
            policy,
            default_channel=default_channel,
            now=now,
        )
        for tenant in tenants
    ]

    result: CycleResult = {
        "policy": policy.name,
        "now": now.isoformat(),
        "tenants": tenant_results,
        "sent": sum(item["sent"] for item in tenant_results),
        "skipped": sum(item["skipped"] for item in tenant_results),
        "failed": sum(item["failed"] for item in tenant_results),
    }
    logger.info(
        "[CYCLE DONE] policy=%s tenants=%d sent=%d skipped=%d failed=%d",
        policy.name,
        len(tenant_results),
        result["sent"],
        result["skipped"],
        result["failed"],
    )
    return result


def process_tenant(
    tenant: Tenant,
    provider: BookingProvider,
    store: IdempotencyStore,
    notifier: Notifier,
    policy: DispatchPolicy,
    *,
    default_channel: str,
    now: datetime,
) -> dict[str, Any]:
    """Evaluate and dispatch every booking of one tenant."""
    channel = tenant.get("channel") or default_channel
    result = {
        "business_id": tenant.get("business_id"),
        "business": tenant.get("name"),
        "channel": channel,
        "status": "processed",
        "sent": 0,
        "skipped": 0,
        "failed": 0,
        "skip_reasons": {},
    }

    if not policy.tenant_filter(tenant):
        logger.info(
            "[TENANT SKIP] policy=%s business=%s reason=disabled",
            policy.name,
            tenant.get("name"),
        )
        result["status"] = "disabled"
        return result

    if not notifier.supports(channel):
        logger.warning(
            "[TENANT SKIP] policy=%s business=%s reason=channel_unavailable channel=%s",
            policy.name,
            tenant.get("name"),
            channel,
        )
        result["status"] = "channel_unavailable"
        return result

    bookings = provider.list_events(tenant.get("business_id"))
    reasons: Counter[str] = Counter()
    for booking in bookings:
        outcome = _dispatch_booking(tenant, booking, channel, store, notifier, policy, now)
        if outcome == "sent":
            result["sent"] += 1
        elif outcome == "failed":
            result["failed"] += 1
        else:
            result["skipped"] += 1
            reasons[outcome] += 1

    result["skip_reasons"] = dict(reasons)
    logger.info(
        "[TENANT DONE] policy=%s business=%s bookings=%d sent=%d skipped=%d failed=%d",
        policy.name,
        tenant.get("name"),
        len(bookings),
        result["sent"],
        result["skipped"],
        result["failed"],
    )
    return result


def _dispatch_booking(
    tenant: Tenant,
    booking: Booking,
    channel: str,
    store: IdempotencyStore,
    notifier: Notifier,
    policy: DispatchPolicy,
    now: datetime,
) -> str:
    """Return "sent", "failed" or the reason the booking was skipped."""
    booking_id = booking.get("booking_id")
    if booking.get("status") != CONFIRMED:
        return "not_confirmed"

    context = build_context(tenant, booking)
    if not notifier.has_destination(channel, context):
        return "no_destination"

    reason = policy.evaluate(tenant, booking, now)
    if reason is not None:
        return reason

    key = policy.dedup_key(booking)
    if store.contains(key):
        logger.debug("[ALREADY SENT] policy=%s key=%s", policy.name, key)
        return "already_sent"

    starts_at = booking.get("starts_at")
    logger.info(
        "[SENDING] policy=%s business=%s booking=%s channel=%s minutes_until=%s",
        policy.name,
        tenant.get("name"),
        booking_id,
        channel,
        f"{minutes_until(starts_at, now):.1f}" if starts_at is not None else "n/a",
    )
    outcome = notifier.notify(channel, policy.kind, context)
    if not outcome["success"]:
        return "failed"

    store.record(key)
    return "sent"


def summarize(results: Sequence[CycleResult]) -> dict[str, int]:
    return {
        "sent": sum(item["sent"] for item in results),
        "skipped": sum(item["skipped"] for item in results),
        "failed": sum(item["failed"] for item in results),
    }
