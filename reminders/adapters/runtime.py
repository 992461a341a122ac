"""Process wiring: provider, stores, notifier, cycles, scheduler and API.

Mental model refresher:
- This module is the composition root for a running dispatcher process.
- It maps `Settings` onto concrete adapters and hands them to the
  application layer; dispatch rules still live in application/domain.
- Exactly one dispatcher process should own each dedup store file.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable

from ..application.dispatch import (
    DispatchPolicy,
    confirmation_policy,
    reminder_policy,
    run_dispatch_cycle,
)
from ..application.notifier import Notifier
from ..config import Settings
from ..types import EMAIL, SMS, WHATSAPP
from .idempotency_store import JsonFileIdempotencyStore
from .provider import Base44BookingProvider
from .real_senders import (
    send_email_via_mailgun_from_env,
    send_sms_via_twilio_from_env,
    send_whatsapp_via_twilio_from_env,
    whatsapp_templates_from_env,
)
from .scheduler import ClockAlignedSchedule, FixedIntervalSchedule, PollScheduler

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    settings: Settings
    provider: Any
    notifier: Notifier
    scheduler: PollScheduler
    cycles: dict[str, Callable[[], Any]]


def build_notifier(settings: Settings) -> Notifier:
    channels = set(settings.enabled_channels)
    return Notifier(
        send_email=send_email_via_mailgun_from_env if EMAIL in channels else None,
        send_sms=send_sms_via_twilio_from_env if SMS in channels else None,
        send_whatsapp=send_whatsapp_via_twilio_from_env if WHATSAPP in channels else None,
        whatsapp_templates=whatsapp_templates_from_env() if WHATSAPP in channels else {},
        country_code=settings.phone_country_code,
    )


def build_runtime(
    settings: Settings,
    *,
    provider: Any = None,
    notifier: Notifier | None = None,
) -> Runtime:
    provider = provider or Base44BookingProvider(
        settings.base44_api_url,
        settings.base44_api_key,
        timezone_name=settings.timezone_name,
        default_channel=settings.default_channel,
        timeout_seconds=settings.provider_timeout_seconds,
    )
    notifier = notifier or build_notifier(settings)
    scheduler = PollScheduler(timezone_name=settings.timezone_name)
    cycles: dict[str, Callable[[], Any]] = {}

    reminder_store = _load_store(settings.reminder_store_path, settings)
    cycles["reminders"] = _cycle(
        provider, reminder_store, notifier, reminder_policy(settings.reminder_tolerance_minutes), settings
    )
    if settings.reminder_schedule_mode == "aligned":
        reminder_schedule: Any = ClockAlignedSchedule(settings.reminder_poll_minutes)
    else:
        reminder_schedule = FixedIntervalSchedule(settings.reminder_poll_minutes * 60)
    scheduler.add_cadence("reminders", cycles["reminders"], reminder_schedule)

    if settings.confirmations_enabled:
        confirmation_store = _load_store(settings.confirmation_store_path, settings)
        cycles["confirmations"] = _cycle(
            provider,
            confirmation_store,
            notifier,
            confirmation_policy(settings.confirmation_lookback_hours),
            settings,
        )
        scheduler.add_cadence(
            "confirmations",
            cycles["confirmations"],
            FixedIntervalSchedule(settings.confirmation_poll_seconds),
        )

    return Runtime(
        settings=settings,
        provider=provider,
        notifier=notifier,
        scheduler=scheduler,
        cycles=cycles,
    )


def run_service_forever(settings: Settings, *, serve_http: bool = True) -> int:
    """Run the dispatcher until interrupted. Returns a process exit status."""
    runtime = build_runtime(settings)
    logger.info(
        "[SERVICE START] channels=%s default_channel=%s timezone=%s tolerance_minutes=%g "
        "reminder_schedule=%s/%sm confirmations=%s http=%s",
        ",".join(runtime.notifier.channels()),
        settings.default_channel,
        settings.timezone_name,
        settings.reminder_tolerance_minutes,
        settings.reminder_schedule_mode,
        settings.reminder_poll_minutes,
        settings.confirmations_enabled,
        serve_http,
    )

    try:
        if serve_http:
            _serve_http(runtime)
        else:
            asyncio.run(_run_scheduler_only(runtime.scheduler))
    except KeyboardInterrupt:
        logger.info("[SERVICE STOP] received keyboard interrupt")
        return 0
    except Exception:
        logger.exception("[SERVICE ERROR]")
        return 1
    logger.info("[SERVICE STOP]")
    return 0


def _serve_http(runtime: Runtime) -> None:
    import uvicorn

    from .http_api import create_app

    settings = runtime.settings
    app = create_app(
        notifier=runtime.notifier,
        api_secret=settings.control_api_secret or "",
        default_channel=settings.default_channel,
        provider=runtime.provider,
        scheduler=runtime.scheduler,
        broadcast_delay_seconds=settings.broadcast_send_delay_seconds,
    )
    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_level=settings.log_level.lower())


async def _run_scheduler_only(scheduler: PollScheduler) -> None:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop_event.set)
        except NotImplementedError:
            logger.debug("Signal handlers unavailable for %s", signum)

    await scheduler.start()
    try:
        await stop_event.wait()
    finally:
        await scheduler.stop()


def _load_store(path: str, settings: Settings) -> JsonFileIdempotencyStore:
    store = JsonFileIdempotencyStore(
        path,
        retention_days=settings.dedup_retention_days,
        strict=settings.dedup_strict_persistence,
    )
    store.load()
    return store


def _cycle(
    provider: Any,
    store: JsonFileIdempotencyStore,
    notifier: Notifier,
    policy: DispatchPolicy,
    settings: Settings,
) -> Callable[[], Any]:
    return partial(
        run_dispatch_cycle,
        provider,
        store,
        notifier,
        policy,
        default_channel=settings.default_channel,
    )
