"""Poll scheduler driving dispatch cycles on a cadence.

APScheduler-based async scheduler. Each cadence (reminders, confirmations)
is one job with its own schedule strategy:

- `FixedIntervalSchedule`: run at start, then every N seconds.
- `ClockAlignedSchedule`: run on wall-clock slot boundaries counted from
  local midnight (every 15 minutes -> :00/:15/:30/:45).

A cadence never overlaps itself: jobs use `max_instances=1` and each cadence
holds a lock, so a tick that arrives while the previous cycle is still
running is skipped. Different cadences run concurrently; cycles are blocking
and run in worker threads.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, tzinfo
from typing import Any, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore[import-not-found]
from apscheduler.triggers.date import DateTrigger  # type: ignore[import-not-found]
from apscheduler.triggers.interval import IntervalTrigger  # type: ignore[import-not-found]
from pytz import timezone

logger = logging.getLogger(__name__)

CycleFn = Callable[[], Any]

MISFIRE_GRACE_SECONDS = 60


def next_slot_boundary(now: datetime, slot_minutes: int, tz: tzinfo | None = None) -> datetime:
    """First slot boundary strictly after `now`.

    Boundaries are multiples of `slot_minutes` counted from local midnight.
    A `now` exactly on a boundary maps to the following boundary.
    """
    if slot_minutes <= 0:
        raise ValueError("slot_minutes must be > 0")

    tz = tz or now.tzinfo
    local = now.astimezone(tz) if (tz is not None and now.tzinfo is not None) else now
    wall = local.replace(tzinfo=None)
    midnight = wall.replace(hour=0, minute=0, second=0, microsecond=0)
    slot_seconds = slot_minutes * 60
    elapsed = (wall - midnight).total_seconds()
    slots_done = int(elapsed // slot_seconds)
    boundary = midnight + timedelta(seconds=(slots_done + 1) * slot_seconds)

    if tz is None:
        return boundary
    if hasattr(tz, "localize"):
        return tz.localize(boundary)
    return boundary.replace(tzinfo=tz)


def seconds_until_next_slot(now: datetime, slot_minutes: int, tz: tzinfo | None = None) -> float:
    return (next_slot_boundary(now, slot_minutes, tz) - now).total_seconds()


class FixedIntervalSchedule:
    """Run immediately (optionally), then every `seconds`."""

    def __init__(self, seconds: float, run_immediately: bool = True):
        if seconds <= 0:
            raise ValueError("seconds must be > 0")
        self.seconds = seconds
        self.run_immediately = run_immediately

    def describe(self) -> str:
        return f"every {self.seconds:g}s"

    def schedule(
        self,
        scheduler: Any,
        func: Callable[..., Any],
        job_id: str,
        tz: tzinfo,
        now: datetime,
    ) -> None:
        kwargs: dict[str, Any] = {}
        if self.run_immediately:
            kwargs["next_run_time"] = now
        scheduler.add_job(
            func,
            IntervalTrigger(seconds=self.seconds, timezone=tz),
            id=job_id,
            name=f"{job_id} ({self.describe()})",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=MISFIRE_GRACE_SECONDS,
            **kwargs,
        )


class ClockAlignedSchedule:
    """Run on every `slot_minutes` boundary of the wall clock."""

    def __init__(self, slot_minutes: int, run_immediately: bool = True):
        if slot_minutes <= 0:
            raise ValueError("slot_minutes must be > 0")
        self.slot_minutes = slot_minutes
        self.run_immediately = run_immediately

    def describe(self) -> str:
        return f"every {self.slot_minutes}m aligned"

    def schedule(
        self,
        scheduler: Any,
        func: Callable[..., Any],
        job_id: str,
        tz: tzinfo,
        now: datetime,
    ) -> None:
        first_boundary = next_slot_boundary(now, self.slot_minutes, tz)
        scheduler.add_job(
            func,
            IntervalTrigger(minutes=self.slot_minutes, start_date=first_boundary, timezone=tz),
            id=job_id,
            name=f"{job_id} ({self.describe()})",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=MISFIRE_GRACE_SECONDS,
        )
        if self.run_immediately:
            scheduler.add_job(
                func,
                DateTrigger(run_date=now, timezone=tz),
                id=f"{job_id}-startup",
                name=f"{job_id} (startup run)",
                replace_existing=True,
                misfire_grace_time=MISFIRE_GRACE_SECONDS,
            )
        logger.info(
            "[SCHEDULE] job=%s first_aligned_run=%s",
            job_id,
            first_boundary.isoformat(),
        )


class PollScheduler:
    """Drives independent cadences of dispatch cycles.

    Attributes:
        tz: Reference timezone used for clock alignment.
        _scheduler: APScheduler instance, created on `start()`.
        _cadences: Registered cycle callables and their schedules.
    """

    def __init__(self, timezone_name: str = "Asia/Jerusalem"):
        self.tz = timezone(timezone_name)
        self._scheduler: AsyncIOScheduler | None = None
        self._cadences: dict[str, tuple[CycleFn, Any]] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._is_running = False

    def add_cadence(self, name: str, cycle: CycleFn, schedule: Any) -> None:
        if self._is_running:
            raise RuntimeError("Cannot add a cadence to a running scheduler")
        self._cadences[name] = (cycle, schedule)
        self._locks[name] = asyncio.Lock()

    async def start(self) -> None:
        if self._is_running:
            logger.warning("[SCHEDULER] already running")
            return

        scheduler = AsyncIOScheduler(timezone=self.tz)
        now = datetime.now(tz=self.tz)
        for name, (_cycle, schedule) in self._cadences.items():
            schedule.schedule(scheduler, self.runner(name), name, self.tz, now)

        scheduler.start()
        self._scheduler = scheduler
        self._is_running = True
        logger.info(
            "[SCHEDULER START] timezone=%s cadences=%s",
            self.tz,
            ", ".join(f"{name}={item[1].describe()}" for name, item in self._cadences.items()),
        )

    async def stop(self) -> None:
        """Stop scheduling. In-flight cycles are abandoned, not awaited."""
        if self._scheduler is not None and self._is_running:
            self._scheduler.shutdown(wait=False)
            self._is_running = False
            logger.info("[SCHEDULER STOP]")

    def runner(self, name: str) -> Callable[[], Any]:
        """Coroutine function running one cycle of cadence `name`."""
        cycle, _schedule = self._cadences[name]
        lock = self._locks[name]

        async def run() -> None:
            if lock.locked():
                logger.warning("[CYCLE SKIP] cadence=%s reason=previous_cycle_running", name)
                return
            async with lock:
                try:
                    await asyncio.to_thread(cycle)
                except Exception:
                    logger.exception("[CYCLE ERROR] cadence=%s", name)

        return run

    @property
    def is_running(self) -> bool:
        return self._is_running

    def get_jobs_info(self) -> list[dict[str, Any]]:
        if not self._scheduler:
            return []
        return [
            {
                "id": job.id,
                "name": job.name,
                "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
            }
            for job in self._scheduler.get_jobs()
        ]
