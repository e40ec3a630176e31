"""Wall-clock scheduler for the background jobs.

Each job fires at a fixed local time, daily or on one weekday. The next fire
time is derived from the clock before every wait rather than by sleeping a
fixed interval, so a late wakeup or a slow run never shifts the schedule.
Jobs run concurrently with each other; a single job never overlaps itself.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from time import monotonic

logger = logging.getLogger(__name__)

JobAction = Callable[[], Awaitable[None]]


@dataclass(frozen=True)
class ScheduledJob:
    """A job and the local time it fires at.

    ``weekday`` follows ``datetime.weekday()`` (0 is Monday); None means daily.
    """

    name: str
    at: time
    action: JobAction
    weekday: int | None = None


def next_fire_time(now: datetime, at: time, weekday: int | None = None) -> datetime:
    """Return the first occurrence of ``at`` (on ``weekday``) strictly after ``now``."""
    candidate = now.replace(hour=at.hour, minute=at.minute, second=at.second, microsecond=0)
    if weekday is None:
        if candidate <= now:
            candidate += timedelta(days=1)
        return candidate

    candidate += timedelta(days=(weekday - now.weekday()) % 7)
    if candidate <= now:
        candidate += timedelta(days=7)
    return candidate


class JobScheduler:
    """Runs each scheduled job in its own task until stopped."""

    def __init__(
        self,
        jobs: Iterable[ScheduledJob],
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.jobs = list(jobs)
        self._clock = clock
        self._tasks: list[asyncio.Task[None]] = []
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def start(self) -> None:
        """Start one background loop per job."""
        if self.running:
            return
        self._stopping.clear()
        self._tasks = [
            asyncio.create_task(self._run_job(job), name=f"job:{job.name}") for job in self.jobs
        ]
        logger.info("Scheduler started with %d jobs", len(self._tasks))

    async def stop(self) -> None:
        """Stop every loop at its next wakeup and wait for running jobs to finish."""
        if not self._tasks:
            return
        self._stopping.set()
        await asyncio.gather(*self._tasks)
        self._tasks = []
        logger.info("Scheduler stopped")

    async def _run_job(self, job: ScheduledJob) -> None:
        last_fire: datetime | None = None
        while not self._stopping.is_set():
            now = self._clock()
            reference = now if last_fire is None or now > last_fire else last_fire
            fire_at = next_fire_time(reference, job.at, job.weekday)
            delay = (fire_at - now).total_seconds()
            logger.debug("Job %s next fires at %s", job.name, fire_at.isoformat())

            if await self._wait_for_stop(delay):
                return
            last_fire = fire_at
            await self.run_once(job)

    async def _wait_for_stop(self, delay: float) -> bool:
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=max(0.0, delay))
        except TimeoutError:
            return False
        return True

    async def run_once(self, job: ScheduledJob) -> bool:
        """Run ``job`` a single time, logging entry, exit and errors.

        Returns:
            True if the job completed without raising
        """
        logger.info("Job %s starting", job.name)
        started = monotonic()
        try:
            await job.action()
        except Exception:
            logger.error("Job %s failed", job.name, exc_info=True)
            return False
        logger.info(
            "Job %s finished in %.2fs", job.name, monotonic() - started
        )
        return True
