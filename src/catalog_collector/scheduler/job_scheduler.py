"""Periodic execution of the resolver job."""

import asyncio
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..utils.logging import get_logger


JOB_ID = "resolver_collector"


class SchedulerError(Exception):
    """Raised when scheduler operations fail."""
    pass


class JobScheduler:
    """Runs a job on an interval, never overlapping two runs.

    A fatal error raised by the job stops the scheduler; ``wait`` then
    re-raises it so the process can exit with a failure.
    """

    def __init__(
        self,
        job: Callable[[], Awaitable[bool]],
        interval_minutes: int,
        run_immediately: bool = True
    ):
        """Initialize the job scheduler.

        Args:
            job: Coroutine function returning True on success and False on a transient failure
            interval_minutes: Minutes between runs
            run_immediately: Start the first run without waiting an interval
        """
        if interval_minutes < 1:
            raise SchedulerError("Interval must be at least 1 minute")

        self.job = job
        self.interval_minutes = interval_minutes
        self.run_immediately = run_immediately
        self.logger = get_logger(self.__class__.__name__)

        self.scheduler = AsyncIOScheduler(
            job_defaults={
                'coalesce': True,  # Combine multiple pending executions
                'max_instances': 1,  # Only one run against the checkpoint at a time
                'misfire_grace_time': 300
            }
        )

        self.runs = 0
        self.failed_runs = 0
        self.fatal_error: Optional[BaseException] = None
        self._stopped: Optional[asyncio.Event] = None

    async def start(self) -> None:
        """Start the scheduler and add the job."""
        if self.scheduler.running:
            self.logger.warning("Scheduler is already running")
            return

        self._stopped = asyncio.Event()
        trigger = IntervalTrigger(minutes=self.interval_minutes)
        kwargs: dict[str, Any] = {}
        if self.run_immediately:
            kwargs["next_run_time"] = datetime.now(timezone.utc)

        try:
            self.scheduler.add_job(
                self._execute,
                trigger=trigger,
                id=JOB_ID,
                name="Resolver collector",
                replace_existing=True,
                **kwargs
            )
            self.scheduler.start()
        except Exception as e:
            self.logger.error("Failed to start scheduler", error=str(e))
            raise SchedulerError(f"Failed to start scheduler: {e}") from e

        self.logger.info("Job scheduler started", interval_minutes=self.interval_minutes)

    async def stop(self) -> None:
        """Stop the scheduler."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            self.logger.info("Job scheduler stopped", runs=self.runs, failed_runs=self.failed_runs)
        if self._stopped is not None:
            self._stopped.set()

    async def wait(self) -> None:
        """Wait until the scheduler is stopped.

        Raises:
            Exception: The fatal error that stopped the scheduler, if any
        """
        if self._stopped is None:
            raise SchedulerError("Scheduler has not been started")

        await self._stopped.wait()
        await self.stop()
        if self.fatal_error is not None:
            raise self.fatal_error

    async def _execute(self) -> None:
        self.runs += 1
        try:
            succeeded = await self.job()
        except Exception as e:
            self.fatal_error = e
            self.logger.error("Job failed fatally, stopping scheduler", run=self.runs, error=str(e), exc_info=True)
            self._stopped.set()
            return

        if not succeeded:
            self.failed_runs += 1
            self.logger.warning("Job did not fully succeed, retrying on the next run", run=self.runs)
