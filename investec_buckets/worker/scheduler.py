"""
Hourly sync scheduler.

One cron job fires at minute 0 of every hour (`0 0 * * * *`). Each tick opens
its own Database handle, runs the sync, and disposes the handle, so a broken
pool never outlives the tick that hit it.
"""

import asyncio
from datetime import timezone
from typing import Awaitable, Callable, Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from investec_buckets.errors import DbError
from investec_buckets.models.database import Database
from investec_buckets.pipeline.sync import SyncOrchestrator, SyncStats

logger = structlog.get_logger(__name__)

JOB_ID = "hourly_sync"


def hourly_trigger() -> CronTrigger:
    return CronTrigger(second=0, minute=0, timezone=timezone.utc)


class SyncScheduler:
    """
    Owns the cron loop. Ticks run as tracked tasks so shutdown() can stop
    future ticks and still let in-flight ones finish.
    """

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        open_database: Callable[[], Awaitable[Database]],
    ):
        self.orchestrator = orchestrator
        self._open_database = open_database
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._inflight: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        """Arm the cron job. Must be called from inside the running event loop."""
        self._scheduler = AsyncIOScheduler(timezone=timezone.utc)
        self._scheduler.add_job(
            self._fire,
            hourly_trigger(),
            id=JOB_ID,
            name="Investec transaction sync",
            coalesce=True,
            misfire_grace_time=300,
        )
        self._scheduler.start()
        job = self._scheduler.get_job(JOB_ID)
        logger.info("scheduler_started", next_run=str(job.next_run_time) if job else None)

    async def _fire(self) -> None:
        # Ticks run detached (APScheduler cancels running coroutine jobs on
        # shutdown); at most one at a time
        if self._inflight:
            logger.warning("tick_skipped_previous_still_running", inflight=len(self._inflight))
            return
        task = asyncio.create_task(self.tick())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def tick(self) -> Optional[SyncStats]:
        """Open a fresh DB handle and run one sync. Never raises on DB init failure."""
        try:
            database = await self._open_database()
        except DbError as e:
            logger.error("tick_database_init_failed", error=str(e))
            return None

        try:
            return await self.orchestrator.run_sync(database, trigger="schedule")
        finally:
            await database.dispose()

    async def shutdown(self) -> None:
        """Stop future ticks, then wait for any tick already running."""
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        if self._inflight:
            logger.info("waiting_for_inflight_ticks", count=len(self._inflight))
            await asyncio.gather(*list(self._inflight), return_exceptions=True)
        logger.info("scheduler_stopped")
