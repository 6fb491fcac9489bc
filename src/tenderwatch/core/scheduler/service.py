"""
APScheduler integration for TenderWatch.

``PipelineScheduler`` owns the single-flight guard: the interval job and
manual triggers both go through it, so at most one pipeline pass runs per
process (and, with the database lock backend, per database).
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from enum import Enum
from typing import Any
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from tenderwatch.core.config.models import AppConfig, LockBackend, SchedulerConfig
from tenderwatch.core.errors import PipelineAlreadyRunningError
from tenderwatch.core.logging import get_logger
from tenderwatch.core.orchestrator.runner import PipelineResult, PipelineRunner
from tenderwatch.core.orchestrator.scraper import ScrapeResult
from tenderwatch.core.scheduler.locks import LockManager, heartbeat, make_holder_id

logger = get_logger("scheduler")

JOB_ID = "tender-pipeline"


class SchedulerState(str, Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"


class PipelineScheduler:
    """Interval and manual triggers funnelled through one guard."""

    def __init__(
        self,
        runner: PipelineRunner,
        config: SchedulerConfig | None = None,
        lock_manager: LockManager | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            runner: Pipeline to execute
            config: Interval, page and lock settings
            lock_manager: Cross-process lock; None keeps the guard in-process
        """
        self.runner = runner
        self.config = config or SchedulerConfig()
        self.lock_manager = lock_manager
        self.holder_id = make_holder_id()

        self._state = SchedulerState.IDLE
        self._scheduler: AsyncIOScheduler | None = None
        self._stop_event: asyncio.Event | None = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SchedulerState.RUNNING

    # -------------------------------------------------------------------------
    # Triggers
    # -------------------------------------------------------------------------

    async def trigger(self, pages: int | None = None, today_only: bool = True) -> ScrapeResult:
        """Run the pipeline now.

        Raises:
            PipelineAlreadyRunningError: A run is already in progress
            ListingUnavailableError: The listing could not be loaded
        """
        if self.is_running:
            raise PipelineAlreadyRunningError()

        pages = self.config.manual_pages if pages is None else pages
        result = await self._run(pages, today_only, trigger="manual")
        return result.scrape

    async def run_scheduled(self) -> PipelineResult | None:
        """Interval job body. Never raises; failures wait for the next tick."""
        if self.is_running:
            logger.warning("Previous pipeline run still in progress; skipping this tick")
            return None

        try:
            return await self._run(self.config.pages, self.config.today_only, trigger="scheduled")
        except PipelineAlreadyRunningError as e:
            logger.warning("Skipping scheduled run: %s", e)
        except Exception:
            logger.exception("Scheduled pipeline run failed; waiting for the next tick")
        return None

    async def _run(self, pages: int, today_only: bool, trigger: str) -> PipelineResult:
        # Flip the guard before the first await so concurrent callers see it
        self._state = SchedulerState.RUNNING
        beat: asyncio.Task[None] | None = None
        locked = False

        try:
            if self.lock_manager is not None:
                locked = await asyncio.to_thread(
                    self.lock_manager.acquire,
                    self.config.lock_name,
                    self.holder_id,
                    self.config.lock_ttl_minutes,
                )
                if not locked:
                    raise PipelineAlreadyRunningError("Scraper is already running in another process")
                beat = asyncio.create_task(
                    heartbeat(
                        self.lock_manager,
                        self.config.lock_name,
                        self.holder_id,
                        self.config.lock_ttl_minutes,
                        self.config.heartbeat_seconds,
                    )
                )

            logger.info("Pipeline run started (trigger=%s, pages=%s, today_only=%s)", trigger, pages, today_only)
            return await self.runner.run(pages, today_only=today_only, trigger=trigger)

        finally:
            try:
                if beat is not None:
                    beat.cancel()
                    try:
                        await beat
                    except asyncio.CancelledError:
                        pass
                    except Exception:
                        logger.exception("Run lock heartbeat failed")
                if locked and self.lock_manager is not None:
                    try:
                        await asyncio.to_thread(self.lock_manager.release, self.config.lock_name, self.holder_id)
                    except SQLAlchemyError:
                        logger.exception("Could not release run lock %s; it expires on its own", self.config.lock_name)
            finally:
                self._state = SchedulerState.IDLE

    # -------------------------------------------------------------------------
    # Interval scheduling
    # -------------------------------------------------------------------------

    def _add_job(self, scheduler: AsyncIOScheduler) -> None:
        tz = ZoneInfo(self.config.timezone)
        options: dict[str, Any] = {
            "id": JOB_ID,
            "name": "tender pipeline",
            "max_instances": 1,
            "coalesce": True,
            "replace_existing": True,
        }
        if self.config.run_on_start:
            options["next_run_time"] = datetime.now(tz)

        scheduler.add_job(
            self.run_scheduled,
            IntervalTrigger(minutes=self.config.interval_minutes, timezone=tz),
            **options,
        )

    async def start(self) -> None:
        """Start scheduler in foreground mode (blocks until ``stop()``)."""
        if self.lock_manager is not None:
            removed = await asyncio.to_thread(self.lock_manager.cleanup_expired)
            if removed:
                logger.info("Removed %d expired run lock(s)", removed)

        self._stop_event = asyncio.Event()
        self._scheduler = AsyncIOScheduler(timezone=ZoneInfo(self.config.timezone))
        self._add_job(self._scheduler)
        self._scheduler.start()

        job = self._scheduler.get_job(JOB_ID)
        logger.info(
            "Scheduler started: every %d minute(s), next run at %s",
            self.config.interval_minutes,
            job.next_run_time if job else "n/a",
        )

        try:
            await self._stop_event.wait()
        finally:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Scheduler stopped")

    def stop(self) -> None:
        """Ask a foreground ``start()`` to return."""
        if self._stop_event is not None:
            self._stop_event.set()


def create_scheduler(
    config: AppConfig,
    session_factory: sessionmaker[Session],
    runner: PipelineRunner,
) -> PipelineScheduler:
    """Build a scheduler with the lock backend selected in configuration."""
    lock_manager = None
    if config.scheduler.lock_backend == LockBackend.DATABASE:
        lock_manager = LockManager(session_factory)
    return PipelineScheduler(runner, config.scheduler, lock_manager)
