"""Interval scheduling of pipeline cycles."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .orchestrator import PipelineOrchestrator
from .stats import CycleStats

logger = logging.getLogger(__name__)

JOB_ID = "wartracker-cycle"
MAX_HISTORY = 96


class PipelineScheduler:
    """Runs ``run_cycle`` on a fixed interval, one cycle at a time."""

    def __init__(
        self,
        orchestrator: PipelineOrchestrator,
        interval_minutes: int = 15,
        run_on_start: bool = True,
        timezone: str = "UTC",
        on_cycle: Optional[Callable[[CycleStats], None]] = None,
    ) -> None:
        if interval_minutes < 1:
            raise ValueError("interval_minutes must be at least 1")

        self.orchestrator = orchestrator
        self.interval_minutes = interval_minutes
        self.run_on_start = run_on_start
        self.on_cycle = on_cycle
        self.history: List[CycleStats] = []

        self._scheduler = AsyncIOScheduler(
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": 60,
            },
            timezone=timezone,
        )
        self._started = False

    async def run_once(self) -> CycleStats:
        """Run a single scheduled cycle and keep its stats."""
        stats = await self.orchestrator.run_cycle(trigger="scheduled")
        self.history.append(stats)
        del self.history[:-MAX_HISTORY]
        if self.on_cycle is not None:
            self.on_cycle(stats)
        return stats

    def start(self) -> None:
        """Register the interval job and start the scheduler (needs a running loop)."""
        if self._started:
            return

        job_options: Dict[str, Any] = {}
        # An explicit next_run_time of None would add the job paused
        if self.run_on_start:
            job_options["next_run_time"] = datetime.now(timezone.utc)

        self._scheduler.add_job(
            self.run_once,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=JOB_ID,
            replace_existing=True,
            **job_options,
        )
        self._scheduler.start()
        self._started = True
        logger.info("Scheduler started, running every %d minutes", self.interval_minutes)

    def stop(self) -> None:
        """Stop the scheduler without waiting for a running cycle."""
        if self._started:
            self._scheduler.shutdown(wait=False)
            self._started = False
            logger.info("Scheduler stopped")

    @property
    def next_run_time(self) -> Optional[datetime]:
        job = self._scheduler.get_job(JOB_ID)
        return job.next_run_time if job is not None else None

    async def serve(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Start and block until ``stop_event`` is set (or forever)."""
        self.start()
        try:
            await (stop_event or asyncio.Event()).wait()
        finally:
            self.stop()
