"""
APScheduler Configuration for Maintenance Jobs

Runs periodic in-process housekeeping, currently the rate-limit bucket
sweep. Jobs are rebuilt at every startup, so the in-memory job store is
enough; nothing needs to survive a restart.
"""
import logging
from typing import Callable

from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)


class MaintenanceScheduler:
    """
    AsyncIOScheduler owned by the application context.

    Configuration:
    - Coalesce: True (a late sweep runs once, not once per missed tick)
    - Max instances: 1 per job (sweeps never overlap)
    """

    def __init__(self):
        self._scheduler = AsyncIOScheduler(
            jobstores={"default": MemoryJobStore()},
            executors={"default": AsyncIOExecutor()},
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": 60,
            },
            timezone="UTC"
        )

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def add_interval_job(self, job_id: str, job_func: Callable, seconds: int, **kwargs) -> str:
        """
        Schedule job_func every `seconds`.

        Example:
            scheduler.add_interval_job("rate_limit_sweep", limiter.sweep, seconds=300)
        """
        self._scheduler.add_job(
            job_func,
            trigger=IntervalTrigger(seconds=seconds),
            id=job_id,
            name=job_id,
            replace_existing=True,
            kwargs=kwargs
        )
        logger.info(f"Added maintenance job: {job_id}, interval={seconds}s")
        return job_id

    def get_job(self, job_id: str):
        return self._scheduler.get_job(job_id)

    def start(self) -> None:
        """Start the scheduler; must be called with a running event loop."""
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info(f"Scheduler started with {len(self._scheduler.get_jobs())} jobs")
        else:
            logger.warning("Scheduler already running")

    def shutdown(self, wait: bool = True) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
            logger.info(f"Scheduler shutdown (wait={wait})")
