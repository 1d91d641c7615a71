"""
Job scheduling for periodic store work (auto-sync).

Two interchangeable schedulers share one small interface:
  - BackgroundJobScheduler: APScheduler BackgroundScheduler, used in production
  - ManualScheduler: nothing runs until advance() is called; used in tests
"""

from __future__ import annotations

import logging
from typing import Callable, Protocol

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler

logger = logging.getLogger(__name__)


class Scheduler(Protocol):
    def add_interval_job(self, func: Callable[[], object], seconds: float, job_id: str) -> None: ...
    def remove_job(self, job_id: str) -> None: ...
    def has_job(self, job_id: str) -> bool: ...
    def shutdown(self) -> None: ...


class BackgroundJobScheduler:
    """Thin wrapper over APScheduler's BackgroundScheduler; started lazily."""

    def __init__(self) -> None:
        self._scheduler = BackgroundScheduler(daemon=True)

    def add_interval_job(self, func: Callable[[], object], seconds: float, job_id: str) -> None:
        self._scheduler.add_job(
            func=func,
            trigger="interval",
            seconds=seconds,
            id=job_id,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("Background scheduler started")

    def remove_job(self, job_id: str) -> None:
        try:
            self._scheduler.remove_job(job_id)
        except JobLookupError:
            pass

    def has_job(self, job_id: str) -> bool:
        return self._scheduler.get_job(job_id) is not None

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)


class ManualScheduler:
    """Deterministic scheduler: time only moves when advance() is called."""

    def __init__(self) -> None:
        self.now = 0.0
        self._jobs: dict[str, list] = {}  # job_id -> [func, interval, next_due]

    def add_interval_job(self, func: Callable[[], object], seconds: float, job_id: str) -> None:
        if seconds <= 0:
            raise ValueError("interval must be positive")
        self._jobs[job_id] = [func, seconds, self.now + seconds]

    def remove_job(self, job_id: str) -> None:
        self._jobs.pop(job_id, None)

    def has_job(self, job_id: str) -> bool:
        return job_id in self._jobs

    def advance(self, seconds: float) -> int:
        """Move the clock forward, running every job that falls due. Returns runs."""
        target = self.now + seconds
        runs = 0
        while True:
            due = [
                (job[2], job_id) for job_id, job in self._jobs.items() if job[2] <= target
            ]
            if not due:
                break
            next_due, job_id = min(due)
            job = self._jobs[job_id]
            self.now = next_due
            job[2] = next_due + job[1]
            job[0]()
            runs += 1
        self.now = target
        return runs

    def shutdown(self) -> None:
        self._jobs.clear()


def init_scheduler(config: dict) -> Scheduler:
    """Scheduler for the configured environment."""
    if config.get("TESTING"):
        return ManualScheduler()
    return BackgroundJobScheduler()
