"""
SLA External Service Integrations
==================================

APScheduler wrapper that drives the periodic jobs:
- escalation scan
- notification outbox delivery
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from servicedesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class ServiceDeskScheduler:
    """
    Wrapper for APScheduler for background jobs.

    Jobs are registered before ``start``; every job runs with
    ``max_instances=1`` so a slow pass is never overlapped by the next tick.
    """

    def __init__(self, misfire_grace_time: int = 60):
        self.misfire_grace_time = misfire_grace_time
        self._jobs: List[Dict[str, Any]] = []
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    def add_interval_job(
        self,
        job_func: Callable[[], Awaitable[Any]],
        seconds: int,
        job_id: str,
        name: Optional[str] = None,
    ) -> None:
        self._jobs.append({"func": job_func, "seconds": seconds, "id": job_id, "name": name or job_id})

    async def start(self) -> None:
        """Start the scheduler with every registered job."""
        if self._running:
            logger.warning("Scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()

        for job in self._jobs:
            self._scheduler.add_job(
                job["func"],
                "interval",
                seconds=job["seconds"],
                id=job["id"],
                name=job["name"],
                misfire_grace_time=self.misfire_grace_time,
                max_instances=1,
                coalesce=True,
                replace_existing=True
            )

        self._scheduler.start()
        self._running = True

        logger.info(
            "Scheduler started",
            extra={"jobs": {job["id"]: job["seconds"] for job in self._jobs}}
        )

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=True)

        self._running = False
        logger.info("Scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def job_ids(self) -> List[str]:
        return [job["id"] for job in self._jobs]
