"""
Background jobs.

APScheduler's AsyncIOScheduler drives three interval jobs on the app's
event loop:

    alert_evaluation       RuleScheduler.run_sweep        every evaluation_interval_seconds
    notification_delivery  DeliveryDispatcher.run_retry_sweep  every delivery_interval_seconds
    cleanup                run_cleanup                    every cleanup_interval_hours

Jobs use max_instances=1 and coalesce=True; the sweeps also keep their own
running flags so a manual run-once cannot overlap a scheduled run.

APScheduler cancels the coroutines it is still awaiting when it shuts down,
so a scheduled fire only launches the run as a task owned by the manager.
Stopping the manager prevents further runs; in-flight runs finish, and
`wait_for_inflight()` lets the app lifespan wait for them.
"""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore[import-untyped]
from apscheduler.triggers.interval import IntervalTrigger  # type: ignore[import-untyped]
from sqlalchemy import and_, delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from apiwatch.core.config import settings
from apiwatch.core.constants import DeliveryStatus
from apiwatch.core.db import AsyncSessionLocal, utcnow
from apiwatch.core.exceptions import JobError
from apiwatch.models import Alert, AlertDelivery, AlertRule
from apiwatch.services.dispatcher import DeliveryDispatcher
from apiwatch.services.scheduler import RuleScheduler

logger = logging.getLogger(__name__)

ALERT_EVALUATION = "alert_evaluation"
NOTIFICATION_DELIVERY = "notification_delivery"
CLEANUP = "cleanup"
JOB_NAMES = (ALERT_EVALUATION, NOTIFICATION_DELIVERY, CLEANUP)


# =============================================================================
# RETENTION CLEANUP
# =============================================================================


@dataclass
class CleanupResult:
    alerts_deleted: int = 0
    deliveries_deleted: int = 0
    rules_deleted: int = 0
    started_at: Optional[datetime] = None
    duration_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


async def run_cleanup(
    session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
    now: Optional[datetime] = None,
) -> CleanupResult:
    """
    Delete data past its retention period.

    - Resolved alerts older than alert_retention_days (with their deliveries)
    - Sent/failed deliveries older than delivery_retention_days
    - Inactive rules not updated for rule_inactive_days
    """
    started = time.monotonic()
    now = now or utcnow()
    summary = CleanupResult(started_at=now)

    async with session_factory() as session:
        deliveries = await session.execute(
            delete(AlertDelivery).where(
                AlertDelivery.status.in_(sorted(DeliveryStatus.TERMINAL)),
                AlertDelivery.created_at < now - timedelta(days=settings.delivery_retention_days),
            )
        )
        alerts = await session.execute(
            delete(Alert).where(
                and_(
                    Alert.is_resolved == True,  # noqa: E712
                    Alert.created_at < now - timedelta(days=settings.alert_retention_days),
                )
            )
        )
        rules = await session.execute(
            delete(AlertRule).where(
                AlertRule.is_active == False,  # noqa: E712
                AlertRule.updated_at < now - timedelta(days=settings.rule_inactive_days),
            )
        )
        await session.commit()

    summary.deliveries_deleted = deliveries.rowcount or 0
    summary.alerts_deleted = alerts.rowcount or 0
    summary.rules_deleted = rules.rowcount or 0
    summary.duration_ms = int((time.monotonic() - started) * 1000)

    logger.info(
        "🧹 Cleanup: %d alerts, %d deliveries, %d rules deleted",
        summary.alerts_deleted, summary.deliveries_deleted, summary.rules_deleted,
    )
    return summary


# =============================================================================
# JOB MANAGER
# =============================================================================


@dataclass
class JobState:
    last_run: Optional[datetime] = None
    last_result: Optional[dict[str, Any]] = None
    running: bool = False


class JobManager:
    """Owns the APScheduler instance and the per-job bookkeeping."""

    def __init__(
        self,
        scheduler: Optional[RuleScheduler] = None,
        dispatcher: Optional[DeliveryDispatcher] = None,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
    ):
        self.session_factory = session_factory
        self.dispatcher = dispatcher or DeliveryDispatcher(session_factory)
        self.rule_scheduler = scheduler or RuleScheduler(session_factory, dispatcher=self.dispatcher)
        self._aps: Optional[AsyncIOScheduler] = None
        self._inflight: set[asyncio.Task] = set()
        self._state = {name: JobState() for name in JOB_NAMES}
        self._runners: dict[str, Callable[[], Awaitable[Any]]] = {
            ALERT_EVALUATION: self.rule_scheduler.run_sweep,
            NOTIFICATION_DELIVERY: self.dispatcher.run_retry_sweep,
            CLEANUP: lambda: run_cleanup(self.session_factory),
        }

    @property
    def is_running(self) -> bool:
        return self._aps is not None and self._aps.running

    def start(self) -> None:
        """
        Schedule the interval jobs.

        Raises:
            JobError: If the manager is already running
        """
        if self.is_running:
            raise JobError("Job manager is already running")

        intervals = {
            ALERT_EVALUATION: IntervalTrigger(seconds=settings.evaluation_interval_seconds),
            NOTIFICATION_DELIVERY: IntervalTrigger(seconds=settings.delivery_interval_seconds),
            CLEANUP: IntervalTrigger(hours=settings.cleanup_interval_hours),
        }

        self._aps = AsyncIOScheduler(timezone="UTC")
        for name, trigger in intervals.items():
            self._aps.add_job(
                self._scheduled,
                trigger=trigger,
                args=[name],
                id=name,
                name=name,
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )
        self._aps.start()
        logger.info(
            "⏱️  Job manager started (evaluation every %ss, delivery every %ss, cleanup every %sh)",
            settings.evaluation_interval_seconds,
            settings.delivery_interval_seconds,
            settings.cleanup_interval_hours,
        )

    def stop(self) -> None:
        """
        Stop scheduling further runs. In-flight runs complete; they are
        tasks owned by the manager, not by APScheduler's executor.

        Raises:
            JobError: If the manager is not running
        """
        if not self.is_running:
            raise JobError("Job manager is not running")

        self._aps.shutdown(wait=False)
        self._aps = None
        logger.info("Job manager stopped")

    async def run_once(self, name: str) -> dict[str, Any]:
        """
        Run one job immediately and return its result.

        Raises:
            JobError: Unknown job, or the job is already running
        """
        if name not in self._runners:
            raise JobError(f"Unknown job: {name}", details={"jobs": list(JOB_NAMES)})
        if self._job_running(name):
            raise JobError(f"Job {name} is already running")

        logger.info("Manual run of %s", name)
        return await self._run(name)

    async def _scheduled(self, name: str) -> None:
        if self._job_running(name):
            logger.info("Job %s still running, skipping this interval", name)
            return

        self._state[name].running = True
        task = asyncio.create_task(self._run_logged(name), name=f"apiwatch-job-{name}")
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _run_logged(self, name: str) -> None:
        try:
            await self._run(name)
        except Exception:
            logger.exception("Scheduled job %s failed", name)

    async def wait_for_inflight(self, timeout: Optional[float] = None) -> None:
        """Wait for scheduled runs that were already started to complete."""
        if not self._inflight:
            return
        logger.info("Waiting for %d running job(s) to finish", len(self._inflight))
        _, pending = await asyncio.wait(set(self._inflight), timeout=timeout)
        if pending:
            logger.warning("%d job(s) still running after %ss", len(pending), timeout)

    async def _run(self, name: str) -> dict[str, Any]:
        state = self._state[name]
        state.running = True
        try:
            result = await self._runners[name]()
        finally:
            state.running = False
        state.last_run = utcnow()
        state.last_result = result.to_dict()
        return state.last_result

    def _job_running(self, name: str) -> bool:
        if name == ALERT_EVALUATION:
            return self.rule_scheduler.is_running
        if name == NOTIFICATION_DELIVERY:
            return self.dispatcher.is_running
        return self._state[name].running

    def status(self) -> dict[str, Any]:
        jobs = []
        for name in JOB_NAMES:
            state = self._state[name]
            next_run = None
            if self.is_running:
                job = self._aps.get_job(name)
                if job is not None and job.next_run_time is not None:
                    next_run = job.next_run_time.astimezone(timezone.utc).replace(tzinfo=None)
            jobs.append({
                "name": name,
                "is_running": self._job_running(name),
                "last_run": state.last_run,
                "last_result": state.last_result,
                "next_run": next_run,
            })
        return {"scheduler_running": self.is_running, "jobs": jobs}


# Process-wide instance used by the app lifespan and the admin routes
job_manager = JobManager()
