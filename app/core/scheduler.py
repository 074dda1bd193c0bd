import asyncio
import threading
from datetime import datetime, timedelta, timezone

from fastapi import Request
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.base import JobLookupError

from app.core.db import AsyncSessionLocal
from app.core.config import (
    ESCALATION_CHECK_INTERVAL_MINUTES,
    ESCALATION_MIN_INTERVAL_MINUTES,
    ESCALATION_MAX_INTERVAL_MINUTES,
    SCHEDULER_RESTART_DELAY_SECONDS,
    COMPLAINT_CHECK_DELAY_MINUTES,
)
from app.core.exceptions import InvalidInterval, SweepInProgress
from app.services.support.escalation_service import sweep_overdue, check_complaint
from app.utils.datetime_utils import utc_now, ensure_utc
from app.utils.logger import get_logger

logger = get_logger(__name__)

SWEEP_JOB_ID = "escalation_sweep"


def complaint_check_job_id(complaint_id: int) -> str:
    return f"complaint_check_{complaint_id}"


class EscalationScheduler:
    """
    Owns the recurring escalation sweep and the one-off deadline checks.

    At most one sweep runs at a time per instance: a timer fire that finds
    a sweep in flight is skipped, a manual run gets SweepInProgress.
    Stopping removes the job but never cancels a sweep that already started.
    With ``deferred_checks`` off, one-off deadline checks are not scheduled
    at all.
    """

    def __init__(
        self,
        session_factory=AsyncSessionLocal,
        *,
        sweep=None,
        interval_minutes: int = ESCALATION_CHECK_INTERVAL_MINUTES,
        restart_delay_seconds: float = SCHEDULER_RESTART_DELAY_SECONDS,
        deferred_checks: bool = True,
    ):
        self._session_factory = session_factory
        self._sweep = sweep or self._sweep_with_session
        self._interval_minutes = interval_minutes
        self._restart_delay_seconds = restart_delay_seconds
        self._deferred_checks = deferred_checks

        self._lock = threading.Lock()
        self._running = False
        self._scheduler: AsyncIOScheduler | None = None

        self.last_run_at: datetime | None = None
        self.last_result: dict | None = None

    # =====================================================
    # STATE
    # =====================================================
    @property
    def interval_minutes(self) -> int:
        return self._interval_minutes

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def active(self) -> bool:
        return self._scheduler is not None and self._scheduler.get_job(SWEEP_JOB_ID) is not None

    def _try_begin_sweep(self) -> bool:
        with self._lock:
            if self._running:
                return False
            self._running = True
            return True

    def _end_sweep(self) -> None:
        with self._lock:
            self._running = False

    def _ensure_scheduler(self) -> AsyncIOScheduler:
        # Must be called from inside the event loop the jobs should run on
        if self._scheduler is None:
            self._scheduler = AsyncIOScheduler(
                event_loop=asyncio.get_running_loop(),
                timezone=timezone.utc,
            )
            self._scheduler.start()
        return self._scheduler

    # =====================================================
    # LIFECYCLE
    # =====================================================
    def start(self) -> None:
        scheduler = self._ensure_scheduler()
        if self.active:
            logger.info("Escalation scheduler already active")
            return

        scheduler.add_job(
            self._fire,
            "interval",
            minutes=self._interval_minutes,
            id=SWEEP_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        logger.info(
            "Escalation scheduler started",
            extra={"interval_minutes": self._interval_minutes},
        )

    def stop(self) -> None:
        if not self.active:
            return
        try:
            self._scheduler.remove_job(SWEEP_JOB_ID)
        except JobLookupError:
            pass
        logger.info("Escalation scheduler stopped")

    async def restart(self) -> dict:
        self.stop()
        await asyncio.sleep(self._restart_delay_seconds)
        self.start()
        return self.get_status()

    def update_interval(self, minutes: int) -> dict:
        if not (ESCALATION_MIN_INTERVAL_MINUTES <= minutes <= ESCALATION_MAX_INTERVAL_MINUTES):
            raise InvalidInterval(
                f"Interval must be between {ESCALATION_MIN_INTERVAL_MINUTES} "
                f"and {ESCALATION_MAX_INTERVAL_MINUTES} minutes",
                details={"minutes": minutes},
            )

        old = self._interval_minutes
        self.stop()
        self._interval_minutes = minutes
        self.start()

        logger.info(
            "Escalation interval updated",
            extra={"old_interval": old, "new_interval": minutes},
        )
        return self.get_status()

    def shutdown(self) -> None:
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Escalation scheduler shut down")

    def get_status(self) -> dict:
        job = self._scheduler.get_job(SWEEP_JOB_ID) if self._scheduler else None
        return {
            "active": job is not None,
            "running": self.running,
            "interval_minutes": self._interval_minutes,
            "next_run_at": job.next_run_time if job else None,
            "last_run_at": self.last_run_at,
            "last_result": self.last_result,
        }

    # =====================================================
    # SWEEPS
    # =====================================================
    async def _sweep_with_session(self) -> dict:
        async with self._session_factory() as db:
            return await sweep_overdue(db)

    async def _execute(self) -> dict:
        self.last_run_at = utc_now()
        result = await self._sweep()
        self.last_result = result
        return result

    async def _fire(self) -> None:
        if not self._try_begin_sweep():
            logger.warning("Escalation sweep still running, skipping scheduled run")
            return
        try:
            await self._execute()
        except Exception:
            logger.exception("Scheduled escalation sweep failed")
        finally:
            self._end_sweep()

    async def run_manually(self) -> dict:
        if not self._try_begin_sweep():
            raise SweepInProgress()
        try:
            return await self._execute()
        finally:
            self._end_sweep()

    # =====================================================
    # ONE-OFF CHECKS
    # =====================================================
    def schedule_complaint_check(
        self,
        complaint_id: int,
        run_at: datetime | None = None,
        delay_minutes: int = COMPLAINT_CHECK_DELAY_MINUTES,
    ) -> str | None:
        """Date jobs drop themselves after firing; a newer check replaces a pending one."""
        if not self._deferred_checks:
            logger.debug(
                "Deferred checks disabled, complaint check not scheduled",
                extra={"complaint_id": complaint_id},
            )
            return None

        run_at = run_at or utc_now() + timedelta(minutes=delay_minutes)
        job_id = complaint_check_job_id(complaint_id)

        self._ensure_scheduler().add_job(
            self._run_complaint_check,
            "date",
            run_date=run_at,
            args=[complaint_id],
            id=job_id,
            replace_existing=True,
            misfire_grace_time=None,
        )
        logger.debug(
            "Complaint deadline check scheduled",
            extra={"complaint_id": complaint_id, "run_at": run_at.isoformat()},
        )
        return job_id

    def schedule_deadline_check(self, complaint_id: int, deadline: datetime) -> str | None:
        """Check at the deadline itself, or shortly after when it has already passed."""
        deadline = ensure_utc(deadline)
        run_at = deadline if deadline > utc_now() else None
        return self.schedule_complaint_check(complaint_id, run_at=run_at)

    async def _run_complaint_check(self, complaint_id: int) -> None:
        try:
            async with self._session_factory() as db:
                await check_complaint(db, complaint_id)
        except Exception:
            logger.exception("Complaint deadline check failed", extra={"complaint_id": complaint_id})


# =====================================================
# DEPENDENCY
# =====================================================
def get_escalation_scheduler(request: Request) -> EscalationScheduler:
    return request.app.state.escalation_scheduler
