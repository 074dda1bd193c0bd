"""
EscalationScheduler: lifecycle, interval changes, sweep exclusion, one-off checks.
"""
import asyncio
from datetime import timedelta

import pytest
import pytest_asyncio

from app.core import scheduler as scheduler_module
from app.core.exceptions import InvalidInterval, SweepInProgress
from app.core.scheduler import EscalationScheduler, SWEEP_JOB_ID, complaint_check_job_id
from app.utils.datetime_utils import utc_now


class BlockingSweep:
    """Sweep that parks until released so the running state can be observed."""

    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        self.started.set()
        await self.release.wait()
        return {"escalated_count": 0, "error_count": 0, "details": []}


@pytest.fixture()
def blocking_sweep():
    return BlockingSweep()


@pytest_asyncio.fixture()
async def sweeper(blocking_sweep):
    sched = EscalationScheduler(sweep=blocking_sweep, restart_delay_seconds=0)
    yield sched
    blocking_sweep.release.set()
    sched.shutdown()


# ===================== LIFECYCLE =====================


async def test_start_and_stop(sweeper):
    assert sweeper.get_status()["active"] is False

    sweeper.start()
    status = sweeper.get_status()
    assert status["active"] is True
    assert status["interval_minutes"] == 60
    assert status["next_run_at"] is not None

    # Idempotent
    sweeper.start()
    assert sweeper.active

    sweeper.stop()
    assert sweeper.get_status()["active"] is False
    assert sweeper.get_status()["next_run_at"] is None


async def test_restart_keeps_interval(sweeper):
    sweeper.start()
    sweeper.update_interval(30)

    status = await sweeper.restart()

    assert status["active"] is True
    assert status["interval_minutes"] == 30


async def test_update_interval_out_of_range(sweeper):
    with pytest.raises(InvalidInterval):
        sweeper.update_interval(3)
    with pytest.raises(InvalidInterval):
        sweeper.update_interval(1441)
    assert sweeper.interval_minutes == 60


async def test_update_interval_applies_new_period(sweeper):
    sweeper.start()

    status = sweeper.update_interval(120)

    assert status["interval_minutes"] == 120
    assert status["active"] is True
    job = sweeper._scheduler.get_job(SWEEP_JOB_ID)
    assert job.trigger.interval == timedelta(minutes=120)


# ===================== MUTUAL EXCLUSION =====================


async def test_manual_run_while_running_is_rejected(sweeper, blocking_sweep):
    first = asyncio.create_task(sweeper.run_manually())
    await blocking_sweep.started.wait()

    assert sweeper.get_status()["running"] is True
    with pytest.raises(SweepInProgress):
        await sweeper.run_manually()

    blocking_sweep.release.set()
    result = await first

    assert result["escalated_count"] == 0
    assert sweeper.running is False
    assert sweeper.get_status()["last_result"] == result
    assert sweeper.get_status()["last_run_at"] is not None


async def test_timer_fire_during_sweep_is_skipped(sweeper, blocking_sweep):
    first = asyncio.create_task(sweeper.run_manually())
    await blocking_sweep.started.wait()

    await sweeper._fire()
    assert blocking_sweep.calls == 1

    blocking_sweep.release.set()
    await first


async def test_stop_does_not_cancel_running_sweep(sweeper, blocking_sweep):
    sweeper.start()
    first = asyncio.create_task(sweeper.run_manually())
    await blocking_sweep.started.wait()

    sweeper.stop()
    assert sweeper.running is True

    blocking_sweep.release.set()
    result = await first
    assert result["error_count"] == 0


async def test_failed_sweep_releases_the_flag():
    async def broken():
        raise RuntimeError("boom")

    sched = EscalationScheduler(sweep=broken)
    try:
        with pytest.raises(RuntimeError):
            await sched.run_manually()
        assert sched.running is False

        # Timer-driven failures are logged, not raised
        await sched._fire()
        assert sched.running is False
    finally:
        sched.shutdown()


# ===================== ONE-OFF CHECKS =====================


async def test_complaint_check_runs_once_and_is_removed(sweeper, monkeypatch):
    checked = []

    async def fake_check(db, complaint_id):
        checked.append(complaint_id)
        return False

    class NullSession:
        async def __aenter__(self):
            return None

        async def __aexit__(self, *exc):
            return False

    monkeypatch.setattr(scheduler_module, "check_complaint", fake_check)
    sweeper._session_factory = NullSession

    job_id = sweeper.schedule_complaint_check(7, run_at=utc_now() + timedelta(milliseconds=100))
    assert sweeper._scheduler.get_job(job_id) is not None

    for _ in range(50):
        if checked:
            break
        await asyncio.sleep(0.05)
    await asyncio.sleep(0.05)

    assert checked == [7]
    assert sweeper._scheduler.get_job(job_id) is None


async def test_rescheduling_replaces_pending_check(sweeper):
    later = utc_now() + timedelta(hours=2)
    sweeper.schedule_complaint_check(11, run_at=utc_now() + timedelta(hours=1))
    sweeper.schedule_complaint_check(11, run_at=later)

    jobs = [j for j in sweeper._scheduler.get_jobs() if j.id == complaint_check_job_id(11)]
    assert len(jobs) == 1
    assert jobs[0].next_run_time == later


async def test_deadline_check_uses_delay_for_past_deadlines(sweeper):
    before = utc_now()
    sweeper.schedule_deadline_check(12, before - timedelta(hours=1))

    job = sweeper._scheduler.get_job(complaint_check_job_id(12))
    assert job.next_run_time >= before + timedelta(minutes=5)

    deadline = before + timedelta(hours=6)
    sweeper.schedule_deadline_check(12, deadline)
    assert sweeper._scheduler.get_job(complaint_check_job_id(12)).next_run_time == deadline


async def test_deferred_checks_disabled_schedules_nothing():
    sched = EscalationScheduler(deferred_checks=False)

    assert sched.schedule_complaint_check(13, run_at=utc_now() + timedelta(hours=1)) is None
    assert sched.schedule_deadline_check(13, utc_now() - timedelta(hours=1)) is None

    # No job store was ever started for the one-off checks
    assert sched._scheduler is None
    assert sched.active is False
