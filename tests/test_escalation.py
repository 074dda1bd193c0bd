"""
Escalation: single-record escalate, the overdue sweep, previews and deferred checks.
"""
from datetime import timedelta

import pytest

from app.core.exceptions import AlreadyEscalated, TerminalState
from app.models.enums.complaint_status import ComplaintStatus
from app.models.users.user_models import User
from app.services.support import escalation_service
from app.services.support.escalation_service import (
    escalate_complaint,
    manual_escalate,
    sweep_overdue,
    preview_escalations,
    get_at_risk_complaints,
    check_complaint,
)
from app.services.support.complaint_service import get_complaint
from app.utils.datetime_utils import utc_now


class RecordingGateway:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.escalated = []
        self.summaries = []

    async def notify_escalated(self, complaint, reason):
        if self.fail:
            raise ConnectionError("mail relay down")
        self.escalated.append((complaint.id, reason))

    async def notify_assigned(self, complaint, staff, assigner):
        pass

    async def notify_escalation_summary(self, summary):
        if self.fail:
            raise ConnectionError("mail relay down")
        self.summaries.append(summary)


async def _overdue(make_complaint, hours=3, status=ComplaintStatus.IN_PROGRESS, **kwargs):
    now = utc_now()
    return await make_complaint(
        status=status,
        created_at=now - timedelta(hours=hours + 24),
        deadline=now - timedelta(hours=hours, minutes=5),
        **kwargs,
    )


# ===================== ESCALATE =====================


async def test_escalate_sets_sub_record_and_history(db_session, seed_data, make_complaint):
    complaint_id = await _overdue(make_complaint)
    admin = await db_session.get(User, seed_data["admin"])

    complaint = await escalate_complaint(db_session, complaint_id, admin)

    assert complaint.is_escalated is True
    assert complaint.status == ComplaintStatus.ESCALATED
    assert complaint.escalated_by_id == seed_data["admin"]
    assert complaint.escalated_at is not None
    assert complaint.escalation_reason == "Deadline exceeded by 3 hours"
    assert complaint.status_history[-1].status == ComplaintStatus.ESCALATED
    assert complaint.status_history[-1].remarks == "Deadline exceeded by 3 hours"


async def test_escalate_twice_raises_already_escalated(db_session, seed_data, make_complaint):
    complaint_id = await _overdue(make_complaint)

    await escalate_complaint(db_session, complaint_id, None)
    with pytest.raises(AlreadyEscalated):
        await escalate_complaint(db_session, complaint_id, None)

    complaint = await get_complaint(db_session, complaint_id)
    assert len([h for h in complaint.status_history if h.status == ComplaintStatus.ESCALATED]) == 1


@pytest.mark.parametrize("status", [ComplaintStatus.RESOLVED, ComplaintStatus.CLOSED])
async def test_escalate_terminal_raises(db_session, make_complaint, status):
    complaint_id = await _overdue(make_complaint, status=status)

    with pytest.raises(TerminalState):
        await escalate_complaint(db_session, complaint_id, None)


async def test_manual_escalation_default_reason_and_notification(db_session, seed_data, make_complaint):
    complaint_id = await make_complaint(status=ComplaintStatus.ASSIGNED, assigned_to_id=seed_data["it_staff"])
    admin = await db_session.get(User, seed_data["admin"])
    gateway = RecordingGateway()

    complaint = await manual_escalate(db_session, complaint_id, admin, gateway=gateway)

    assert complaint.escalation_reason == "Manual escalation by administrator"
    assert gateway.escalated == [(complaint_id, "Manual escalation by administrator")]


async def test_manual_escalation_survives_gateway_failure(db_session, seed_data, make_complaint):
    complaint_id = await make_complaint()
    admin = await db_session.get(User, seed_data["admin"])

    complaint = await manual_escalate(db_session, complaint_id, admin, "VIP customer", gateway=RecordingGateway(fail=True))

    assert complaint.is_escalated is True
    assert complaint.escalation_reason == "VIP customer"


# ===================== SWEEP =====================


async def test_sweep_escalates_overdue_in_progress_complaint(db_session, make_complaint):
    complaint_id = await _overdue(make_complaint, hours=3)
    gateway = RecordingGateway()

    result = await sweep_overdue(db_session, gateway=gateway)

    assert result["escalated_count"] == 1
    assert result["error_count"] == 0
    assert result["details"][0]["complaint_id"] == complaint_id
    assert result["details"][0]["reason"] == "Complaint exceeded deadline by 3 hours"

    complaint = await get_complaint(db_session, complaint_id)
    assert complaint.is_escalated is True
    assert complaint.status == ComplaintStatus.ESCALATED
    assert complaint.escalated_by_id is None
    assert complaint.status_history[-1].actor_name == "system"

    assert [cid for cid, _ in gateway.escalated] == [complaint_id]
    assert gateway.summaries[0]["escalated_count"] == 1


async def test_sweep_never_reselects_escalated(db_session, make_complaint):
    await _overdue(make_complaint)
    await _overdue(make_complaint, hours=10)

    first = await sweep_overdue(db_session, gateway=RecordingGateway())
    second = await sweep_overdue(db_session, gateway=RecordingGateway())

    assert first["escalated_count"] == 2
    assert second["escalated_count"] == 0
    assert second["details"] == []


async def test_sweep_ignores_terminal_future_and_flagged(db_session, seed_data, make_complaint):
    now = utc_now()
    await _overdue(make_complaint, status=ComplaintStatus.RESOLVED, resolved_at=now)
    await _overdue(make_complaint, status=ComplaintStatus.CLOSED)
    await _overdue(make_complaint, status=ComplaintStatus.ESCALATED, is_escalated=True, escalated_at=now)
    await make_complaint(deadline=now + timedelta(hours=2))
    gateway = RecordingGateway()

    result = await sweep_overdue(db_session, gateway=gateway)

    assert result["escalated_count"] == 0
    assert gateway.summaries == []


async def test_sweep_counts_failures_and_continues(db_session, make_complaint, monkeypatch):
    broken_id = await _overdue(make_complaint, hours=8)
    healthy_id = await _overdue(make_complaint, hours=2)
    original = escalation_service.escalate_complaint

    async def flaky(db, complaint_id, *args, **kwargs):
        if complaint_id == broken_id:
            await db.rollback()
            raise RuntimeError("database hiccup")
        return await original(db, complaint_id, *args, **kwargs)

    monkeypatch.setattr(escalation_service, "escalate_complaint", flaky)

    result = await sweep_overdue(db_session, gateway=RecordingGateway())

    assert result["escalated_count"] == 1
    assert result["error_count"] == 1
    statuses = {d["complaint_id"]: d["status"] for d in result["details"]}
    assert statuses == {broken_id: "error", healthy_id: "escalated"}

    assert (await get_complaint(db_session, broken_id)).is_escalated is False
    assert (await get_complaint(db_session, healthy_id)).is_escalated is True


async def test_sweep_survives_gateway_failure(db_session, make_complaint):
    complaint_id = await _overdue(make_complaint)

    result = await sweep_overdue(db_session, gateway=RecordingGateway(fail=True))

    assert result["escalated_count"] == 1
    assert (await get_complaint(db_session, complaint_id)).is_escalated is True


# ===================== READ-ONLY VIEWS =====================


async def test_preview_does_not_modify(db_session, seed_data, make_complaint):
    complaint_id = await _overdue(make_complaint, hours=5, assigned_to_id=seed_data["it_staff"])

    preview = await preview_escalations(db_session)

    assert preview["count"] == 1
    assert preview["complaints"][0]["id"] == complaint_id
    assert preview["complaints"][0]["hours_overdue"] == 5
    assert preview["complaints"][0]["assigned_to"] == "Ivan IT"
    assert (await get_complaint(db_session, complaint_id)).is_escalated is False


async def test_at_risk_window_and_levels(db_session, make_complaint):
    now = utc_now()
    soon_id = await make_complaint(deadline=now + timedelta(minutes=30))
    later_id = await make_complaint(deadline=now + timedelta(hours=3))
    await make_complaint(deadline=now - timedelta(minutes=5))

    default_window = await get_at_risk_complaints(db_session, now=now)
    assert [c["id"] for c in default_window] == [soon_id]
    assert default_window[0]["risk_level"] == "critical"
    assert default_window[0]["minutes_until_deadline"] == 30
    assert default_window[0]["hours_until_deadline"] == 0

    wide_window = await get_at_risk_complaints(db_session, 4, now=now)
    assert [c["id"] for c in wide_window] == [soon_id, later_id]
    assert wide_window[1]["risk_level"] == "high"


# ===================== DEFERRED CHECK =====================


async def test_check_complaint(db_session, make_complaint):
    overdue_id = await _overdue(make_complaint)
    on_time_id = await make_complaint(deadline=utc_now() + timedelta(hours=5))

    assert await check_complaint(db_session, 999_999) is False
    assert await check_complaint(db_session, on_time_id, gateway=RecordingGateway()) is False
    assert await check_complaint(db_session, overdue_id, gateway=RecordingGateway()) is True
    # Second run finds it already escalated
    assert await check_complaint(db_session, overdue_id, gateway=RecordingGateway()) is False
