import math
import logging
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import ESCALATION_BUFFER_HOURS
from app.core.exceptions import AppException, AlreadyEscalated, TerminalState, NotFoundError
from app.constants.activity_codes import ActivityCode
from app.models.enums.complaint_status import ComplaintStatus, TERMINAL_STATUSES
from app.models.support.complaint_models import Complaint
from app.models.users.user_models import User
from app.utils.activity_helpers import emit_actor_activity
from app.utils.datetime_utils import utc_now, ensure_utc, hours_between
from app.services.support.complaint_service import record_history
from app.services.support.complaint_store import (
    get_complaint_or_404,
    find_overdue_open_unescalated,
    find_at_risk,
)
from app.services.support.deadline_core import (
    NON_SWEEPABLE_STATUSES,
    _escalate_complaint_stmt,
    default_escalation_reason,
    sweep_escalation_reason,
    hours_overdue,
    calculate_risk_level,
)
from app.services.support.notification_service import (
    NotificationGateway,
    default_gateway,
    safe_notify,
)

logger = logging.getLogger(__name__)

MANUAL_ESCALATION_REASON = "Manual escalation by administrator"


def _assignee_name(complaint: Complaint) -> str | None:
    return complaint.assigned_to.display_name if complaint.assigned_to else None


# =====================================================
# ESCALATE
# =====================================================
async def escalate_complaint(
    db: AsyncSession,
    complaint_id: int,
    actor: User | None,
    reason: str | None = None,
    *,
    now: datetime | None = None,
    activity_code: ActivityCode = ActivityCode.ESCALATE_COMPLAINT,
) -> Complaint:
    """
    Flip the escalation flag exactly once and force status to escalated.

    ``actor=None`` is the scheduler. The UPDATE only matches rows that are
    still unescalated and open, so a writer that lost the race gets
    AlreadyEscalated instead of a second history entry.
    """
    now = now or utc_now()
    complaint = await get_complaint_or_404(db, complaint_id)

    if complaint.is_escalated:
        raise AlreadyEscalated(details={"complaint_id": complaint_id})
    if complaint.status in TERMINAL_STATUSES:
        raise TerminalState(
            "Cannot escalate resolved or closed complaint",
            details={"complaint_id": complaint_id, "status": complaint.status.value},
        )

    reason = reason or default_escalation_reason(complaint.deadline, now)
    ticket = complaint.ticket_number

    try:
        result = await db.execute(
            _escalate_complaint_stmt(
                complaint.id,
                escalated_by_id=actor.id if actor else None,
                reason=reason,
                now=now,
            )
        )
        if not result.rowcount:
            raise AlreadyEscalated(details={"complaint_id": complaint_id})

        record_history(db, complaint_id, ComplaintStatus.ESCALATED, actor, reason, now)
        await emit_actor_activity(
            db,
            actor,
            activity_code,
            ticket=ticket,
            reason=reason,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Complaint escalated",
        extra={"complaint_id": complaint_id, "ticket": ticket, "reason": reason},
    )
    return await get_complaint_or_404(db, complaint_id)


async def manual_escalate(
    db: AsyncSession,
    complaint_id: int,
    admin: User,
    reason: str | None = None,
    gateway: NotificationGateway = default_gateway,
) -> Complaint:
    reason = reason or MANUAL_ESCALATION_REASON
    complaint = await escalate_complaint(db, complaint_id, admin, reason)
    await safe_notify(gateway.notify_escalated, complaint, reason)
    return complaint


# =====================================================
# SWEEP
# =====================================================
async def sweep_overdue(
    db: AsyncSession,
    *,
    now: datetime | None = None,
    gateway: NotificationGateway = default_gateway,
) -> dict:
    """
    Escalate every overdue, open, unescalated complaint.

    A failure on one record is rolled back, logged and counted; the batch
    carries on. The administrator summary only goes out when something
    was escalated.
    """
    now = now or utc_now()

    # Plain values only: a rollback further down expires the ORM rows
    candidates = [
        (c.id, c.ticket_number, c.deadline)
        for c in await find_overdue_open_unescalated(db, now)
    ]
    logger.info("Escalation sweep started", extra={"candidates": len(candidates)})

    details = []
    escalated_count = 0
    error_count = 0

    for complaint_id, ticket, deadline in candidates:
        reason = sweep_escalation_reason(deadline, now)
        try:
            complaint = await escalate_complaint(
                db,
                complaint_id,
                None,
                reason,
                now=now,
                activity_code=ActivityCode.AUTO_ESCALATE_COMPLAINT,
            )
        except AppException as exc:
            error_count += 1
            logger.warning(
                "Complaint skipped by sweep",
                extra={"complaint_id": complaint_id, "error": exc.message},
            )
            details.append({
                "complaint_id": complaint_id,
                "ticket_number": ticket,
                "status": "error",
                "error": exc.message,
            })
            continue
        except Exception as exc:
            error_count += 1
            logger.exception("Failed to escalate complaint", extra={"complaint_id": complaint_id})
            details.append({
                "complaint_id": complaint_id,
                "ticket_number": ticket,
                "status": "error",
                "error": str(exc),
            })
            continue

        escalated_count += 1
        details.append({
            "complaint_id": complaint_id,
            "ticket_number": ticket,
            "status": "escalated",
            "reason": reason,
            "hours_overdue": hours_overdue(deadline, now),
        })
        await safe_notify(gateway.notify_escalated, complaint, reason)

    summary = {
        "escalated_count": escalated_count,
        "error_count": error_count,
        "details": details,
    }

    if escalated_count:
        await safe_notify(gateway.notify_escalation_summary, summary)

    logger.info(
        "Escalation sweep finished: %s escalated, %s errors",
        escalated_count,
        error_count,
    )
    return summary


async def check_complaint(
    db: AsyncSession,
    complaint_id: int,
    *,
    now: datetime | None = None,
    gateway: NotificationGateway = default_gateway,
) -> bool:
    """Deferred single-complaint check. Returns True when it escalated something."""
    now = now or utc_now()

    try:
        complaint = await get_complaint_or_404(db, complaint_id)
    except NotFoundError:
        logger.warning("Deadline check for unknown complaint", extra={"complaint_id": complaint_id})
        return False

    if (
        complaint.is_escalated
        or complaint.status in NON_SWEEPABLE_STATUSES
        or ensure_utc(complaint.deadline) >= now
    ):
        return False

    reason = sweep_escalation_reason(complaint.deadline, now)
    escalated = await escalate_complaint(
        db,
        complaint_id,
        None,
        reason,
        now=now,
        activity_code=ActivityCode.AUTO_ESCALATE_COMPLAINT,
    )
    await safe_notify(gateway.notify_escalated, escalated, reason)
    return True


# =====================================================
# READ-ONLY VIEWS
# =====================================================
async def preview_escalations(db: AsyncSession, *, now: datetime | None = None) -> dict:
    now = now or utc_now()
    complaints = await find_overdue_open_unescalated(db, now)

    return {
        "count": len(complaints),
        "complaints": [
            {
                "id": c.id,
                "ticket_number": c.ticket_number,
                "title": c.title,
                "priority": c.priority.value,
                "status": c.status.value,
                "deadline": ensure_utc(c.deadline),
                "hours_overdue": hours_overdue(c.deadline, now),
                "assigned_to": _assignee_name(c),
            }
            for c in complaints
        ],
    }


async def get_at_risk_complaints(
    db: AsyncSession,
    buffer_hours: float = ESCALATION_BUFFER_HOURS,
    *,
    now: datetime | None = None,
) -> list[dict]:
    now = now or utc_now()
    complaints = await find_at_risk(db, now, now + timedelta(hours=buffer_hours))

    at_risk = []
    for c in complaints:
        remaining = hours_between(now, c.deadline)
        at_risk.append({
            "id": c.id,
            "ticket_number": c.ticket_number,
            "title": c.title,
            "priority": c.priority.value,
            "status": c.status.value,
            "deadline": ensure_utc(c.deadline),
            "hours_until_deadline": math.floor(remaining),
            "minutes_until_deadline": math.floor(remaining * 60),
            "risk_level": calculate_risk_level(c.deadline, now),
            "assigned_to": _assignee_name(c),
        })
    return at_risk


# =====================================================
# SCHEDULER AUDIT
# =====================================================
async def record_interval_change(db: AsyncSession, actor: User, old_interval: int, new_interval: int) -> None:
    await emit_actor_activity(
        db,
        actor,
        ActivityCode.UPDATE_ESCALATION_INTERVAL,
        old_interval=old_interval,
        new_interval=new_interval,
    )
    await db.commit()


async def record_manual_sweep(db: AsyncSession, actor: User, result: dict) -> None:
    await emit_actor_activity(
        db,
        actor,
        ActivityCode.RUN_ESCALATION_SWEEP,
        escalated=result["escalated_count"],
        errors=result["error_count"],
    )
    await db.commit()
