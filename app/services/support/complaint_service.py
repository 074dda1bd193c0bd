import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_, desc

from app.models.enums.complaint_status import (
    ComplaintStatus,
    ComplaintPriority,
    TERMINAL_STATUSES,
)
from app.models.support.complaint_models import (
    Complaint,
    ComplaintStatusHistory,
    ComplaintNote,
)
from app.models.users.user_models import User
from app.core.exceptions import AppException, InvalidTransition, TerminalState
from app.constants.error_codes import ErrorCode
from app.constants.activity_codes import ActivityCode
from app.utils.activity_helpers import emit_actor_activity, SYSTEM_USERNAME
from app.utils.datetime_utils import utc_now
from app.services.support.complaint_store import (
    get_complaint_or_404,
    get_category_or_404,
    update_complaint,
)
from app.services.support.deadline_core import compute_deadline, generate_ticket_number

logger = logging.getLogger(__name__)


# =====================================================
# HELPERS
# =====================================================

def actor_name(actor: User | None) -> str:
    if actor is None:
        return SYSTEM_USERNAME
    return actor.display_name


def record_history(
    db: AsyncSession,
    complaint_id: int,
    status: ComplaintStatus,
    actor: User | None,
    remarks: str | None,
    now: datetime,
) -> None:
    db.add(
        ComplaintStatusHistory(
            complaint_id=complaint_id,
            status=status,
            actor_id=actor.id if actor else None,
            actor_name=actor_name(actor),
            remarks=remarks,
            created_at=now,
        )
    )


def _validate_transition(complaint: Complaint, new_status: ComplaintStatus) -> None:
    current = complaint.status

    if current == new_status:
        raise InvalidTransition(f"Status is already {new_status.value}")

    if new_status == ComplaintStatus.ESCALATED:
        raise InvalidTransition("Complaints are moved to escalated through escalation only")

    if current == ComplaintStatus.CLOSED:
        raise InvalidTransition("Closed complaints must be reopened before changing status")

    if current == ComplaintStatus.RESOLVED and new_status != ComplaintStatus.CLOSED:
        raise InvalidTransition(
            f"Cannot change status from {current.value} to {new_status.value}; reopen the complaint first"
        )

    if new_status == ComplaintStatus.ASSIGNED and not complaint.assigned_to_id:
        raise InvalidTransition("Assign a staff member instead of setting status to assigned")


async def _commit_or_rollback(db: AsyncSession) -> None:
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise


# =====================================================
# CREATE
# =====================================================
async def create_complaint(
    db: AsyncSession,
    *,
    title: str,
    description: str,
    category_id: int,
    priority: ComplaintPriority,
    current_user: User,
    now: datetime | None = None,
) -> Complaint:
    now = now or utc_now()

    category = await get_category_or_404(db, category_id)
    if not category.is_active:
        raise AppException(
            400,
            "Category is not accepting complaints",
            ErrorCode.CATEGORY_INACTIVE,
        )

    complaint = Complaint(
        ticket_number=generate_ticket_number(now),
        title=title,
        description=description,
        category_id=category.id,
        priority=priority,
        status=ComplaintStatus.SUBMITTED,
        submitted_by_id=current_user.id,
        deadline=compute_deadline(category.resolution_time_hours, priority, now),
        created_at=now,
    )

    try:
        db.add(complaint)
        await db.flush()  # ensure complaint.id is available

        record_history(
            db, complaint.id, ComplaintStatus.SUBMITTED, current_user, "Complaint submitted", now
        )
        await emit_actor_activity(
            db,
            current_user,
            ActivityCode.CREATE_COMPLAINT,
            ticket=complaint.ticket_number,
            deadline=complaint.deadline.isoformat(),
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Complaint submitted",
        extra={"complaint_id": complaint.id, "ticket": complaint.ticket_number},
    )
    return await get_complaint_or_404(db, complaint.id)


# =====================================================
# GET / LIST
# =====================================================
async def get_complaint(db: AsyncSession, complaint_id: int) -> Complaint:
    return await get_complaint_or_404(db, complaint_id)


async def list_complaints(
    db: AsyncSession,
    *,
    status: ComplaintStatus | None = None,
    priority: ComplaintPriority | None = None,
    category_id: int | None = None,
    assigned_to_id: int | None = None,
    submitted_by_id: int | None = None,
    is_escalated: bool | None = None,
    search: str | None = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[int, list[Complaint]]:

    base = select(Complaint)

    if status:
        base = base.where(Complaint.status == status)
    if priority:
        base = base.where(Complaint.priority == priority)
    if category_id:
        base = base.where(Complaint.category_id == category_id)
    if assigned_to_id:
        base = base.where(Complaint.assigned_to_id == assigned_to_id)
    if submitted_by_id:
        base = base.where(Complaint.submitted_by_id == submitted_by_id)
    if is_escalated is not None:
        base = base.where(Complaint.is_escalated.is_(is_escalated))
    if search:
        like = f"%{search}%"
        base = base.where(
            or_(
                Complaint.title.ilike(like),
                Complaint.description.ilike(like),
                Complaint.ticket_number.ilike(like),
            )
        )

    total = await db.scalar(
        select(func.count()).select_from(base.subquery())
    )

    result = await db.execute(
        base.order_by(desc(Complaint.created_at), desc(Complaint.id))
        .execution_options(populate_existing=True)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    return total or 0, list(result.scalars().all())


# =====================================================
# PRIORITY
# =====================================================
async def update_complaint_priority(
    db: AsyncSession,
    complaint_id: int,
    priority: ComplaintPriority,
    current_user: User,
) -> Complaint:
    """The deadline stays where submission put it."""
    complaint = await get_complaint_or_404(db, complaint_id)

    if complaint.status in TERMINAL_STATUSES:
        raise TerminalState("Cannot change priority of a resolved or closed complaint")
    if complaint.priority == priority:
        raise AppException(400, "No actual changes detected", ErrorCode.VALIDATION_ERROR)

    old_priority = complaint.priority
    try:
        await update_complaint(
            db,
            complaint.id,
            complaint.status,
            {"priority": priority, "updated_at": utc_now()},
        )
        await emit_actor_activity(
            db,
            current_user,
            ActivityCode.UPDATE_COMPLAINT_PRIORITY,
            ticket=complaint.ticket_number,
            old_priority=old_priority.value,
            new_priority=priority.value,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    return await get_complaint_or_404(db, complaint_id)


# =====================================================
# STATUS TRANSITIONS
# =====================================================
async def transition_status(
    db: AsyncSession,
    complaint_id: int,
    new_status: ComplaintStatus,
    actor: User | None,
    remarks: str | None = None,
    now: datetime | None = None,
) -> Complaint:
    """
    Move a complaint to ``new_status`` with a history entry.

    resolved_at is set on entering resolved and cleared on leaving it.
    Notifying anyone is the caller's job.
    """
    now = now or utc_now()
    complaint = await get_complaint_or_404(db, complaint_id)
    _validate_transition(complaint, new_status)

    old_status = complaint.status
    values = {"status": new_status, "updated_at": now}
    if new_status == ComplaintStatus.RESOLVED:
        values["resolved_at"] = now
    elif old_status == ComplaintStatus.RESOLVED:
        values["resolved_at"] = None

    try:
        await update_complaint(db, complaint.id, old_status, values)
        record_history(
            db,
            complaint.id,
            new_status,
            actor,
            remarks or f"Status changed from {old_status.value} to {new_status.value}",
            now,
        )
        await emit_actor_activity(
            db,
            actor,
            ActivityCode.UPDATE_COMPLAINT_STATUS,
            ticket=complaint.ticket_number,
            old_status=old_status.value,
            new_status=new_status.value,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    return await get_complaint_or_404(db, complaint_id)


async def reopen_complaint(
    db: AsyncSession,
    complaint_id: int,
    actor: User,
    remarks: str | None = None,
) -> Complaint:
    """The only way out of resolved/closed. Lands in in-progress when someone owns it, else back in the queue."""
    now = utc_now()
    complaint = await get_complaint_or_404(db, complaint_id)

    if complaint.status not in TERMINAL_STATUSES:
        raise InvalidTransition("Only resolved or closed complaints can be reopened")

    new_status = (
        ComplaintStatus.IN_PROGRESS if complaint.assigned_to_id else ComplaintStatus.SUBMITTED
    )
    try:
        await update_complaint(
            db,
            complaint.id,
            complaint.status,
            {"status": new_status, "resolved_at": None, "updated_at": now},
        )
        record_history(db, complaint.id, new_status, actor, remarks or "Complaint reopened", now)
        await emit_actor_activity(
            db,
            actor,
            ActivityCode.REOPEN_COMPLAINT,
            ticket=complaint.ticket_number,
            new_status=new_status.value,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    return await get_complaint_or_404(db, complaint_id)


# =====================================================
# ASSIGNMENT TRANSITIONS
# =====================================================
async def apply_assignment(
    db: AsyncSession,
    complaint: Complaint,
    staff: User,
    actor: User | None,
    *,
    remarks: str | None = None,
    note: str | None = None,
    score: float | None = None,
) -> Complaint:
    """status -> assigned, assignee set, history appended. Shared by manual and automatic assignment."""
    if complaint.status in TERMINAL_STATUSES:
        raise TerminalState("Cannot assign resolved or closed complaint")

    now = utc_now()
    try:
        await update_complaint(
            db,
            complaint.id,
            complaint.status,
            {
                "assigned_to_id": staff.id,
                "status": ComplaintStatus.ASSIGNED,
                "updated_at": now,
            },
        )
        record_history(
            db,
            complaint.id,
            ComplaintStatus.ASSIGNED,
            actor,
            remarks or f"Complaint assigned to {staff.display_name}",
            now,
        )
        if note:
            db.add(
                ComplaintNote(
                    complaint_id=complaint.id,
                    note=note,
                    added_by_id=actor.id if actor else None,
                    added_by_name=actor_name(actor),
                    created_at=now,
                )
            )

        if score is None:
            await emit_actor_activity(
                db,
                actor,
                ActivityCode.ASSIGN_COMPLAINT,
                ticket=complaint.ticket_number,
                staff_name=staff.username,
            )
        else:
            await emit_actor_activity(
                db,
                actor,
                ActivityCode.AUTO_ASSIGN_COMPLAINT,
                ticket=complaint.ticket_number,
                staff_name=staff.username,
                score=score,
            )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    return await get_complaint_or_404(db, complaint.id)


async def unassign_complaint(
    db: AsyncSession,
    complaint_id: int,
    actor: User,
) -> Complaint:
    complaint = await get_complaint_or_404(db, complaint_id)

    if not complaint.assigned_to_id:
        raise InvalidTransition("Complaint is not currently assigned to any staff member")
    if complaint.status in TERMINAL_STATUSES:
        raise TerminalState("Cannot unassign resolved or closed complaint")

    now = utc_now()
    previous = complaint.assigned_to.username if complaint.assigned_to else str(complaint.assigned_to_id)
    try:
        await update_complaint(
            db,
            complaint.id,
            complaint.status,
            {"assigned_to_id": None, "status": ComplaintStatus.SUBMITTED, "updated_at": now},
        )
        record_history(
            db,
            complaint.id,
            ComplaintStatus.SUBMITTED,
            actor,
            "Complaint unassigned and returned to queue",
            now,
        )
        await emit_actor_activity(
            db,
            actor,
            ActivityCode.UNASSIGN_COMPLAINT,
            ticket=complaint.ticket_number,
            staff_name=previous,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Complaint unassigned",
        extra={"complaint_id": complaint_id, "previous_assignee": previous},
    )
    return await get_complaint_or_404(db, complaint_id)


# =====================================================
# INTERNAL NOTES
# =====================================================
async def add_internal_note(
    db: AsyncSession,
    complaint_id: int,
    note: str,
    actor: User,
) -> Complaint:
    complaint = await get_complaint_or_404(db, complaint_id)

    db.add(
        ComplaintNote(
            complaint_id=complaint.id,
            note=note,
            added_by_id=actor.id,
            added_by_name=actor_name(actor),
            created_at=utc_now(),
        )
    )
    await emit_actor_activity(
        db,
        actor,
        ActivityCode.ADD_COMPLAINT_NOTE,
        ticket=complaint.ticket_number,
    )
    await _commit_or_rollback(db)

    return await get_complaint_or_404(db, complaint_id)
