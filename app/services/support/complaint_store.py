"""
Record store access for the deadline engine and the workload scorer.

Every query the escalation sweep, the at-risk report and the staff
ranking rely on lives here so the services above stay free of
filter details.
"""
from datetime import datetime

from sqlalchemy import select, func, case, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.error_codes import ErrorCode
from app.core.config import GENERAL_DEPARTMENT
from app.core.exceptions import NotFoundError, InvalidTransition
from app.models.enums.complaint_status import (
    ComplaintStatus,
    TERMINAL_STATUSES,
    HIGH_PRIORITIES,
)
from app.models.enums.user_role import UserRole, ASSIGNABLE_ROLES
from app.models.support.category_models import Category
from app.models.support.complaint_models import Complaint
from app.models.users.user_models import User
from app.services.support.deadline_core import (
    overdue_filters,
    at_risk_filters,
    _complaint_transition_stmt,
)

_OPEN_ASSIGNMENT = Complaint.status.notin_(tuple(TERMINAL_STATUSES))


# =====================================================
# COMPLAINTS
# =====================================================
async def get_complaint_or_404(db: AsyncSession, complaint_id: int) -> Complaint:
    # Conditional UPDATEs bypass the identity map, so always repopulate from the row
    result = await db.execute(
        select(Complaint)
        .where(Complaint.id == complaint_id)
        .execution_options(populate_existing=True)
    )
    complaint = result.scalar_one_or_none()
    if not complaint:
        raise NotFoundError("Complaint not found", ErrorCode.COMPLAINT_NOT_FOUND)
    return complaint


async def find_overdue_open_unescalated(db: AsyncSession, now: datetime) -> list[Complaint]:
    result = await db.execute(
        select(Complaint)
        .where(*overdue_filters(now))
        .order_by(Complaint.deadline, Complaint.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def find_at_risk(db: AsyncSession, now: datetime, window_end: datetime) -> list[Complaint]:
    result = await db.execute(
        select(Complaint)
        .where(*at_risk_filters(now, window_end))
        .order_by(Complaint.deadline, Complaint.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def update_complaint(
    db: AsyncSession,
    complaint_id: int,
    expected_status: ComplaintStatus,
    values: dict,
) -> None:
    """
    Compare-and-set on status. Raises NotFound for unknown ids and
    InvalidTransition when the status moved underneath the caller.
    Does not commit.
    """
    result = await db.execute(
        _complaint_transition_stmt(complaint_id, expected_status, values)
    )
    if result.rowcount:
        return

    exists = await db.scalar(select(Complaint.id).where(Complaint.id == complaint_id))
    if not exists:
        raise NotFoundError("Complaint not found", ErrorCode.COMPLAINT_NOT_FOUND)
    raise InvalidTransition(
        "Complaint was modified concurrently, reload and retry",
        details={"complaint_id": complaint_id, "expected_status": expected_status.value},
    )


# =====================================================
# CATEGORIES
# =====================================================
async def get_category_or_404(db: AsyncSession, category_id: int) -> Category:
    category = await db.get(Category, category_id)
    if not category:
        raise NotFoundError("Category not found", ErrorCode.CATEGORY_NOT_FOUND)
    return category


async def count_complaints_for_category(db: AsyncSession, category_id: int) -> int:
    total = await db.scalar(
        select(func.count(Complaint.id)).where(Complaint.category_id == category_id)
    )
    return total or 0


# =====================================================
# STAFF
# =====================================================
async def get_user(db: AsyncSession, user_id: int) -> User | None:
    return await db.get(User, user_id)


async def find_eligible_staff(db: AsyncSession, department: str) -> list[User]:
    """Active staff/admins of the department, the catch-all department, or any admin."""
    result = await db.execute(
        select(User)
        .where(
            User.is_active.is_(True),
            User.role.in_(tuple(ASSIGNABLE_ROLES)),
            or_(
                User.department == department,
                User.department == GENERAL_DEPARTMENT,
                User.role == UserRole.ADMIN,
            ),
        )
        .order_by(User.id)
    )
    return list(result.scalars().all())


async def count_active_assignments(db: AsyncSession, staff_id: int) -> int:
    total = await db.scalar(
        select(func.count(Complaint.id)).where(
            Complaint.assigned_to_id == staff_id,
            _OPEN_ASSIGNMENT,
        )
    )
    return total or 0


async def count_high_priority_assignments(db: AsyncSession, staff_id: int) -> int:
    total = await db.scalar(
        select(func.count(Complaint.id)).where(
            Complaint.assigned_to_id == staff_id,
            Complaint.priority.in_(tuple(HIGH_PRIORITIES)),
            _OPEN_ASSIGNMENT,
        )
    )
    return total or 0


async def count_open_assignments_by_staff(
    db: AsyncSession,
    staff_ids: list[int],
) -> dict[int, tuple[int, int]]:
    """Batched form of the two counters above: {staff_id: (open, high_or_urgent)}."""
    if not staff_ids:
        return {}

    result = await db.execute(
        select(
            Complaint.assigned_to_id,
            func.count(Complaint.id),
            func.sum(
                case((Complaint.priority.in_(tuple(HIGH_PRIORITIES)), 1), else_=0)
            ),
        )
        .where(
            Complaint.assigned_to_id.in_(staff_ids),
            _OPEN_ASSIGNMENT,
        )
        .group_by(Complaint.assigned_to_id)
    )
    counts = {staff_id: (0, 0) for staff_id in staff_ids}
    for staff_id, open_count, high_count in result.all():
        counts[staff_id] = (open_count or 0, int(high_count or 0))
    return counts
