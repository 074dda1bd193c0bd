import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import (
    RECOMMENDATION_SCORE_THRESHOLD,
    ADMIN_SCORE_BONUS,
    GENERAL_DEPARTMENT,
)
from app.core.exceptions import (
    NoEligibleStaff,
    InvalidAssignee,
    InvalidTransition,
    TerminalState,
    NotFoundError,
)
from app.constants.error_codes import ErrorCode
from app.models.enums.complaint_status import TERMINAL_STATUSES
from app.models.enums.user_role import UserRole, ASSIGNABLE_ROLES
from app.models.support.complaint_models import Complaint
from app.models.users.user_models import User
from app.services.support.complaint_service import apply_assignment
from app.services.support.complaint_store import (
    get_complaint_or_404,
    get_category_or_404,
    get_user,
    find_eligible_staff,
    count_open_assignments_by_staff,
    count_active_assignments,
    count_high_priority_assignments,
)
from app.services.support.notification_service import (
    NotificationGateway,
    default_gateway,
    safe_notify,
)

logger = logging.getLogger(__name__)


@dataclass
class StaffWorkload:
    staff: User
    open_assignments: int
    high_priority_assignments: int
    score: float

    @property
    def recommended(self) -> bool:
        return self.score <= RECOMMENDATION_SCORE_THRESHOLD

    def to_dict(self) -> dict:
        return {
            "staff_id": self.staff.id,
            "username": self.staff.username,
            "full_name": self.staff.full_name,
            "department": self.staff.department,
            "role": self.staff.role.value,
            "open_assignments": self.open_assignments,
            "high_priority_assignments": self.high_priority_assignments,
            "score": self.score,
            "recommended": self.recommended,
        }


# =====================================================
# SCORING
# =====================================================
def is_eligible(staff: User, department: str) -> bool:
    if not staff.is_active or staff.role not in ASSIGNABLE_ROLES:
        return False
    return (
        staff.department == department
        or staff.department == GENERAL_DEPARTMENT
        or staff.role == UserRole.ADMIN
    )


def calculate_workload_score(
    open_assignments: int,
    high_priority_assignments: int,
    *,
    same_department: bool,
    is_admin: bool,
) -> float:
    """
    open + 2 x high/urgent + 1 for a department mismatch, minus the admin bonus.
    Lower is better.
    """
    mismatch = 0 if (same_department or is_admin) else 1
    bonus = ADMIN_SCORE_BONUS if is_admin else 0
    return open_assignments + 2 * high_priority_assignments + mismatch - bonus


async def _score_staff(db: AsyncSession, staff: list[User], department: str) -> list[StaffWorkload]:
    counts = await count_open_assignments_by_staff(db, [s.id for s in staff])

    workloads = []
    for member in staff:
        open_count, high_count = counts.get(member.id, (0, 0))
        workloads.append(
            StaffWorkload(
                staff=member,
                open_assignments=open_count,
                high_priority_assignments=high_count,
                score=calculate_workload_score(
                    open_count,
                    high_count,
                    same_department=member.department == department,
                    is_admin=member.role == UserRole.ADMIN,
                ),
            )
        )
    return workloads


def rank(workloads: list[StaffWorkload]) -> list[StaffWorkload]:
    # sorted() is stable: equal scores keep candidate (id) order
    return sorted(workloads, key=lambda w: w.score)


# =====================================================
# RECOMMEND
# =====================================================
async def recommend_staff(db: AsyncSession, category_id: int) -> dict:
    category = await get_category_or_404(db, category_id)
    candidates = [
        s for s in await find_eligible_staff(db, category.department)
        if is_eligible(s, category.department)
    ]
    ranked = rank(await _score_staff(db, candidates, category.department))

    avg = sum(w.score for w in ranked) / len(ranked) if ranked else 0
    return {
        "category": {
            "id": category.id,
            "name": category.name,
            "department": category.department,
        },
        "available_staff": [w.to_dict() for w in ranked],
        "recommended": [w.to_dict() for w in ranked if w.recommended],
        "summary": {
            "total_staff": len(ranked),
            "recommended_staff": sum(1 for w in ranked if w.recommended),
            "avg_workload": round(avg, 2),
        },
    }


# =====================================================
# ASSIGN
# =====================================================
async def auto_assign_complaint(
    db: AsyncSession,
    complaint_id: int,
    actor: User | None,
    gateway: NotificationGateway = default_gateway,
) -> tuple[Complaint, StaffWorkload]:
    complaint = await get_complaint_or_404(db, complaint_id)

    if complaint.status in TERMINAL_STATUSES:
        raise TerminalState("Cannot assign resolved or closed complaint")
    if complaint.assigned_to_id:
        raise InvalidTransition(
            "Complaint is already assigned; use manual assignment to reassign",
            details={"assigned_to_id": complaint.assigned_to_id},
        )

    department = complaint.category.department
    candidates = [
        s for s in await find_eligible_staff(db, department)
        if is_eligible(s, department)
    ]
    if not candidates:
        raise NoEligibleStaff(details={"department": department})

    # min() returns the first of equal scores
    best = min(await _score_staff(db, candidates, department), key=lambda w: w.score)

    assigned = await apply_assignment(
        db,
        complaint,
        best.staff,
        actor,
        remarks=f"Auto-assigned to {best.staff.display_name}",
        note=f"Auto-assigned based on workload analysis. Staff workload score: {best.score}",
        score=best.score,
    )

    logger.info(
        "Complaint auto-assigned",
        extra={"complaint_id": complaint_id, "staff_id": best.staff.id, "score": best.score},
    )
    await safe_notify(gateway.notify_assigned, assigned, best.staff, actor)
    return assigned, best


async def manual_assign_complaint(
    db: AsyncSession,
    complaint_id: int,
    staff_id: int,
    actor: User,
    gateway: NotificationGateway = default_gateway,
) -> Complaint:
    complaint = await get_complaint_or_404(db, complaint_id)

    staff = await get_user(db, staff_id)
    if not staff or not staff.is_active or staff.role not in ASSIGNABLE_ROLES:
        raise InvalidAssignee(details={"staff_id": staff_id})

    assigned = await apply_assignment(db, complaint, staff, actor)
    await safe_notify(gateway.notify_assigned, assigned, staff, actor)
    return assigned


# =====================================================
# WORKLOAD
# =====================================================
async def get_staff_workload(db: AsyncSession, staff_id: int) -> StaffWorkload:
    staff = await get_user(db, staff_id)
    if not staff or staff.role not in ASSIGNABLE_ROLES:
        raise NotFoundError("Staff member not found", ErrorCode.STAFF_NOT_FOUND)

    open_count = await count_active_assignments(db, staff.id)
    high_count = await count_high_priority_assignments(db, staff.id)

    # Scored against the staff member's own department
    return StaffWorkload(
        staff=staff,
        open_assignments=open_count,
        high_priority_assignments=high_count,
        score=calculate_workload_score(
            open_count,
            high_count,
            same_department=True,
            is_admin=staff.role == UserRole.ADMIN,
        ),
    )
