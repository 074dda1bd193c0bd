import math
import secrets
from datetime import datetime, timedelta

from sqlalchemy import update

from app.core.config import DEFAULT_RESOLUTION_HOURS
from app.models.enums.complaint_status import (
    ComplaintPriority,
    ComplaintStatus,
    TERMINAL_STATUSES,
)
from app.models.support.complaint_models import Complaint
from app.utils.datetime_utils import ensure_utc, hours_between

PRIORITY_MULTIPLIERS = {
    ComplaintPriority.URGENT: 0.5,
    ComplaintPriority.HIGH: 0.75,
    ComplaintPriority.MEDIUM: 1.0,
    ComplaintPriority.LOW: 1.5,
}

# Statuses a sweep or at-risk query never looks at
NON_SWEEPABLE_STATUSES = tuple(TERMINAL_STATUSES | {ComplaintStatus.ESCALATED})


# =====================================================
# DEADLINES
# =====================================================
def baseline_hours(resolution_time_hours: float | None, priority: ComplaintPriority) -> float:
    if resolution_time_hours:
        return float(resolution_time_hours)
    return DEFAULT_RESOLUTION_HOURS.get(
        ComplaintPriority(priority).value,
        DEFAULT_RESOLUTION_HOURS[ComplaintPriority.MEDIUM.value],
    )


def compute_deadline(
    resolution_time_hours: float | None,
    priority: ComplaintPriority,
    created_at: datetime,
) -> datetime:
    """
    deadline = created_at + baseline x priority multiplier.

    Called once at submission. Later priority changes do not move it.
    """
    priority = ComplaintPriority(priority)
    hours = baseline_hours(resolution_time_hours, priority) * PRIORITY_MULTIPLIERS[priority]
    return ensure_utc(created_at) + timedelta(hours=hours)


def hours_overdue(deadline: datetime, now: datetime) -> int:
    return max(0, math.floor(hours_between(deadline, now)))


def default_escalation_reason(deadline: datetime, now: datetime) -> str:
    return f"Deadline exceeded by {hours_overdue(deadline, now)} hours"


def sweep_escalation_reason(deadline: datetime, now: datetime) -> str:
    return f"Complaint exceeded deadline by {hours_overdue(deadline, now)} hours"


def calculate_risk_level(deadline: datetime, now: datetime) -> str:
    remaining = hours_between(now, deadline)
    if remaining <= 1:
        return "critical"
    if remaining <= 4:
        return "high"
    if remaining <= 12:
        return "medium"
    return "low"


def generate_ticket_number(created_at: datetime) -> str:
    return f"CMP-{created_at:%Y%m%d}-{secrets.token_hex(3).upper()}"


# =====================================================
# QUERY FILTERS
# =====================================================
def overdue_filters(now: datetime) -> list:
    return [
        Complaint.deadline < now,
        Complaint.status.notin_(NON_SWEEPABLE_STATUSES),
        Complaint.is_escalated.is_(False),
    ]


def at_risk_filters(now: datetime, window_end: datetime) -> list:
    return [
        Complaint.deadline >= now,
        Complaint.deadline < window_end,
        Complaint.status.notin_(NON_SWEEPABLE_STATUSES),
        Complaint.is_escalated.is_(False),
    ]


# =====================================================
# CONDITIONAL UPDATES
# =====================================================
def _escalate_complaint_stmt(complaint_id: int, *, escalated_by_id, reason: str, now: datetime):
    """
    Compare-and-set escalation. Matches zero rows if another writer
    escalated or closed the complaint after it was read.
    """
    return (
        update(Complaint)
        .where(
            Complaint.id == complaint_id,
            Complaint.is_escalated.is_(False),
            Complaint.status.notin_(tuple(TERMINAL_STATUSES)),
        )
        .values(
            is_escalated=True,
            escalated_at=now,
            escalated_by_id=escalated_by_id,
            escalation_reason=reason,
            status=ComplaintStatus.ESCALATED,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )


def _complaint_transition_stmt(complaint_id: int, expected_status: ComplaintStatus, values: dict):
    return (
        update(Complaint)
        .where(
            Complaint.id == complaint_id,
            Complaint.status == expected_status,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
