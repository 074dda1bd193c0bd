"""
Descriptive rollups over complaints.

Everything here is computed on request and read-only. Counts come from
grouped queries; durations are averaged in Python because SQLite and
Postgres disagree on interval arithmetic.
"""
import logging
from collections import defaultdict
from datetime import datetime, timedelta

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AppException
from app.constants.error_codes import ErrorCode
from app.models.enums.complaint_status import (
    ComplaintStatus,
    ComplaintPriority,
    TERMINAL_STATUSES,
)
from app.models.support.category_models import Category
from app.models.support.complaint_models import Complaint
from app.models.users.user_models import User
from app.services.support.deadline_core import NON_SWEEPABLE_STATUSES
from app.utils.datetime_utils import utc_now, ensure_utc, hours_between

logger = logging.getLogger(__name__)

TREND_FORMATS = {
    "hour": "%Y-%m-%d %H:00",
    "day": "%Y-%m-%d",
    "week": "%G-W%V",
    "month": "%Y-%m",
}


# =====================================================
# HELPERS
# =====================================================
def _rate(part: int, total: int) -> float:
    if not total:
        return 0
    return round(part / total * 100, 2)


def _avg(values: list[float]) -> float:
    if not values:
        return 0
    return round(sum(values) / len(values), 2)


def _range_filters(start: datetime | None, end: datetime | None) -> list:
    filters = []
    if start:
        filters.append(Complaint.created_at >= start)
    if end:
        filters.append(Complaint.created_at <= end)
    return filters


async def _complaint_rows(db: AsyncSession, start: datetime | None, end: datetime | None, *extra):
    result = await db.execute(
        select(
            Complaint.id,
            Complaint.category_id,
            Complaint.assigned_to_id,
            Complaint.priority,
            Complaint.status,
            Complaint.is_escalated,
            Complaint.escalated_by_id,
            Complaint.escalated_at,
            Complaint.deadline,
            Complaint.created_at,
            Complaint.resolved_at,
        ).where(*_range_filters(start, end), *extra)
    )
    return result.all()


def _resolution_hours(row) -> float | None:
    if row.resolved_at is None:
        return None
    return hours_between(row.created_at, row.resolved_at)


def _resolution_stats(rows) -> dict:
    total = len(rows)
    resolved = sum(1 for r in rows if r.status == ComplaintStatus.RESOLVED)
    escalated = sum(1 for r in rows if r.is_escalated)
    hours = [
        h for h in (_resolution_hours(r) for r in rows if r.status == ComplaintStatus.RESOLVED)
        if h is not None
    ]
    return {
        "total": total,
        "resolved": resolved,
        "escalated": escalated,
        "resolution_rate": _rate(resolved, total),
        "escalation_rate": _rate(escalated, total),
        "avg_resolution_hours": _avg(hours),
    }


async def _grouped_counts(db: AsyncSession, column, start, end) -> dict:
    result = await db.execute(
        select(column, func.count(Complaint.id))
        .where(*_range_filters(start, end))
        .group_by(column)
    )
    return {key.value: count for key, count in result.all()}


# =====================================================
# OVERVIEW
# =====================================================
async def overview_report(
    db: AsyncSession,
    start: datetime | None = None,
    end: datetime | None = None,
    *,
    now: datetime | None = None,
) -> dict:
    now = now or utc_now()

    status_breakdown = await _grouped_counts(db, Complaint.status, start, end)
    priority_breakdown = await _grouped_counts(db, Complaint.priority, start, end)
    total = sum(status_breakdown.values())

    # Current backlog, not limited to the date range
    active = await db.scalar(
        select(func.count(Complaint.id)).where(
            Complaint.status.notin_(tuple(TERMINAL_STATUSES))
        )
    )
    overdue = await db.scalar(
        select(func.count(Complaint.id)).where(
            Complaint.deadline < now,
            Complaint.status.notin_(NON_SWEEPABLE_STATUSES),
        )
    )
    escalated = await db.scalar(
        select(func.count(Complaint.id)).where(
            Complaint.is_escalated.is_(True),
            *_range_filters(start, end),
        )
    )

    resolved_rows = await _complaint_rows(
        db, start, end,
        Complaint.status == ComplaintStatus.RESOLVED,
        Complaint.resolved_at.isnot(None),
    )
    resolved = status_breakdown.get(ComplaintStatus.RESOLVED.value, 0)

    return {
        "overview": {
            "total_complaints": total,
            "active_complaints": active or 0,
            "resolved_complaints": resolved,
            "overdue_complaints": overdue or 0,
            "escalated_complaints": escalated or 0,
            "avg_resolution_hours": _avg([_resolution_hours(r) for r in resolved_rows]),
        },
        "breakdown": {
            "status": status_breakdown,
            "priority": priority_breakdown,
        },
        "performance": {
            "resolution_rate": _rate(resolved, total),
            "escalation_rate": _rate(escalated or 0, total),
        },
    }


# =====================================================
# CATEGORY
# =====================================================
async def category_report(
    db: AsyncSession,
    start: datetime | None = None,
    end: datetime | None = None,
) -> dict:
    categories = (
        await db.execute(select(Category).order_by(Category.id))
    ).scalars().all()

    by_category = defaultdict(list)
    for row in await _complaint_rows(db, start, end):
        by_category[row.category_id].append(row)

    stats = []
    for category in categories:
        rows = by_category.get(category.id, [])
        priority_breakdown = {p.value: 0 for p in ComplaintPriority}
        for r in rows:
            priority_breakdown[r.priority.value] += 1

        stats.append({
            "category_id": category.id,
            "category_name": category.name,
            "department": category.department,
            **_resolution_stats(rows),
            "priority_breakdown": priority_breakdown,
        })

    # Most active first; ties keep category id order
    stats.sort(key=lambda s: s["total"], reverse=True)

    return {
        "categories": stats,
        "summary": {
            "total_categories": len(stats),
            "most_active_category": stats[0]["category_name"] if stats and stats[0]["total"] else None,
            "avg_resolution_rate": _avg([s["resolution_rate"] for s in stats]),
        },
    }


# =====================================================
# STAFF
# =====================================================
async def staff_report(
    db: AsyncSession,
    start: datetime | None = None,
    end: datetime | None = None,
) -> dict:
    by_staff = defaultdict(list)
    for row in await _complaint_rows(db, start, end, Complaint.assigned_to_id.isnot(None)):
        by_staff[row.assigned_to_id].append(row)

    users = {}
    if by_staff:
        result = await db.execute(select(User).where(User.id.in_(list(by_staff))))
        users = {u.id: u for u in result.scalars().all()}

    stats = []
    for staff_id in sorted(by_staff):
        user = users.get(staff_id)
        stats.append({
            "staff_id": staff_id,
            "staff_name": user.display_name if user else None,
            "department": user.department if user else None,
            **_resolution_stats(by_staff[staff_id]),
        })

    stats.sort(key=lambda s: s["total"], reverse=True)

    top = None
    for s in stats:
        if top is None or s["resolution_rate"] > top["resolution_rate"]:
            top = s

    return {
        "staff": stats,
        "summary": {
            "total_staff": len(stats),
            "avg_resolution_rate": _avg([s["resolution_rate"] for s in stats]),
            "top_performer": top["staff_name"] if top else None,
        },
    }


# =====================================================
# TRENDS
# =====================================================
async def trend_report(
    db: AsyncSession,
    days: int = 30,
    granularity: str = "day",
    *,
    now: datetime | None = None,
) -> dict:
    fmt = TREND_FORMATS.get(granularity)
    if not fmt:
        raise AppException(
            400,
            f"Invalid granularity '{granularity}'. Use one of: {', '.join(TREND_FORMATS)}",
            ErrorCode.VALIDATION_ERROR,
        )

    now = now or utc_now()
    rows = await _complaint_rows(db, now - timedelta(days=days), None)

    buckets = defaultdict(lambda: {"submitted": 0, "resolved": 0, "escalated": 0})
    for r in rows:
        bucket = buckets[ensure_utc(r.created_at).strftime(fmt)]
        bucket["submitted"] += 1
        if r.status == ComplaintStatus.RESOLVED:
            bucket["resolved"] += 1
        if r.is_escalated:
            bucket["escalated"] += 1

    data = [{"period": period, **counts} for period, counts in sorted(buckets.items())]

    return {
        "period": f"Last {days} days",
        "granularity": granularity,
        "data": data,
        "summary": {
            "total_periods": len(data),
            "total_submitted": sum(d["submitted"] for d in data),
            "total_resolved": sum(d["resolved"] for d in data),
            "total_escalated": sum(d["escalated"] for d in data),
        },
    }


# =====================================================
# SLA
# =====================================================
async def sla_report(
    db: AsyncSession,
    start: datetime | None = None,
    end: datetime | None = None,
    *,
    now: datetime | None = None,
) -> dict:
    now = now or utc_now()

    by_priority = defaultdict(list)
    for row in await _complaint_rows(db, start, end):
        by_priority[row.priority].append(row)

    stats = []
    for priority in ComplaintPriority:
        rows = by_priority.get(priority)
        if not rows:
            continue

        overdue = sum(
            1 for r in rows
            if r.status not in TERMINAL_STATUSES and ensure_utc(r.deadline) < now
        )
        on_time = sum(
            1 for r in rows
            if r.status == ComplaintStatus.RESOLVED
            and r.resolved_at is not None
            and ensure_utc(r.resolved_at) < ensure_utc(r.deadline)
        )
        stats.append({
            "priority": priority.value,
            "total_complaints": len(rows),
            "overdue_count": overdue,
            "resolved_on_time_count": on_time,
            "sla_compliance": _rate(on_time, len(rows)),
            "avg_time_to_resolution": _avg(
                [h for h in (_resolution_hours(r) for r in rows) if h is not None]
            ),
        })

    total = sum(s["total_complaints"] for s in stats)
    on_time_total = sum(s["resolved_on_time_count"] for s in stats)

    return {
        "by_priority": stats,
        "overall": {
            "compliance": _rate(on_time_total, total),
            "total_complaints": total,
            "total_overdue": sum(s["overdue_count"] for s in stats),
            "total_resolved_on_time": on_time_total,
        },
    }


# =====================================================
# ESCALATIONS
# =====================================================
async def escalation_report(
    db: AsyncSession,
    start: datetime | None = None,
    end: datetime | None = None,
) -> dict:
    rows = await _complaint_rows(db, start, end, Complaint.is_escalated.is_(True))

    names = dict((await db.execute(select(Category.id, Category.name))).all())

    per_category = defaultdict(int)
    overdue_hours = []
    automatic = 0
    for r in rows:
        per_category[r.category_id] += 1
        if r.escalated_by_id is None:
            automatic += 1
        if r.escalated_at is not None:
            # Manual escalations can land before the deadline
            overdue_hours.append(max(0.0, hours_between(r.deadline, r.escalated_at)))

    return {
        "total_escalated": len(rows),
        "automatic": automatic,
        "manual": len(rows) - automatic,
        "avg_hours_overdue_at_escalation": _avg(overdue_hours),
        "by_category": [
            {
                "category_id": category_id,
                "category_name": names.get(category_id),
                "escalated": count,
            }
            for category_id, count in sorted(
                per_category.items(), key=lambda item: item[1], reverse=True
            )
        ],
    }


# =====================================================
# DASHBOARD
# =====================================================
async def dashboard_report(
    db: AsyncSession,
    start: datetime | None = None,
    end: datetime | None = None,
    trend_days: int = 30,
) -> dict:
    # One session cannot run queries concurrently, so these go one by one
    now = utc_now()
    report = {
        "generated_at": now,
        "date_range": {"start": start, "end": end},
        "overview": await overview_report(db, start, end, now=now),
        "trends": await trend_report(db, trend_days, now=now),
        "categories": await category_report(db, start, end),
        "staff": await staff_report(db, start, end),
        "sla": await sla_report(db, start, end, now=now),
        "escalations": await escalation_report(db, start, end),
    }
    logger.info("Dashboard report generated")
    return report
