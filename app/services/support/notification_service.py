import logging
from typing import Protocol

from app.models.support.complaint_models import Complaint
from app.models.users.user_models import User
from app.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


class NotificationGateway(Protocol):
    async def notify_escalated(self, complaint: Complaint, reason: str) -> None:
        ...

    async def notify_assigned(self, complaint: Complaint, staff: User, assigner: User | None) -> None:
        ...

    async def notify_escalation_summary(self, summary: dict) -> None:
        ...


class LoggingNotificationGateway:
    """Default gateway. Delivery (email/push) is owned by another service; we hand it the payload via the log."""

    async def notify_escalated(self, complaint: Complaint, reason: str) -> None:
        logger.info(
            "Escalation notification",
            extra={
                "complaint_id": complaint.id,
                "ticket": complaint.ticket_number,
                "submitted_by": complaint.submitted_by.username if complaint.submitted_by else None,
                "assigned_to": complaint.assigned_to.username if complaint.assigned_to else None,
                "reason": reason,
                "escalated_at": utc_now().isoformat(),
            },
        )

    async def notify_assigned(self, complaint: Complaint, staff: User, assigner: User | None) -> None:
        logger.info(
            "Assignment notification",
            extra={
                "complaint_id": complaint.id,
                "ticket": complaint.ticket_number,
                "staff": staff.username,
                "assigned_by": assigner.username if assigner else "system",
            },
        )

    async def notify_escalation_summary(self, summary: dict) -> None:
        logger.info(
            "Admin escalation summary: %s escalated, %s errors",
            summary.get("escalated_count"),
            summary.get("error_count"),
        )


default_gateway = LoggingNotificationGateway()


async def safe_notify(send, *args, **kwargs) -> bool:
    """
    Deliver a notification without letting its failure reach the caller.
    Status changes are already committed when this runs.
    """
    try:
        await send(*args, **kwargs)
        return True
    except Exception:
        logger.exception("Notification delivery failed", extra={"channel": getattr(send, "__name__", "unknown")})
        return False
