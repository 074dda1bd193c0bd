import enum


class ComplaintStatus(str, enum.Enum):
    SUBMITTED = "submitted"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"
    ESCALATED = "escalated"
    CLOSED = "closed"


class ComplaintPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


# Resolved/closed complaints are never escalated, assigned or selected by sweeps
TERMINAL_STATUSES = frozenset({ComplaintStatus.RESOLVED, ComplaintStatus.CLOSED})

HIGH_PRIORITIES = frozenset({ComplaintPriority.HIGH, ComplaintPriority.URGENT})
