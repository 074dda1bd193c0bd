from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class ManualEscalationRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class IntervalUpdate(BaseModel):
    # Range is enforced by the scheduler so the error carries INVALID_INTERVAL
    minutes: int


class SweepDetail(BaseModel):
    complaint_id: int
    ticket_number: Optional[str] = None
    status: str
    reason: Optional[str] = None
    hours_overdue: Optional[int] = None
    error: Optional[str] = None


class SweepResult(BaseModel):
    escalated_count: int
    error_count: int
    details: list[SweepDetail] = []


class EscalationCandidate(BaseModel):
    id: int
    ticket_number: str
    title: str
    priority: str
    status: str
    deadline: datetime
    hours_overdue: int
    assigned_to: Optional[str] = None


class EscalationPreview(BaseModel):
    count: int
    complaints: list[EscalationCandidate]


class AtRiskComplaint(BaseModel):
    id: int
    ticket_number: str
    title: str
    priority: str
    status: str
    deadline: datetime
    hours_until_deadline: int
    minutes_until_deadline: int
    risk_level: str
    assigned_to: Optional[str] = None


class SchedulerStatus(BaseModel):
    active: bool
    running: bool
    interval_minutes: int
    next_run_at: Optional[datetime] = None
    last_run_at: Optional[datetime] = None
    last_result: Optional[SweepResult] = None
