from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from app.models.enums.complaint_status import ComplaintStatus, ComplaintPriority
from app.utils.response import ListData


class UserBrief(BaseModel):
    id: int
    username: str
    full_name: Optional[str] = None
    department: Optional[str] = None

    class Config:
        from_attributes = True


class CategoryBrief(BaseModel):
    id: int
    name: str
    department: str
    resolution_time_hours: Optional[int] = None

    class Config:
        from_attributes = True


class StatusHistoryOut(BaseModel):
    status: ComplaintStatus
    actor_id: Optional[int]
    actor_name: str
    remarks: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class ComplaintNoteOut(BaseModel):
    note: str
    added_by_id: Optional[int]
    added_by_name: str
    created_at: datetime

    class Config:
        from_attributes = True


class ComplaintCreate(BaseModel):
    title: str = Field(..., min_length=5, max_length=200)
    description: str = Field(..., min_length=10, max_length=2000)
    category_id: int
    priority: ComplaintPriority = ComplaintPriority.MEDIUM


class ComplaintPriorityUpdate(BaseModel):
    priority: ComplaintPriority


class ComplaintStatusUpdate(BaseModel):
    status: ComplaintStatus
    remarks: Optional[str] = Field(None, max_length=500)


class ComplaintReopen(BaseModel):
    remarks: Optional[str] = Field(None, max_length=500)


class ComplaintNoteCreate(BaseModel):
    note: str = Field(..., min_length=1, max_length=1000)


class ComplaintOut(BaseModel):
    id: int
    ticket_number: str
    title: str
    description: str
    priority: ComplaintPriority
    status: ComplaintStatus
    category: CategoryBrief
    submitted_by: Optional[UserBrief]
    assigned_to: Optional[UserBrief]
    deadline: datetime
    resolved_at: Optional[datetime]
    is_escalated: bool
    escalated_at: Optional[datetime]
    escalated_by_id: Optional[int]
    escalation_reason: Optional[str]
    created_at: datetime
    updated_at: Optional[datetime]
    status_history: list[StatusHistoryOut] = []
    notes: list[ComplaintNoteOut] = []

    class Config:
        from_attributes = True


ComplaintListData = ListData[ComplaintOut]
