from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Enum as SAEnum, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.db import Base
from app.models.enums.complaint_status import ComplaintStatus, ComplaintPriority
from app.utils.datetime_utils import utc_now


class Complaint(Base):
    __tablename__ = "complaints"

    id = Column(Integer, primary_key=True)
    ticket_number = Column(String(32), unique=True, nullable=False, index=True)

    # Fixed at submission
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False, index=True)
    submitted_by_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)

    priority = Column(SAEnum(ComplaintPriority, native_enum=False), nullable=False, default=ComplaintPriority.MEDIUM, index=True)
    status = Column(SAEnum(ComplaintStatus, native_enum=False), nullable=False, default=ComplaintStatus.SUBMITTED, index=True)
    assigned_to_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    deadline = Column(DateTime(timezone=True), nullable=False, index=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    # Escalation sub-record; escalated_by is NULL for system sweeps
    is_escalated = Column(Boolean, default=False, nullable=False, index=True)
    escalated_at = Column(DateTime(timezone=True), nullable=True)
    escalated_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    escalation_reason = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    category = relationship("Category", lazy="selectin")
    submitted_by = relationship("User", foreign_keys=[submitted_by_id], lazy="selectin")
    assigned_to = relationship("User", foreign_keys=[assigned_to_id], lazy="selectin")
    escalated_by = relationship("User", foreign_keys=[escalated_by_id], lazy="selectin")

    status_history = relationship(
        "ComplaintStatusHistory",
        order_by="ComplaintStatusHistory.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )
    notes = relationship(
        "ComplaintNote",
        order_by="ComplaintNote.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_complaint_deadline_status", "deadline", "status"),
        Index("ix_complaint_assignee_status", "assigned_to_id", "status"),
        Index("ix_complaint_category_priority", "category_id", "priority"),
    )

    def __repr__(self):
        return f"<Complaint id={self.id} ticket={self.ticket_number} status={self.status} priority={self.priority}>"


class ComplaintStatusHistory(Base):
    """APPEND-ONLY. Rows are never updated or deleted; id order is the timeline."""

    __tablename__ = "complaint_status_history"

    id = Column(Integer, primary_key=True)
    complaint_id = Column(Integer, ForeignKey("complaints.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(SAEnum(ComplaintStatus, native_enum=False), nullable=False)
    actor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    actor_name = Column(String(150), nullable=False)
    remarks = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    def __repr__(self):
        return f"<ComplaintStatusHistory complaint={self.complaint_id} status={self.status}>"


class ComplaintNote(Base):
    __tablename__ = "complaint_notes"

    id = Column(Integer, primary_key=True)
    complaint_id = Column(Integer, ForeignKey("complaints.id", ondelete="CASCADE"), nullable=False, index=True)
    note = Column(String(1000), nullable=False)
    added_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    added_by_name = Column(String(150), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
