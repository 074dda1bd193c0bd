from sqlalchemy import Column, Integer, String, ForeignKey, Index
from app.core.db import Base
from app.models.base.mixins import TimestampMixin


class UserActivity(Base, TimestampMixin):
    """Audit trail of complaint, category and scheduler actions. Append-only."""

    __tablename__ = "user_activity"

    id = Column(Integer, primary_key=True)
    # NULL for actions taken by the escalation scheduler
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    username_snapshot = Column(String(150), nullable=False, index=True)
    # ActivityCode value, so the log can be filtered without parsing messages
    action = Column(String(50), nullable=False, index=True)
    message = Column(String, nullable=False)

    __table_args__ = (
        Index("ix_user_activity_user_created", "user_id", "created_at"),
        Index("ix_user_activity_action_created", "action", "created_at"),
    )

    def __repr__(self):
        return f"<UserActivity id={self.id} action={self.action} user={self.username_snapshot}>"
