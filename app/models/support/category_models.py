from sqlalchemy import Column, Integer, String, Boolean
from app.core.db import Base
from app.models.base.mixins import TimestampMixin


class Category(Base, TimestampMixin):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(String(500), nullable=True)
    department = Column(String(100), nullable=False, index=True)
    # Baseline hours before breach; falls back to the per-priority defaults when unset
    resolution_time_hours = Column(Integer, nullable=True, default=24)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    def __repr__(self):
        return f"<Category id={self.id} name={self.name} department={self.department}>"
