from sqlalchemy import Column, Integer, String, Boolean, Enum as SAEnum
from app.core.db import Base
from app.models.base.mixins import TimestampMixin
from app.models.enums.user_role import UserRole


class User(Base, TimestampMixin):
    """Read model of the identity service's users. Only staff/admin rows matter for assignment."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(String(150), unique=True, nullable=False, index=True)
    full_name = Column(String(150), nullable=True)
    role = Column(SAEnum(UserRole, native_enum=False), nullable=False, default=UserRole.USER, index=True)
    department = Column(String(100), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    token_version = Column(Integer, nullable=False, default=0)

    @property
    def display_name(self) -> str:
        return self.full_name or self.username

    def __repr__(self):
        return f"<User id={self.id} username={self.username} role={self.role} department={self.department}>"
