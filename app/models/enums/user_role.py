import enum


class UserRole(str, enum.Enum):
    USER = "user"
    STAFF = "staff"
    ADMIN = "admin"


ASSIGNABLE_ROLES = frozenset({UserRole.STAFF, UserRole.ADMIN})
