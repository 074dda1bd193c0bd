from fastapi import Depends

from app.constants.error_codes import ErrorCode
from app.core.exceptions import AppException
from app.models.users.user_models import User
from app.utils.get_user import get_current_user


def require_role(roles: list[str]):
    async def role_checker(user: User = Depends(get_current_user)):
        if user.role.value not in [r.lower() for r in roles]:
            raise AppException(403, "Permission denied", ErrorCode.PERMISSION_DENIED)
        return user
    return role_checker
