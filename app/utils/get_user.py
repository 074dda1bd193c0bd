from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.constants.error_codes import ErrorCode
from app.core.db import get_db
from app.core.exceptions import AppException
from app.core.security import decode_access_token
from app.models.users.user_models import User
from app.utils.logger import get_logger

logger = get_logger("auth.guard")


def _unauthorized(message: str) -> AppException:
    return AppException(401, message, ErrorCode.UNAUTHORIZED)


async def get_current_user(
    request: Request,
    authorization: str | None = Header(None),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the bearer token issued by the identity service to a local user row."""
    if not authorization or not authorization.startswith("Bearer "):
        logger.warning("Missing bearer token", extra={"path": request.url.path})
        raise _unauthorized("Invalid authorization header")

    payload = decode_access_token(authorization.removeprefix("Bearer ").strip())

    username = payload.get("sub")
    result = await db.execute(select(User).where(User.username == username))
    user = result.scalars().first()

    if not user:
        logger.warning("Token user not found", extra={"username": username})
        raise _unauthorized("User not found")

    if not user.is_active:
        logger.warning("Inactive user access blocked", extra={"user_id": user.id})
        raise AppException(403, "User account is inactive", ErrorCode.PERMISSION_DENIED)

    if user.token_version != payload.get("token_version"):
        logger.warning("Token version mismatch", extra={"user_id": user.id})
        raise _unauthorized("Session expired")

    request.state.user = user
    return user
