# app/core/security.py

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError, ExpiredSignatureError

from app.constants.error_codes import ErrorCode
from app.core.exceptions import AppException
from app.core.config import (
    JWT_ACCESS_SECRET_KEY,
    JWT_ALGORITHM,
    ACCESS_TOKEN_EXPIRE_MINUTES,
)

# Users are provisioned and logged in by the identity service. This module
# mints tokens for tooling and tests and validates the ones it receives.


def _unauthorized(message: str) -> AppException:
    return AppException(401, message, ErrorCode.UNAUTHORIZED)


# =====================================================
# ACCESS TOKEN
# =====================================================
def create_access_token(
    subject: str,
    token_version: int,
    expires_delta: Optional[timedelta] = None,
) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))

    payload = {
        "sub": subject,
        "token_version": token_version,
        "type": "access",
        "iat": now,
        "exp": expire,
    }

    return jwt.encode(payload, JWT_ACCESS_SECRET_KEY, algorithm=JWT_ALGORITHM)


# =====================================================
# DECODE + VALIDATE TOKEN
# =====================================================
def decode_access_token(token: str) -> dict:
    try:
        payload = jwt.decode(
            token,
            JWT_ACCESS_SECRET_KEY,
            algorithms=[JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except JWTError:
        raise _unauthorized("Invalid token")

    if payload.get("type") != "access":
        raise _unauthorized("Invalid token type")
    if not payload.get("sub"):
        raise _unauthorized("Token has no subject")

    return payload
