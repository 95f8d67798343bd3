from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.error_codes import ErrorCode
from app.core.db import get_db
from app.core.exceptions import AppException
from app.core.security import decode_access_token
from app.models.users.user_models import User
from app.utils.logger import get_logger

logger = get_logger("auth.guard")

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(message: str) -> AppException:
    return AppException(401, message, ErrorCode.UNAUTHORIZED)


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the staff member behind a bearer token.

    Tokens carry the user's ``token_version``; logging out bumps it, so any
    token issued before the logout is rejected as an expired session.
    """
    if credentials is None:
        logger.warning("Missing bearer token", extra={"path": request.url.path})
        raise _unauthorized("Invalid authorization header")

    payload = decode_access_token(credentials.credentials)
    username = payload.get("sub")

    user = await db.scalar(select(User).where(User.username == username))
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
