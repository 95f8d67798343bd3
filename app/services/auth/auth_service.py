from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from app.models.users.user_models import User
from app.constants.error_codes import ErrorCode
from app.core.exceptions import AppException
from app.core.security import verify_password, create_access_token
from app.core.config import ACCESS_TOKEN_EXPIRE_MINUTES
from app.utils.activity_helpers import emit_activity
from app.constants.activity_codes import ActivityCode
from app.utils.logger import get_logger

logger = get_logger("auth.service")


# =====================================================
# LOGIN
# =====================================================
async def login_user(db: AsyncSession, email: str, password: str):
    logger.info("Authenticating user", extra={"email": email})

    result = await db.execute(
        select(User).where(User.username == email)
    )
    user = result.scalars().first()

    if not user or not verify_password(password, user.password_hash):
        logger.warning("Invalid credentials", extra={"email": email})
        raise AppException(401, "Invalid credentials", ErrorCode.UNAUTHORIZED)

    if not user.is_active:
        logger.warning("Inactive user login blocked", extra={"email": email})
        raise AppException(403, "User account is inactive", ErrorCode.PERMISSION_DENIED)

    user.last_login = datetime.now(timezone.utc)

    access_token = create_access_token(
        subject=user.username,
        token_version=user.token_version,
        role=user.role,
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )

    await emit_activity(
        db,
        user=user,
        code=ActivityCode.LOGIN,
        entity_type="user",
        entity_id=user.id,
    )

    await db.commit()

    logger.info("Login successful", extra={"user_id": user.id})

    return {
        "auth": {
            "access_token": access_token,
            "token_type": "bearer",
            "expires_in": ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        },
        "user": {
            "id": user.id,
            "username": user.username,
            "full_name": user.full_name,
            "role": user.role,
        },
    }


# =====================================================
# LOGOUT
# =====================================================
async def logout_user(db: AsyncSession, user: User):
    logger.info("Logging out user", extra={"user_id": user.id})

    # bumping the version invalidates every token issued so far
    user.token_version += 1

    await emit_activity(
        db,
        user=user,
        code=ActivityCode.LOGOUT,
        entity_type="user",
        entity_id=user.id,
    )

    await db.commit()

    logger.info("Logout successful", extra={"user_id": user.id})
