from fastapi import Depends

from app.constants.error_codes import ErrorCode
from app.core.exceptions import AppException
from app.models.users.user_models import User
from app.utils.get_user import get_current_user

ALL_ROLES = ["admin", "manager", "staff"]
# confirming orders, cancelling and negotiating spend money
MANAGERS = ["admin", "manager"]


def require_role(roles: list[str]):
    allowed = {r.lower() for r in roles}

    async def role_checker(user: User = Depends(get_current_user)):
        if user.role.lower() not in allowed:
            raise AppException(
                403,
                "Permission denied",
                ErrorCode.PERMISSION_DENIED,
                {"required_roles": sorted(allowed)},
            )
        return user
    return role_checker
