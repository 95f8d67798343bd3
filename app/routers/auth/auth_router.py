from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.schemas.auth.auth_schemas import AuthUserOut, LoginRequest, LoginData
from app.services.auth.auth_service import login_user, logout_user
from app.utils.get_user import get_current_user
from app.utils.response import APIResponse, success_response
from app.utils.logger import get_logger

logger = get_logger("auth.router")

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/login", response_model=APIResponse[LoginData])
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)):
    data = await login_user(db, payload.email, payload.password)
    return success_response("Login successful", data)


@router.get("/me", response_model=APIResponse[AuthUserOut])
async def current_user_api(current_user=Depends(get_current_user)):
    return success_response(
        "Current user",
        AuthUserOut.model_validate(current_user, from_attributes=True),
    )


@router.post("/logout")
async def logout(
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    await logout_user(db, current_user)
    return success_response("Logged out successfully")
