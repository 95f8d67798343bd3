# app/routers/support/audit_log_router.py

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.schemas.support.audit_log_schemas import AuditLogFilters, AuditLogListData
from app.services.support.audit_service import list_audit_logs
from app.utils.check_roles import require_role, MANAGERS
from app.utils.response import APIResponse, success_response
from app.utils.logger import get_logger

router = APIRouter(prefix="/audit-logs", tags=["Audit Logs"])
logger = get_logger(__name__)


@router.get("/", response_model=APIResponse[AuditLogListData])
async def list_audit_logs_api(
    filters: AuditLogFilters = Depends(),
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(MANAGERS)),
):
    logger.info(
        "List audit logs requested",
        extra=filters.model_dump(exclude_none=True),
    )

    result = await list_audit_logs(db=db, filters=filters)

    return success_response(
        "Audit logs fetched successfully",
        result,
    )
