# app/services/support/audit_service.py

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, desc, asc

from app.models.support.audit_log_models import AuditLog
from app.schemas.support.audit_log_schemas import (
    AuditLogOut,
    AuditLogFilters,
)
from app.utils.logger import get_logger

logger = get_logger(__name__)


async def list_audit_logs(
    *,
    db: AsyncSession,
    filters: AuditLogFilters,
):
    # -------------------------
    # Base queries
    # -------------------------
    query = select(AuditLog)
    count_query = select(func.count(AuditLog.id))

    # -------------------------
    # Filters
    # -------------------------
    conditions = []
    if filters.entity_type:
        conditions.append(AuditLog.entity_type == filters.entity_type)
    if filters.entity_id:
        conditions.append(AuditLog.entity_id == filters.entity_id)
    if filters.action:
        conditions.append(AuditLog.action == filters.action)
    if filters.username:
        conditions.append(AuditLog.username_snapshot.ilike(f"%{filters.username}%"))

    if conditions:
        query = query.where(*conditions)
        count_query = count_query.where(*conditions)

    # -------------------------
    # Sorting
    # -------------------------
    order_fn = asc if filters.sort_order == "asc" else desc
    query = query.order_by(order_fn(AuditLog.created_at), order_fn(AuditLog.id))

    # -------------------------
    # Pagination
    # -------------------------
    offset = (filters.page - 1) * filters.page_size
    query = query.limit(filters.page_size).offset(offset)

    # -------------------------
    # Execute
    # -------------------------
    total = await db.scalar(count_query)
    result = await db.execute(query)

    logs = result.scalars().all()

    logger.info(
        "Audit logs fetched",
        extra={
            "total": total,
            "page": filters.page,
            "page_size": filters.page_size,
        },
    )

    return {
        "total": total or 0,
        "items": [AuditLogOut.model_validate(a) for a in logs],
    }
