# app/schemas/support/audit_log_schemas.py

from pydantic import BaseModel
from typing import Any, Optional, List
from datetime import datetime
from fastapi import Query


class AuditLogFilters(BaseModel):
    entity_type: Optional[str] = Query(None)
    entity_id: Optional[str] = Query(None)
    action: Optional[str] = Query(None)
    username: Optional[str] = Query(None)

    page: int = Query(1, ge=1)
    page_size: int = Query(20, ge=1, le=100)

    sort_order: str = Query("desc")


class AuditLogOut(BaseModel):
    id: int
    entity_type: str
    entity_id: str
    action: str
    previous_state: Optional[dict[str, Any]]
    new_state: Optional[dict[str, Any]]
    diff: Optional[dict[str, Any]]
    user_id: Optional[int]
    username_snapshot: str
    message: str
    created_at: datetime

    class Config:
        from_attributes = True


class AuditLogListData(BaseModel):
    total: int
    items: List[AuditLogOut]
