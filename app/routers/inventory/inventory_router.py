from typing import Any, List

from fastapi import APIRouter, Body, Depends
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.exceptions import AppException
from app.core.services import ServiceContainer, get_services
from app.constants.error_codes import ErrorCode
from app.schemas.inventory.inventory_backup_schemas import (
    InventoryBackup,
    InventoryImportResult,
    CategoriesPayload,
    InventorySnapshotOut,
    InventorySyncStatus,
)
from app.services.inventory.inventory_backup_service import (
    export_inventory_backup,
    export_inventory_csv,
    import_inventory_backup,
    list_categories,
    update_categories,
)
from app.services.inventory.inventory_sync_service import get_inventory_snapshot
from app.utils.check_roles import require_role, ALL_ROLES, MANAGERS
from app.utils.response import APIResponse, success_response
from app.utils.logger import get_logger

router = APIRouter(prefix="/inventory", tags=["Inventory"])
logger = get_logger(__name__)


@router.get("/export", response_model=APIResponse[InventoryBackup])
async def export_backup_api(
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(MANAGERS)),
):
    data = await export_inventory_backup(db)
    return success_response("Inventory exported", data)


@router.get("/export/csv")
async def export_csv_api(
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(MANAGERS)),
):
    content = await export_inventory_csv(db)
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="inventory.csv"'},
    )


@router.post("/import", response_model=APIResponse[InventoryImportResult])
async def import_backup_api(
    payload: Any = Body(...),
    db: AsyncSession = Depends(get_db),
    services: ServiceContainer = Depends(get_services),
    user=Depends(require_role(["admin"])),
):
    logger.info("Inventory import requested", extra={"actor_id": user.id})
    result = await import_inventory_backup(db, payload, user)
    services.inventory_sync.schedule()
    return success_response("Inventory restored", result)


@router.get("/categories", response_model=APIResponse[List[str]])
async def list_categories_api(
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(ALL_ROLES)),
):
    return success_response("Categories fetched", await list_categories(db))


@router.put("/categories", response_model=APIResponse[List[str]])
async def update_categories_api(
    payload: CategoriesPayload,
    db: AsyncSession = Depends(get_db),
    services: ServiceContainer = Depends(get_services),
    user=Depends(require_role(MANAGERS)),
):
    categories = await update_categories(db, payload.categories, user)
    services.inventory_sync.schedule()
    return success_response("Categories updated", categories)


@router.get("/snapshot", response_model=APIResponse[InventorySnapshotOut])
async def get_snapshot_api(
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(ALL_ROLES)),
):
    snapshot = await get_inventory_snapshot(db)
    if snapshot is None:
        raise AppException(404, "No inventory snapshot available", ErrorCode.NOT_FOUND)
    return success_response("Inventory snapshot fetched", snapshot)


@router.post("/sync", response_model=APIResponse[InventorySyncStatus])
async def sync_now_api(
    services: ServiceContainer = Depends(get_services),
    user=Depends(require_role(MANAGERS)),
):
    services.inventory_sync.schedule()
    await services.inventory_sync.flush()
    return success_response("Inventory synced", services.inventory_sync.as_dict())


@router.get("/sync/status", response_model=APIResponse[InventorySyncStatus])
async def sync_status_api(
    services: ServiceContainer = Depends(get_services),
    user=Depends(require_role(ALL_ROLES)),
):
    return success_response("Inventory sync status", services.inventory_sync.as_dict())
