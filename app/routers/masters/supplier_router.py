from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.schemas.masters.supplier_schemas import (
    SupplierCreate,
    SupplierUpdate,
    SupplierOut,
    SupplierListData,
    SupplierProductOut,
    VersionPayload,
)
from app.services.masters.supplier_service import (
    create_supplier,
    get_supplier,
    list_suppliers,
    list_supplier_products,
    update_supplier,
    deactivate_supplier,
)
from app.utils.check_roles import require_role, ALL_ROLES, MANAGERS
from app.utils.response import APIResponse, success_response
from app.utils.logger import get_logger

router = APIRouter(prefix="/suppliers", tags=["Suppliers"])
logger = get_logger(__name__)


@router.post("/", response_model=APIResponse[SupplierOut])
async def create_supplier_api(
    payload: SupplierCreate,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(MANAGERS)),
):
    logger.info("Create supplier", extra={"supplier_name": payload.name})
    supplier = await create_supplier(db, payload, user)
    return success_response("Supplier created successfully", supplier)


@router.get("/", response_model=APIResponse[SupplierListData])
async def list_suppliers_api(
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(ALL_ROLES)),
    search: Optional[str] = Query(None, description="Name, company, email or phone"),
    is_deleted: Optional[bool] = Query(False),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc"),
):
    data = await list_suppliers(
        db=db,
        search=search,
        is_deleted=is_deleted,
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return success_response("Suppliers fetched successfully", data)


@router.get("/{supplier_id}", response_model=APIResponse[SupplierOut])
async def get_supplier_api(
    supplier_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(ALL_ROLES)),
):
    supplier = await get_supplier(db, supplier_id)
    return success_response("Supplier fetched successfully", supplier)


@router.get(
    "/{supplier_id}/products",
    response_model=APIResponse[List[SupplierProductOut]],
)
async def list_supplier_products_api(
    supplier_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(ALL_ROLES)),
):
    products = await list_supplier_products(db, supplier_id)
    return success_response("Supplier products fetched successfully", products)


@router.patch("/{supplier_id}", response_model=APIResponse[SupplierOut])
async def update_supplier_api(
    supplier_id: int,
    payload: SupplierUpdate,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(MANAGERS)),
):
    logger.info("Update supplier", extra={"supplier_id": supplier_id})
    supplier = await update_supplier(db, supplier_id, payload, user)
    return success_response("Supplier updated successfully", supplier)


@router.patch(
    "/{supplier_id}/deactivate",
    response_model=APIResponse[SupplierOut],
)
async def deactivate_supplier_api(
    supplier_id: int,
    payload: VersionPayload,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(["admin"])),
):
    logger.info(
        "Deactivate supplier",
        extra={"supplier_id": supplier_id, "version": payload.version, "actor_id": user.id},
    )
    supplier = await deactivate_supplier(
        db=db,
        supplier_id=supplier_id,
        version=payload.version,
        user=user,
    )
    return success_response("Supplier deactivated successfully", supplier)
