# app/routers/masters/product_router.py

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.services import ServiceContainer, get_services
from app.schemas.masters.product_schemas import (
    ProductCreate,
    ProductUpdate,
    ProductOut,
    ProductListData,
    VersionPayload,
)
from app.schemas.inventory.stock_schemas import (
    StockMovementCreate,
    StockMovementOut,
    StockMovementListData,
    LowStockProductOut,
)
from app.services.masters.product_service import (
    create_product,
    list_products,
    get_product,
    update_product,
    deactivate_product,
)
from app.services.inventory.stock_service import (
    record_stock_movement,
    list_stock_movements,
    get_low_stock_products,
)
from app.utils.check_roles import require_role, ALL_ROLES, MANAGERS
from app.utils.response import APIResponse, success_response
from app.utils.logger import get_logger

router = APIRouter(prefix="/products", tags=["Products"])
logger = get_logger(__name__)


@router.post("/", response_model=APIResponse[ProductOut])
async def create_product_api(
    payload: ProductCreate,
    db: AsyncSession = Depends(get_db),
    services: ServiceContainer = Depends(get_services),
    user=Depends(require_role(MANAGERS)),
):
    logger.info("Create product", extra={"product_name": payload.name})
    product = await create_product(db, payload, user)
    services.inventory_sync.schedule()
    return success_response("Product created successfully", product)


@router.get("/", response_model=APIResponse[ProductListData])
async def list_products_api(
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(ALL_ROLES)),
    search: str | None = Query(None, description="Search by name"),
    category: str | None = Query(None),
    supplier_id: int | None = Query(None),
    include_deleted: bool = Query(False),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    sort_by: str = Query("created_at"),
    order: str = Query("desc"),
):
    logger.info("List products", extra={"search": search})
    data = await list_products(
        db=db,
        search=search,
        category=category,
        supplier_id=supplier_id,
        include_deleted=include_deleted,
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        order=order,
    )
    return success_response("Products fetched successfully", data)


# declared before /{product_id} so the path is not parsed as an id
@router.get("/low-stock", response_model=APIResponse[List[LowStockProductOut]])
async def low_stock_api(
    supplier_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(ALL_ROLES)),
):
    data = await get_low_stock_products(db, supplier_id=supplier_id)
    return success_response("Low stock products fetched successfully", data)


@router.get("/movements", response_model=APIResponse[StockMovementListData])
async def list_movements_api(
    product_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(ALL_ROLES)),
):
    data = await list_stock_movements(db, product_id=product_id, page=page, page_size=page_size)
    return success_response("Stock movements fetched successfully", data)


@router.post("/movements", response_model=APIResponse[StockMovementOut])
async def record_movement_api(
    payload: StockMovementCreate,
    db: AsyncSession = Depends(get_db),
    services: ServiceContainer = Depends(get_services),
    user=Depends(require_role(ALL_ROLES)),
):
    logger.info(
        "Record stock movement",
        extra={"product_id": payload.product_id, "movement_type": payload.movement_type.value},
    )
    movement = await record_stock_movement(
        db,
        product_id=payload.product_id,
        movement_type=payload.movement_type,
        quantity=payload.quantity,
        user=user,
        reason=payload.reason,
        reference_type="manual",
    )
    await db.commit()
    services.inventory_sync.schedule()
    return success_response("Stock movement recorded", StockMovementOut.model_validate(movement))


@router.get("/{product_id}", response_model=APIResponse[ProductOut])
async def get_product_api(
    product_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(ALL_ROLES)),
):
    product = await get_product(db, product_id)
    return success_response("Product fetched successfully", product)


@router.patch("/{product_id}", response_model=APIResponse[ProductOut])
async def update_product_api(
    product_id: int,
    payload: ProductUpdate,
    db: AsyncSession = Depends(get_db),
    services: ServiceContainer = Depends(get_services),
    user=Depends(require_role(MANAGERS)),
):
    product = await update_product(db, product_id, payload, user)
    services.inventory_sync.schedule()
    return success_response("Product updated successfully", product)


@router.patch("/{product_id}/deactivate", response_model=APIResponse[ProductOut])
async def deactivate_product_api(
    product_id: int,
    payload: VersionPayload,
    db: AsyncSession = Depends(get_db),
    services: ServiceContainer = Depends(get_services),
    user=Depends(require_role(["admin"])),
):
    product = await deactivate_product(db, product_id, payload.version, user)
    services.inventory_sync.schedule()
    return success_response("Product deactivated successfully", product)
