# app/services/masters/product_service.py

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from app.models.masters.product_models import Product
from app.models.masters.supplier_models import Supplier
from app.schemas.masters.product_schemas import (
    ProductCreate,
    ProductUpdate,
    ProductOut,
)
from app.core.exceptions import AppException
from app.constants.error_codes import ErrorCode
from app.constants.activity_codes import ActivityCode
from app.utils.activity_helpers import emit_activity
from app.utils.logger import get_logger

logger = get_logger(__name__)

ALLOWED_SORT_FIELDS = {
    "name": Product.name,
    "category": Product.category,
    "current_stock": Product.current_stock,
    "price_per_unit": Product.price_per_unit,
    "created_at": Product.created_at,
}

PRODUCT_AUDIT_FIELDS = (
    "name", "category", "subcategory", "unit", "package_quantity",
    "package_count", "price_per_unit", "current_stock", "min_stock",
    "max_stock", "supplier_id", "purchase_date", "is_deleted",
)


def product_snapshot(product: Product) -> dict:
    return {f: getattr(product, f) for f in PRODUCT_AUDIT_FIELDS}


async def get_active_product(db: AsyncSession, product_id: int) -> Product:
    product = await db.get(Product, product_id)
    if not product or product.is_deleted:
        raise AppException(404, "Product not found", ErrorCode.PRODUCT_NOT_FOUND)
    return product


async def _ensure_supplier(db: AsyncSession, supplier_id: Optional[int]) -> None:
    if supplier_id is None:
        return
    supplier = await db.get(Supplier, supplier_id)
    if not supplier or supplier.is_deleted:
        raise AppException(404, "Supplier not found", ErrorCode.SUPPLIER_NOT_FOUND)


async def _ensure_unique_name(
    db: AsyncSession, name: str, category: Optional[str], exclude_id: Optional[int] = None
) -> None:
    stmt = select(Product.id).where(
        func.lower(Product.name) == name.lower(),
        Product.category.is_(None) if category is None else Product.category == category,
        Product.is_deleted.is_(False),
    )
    if exclude_id is not None:
        stmt = stmt.where(Product.id != exclude_id)
    if await db.scalar(stmt):
        raise AppException(
            409,
            "Product with this name already exists in the category",
            ErrorCode.PRODUCT_NAME_EXISTS,
        )


# ---------------- CREATE ----------------
async def create_product(db: AsyncSession, payload: ProductCreate, user) -> ProductOut:
    await _ensure_unique_name(db, payload.name, payload.category)
    await _ensure_supplier(db, payload.supplier_id)

    product = Product(
        **payload.model_dump(),
        created_by_id=user.id,
        updated_by_id=user.id,
    )
    db.add(product)
    await db.flush()

    await emit_activity(
        db,
        user=user,
        code=ActivityCode.CREATE_PRODUCT,
        entity_type="product",
        entity_id=product.id,
        new_state=product_snapshot(product),
        target_name=product.name,
    )

    await db.commit()
    await db.refresh(product)
    logger.info("Product created", extra={"product_id": product.id})
    return ProductOut.model_validate(product)


# ---------------- GET ----------------
async def get_product(db: AsyncSession, product_id: int) -> ProductOut:
    return ProductOut.model_validate(await get_active_product(db, product_id))


# ---------------- LIST ----------------
async def list_products(
    *,
    db: AsyncSession,
    search: Optional[str],
    category: Optional[str],
    supplier_id: Optional[int],
    include_deleted: bool,
    page: int,
    page_size: int,
    sort_by: str,
    order: str,
):
    sort_col = ALLOWED_SORT_FIELDS.get(sort_by)
    if sort_col is None:
        raise AppException(400, "Invalid sort field", ErrorCode.VALIDATION_ERROR)

    stmt = select(Product)
    if not include_deleted:
        stmt = stmt.where(Product.is_deleted.is_(False))
    if search:
        stmt = stmt.where(Product.name.ilike(f"%{search}%"))
    if category:
        stmt = stmt.where(Product.category == category)
    if supplier_id is not None:
        stmt = stmt.where(Product.supplier_id == supplier_id)

    total = await db.scalar(select(func.count()).select_from(stmt.subquery()))

    stmt = stmt.order_by(sort_col.desc() if order.lower() == "desc" else sort_col.asc(), Product.id)
    stmt = stmt.limit(page_size).offset((page - 1) * page_size)
    rows = (await db.execute(stmt)).scalars().all()

    return {"total": total or 0, "items": [ProductOut.model_validate(p) for p in rows]}


# ---------------- UPDATE ----------------
async def update_product(db: AsyncSession, product_id: int, payload: ProductUpdate, user) -> ProductOut:
    product = await get_active_product(db, product_id)

    if product.version != payload.version:
        raise AppException(
            409,
            "Product was modified by another process",
            ErrorCode.PRODUCT_VERSION_CONFLICT,
        )

    before = product_snapshot(product)
    changes = payload.model_dump(exclude_unset=True, exclude={"version"})
    changes = {k: v for k, v in changes.items() if v != before.get(k)}

    if not changes:
        raise AppException(400, "No changes detected", ErrorCode.VALIDATION_ERROR)

    if "name" in changes or "category" in changes:
        await _ensure_unique_name(
            db,
            changes.get("name", product.name),
            changes.get("category", product.category),
            exclude_id=product.id,
        )
    if "supplier_id" in changes:
        await _ensure_supplier(db, changes["supplier_id"])

    for field, value in changes.items():
        setattr(product, field, value)
    product.version += 1
    product.updated_by_id = user.id

    await emit_activity(
        db,
        user=user,
        code=ActivityCode.UPDATE_PRODUCT,
        entity_type="product",
        entity_id=product.id,
        previous_state=before,
        new_state=product_snapshot(product),
        target_name=product.name,
        changes=", ".join(sorted(changes)),
    )

    await db.commit()
    await db.refresh(product)
    return ProductOut.model_validate(product)


# ---------------- DEACTIVATE ----------------
async def deactivate_product(db: AsyncSession, product_id: int, version: int, user) -> ProductOut:
    product = await get_active_product(db, product_id)

    if product.version != version:
        raise AppException(
            409,
            "Product was modified by another process",
            ErrorCode.PRODUCT_VERSION_CONFLICT,
        )

    before = product_snapshot(product)
    product.is_deleted = True
    product.version += 1
    product.updated_by_id = user.id

    await emit_activity(
        db,
        user=user,
        code=ActivityCode.DEACTIVATE_PRODUCT,
        entity_type="product",
        entity_id=product.id,
        previous_state=before,
        new_state=product_snapshot(product),
        target_name=product.name,
    )

    await db.commit()
    await db.refresh(product)
    return ProductOut.model_validate(product)
