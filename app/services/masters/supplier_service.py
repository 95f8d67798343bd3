from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
import uuid
import re
from typing import Optional

from app.models.masters.product_models import Product
from app.models.masters.supplier_models import Supplier
from app.schemas.masters.supplier_schemas import (
    SupplierCreate,
    SupplierUpdate,
    SupplierOut,
    SupplierProductOut,
)
from app.core.exceptions import AppException
from app.constants.error_codes import ErrorCode
from app.constants.activity_codes import ActivityCode
from app.utils.activity_helpers import emit_activity
from app.utils.logger import get_logger

logger = get_logger(__name__)

SUPPLIER_AUDIT_FIELDS = (
    "name", "company", "email", "phone", "whatsapp", "address", "auto_order_enabled", "is_deleted",
)


# =========================
# CODE GENERATOR
# =========================
def generate_supplier_code(name: str, phone: Optional[str]) -> str:
    clean_name = re.sub(r"[^A-Za-z]", "", name or "").upper()
    prefix_name = clean_name[:3].ljust(3, "X")
    digits = re.sub(r"[^0-9]", "", phone or "")
    prefix_phone = digits[-3:] if len(digits) >= 3 else digits.zfill(3)
    unique_part = uuid.uuid4().hex[:6].upper()
    return f"SUP-{prefix_name}{prefix_phone}-{unique_part}"


def _snapshot(supplier: Supplier) -> dict:
    return {f: getattr(supplier, f) for f in SUPPLIER_AUDIT_FIELDS}


async def _get_active(db: AsyncSession, supplier_id: int) -> Supplier:
    supplier = await db.get(Supplier, supplier_id)
    if not supplier or supplier.is_deleted:
        raise AppException(
            404,
            "Supplier not found",
            ErrorCode.SUPPLIER_NOT_FOUND,
        )
    return supplier


# =========================
# CREATE
# =========================
async def create_supplier(
    db: AsyncSession,
    payload: SupplierCreate,
    user,
) -> SupplierOut:
    exists = await db.scalar(
        select(Supplier.id).where(
            Supplier.name == payload.name,
            Supplier.is_deleted.is_(False),
        )
    )
    if exists:
        raise AppException(
            409,
            "Supplier already exists",
            ErrorCode.SUPPLIER_NAME_EXISTS,
        )

    supplier = Supplier(
        supplier_code=generate_supplier_code(payload.name, payload.phone),
        **payload.model_dump(),
        created_by_id=user.id,
        updated_by_id=user.id,
    )

    db.add(supplier)

    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise AppException(
            409,
            "Supplier already exists",
            ErrorCode.SUPPLIER_NAME_EXISTS,
        )

    await emit_activity(
        db,
        user=user,
        code=ActivityCode.CREATE_SUPPLIER,
        entity_type="supplier",
        entity_id=supplier.id,
        new_state=_snapshot(supplier),
        target_name=supplier.name,
    )

    await db.commit()
    await db.refresh(supplier)

    return SupplierOut.model_validate(supplier)


# =========================
# GET / LIST
# =========================
async def get_supplier(db: AsyncSession, supplier_id: int) -> SupplierOut:
    supplier = await _get_active(db, supplier_id)
    return SupplierOut.model_validate(supplier)


async def list_suppliers(
    *,
    db: AsyncSession,
    search: Optional[str],
    is_deleted: Optional[bool],
    page: int,
    page_size: int,
    sort_by: str,
    sort_order: str,
):
    sort_map = {
        "name": Supplier.name,
        "created_at": Supplier.created_at,
        "email": Supplier.email,
        "company": Supplier.company,
    }

    sort_col = sort_map.get(sort_by)
    if sort_col is None:
        raise AppException(400, "Invalid sort field", ErrorCode.VALIDATION_ERROR)

    stmt = select(Supplier)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(
            Supplier.name.ilike(pattern)
            | Supplier.company.ilike(pattern)
            | Supplier.email.ilike(pattern)
            | Supplier.phone.ilike(pattern)
        )
    if is_deleted is not None:
        stmt = stmt.where(Supplier.is_deleted.is_(is_deleted))

    total = await db.scalar(select(func.count()).select_from(stmt.subquery()))

    stmt = stmt.order_by(sort_col.desc() if sort_order.lower() == "desc" else sort_col.asc())
    stmt = stmt.limit(page_size).offset((page - 1) * page_size)

    rows = (await db.execute(stmt)).scalars().all()

    return {
        "total": total or 0,
        "items": [SupplierOut.model_validate(s) for s in rows],
    }


# =========================
# UPDATE
# =========================
async def update_supplier(
    db: AsyncSession,
    supplier_id: int,
    payload: SupplierUpdate,
    user,
) -> SupplierOut:
    current = await _get_active(db, supplier_id)
    before = _snapshot(current)

    changes = payload.model_dump(exclude_unset=True, exclude={"version"})
    changes = {k: v for k, v in changes.items() if v != before.get(k)}

    if not changes:
        raise AppException(
            400,
            "No changes detected",
            ErrorCode.VALIDATION_ERROR,
        )

    if "name" in changes:
        exists = await db.scalar(
            select(Supplier.id).where(
                Supplier.name == changes["name"],
                Supplier.id != supplier_id,
                Supplier.is_deleted.is_(False),
            )
        )
        if exists:
            raise AppException(
                409,
                "Supplier name already exists",
                ErrorCode.SUPPLIER_NAME_EXISTS,
            )

    result = await db.execute(
        update(Supplier)
        .where(
            Supplier.id == supplier_id,
            Supplier.version == payload.version,
            Supplier.is_deleted.is_(False),
        )
        .values(
            **changes,
            version=Supplier.version + 1,
            updated_by_id=user.id,
        )
        .execution_options(synchronize_session="fetch")
    )

    if result.rowcount == 0:
        raise AppException(
            409,
            "Supplier was modified by another process",
            ErrorCode.SUPPLIER_VERSION_CONFLICT,
        )

    await db.refresh(current)
    after = _snapshot(current)

    await emit_activity(
        db,
        user=user,
        code=ActivityCode.UPDATE_SUPPLIER,
        entity_type="supplier",
        entity_id=current.id,
        previous_state=before,
        new_state=after,
        target_name=current.name,
        changes=", ".join(sorted(changes)),
    )

    await db.commit()
    await db.refresh(current)
    return SupplierOut.model_validate(current)


# =========================
# DEACTIVATE
# =========================
async def deactivate_supplier(
    *,
    db: AsyncSession,
    supplier_id: int,
    version: int,
    user,
) -> SupplierOut:
    supplier = await _get_active(db, supplier_id)
    if supplier.version != version:
        raise AppException(
            409,
            "Supplier was modified by another process or already deactivated",
            ErrorCode.SUPPLIER_VERSION_CONFLICT,
        )

    before = _snapshot(supplier)
    supplier.is_deleted = True
    supplier.version += 1
    supplier.updated_by_id = user.id

    await emit_activity(
        db,
        user=user,
        code=ActivityCode.DEACTIVATE_SUPPLIER,
        entity_type="supplier",
        entity_id=supplier.id,
        previous_state=before,
        new_state=_snapshot(supplier),
        target_name=supplier.name,
    )

    await db.commit()
    await db.refresh(supplier)
    return SupplierOut.model_validate(supplier)


# =========================
# LINKED PRODUCTS
# =========================
async def list_supplier_products(db: AsyncSession, supplier_id: int) -> list[SupplierProductOut]:
    """Active items sourced from the supplier, those below minimum stock first."""
    await _get_active(db, supplier_id)

    rows = (
        await db.execute(
            select(Product)
            .where(
                Product.supplier_id == supplier_id,
                Product.is_deleted.is_(False),
            )
            .order_by(Product.name.asc())
        )
    ).scalars().all()

    items = [
        SupplierProductOut.model_validate(p).model_copy(
            update={"below_minimum": p.current_stock < p.min_stock}
        )
        for p in rows
    ]
    return sorted(items, key=lambda i: not i.below_minimum)
