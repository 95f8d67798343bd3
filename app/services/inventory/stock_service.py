import math
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from app.models.masters.product_models import Product
from app.models.inventory.stock_movement_models import StockMovement
from app.models.enums.stock_movement_type import StockMovementType
from app.core.exceptions import AppException
from app.constants.error_codes import ErrorCode
from app.constants.activity_codes import ActivityCode
from app.utils.activity_helpers import emit_activity
from app.utils.decimal_utils import to_quantity
from app.utils.logger import get_logger

logger = get_logger(__name__)

CONSUMPTION_WINDOW_DAYS = 30
ALLOWED_REFERENCE_TYPES = {"quotation", "invoice", "manual", "backup"}


# =====================================================
# MOVEMENTS
# =====================================================
async def record_stock_movement(
    db: AsyncSession,
    *,
    product_id: int,
    movement_type: StockMovementType,
    quantity,
    user,
    reason: Optional[str] = None,
    reference_type: Optional[str] = None,
    reference_id: Optional[int] = None,
) -> StockMovement:
    """Apply a movement to ``current_stock`` and log it. The caller commits.

    ``entry`` adds, ``exit`` subtracts, ``adjustment`` sets the absolute count.
    """
    quantity = to_quantity(quantity)

    if quantity < 0:
        raise AppException(400, "Quantity cannot be negative", ErrorCode.INVALID_STOCK_MOVEMENT)
    if quantity == 0 and movement_type != StockMovementType.adjustment:
        raise AppException(400, "Quantity must be positive", ErrorCode.INVALID_STOCK_MOVEMENT)
    if reference_type is not None and reference_type not in ALLOWED_REFERENCE_TYPES:
        raise AppException(400, "Invalid stock reference type", ErrorCode.INVALID_STOCK_MOVEMENT)

    product = (
        await db.execute(
            select(Product).where(Product.id == product_id).with_for_update()
        )
    ).scalar_one_or_none()

    if not product or product.is_deleted:
        raise AppException(404, "Product not found", ErrorCode.PRODUCT_NOT_FOUND)

    current = to_quantity(product.current_stock)
    if movement_type == StockMovementType.entry:
        new_stock = current + quantity
    elif movement_type == StockMovementType.exit:
        new_stock = current - quantity
    else:
        new_stock = quantity

    if new_stock < 0:
        logger.warning(
            "Insufficient stock",
            extra={"product_id": product_id, "current": str(current), "requested": str(quantity)},
        )
        raise AppException(
            409,
            f"Insufficient stock for {product.name}: {current} available",
            ErrorCode.INSUFFICIENT_STOCK,
        )

    product.current_stock = new_stock
    product.updated_by_id = user.id if user is not None else None

    movement = StockMovement(
        product_id=product.id,
        movement_type=movement_type,
        quantity=quantity,
        stock_after=new_stock,
        reason=reason,
        reference_type=reference_type,
        reference_id=reference_id,
        created_by_id=user.id if user is not None else None,
    )
    db.add(movement)
    await db.flush()

    await emit_activity(
        db,
        user=user,
        code=ActivityCode.STOCK_MOVEMENT,
        entity_type="product",
        entity_id=product.id,
        previous_state={"current_stock": current},
        new_state={"current_stock": new_stock},
        target_name=product.name,
        movement_type=movement_type.value,
        quantity=quantity,
        stock_after=new_stock,
    )

    return movement


async def list_stock_movements(
    db: AsyncSession,
    *,
    product_id: Optional[int],
    page: int,
    page_size: int,
):
    stmt = select(StockMovement)
    if product_id is not None:
        stmt = stmt.where(StockMovement.product_id == product_id)

    total = await db.scalar(select(func.count()).select_from(stmt.subquery()))
    rows = (
        await db.execute(
            stmt.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
    ).scalars().all()

    return {"total": total or 0, "items": rows}


# =====================================================
# LOW STOCK
# =====================================================
def _as_utc(value: datetime) -> datetime:
    # sqlite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def check_low_stock_products(
    products: Iterable,
    movements: Iterable,
    now: Optional[datetime] = None,
) -> list[dict]:
    """Products at or below their minimum, annotated with consumption figures.

    ``daily_rate`` is the exit volume of the last 30 days divided by 30.
    ``days_until_stockout`` is ``None`` when nothing was consumed.
    """
    now = now or datetime.now(timezone.utc)
    window_start = now - timedelta(days=CONSUMPTION_WINDOW_DAYS)

    exits: dict[int, float] = {}
    for m in movements:
        if m.movement_type != StockMovementType.exit:
            continue
        if m.created_at is None or _as_utc(m.created_at) < window_start:
            continue
        exits[m.product_id] = exits.get(m.product_id, 0.0) + float(m.quantity or 0)

    low: list[dict] = []
    for product in products:
        current = float(product.current_stock or 0)
        minimum = float(product.min_stock or 0)
        if current > minimum:
            continue

        daily_rate = exits.get(product.id, 0.0) / CONSUMPTION_WINDOW_DAYS
        maximum = float(product.max_stock) if product.max_stock else minimum * 3

        low.append({
            "id": product.id,
            "name": product.name,
            "category": product.category,
            "unit": product.unit,
            "supplier_id": product.supplier_id,
            "current_stock": current,
            "min_stock": minimum,
            "max_stock": float(product.max_stock) if product.max_stock is not None else None,
            "daily_rate": daily_rate,
            "quantity_to_order": maximum - current,
            "days_until_stockout": math.floor(current / daily_rate) if daily_rate > 0 else None,
            "urgency": "critical" if current <= minimum * 0.5 else "warning",
        })
    return low


async def get_low_stock_products(
    db: AsyncSession,
    *,
    supplier_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> list[dict]:
    now = now or datetime.now(timezone.utc)

    stmt = select(Product).where(
        Product.is_deleted.is_(False),
        Product.current_stock <= Product.min_stock,
    )
    if supplier_id is not None:
        stmt = stmt.where(Product.supplier_id == supplier_id)
    products = (await db.execute(stmt.order_by(Product.name))).scalars().all()

    if not products:
        return []

    movements = (
        await db.execute(
            select(StockMovement).where(
                StockMovement.product_id.in_([p.id for p in products]),
                StockMovement.movement_type == StockMovementType.exit,
                StockMovement.created_at >= now - timedelta(days=CONSUMPTION_WINDOW_DAYS),
            )
        )
    ).scalars().all()

    return check_low_stock_products(products, movements, now)
