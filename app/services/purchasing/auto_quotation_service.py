from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import AUTO_QUOTATION_MAX_ITEMS
from app.core.exceptions import AppException
from app.constants.error_codes import ErrorCode
from app.models.enums.quotation_status import QuotationStatus, TERMINAL_STATUSES
from app.models.masters.supplier_models import Supplier
from app.models.purchasing.quotation_models import Quotation, QuotationItem
from app.schemas.purchasing.quotation_schemas import QuotationCreate, QuotationItemCreate
from app.services.inventory.stock_service import get_low_stock_products
from app.services.purchasing.quotation_service import create_quotation
from app.utils.decimal_utils import to_quantity
from app.utils.logger import get_logger

logger = get_logger(__name__)

OPEN_STATUSES = [s for s in QuotationStatus if s not in TERMINAL_STATUSES]

AUTO_QUOTATION_NOTE = "Created automatically from the low stock report"


async def _products_in_open_quotations(db: AsyncSession) -> set[int]:
    result = await db.execute(
        select(QuotationItem.product_id)
        .join(Quotation, Quotation.id == QuotationItem.quotation_id)
        .where(Quotation.status.in_(OPEN_STATUSES))
    )
    return set(result.scalars())


async def auto_create_quotations(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """Draft one quotation per auto-order supplier for its products at or below minimum.

    Products already on an open quotation are left out. Returns the number of drafts created.
    """
    suppliers = (
        await db.execute(
            select(Supplier).where(
                Supplier.auto_order_enabled.is_(True),
                Supplier.is_deleted.is_(False),
                Supplier.email.is_not(None),
            )
        )
    ).scalars().all()
    if not suppliers:
        return 0

    enabled = {s.id: s for s in suppliers}
    low = await get_low_stock_products(db, now=now)
    already_open = await _products_in_open_quotations(db)

    by_supplier: dict[int, list[dict]] = {}
    for item in low:
        if item["supplier_id"] not in enabled or item["id"] in already_open:
            continue
        if item["quantity_to_order"] <= 0:
            continue
        by_supplier.setdefault(item["supplier_id"], []).append(item)

    created = 0
    for supplier_id, items in by_supplier.items():
        payload = QuotationCreate(
            supplier_id=supplier_id,
            items=[
                QuotationItemCreate(product_id=i["id"], quantity=to_quantity(i["quantity_to_order"]))
                for i in items[:AUTO_QUOTATION_MAX_ITEMS]
            ],
            notes=AUTO_QUOTATION_NOTE,
        )
        try:
            quotation = await create_quotation(db, payload, None)
        except AppException as exc:
            if exc.error_code != ErrorCode.QUOTATION_DUPLICATE_DRAFT:
                raise
            logger.info(
                "Auto quotation skipped: identical draft exists",
                extra={"supplier_id": supplier_id},
            )
            continue

        created += 1
        logger.info(
            "Auto quotation drafted",
            extra={
                "quotation_id": quotation.id,
                "supplier_id": supplier_id,
                "items": len(payload.items),
            },
        )
    return created
