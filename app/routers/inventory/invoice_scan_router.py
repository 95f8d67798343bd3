from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.exceptions import AppException, GeminiError
from app.core.services import ServiceContainer, get_services
from app.constants.error_codes import ErrorCode
from app.models.masters.product_models import Product
from app.schemas.ai.ai_schemas import InvoiceScanRequest, InvoiceScanOut
from app.services.ai.invoice_scanner_service import (
    scan_invoice,
    process_invoice_items,
    validate_extraction,
)
from app.utils.check_roles import require_role, ALL_ROLES
from app.utils.response import APIResponse, success_response
from app.utils.logger import get_logger

router = APIRouter(prefix="/invoices", tags=["Invoice Scanner"])
logger = get_logger(__name__)


@router.post("/scan", response_model=APIResponse[InvoiceScanOut])
async def scan_invoice_api(
    payload: InvoiceScanRequest,
    db: AsyncSession = Depends(get_db),
    services: ServiceContainer = Depends(get_services),
    user=Depends(require_role(ALL_ROLES)),
):
    logger.info("Invoice scan requested", extra={"mime_type": payload.mime_type})

    try:
        invoice = await scan_invoice(services.gemini, payload.image_base64, payload.mime_type)
    except GeminiError as exc:
        raise AppException(
            502,
            "Could not read the invoice image",
            ErrorCode.INVOICE_SCAN_FAILED,
            details={"reason": str(exc)},
        )

    items = invoice.get("items") or []
    if payload.match_products and items:
        rows = (
            await db.execute(
                select(Product.id, Product.name, Product.unit)
                .where(Product.is_deleted.is_(False))
                .order_by(Product.name)
            )
        ).all()
        products = [{"id": r.id, "name": r.name, "unit": r.unit} for r in rows]
        items = await process_invoice_items(services.gemini, items, products)

    data = InvoiceScanOut(
        metadata=invoice.get("metadata"),
        items=items,
        overallConfidence=invoice.get("overallConfidence"),
        validation=validate_extraction(invoice),
    )
    return success_response("Invoice scanned", data)
