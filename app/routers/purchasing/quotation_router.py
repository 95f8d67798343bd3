from typing import List

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.services import ServiceContainer, get_services
from app.models.enums.quotation_status import QuotationStatus
from app.utils.check_roles import require_role, ALL_ROLES, MANAGERS
from app.utils.response import success_response, APIResponse
from app.utils.pdf_generators.quotation_pdf import build_quotation_pdf
from app.utils.logger import get_logger

from app.schemas.purchasing.quotation_schemas import (
    QuotationCreate,
    QuotationOut,
    QuotationListData,
    QuotationHistoryOut,
    SendQuotationPayload,
    SupplierResponsePayload,
    ConfirmOrderPayload,
    MarkShippedPayload,
    ConfirmReceiptPayload,
    FollowUpPayload,
    CancelPayload,
    StatusChangePayload,
    NegotiationAnalysis,
)

from app.services.purchasing.quotation_service import (
    create_quotation,
    get_quotation,
    get_quotation_model,
    get_quotation_history,
    list_quotations,
    send_quotation_email,
    process_supplier_response,
    confirm_order,
    mark_shipped,
    confirm_receipt,
    request_follow_up,
    cancel_quotation,
    update_quotation_status,
)

router = APIRouter(
    prefix="/quotations",
    tags=["Quotations"],
)
logger = get_logger(__name__)


@router.post(
    "",
    response_model=APIResponse[QuotationOut],
)
async def create_quotation_api(
    payload: QuotationCreate,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(ALL_ROLES)),
):
    quotation = await create_quotation(db, payload, user)
    return success_response(
        "Quotation created successfully",
        quotation,
    )


@router.get(
    "/",
    response_model=APIResponse[QuotationListData],
)
async def list_quotations_api(
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(ALL_ROLES)),
    status: QuotationStatus | None = Query(None, description="Filter by status"),
    supplier_id: int | None = Query(None, description="Filter by supplier"),
    needs_manual_review: bool | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    sort_by: str = Query("created_at"),
    order: str = Query("desc"),
):
    data = await list_quotations(
        db=db,
        status=status,
        supplier_id=supplier_id,
        needs_manual_review=needs_manual_review,
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        order=order,
    )
    return success_response(
        "Quotations retrieved successfully",
        data,
    )


@router.get(
    "/{quotation_id}",
    response_model=APIResponse[QuotationOut],
)
async def get_quotation_api(
    quotation_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(ALL_ROLES)),
):
    quotation = await get_quotation(db, quotation_id)
    return success_response(
        "Quotation retrieved successfully",
        quotation,
    )


@router.get(
    "/{quotation_id}/history",
    response_model=APIResponse[List[QuotationHistoryOut]],
)
async def get_quotation_history_api(
    quotation_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(ALL_ROLES)),
):
    history = await get_quotation_history(db, quotation_id)
    return success_response(
        "Quotation history retrieved successfully",
        history,
    )


@router.get("/{quotation_id}/pdf")
async def get_quotation_pdf_api(
    quotation_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(ALL_ROLES)),
):
    quotation = await get_quotation_model(db, quotation_id)
    pdf = build_quotation_pdf(quotation)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'inline; filename="{quotation.quotation_number}.pdf"'
        },
    )


@router.get(
    "/{quotation_id}/negotiation",
    response_model=APIResponse[NegotiationAnalysis],
)
async def analyze_negotiation_api(
    quotation_id: int,
    db: AsyncSession = Depends(get_db),
    services: ServiceContainer = Depends(get_services),
    user=Depends(require_role(MANAGERS)),
):
    quotation = await get_quotation_model(db, quotation_id)
    analysis = await services.negotiator.analyze_quotation(db, quotation)
    return success_response(
        "Negotiation analysis completed",
        analysis,
    )


# =====================================================
# WORKFLOW
# =====================================================
@router.post(
    "/{quotation_id}/send",
    response_model=APIResponse[QuotationOut],
)
async def send_quotation_api(
    quotation_id: int,
    payload: SendQuotationPayload | None = None,
    db: AsyncSession = Depends(get_db),
    services: ServiceContainer = Depends(get_services),
    user=Depends(require_role(ALL_ROLES)),
):
    logger.info("Send quotation request", extra={"quotation_id": quotation_id})
    quotation = await send_quotation_email(db, services.gemini, quotation_id, user, payload)
    return success_response("Quotation request sent", quotation)


@router.post(
    "/{quotation_id}/supplier-response",
    response_model=APIResponse[QuotationOut],
)
async def supplier_response_api(
    quotation_id: int,
    payload: SupplierResponsePayload,
    db: AsyncSession = Depends(get_db),
    services: ServiceContainer = Depends(get_services),
    user=Depends(require_role(ALL_ROLES)),
):
    logger.info("Process supplier response", extra={"quotation_id": quotation_id})
    quotation = await process_supplier_response(
        db, services.gemini, quotation_id, payload.email_body, user
    )
    message = (
        "Supplier response needs manual review"
        if quotation.needs_manual_review
        else "Supplier response processed"
    )
    return success_response(message, quotation)


@router.post(
    "/{quotation_id}/confirm",
    response_model=APIResponse[QuotationOut],
)
async def confirm_order_api(
    quotation_id: int,
    payload: ConfirmOrderPayload | None = None,
    db: AsyncSession = Depends(get_db),
    services: ServiceContainer = Depends(get_services),
    user=Depends(require_role(MANAGERS)),
):
    quotation = await confirm_order(db, services.gemini, quotation_id, user, payload)
    return success_response("Order confirmed", quotation)


@router.post(
    "/{quotation_id}/ship",
    response_model=APIResponse[QuotationOut],
)
async def mark_shipped_api(
    quotation_id: int,
    payload: MarkShippedPayload | None = None,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(ALL_ROLES)),
):
    quotation = await mark_shipped(db, quotation_id, user, payload)
    return success_response("Order marked as shipped", quotation)


@router.post(
    "/{quotation_id}/receive",
    response_model=APIResponse[QuotationOut],
)
async def confirm_receipt_api(
    quotation_id: int,
    payload: ConfirmReceiptPayload | None = None,
    db: AsyncSession = Depends(get_db),
    services: ServiceContainer = Depends(get_services),
    user=Depends(require_role(ALL_ROLES)),
):
    quotation = await confirm_receipt(db, services.gemini, quotation_id, user, payload)
    services.inventory_sync.schedule()
    return success_response("Order received", quotation)


@router.post(
    "/{quotation_id}/follow-up",
    response_model=APIResponse[QuotationOut],
)
async def follow_up_api(
    quotation_id: int,
    payload: FollowUpPayload,
    db: AsyncSession = Depends(get_db),
    services: ServiceContainer = Depends(get_services),
    user=Depends(require_role(ALL_ROLES)),
):
    quotation = await request_follow_up(db, services.gemini, quotation_id, payload.reason, user)
    return success_response("Follow-up recorded", quotation)


@router.post(
    "/{quotation_id}/cancel",
    response_model=APIResponse[QuotationOut],
)
async def cancel_quotation_api(
    quotation_id: int,
    payload: CancelPayload,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(MANAGERS)),
):
    quotation = await cancel_quotation(db, quotation_id, payload.reason, user)
    return success_response("Quotation cancelled", quotation)


@router.patch(
    "/{quotation_id}/status",
    response_model=APIResponse[QuotationOut],
)
async def change_status_api(
    quotation_id: int,
    payload: StatusChangePayload,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(MANAGERS)),
):
    quotation = await update_quotation_status(
        db, quotation_id, payload.status, user, metadata=payload.metadata
    )
    return success_response("Quotation status updated", quotation)
