from decimal import Decimal
from datetime import date, datetime, timezone
import hashlib
import uuid
from typing import List, Optional

from fastapi.encoders import jsonable_encoder
from pydantic import TypeAdapter, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, asc, desc
from sqlalchemy.orm import noload

from app.models.purchasing.quotation_models import Quotation, QuotationItem, QuotationHistory
from app.models.masters.supplier_models import Supplier
from app.models.masters.product_models import Product
from app.models.enums.quotation_status import QuotationStatus
from app.models.enums.stock_movement_type import StockMovementType

from app.schemas.purchasing.quotation_schemas import (
    QuotationCreate,
    QuotationOut,
    QuotationItemOut,
    QuotationHistoryOut,
    QuotationListData,
    QuotationListItem,
    SendQuotationPayload,
    ConfirmOrderPayload,
    MarkShippedPayload,
    ConfirmReceiptPayload,
)

from app.core.exceptions import AppException
from app.constants.error_codes import ErrorCode
from app.constants.activity_codes import ActivityCode
from app.services.ai.gemini_client import GeminiClient
from app.services.ai import email_drafting_service as drafts
from app.services.ai.supplier_response_parser import analyze_supplier_response, match_quoted_item
from app.services.inventory.stock_service import record_stock_movement
from app.services.purchasing.quotation_transitions import ensure_transition
from app.utils.activity_helpers import emit_activity, SYSTEM_ACTOR
from app.utils.decimal_utils import to_decimal, to_quantity
from app.utils.logger import get_logger

logger = get_logger(__name__)

# Metadata keys that land on quotation columns; anything else goes to additional_data.
QUOTATION_METADATA_COLUMNS = {
    "delivery_date",
    "delivery_days",
    "payment_terms",
    "supplier_notes",
    "notes",
    "email_subject",
    "email_body",
    "email_sent_at",
    "raw_supplier_response",
    "response_received_at",
    "ai_analysis",
    "needs_manual_review",
    "confirmed_at",
    "shipped_at",
    "received_at",
    "invoice_number",
}

# Typed columns; PATCH /status metadata arrives as JSON strings and numbers.
_METADATA_ADAPTERS = {
    "delivery_date": TypeAdapter(date),
    "delivery_days": TypeAdapter(int),
    "needs_manual_review": TypeAdapter(bool),
    "email_sent_at": TypeAdapter(datetime),
    "response_received_at": TypeAdapter(datetime),
    "confirmed_at": TypeAdapter(datetime),
    "shipped_at": TypeAdapter(datetime),
    "received_at": TypeAdapter(datetime),
}

FOLLOW_UP_TO_AWAITING = {
    QuotationStatus.pending,
    QuotationStatus.awaiting,
    QuotationStatus.quoted,
}
FOLLOW_UP_IN_PLACE = {
    QuotationStatus.ordered,
    QuotationStatus.shipped,
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def generate_item_signature(items: List[tuple[int, Decimal]]) -> str:
    normalized = sorted(f"{pid}:{to_quantity(qty)}" for pid, qty in items)
    return hashlib.sha256("|".join(normalized).encode()).hexdigest()


def recalculate_totals(q: Quotation) -> None:
    """Estimated total always; quoted total only once any line carries a quoted price."""
    q.estimated_total = to_decimal(
        sum((i.quantity * i.estimated_unit_price for i in q.items), Decimal("0"))
    )
    if any(i.quoted_unit_price is not None for i in q.items):
        q.quoted_total = to_decimal(
            sum((i.quantity * i.effective_unit_price for i in q.items), Decimal("0"))
        )
    else:
        q.quoted_total = None


def _coerce_metadata(key: str, value):
    adapter = _METADATA_ADAPTERS.get(key)
    if adapter is None or value is None:
        return value
    try:
        return adapter.validate_python(value)
    except ValidationError:
        raise AppException(
            400,
            f"Invalid value for {key}",
            ErrorCode.VALIDATION_ERROR,
            details={"field": key, "value": jsonable_encoder(value)},
        )


def _snapshot(q: Quotation) -> dict:
    return {
        "status": q.status,
        "estimated_total": q.estimated_total,
        "quoted_total": q.quoted_total,
        "needs_manual_review": q.needs_manual_review,
        "delivery_date": q.delivery_date,
        "payment_terms": q.payment_terms,
        "items": [
            {
                "product_id": i.product_id,
                "quantity": i.quantity,
                "estimated_unit_price": i.estimated_unit_price,
                "quoted_unit_price": i.quoted_unit_price,
            }
            for i in q.items
        ],
    }


def _item_payload(q: Quotation) -> list[dict]:
    return [
        {
            "name": i.product_name,
            "quantity": i.quantity,
            "unit": i.unit,
            "unit_price": i.effective_unit_price,
        }
        for i in q.items
    ]


async def _get_quotation(
    db: AsyncSession,
    quotation_id: int,
    *,
    for_update: bool = False,
) -> Quotation:
    stmt = select(Quotation).where(Quotation.id == quotation_id)
    if for_update:
        stmt = stmt.with_for_update()
    q = (await db.execute(stmt)).scalar_one_or_none()
    if not q:
        raise AppException(404, "Quotation not found", ErrorCode.QUOTATION_NOT_FOUND)
    return q


def _map_item(i: QuotationItem) -> QuotationItemOut:
    return QuotationItemOut(
        id=i.id,
        product_id=i.product_id,
        product_name=i.product_name,
        category=i.category,
        quantity=i.quantity,
        unit=i.unit,
        estimated_unit_price=i.estimated_unit_price,
        quoted_unit_price=i.quoted_unit_price,
        quoted_availability=i.quoted_availability,
        line_total=to_decimal(i.quantity * i.effective_unit_price),
    )


def _map_quotation(q: Quotation) -> QuotationOut:
    return QuotationOut(
        id=q.id,
        quotation_number=q.quotation_number,
        status=q.status,
        supplier_id=q.supplier_id,
        supplier_name=q.supplier_name,
        supplier_email=q.supplier_email,
        estimated_total=q.estimated_total,
        quoted_total=q.quoted_total,
        delivery_date=q.delivery_date,
        delivery_days=q.delivery_days,
        payment_terms=q.payment_terms,
        supplier_notes=q.supplier_notes,
        notes=q.notes,
        email_subject=q.email_subject,
        email_body=q.email_body,
        email_sent_at=q.email_sent_at,
        response_received_at=q.response_received_at,
        ai_analysis=q.ai_analysis,
        needs_manual_review=q.needs_manual_review,
        confirmed_at=q.confirmed_at,
        shipped_at=q.shipped_at,
        received_at=q.received_at,
        invoice_number=q.invoice_number,
        additional_data=q.additional_data,
        version=q.version,
        created_by_id=q.created_by_id,
        created_at=q.created_at,
        updated_at=q.updated_at,
        items=[_map_item(i) for i in q.items],
        history=[QuotationHistoryOut.model_validate(h) for h in q.history],
    )


# =====================================================
# TRANSITION CORE
# =====================================================
async def apply_transition(
    db: AsyncSession,
    q: Quotation,
    new_status: QuotationStatus,
    user,
    *,
    metadata: Optional[dict] = None,
    action: ActivityCode = ActivityCode.STATUS_CHANGE,
    enforce: bool = True,
    previous_state: Optional[dict] = None,
) -> QuotationHistory:
    """Move ``q`` to ``new_status``, append history and audit. The caller commits.

    ``enforce=False`` skips the legality table; only in-place follow-ups use it.
    """
    old_status = q.status
    if enforce:
        ensure_transition(old_status, new_status)

    before = previous_state if previous_state is not None else _snapshot(q)
    metadata = {key: _coerce_metadata(key, value) for key, value in (metadata or {}).items()}

    extra = dict(q.additional_data or {})
    for key, value in metadata.items():
        if key in QUOTATION_METADATA_COLUMNS:
            setattr(q, key, value)
        else:
            extra[key] = jsonable_encoder(value)

    q.additional_data = extra or None
    q.status = new_status
    q.version += 1
    q.updated_by_id = user.id if user is not None else None

    entry = QuotationHistory(
        status=new_status,
        previous_status=old_status,
        action=action.value,
        user_id=user.id if user is not None else None,
        username=user.username if user is not None else SYSTEM_ACTOR,
        details=jsonable_encoder(metadata) or None,
    )
    q.history.append(entry)

    await emit_activity(
        db,
        user=user,
        code=action,
        entity_type="quotation",
        entity_id=q.id,
        previous_state=before,
        new_state=_snapshot(q),
        target_name=q.quotation_number,
        supplier_name=q.supplier_name,
        old_status=QuotationStatus(old_status).value,
        new_status=QuotationStatus(new_status).value,
        quoted_total=q.quoted_total,
        total_value=q.quoted_total if q.quoted_total is not None else q.estimated_total,
        changes=metadata.get("reason") or f"{QuotationStatus(old_status).value} -> {QuotationStatus(new_status).value}",
    )

    logger.info(
        "Quotation transition",
        extra={
            "quotation_id": q.id,
            "from": QuotationStatus(old_status).value,
            "to": QuotationStatus(new_status).value,
            "action": action.value,
        },
    )
    return entry


async def update_quotation_status(
    db: AsyncSession,
    quotation_id: int,
    new_status: QuotationStatus,
    user,
    metadata: Optional[dict] = None,
    action: ActivityCode = ActivityCode.STATUS_CHANGE,
) -> QuotationOut:
    q = await _get_quotation(db, quotation_id, for_update=True)
    await apply_transition(db, q, new_status, user, metadata=metadata, action=action)
    await db.commit()
    return _map_quotation(q)


# =====================================================
# CREATE
# =====================================================
async def create_quotation(
    db: AsyncSession,
    payload: QuotationCreate,
    user,
) -> QuotationOut:
    supplier = await db.get(Supplier, payload.supplier_id)
    if not supplier or supplier.is_deleted:
        raise AppException(404, "Supplier not found", ErrorCode.SUPPLIER_NOT_FOUND)

    # collapse repeated product lines
    lines: dict[int, dict] = {}
    for i in payload.items:
        line = lines.setdefault(i.product_id, {"quantity": Decimal("0"), "price": None})
        line["quantity"] += i.quantity
        if line["price"] is None:
            line["price"] = i.estimated_unit_price

    result = await db.execute(
        select(Product).where(
            Product.id.in_(lines),
            Product.is_deleted.is_(False),
        )
    )
    products = {p.id: p for p in result.scalars()}
    if len(products) != len(lines):
        raise AppException(
            404,
            "Invalid product IDs",
            ErrorCode.PRODUCT_NOT_FOUND,
            details={"missing": sorted(set(lines) - set(products))},
        )

    signature = generate_item_signature(
        [(pid, line["quantity"]) for pid, line in lines.items()]
    )

    exists_draft = await db.scalar(
        select(
            select(Quotation.id)
            .where(
                Quotation.supplier_id == payload.supplier_id,
                Quotation.status == QuotationStatus.draft,
                Quotation.item_signature == signature,
            )
            .exists()
        )
    )
    if exists_draft:
        raise AppException(
            409,
            "A draft quotation with the same items already exists",
            ErrorCode.QUOTATION_DUPLICATE_DRAFT,
        )

    q = Quotation(
        quotation_number=f"TMP-{uuid.uuid4().hex[:12]}",
        status=QuotationStatus.draft,
        supplier_id=supplier.id,
        supplier_name=supplier.name,
        supplier_email=supplier.email,
        item_signature=signature,
        notes=payload.notes,
        needs_manual_review=False,
        version=1,
        created_by_id=user.id if user is not None else None,
        updated_by_id=user.id if user is not None else None,
    )
    items = []
    for pid, line in lines.items():
        p = products[pid]
        price = line["price"] if line["price"] is not None else p.price_per_unit
        items.append(
            QuotationItem(
                product_id=p.id,
                product_name=p.name,
                category=p.category,
                quantity=to_quantity(line["quantity"]),
                unit=p.unit,
                estimated_unit_price=to_decimal(price),
            )
        )
    q.items = items
    q.history = [
        QuotationHistory(
            status=QuotationStatus.draft,
            previous_status=None,
            action=ActivityCode.CREATE.value,
            user_id=user.id if user is not None else None,
            username=user.username if user is not None else SYSTEM_ACTOR,
            details={"items_count": len(lines)},
        )
    ]
    recalculate_totals(q)

    db.add(q)
    await db.flush()
    q.quotation_number = f"QT-{q.id:06d}"

    await emit_activity(
        db,
        user=user,
        code=ActivityCode.CREATE,
        entity_type="quotation",
        entity_id=q.id,
        new_state=_snapshot(q),
        target_name=q.quotation_number,
        supplier_name=q.supplier_name,
    )

    await db.commit()
    logger.info("Quotation created", extra={"quotation_id": q.id})
    return _map_quotation(q)


# =====================================================
# READ
# =====================================================
async def get_quotation(db: AsyncSession, quotation_id: int) -> QuotationOut:
    return _map_quotation(await _get_quotation(db, quotation_id))


async def get_quotation_model(db: AsyncSession, quotation_id: int) -> Quotation:
    return await _get_quotation(db, quotation_id)


async def get_quotation_history(db: AsyncSession, quotation_id: int) -> list[QuotationHistoryOut]:
    q = await _get_quotation(db, quotation_id)
    return [QuotationHistoryOut.model_validate(h) for h in q.history]


async def list_quotations(
    db: AsyncSession,
    status: Optional[QuotationStatus] = None,
    supplier_id: Optional[int] = None,
    needs_manual_review: Optional[bool] = None,
    page: int = 1,
    page_size: int = 20,
    sort_by: str = "created_at",
    order: str = "desc",
) -> QuotationListData:
    sort_map = {
        "created_at": Quotation.created_at,
        "updated_at": Quotation.updated_at,
        "quotation_number": Quotation.quotation_number,
        "estimated_total": Quotation.estimated_total,
    }
    sort_col = sort_map.get(sort_by)
    if sort_col is None:
        raise AppException(400, "Invalid sort field", ErrorCode.VALIDATION_ERROR)

    stmt = select(Quotation)
    if status is not None:
        stmt = stmt.where(Quotation.status == status)
    if supplier_id is not None:
        stmt = stmt.where(Quotation.supplier_id == supplier_id)
    if needs_manual_review is not None:
        stmt = stmt.where(Quotation.needs_manual_review.is_(needs_manual_review))

    total = await db.scalar(select(func.count()).select_from(stmt.subquery()))

    rows = (
        await db.execute(
            stmt.options(noload(Quotation.history))
            .order_by(asc(sort_col) if order == "asc" else desc(sort_col), Quotation.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
    ).scalars().all()

    return QuotationListData(
        total=total or 0,
        items=[
            QuotationListItem(
                id=q.id,
                quotation_number=q.quotation_number,
                status=q.status,
                supplier_id=q.supplier_id,
                supplier_name=q.supplier_name,
                items_count=len(q.items),
                estimated_total=q.estimated_total,
                quoted_total=q.quoted_total,
                needs_manual_review=q.needs_manual_review,
                created_at=q.created_at,
                updated_at=q.updated_at,
            )
            for q in rows
        ],
    )


# =====================================================
# SEND REQUEST EMAIL  (draft -> pending)
# =====================================================
async def send_quotation_email(
    db: AsyncSession,
    client: GeminiClient,
    quotation_id: int,
    user,
    payload: Optional[SendQuotationPayload] = None,
) -> QuotationOut:
    payload = payload or SendQuotationPayload()
    q = await _get_quotation(db, quotation_id, for_update=True)
    ensure_transition(q.status, QuotationStatus.pending)

    if payload.subject and payload.body:
        subject, body, source = payload.subject, payload.body, "manual"
    else:
        kwargs = {"sender_name": payload.sender_name} if payload.sender_name else {}
        draft = await drafts.generate_quotation_email(
            client,
            supplier_name=q.supplier_name,
            items=_item_payload(q),
            **kwargs,
        )
        subject, body, source = draft.subject, draft.body, draft.source

    await apply_transition(
        db,
        q,
        QuotationStatus.pending,
        user,
        metadata={
            "email_subject": subject,
            "email_body": body,
            "email_sent_at": _now(),
            "email_source": source,
            "recipient": q.supplier_email,
        },
        action=ActivityCode.EMAIL_SENT,
    )
    await db.commit()
    return _map_quotation(q)


# =====================================================
# SUPPLIER RESPONSE  (-> quoted | awaiting)
# =====================================================
async def process_supplier_response(
    db: AsyncSession,
    client: GeminiClient,
    quotation_id: int,
    email_body: str,
    user,
) -> QuotationOut:
    q = await _get_quotation(db, quotation_id, for_update=True)
    ensure_transition(q.status, QuotationStatus.quoted)

    analysis = await analyze_supplier_response(
        client, email_body, [i.product_name for i in q.items]
    )
    received_at = _now()

    if not analysis.success:
        await apply_transition(
            db,
            q,
            QuotationStatus.awaiting,
            user,
            metadata={
                "needs_manual_review": True,
                "raw_supplier_response": email_body,
                "response_received_at": received_at,
                "ai_analysis_error": analysis.error,
                "reason": f"automatic analysis failed: {analysis.error}",
            },
            action=ActivityCode.AI_RESPONSE_FAILED,
        )
        await db.commit()
        return _map_quotation(q)

    before = _snapshot(q)
    data = analysis.data
    quoted_items = data.get("items") or []

    matched = 0
    for item in q.items:
        match = match_quoted_item(item.product_name, quoted_items)
        if not match:
            continue
        matched += 1
        if match.get("unitPrice") is not None:
            item.quoted_unit_price = to_decimal(match["unitPrice"])
        if match.get("availableQuantity") is not None:
            item.quoted_availability = to_quantity(match["availableQuantity"])

    recalculate_totals(q)

    await apply_transition(
        db,
        q,
        QuotationStatus.quoted,
        user,
        metadata={
            "delivery_date": data.get("deliveryDate"),
            "delivery_days": data.get("deliveryDays"),
            "payment_terms": data.get("paymentTerms"),
            "supplier_notes": data.get("supplierNotes"),
            "ai_analysis": jsonable_encoder(data),
            "raw_supplier_response": email_body,
            "response_received_at": received_at,
            "needs_manual_review": False,
            "matched_items": matched,
        },
        action=ActivityCode.AI_RESPONSE_PROCESSED,
        previous_state=before,
    )
    await db.commit()
    return _map_quotation(q)


# =====================================================
# CONFIRM ORDER  (quoted -> ordered)
# =====================================================
async def confirm_order(
    db: AsyncSession,
    client: GeminiClient,
    quotation_id: int,
    user,
    payload: Optional[ConfirmOrderPayload] = None,
) -> QuotationOut:
    payload = payload or ConfirmOrderPayload()
    q = await _get_quotation(db, quotation_id, for_update=True)

    if q.status != QuotationStatus.quoted:
        raise AppException(
            409,
            "Only quoted quotations can be confirmed",
            ErrorCode.QUOTATION_INVALID_STATE,
        )

    delivery_date = payload.delivery_date or q.delivery_date
    draft = await drafts.generate_confirmation_email(
        client,
        supplier_name=q.supplier_name,
        ordered_items=_item_payload(q),
        delivery_date=delivery_date,
    )

    metadata = {
        "confirmed_at": _now(),
        "delivery_date": delivery_date,
        "confirmation_email": draft.model_dump(),
    }
    if payload.notes:
        metadata["notes"] = payload.notes

    await apply_transition(
        db, q, QuotationStatus.ordered, user,
        metadata=metadata,
        action=ActivityCode.ORDER_CONFIRMED,
    )
    await db.commit()
    return _map_quotation(q)


# =====================================================
# SHIPPED  (ordered -> shipped)
# =====================================================
async def mark_shipped(
    db: AsyncSession,
    quotation_id: int,
    user,
    payload: Optional[MarkShippedPayload] = None,
) -> QuotationOut:
    payload = payload or MarkShippedPayload()
    q = await _get_quotation(db, quotation_id, for_update=True)

    metadata = {"shipped_at": _now()}
    metadata.update(payload.model_dump(exclude_none=True))

    await apply_transition(
        db, q, QuotationStatus.shipped, user,
        metadata=metadata,
        action=ActivityCode.ORDER_SHIPPED,
    )
    await db.commit()
    return _map_quotation(q)


# =====================================================
# RECEIPT  (ordered | shipped -> received)
# =====================================================
def _order_summary(q: Quotation) -> dict:
    return {
        "quotation_number": q.quotation_number,
        "supplier_id": q.supplier_id,
        "supplier_name": q.supplier_name,
        "estimated_total": q.estimated_total,
        "quoted_total": q.quoted_total,
        "invoice_number": q.invoice_number,
        "items": [
            {
                "product_id": i.product_id,
                "product_name": i.product_name,
                "quantity": i.quantity,
                "unit": i.unit,
                "unit_price": i.effective_unit_price,
                "line_total": to_decimal(i.quantity * i.effective_unit_price),
            }
            for i in q.items
        ],
        "timeline": [
            {"status": h.status, "action": h.action, "at": h.created_at, "by": h.username}
            for h in q.history
        ],
    }


async def confirm_receipt(
    db: AsyncSession,
    client: GeminiClient,
    quotation_id: int,
    user,
    payload: Optional[ConfirmReceiptPayload] = None,
) -> QuotationOut:
    payload = payload or ConfirmReceiptPayload()
    q = await _get_quotation(db, quotation_id, for_update=True)
    ensure_transition(q.status, QuotationStatus.received)

    overrides = {i.product_id: i.received_quantity for i in payload.items or []}

    received_items = []
    for item in q.items:
        quantity = to_quantity(overrides.get(item.product_id, item.quantity))
        product = await db.get(Product, item.product_id)
        if quantity <= 0 or product is None or product.is_deleted:
            logger.warning(
                "Skipping stock entry on receipt",
                extra={"quotation_id": q.id, "product_id": item.product_id},
            )
            continue
        await record_stock_movement(
            db,
            product_id=item.product_id,
            movement_type=StockMovementType.entry,
            quantity=quantity,
            user=user,
            reason=f"Received {q.quotation_number}",
            reference_type="quotation",
            reference_id=q.id,
        )
        received_items.append({"product_id": item.product_id, "quantity": quantity})

    thank_you = await drafts.generate_thank_you_email(
        client,
        supplier_name=q.supplier_name,
        quotation_number=q.quotation_number,
    )

    metadata = {
        "received_at": _now(),
        "received_items": received_items,
        "thank_you_email": thank_you.model_dump(),
    }
    if payload.invoice_number:
        metadata["invoice_number"] = payload.invoice_number
    if payload.notes:
        metadata["receipt_notes"] = payload.notes

    await apply_transition(
        db, q, QuotationStatus.received, user,
        metadata=metadata,
        action=ActivityCode.ORDER_RECEIVED,
    )
    # timeline needs the receipt entry's timestamp
    await db.flush()

    await emit_activity(
        db,
        user=user,
        code=ActivityCode.ORDER_COMPLETED,
        entity_type="quotation",
        entity_id=q.id,
        new_state=_order_summary(q),
        target_name=q.quotation_number,
        supplier_name=q.supplier_name,
        total_value=q.quoted_total if q.quoted_total is not None else q.estimated_total,
    )

    await db.commit()
    return _map_quotation(q)


# =====================================================
# FOLLOW-UP
# =====================================================
async def request_follow_up(
    db: AsyncSession,
    client: GeminiClient,
    quotation_id: int,
    reason: str,
    user,
) -> QuotationOut:
    q = await _get_quotation(db, quotation_id, for_update=True)

    if q.status in FOLLOW_UP_TO_AWAITING:
        target, enforce = QuotationStatus.awaiting, True
    elif q.status in FOLLOW_UP_IN_PLACE:
        target, enforce = q.status, False
    else:
        raise AppException(
            409,
            f"Cannot follow up a {QuotationStatus(q.status).value} quotation",
            ErrorCode.QUOTATION_INVALID_STATE,
        )

    draft = await drafts.generate_follow_up_email(
        client,
        supplier_name=q.supplier_name,
        reason=reason,
        original_delivery_date=q.delivery_date,
    )

    await apply_transition(
        db, q, target, user,
        metadata={
            "reason": reason,
            "follow_up_at": _now(),
            "follow_up_email": draft.model_dump(),
        },
        action=ActivityCode.FOLLOW_UP,
        enforce=enforce,
    )
    await db.commit()
    return _map_quotation(q)


# =====================================================
# CANCEL
# =====================================================
async def cancel_quotation(
    db: AsyncSession,
    quotation_id: int,
    reason: str,
    user,
) -> QuotationOut:
    q = await _get_quotation(db, quotation_id, for_update=True)

    await apply_transition(
        db, q, QuotationStatus.cancelled, user,
        metadata={"reason": reason, "cancelled_at": _now()},
        action=ActivityCode.CANCEL,
    )
    await db.commit()
    return _map_quotation(q)
