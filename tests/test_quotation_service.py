import json
from decimal import Decimal

import pytest
import respx
from sqlalchemy import select

from app.constants.error_codes import ErrorCode
from app.core.exceptions import AppException
from app.models.enums.quotation_status import QuotationStatus
from app.models.inventory.stock_movement_models import StockMovement
from app.models.masters.product_models import Product
from app.models.support.audit_log_models import AuditLog
from app.schemas.purchasing.quotation_schemas import (
    ConfirmReceiptPayload,
    MarkShippedPayload,
    QuotationCreate,
    QuotationItemCreate,
    ReceiptItem,
)
from app.services.purchasing import quotation_service as svc

from tests.conftest import GEMINI_TEXT_URL, gemini_reply

SUPPLIER_REPLY = {
    "hasQuote": True,
    "items": [
        {"name": "farinha", "unitPrice": "4,50", "availableQuantity": 10},
        {"name": "Mozzarella fresca", "unitPrice": 2.5, "availableQuantity": 20},
    ],
    "deliveryDate": "2026-11-02",
    "deliveryDays": 3,
    "paymentTerms": "28 days",
    "supplierNotes": "Prices valid for one week",
}


def assert_history_chain(q):
    assert q.history[0].previous_status is None
    for prev, cur in zip(q.history, q.history[1:]):
        assert cur.previous_status == prev.status


async def _create(db, user, supplier, products, **kwargs):
    flour, cheese = products
    payload = QuotationCreate(
        supplier_id=supplier.id,
        items=[
            QuotationItemCreate(product_id=flour.id, quantity=Decimal("10")),
            QuotationItemCreate(product_id=cheese.id, quantity=Decimal("20")),
        ],
        **kwargs,
    )
    return await svc.create_quotation(db, payload, user)


async def _quoted(db, gemini, offline_gemini, user, supplier, products):
    q = await _create(db, user, supplier, products)
    await svc.send_quotation_email(db, offline_gemini, q.id, user)
    with respx.mock(assert_all_called=True) as router:
        router.post(GEMINI_TEXT_URL).respond(
            200, json=gemini_reply(f"```json\n{json.dumps(SUPPLIER_REPLY)}\n```")
        )
        return await svc.process_supplier_response(
            db, gemini, q.id, "Hello, prices attached.", user
        )


async def test_create_quotation_totals_and_history(db, user, supplier, products):
    q = await _create(db, user, supplier, products, notes="Weekly order")

    assert q.status == QuotationStatus.draft
    assert q.quotation_number == f"QT-{q.id:06d}"
    assert q.estimated_total == Decimal("90.00")
    assert q.quoted_total is None
    assert q.supplier_name == supplier.name
    assert [i.estimated_unit_price for i in q.items] == [Decimal("5.00"), Decimal("2.00")]
    assert len(q.history) == 1
    assert q.history[0].action == "CREATE"
    assert q.history[0].previous_status is None
    assert q.created_by_id == user.id


async def test_create_collapses_repeated_products(db, user, supplier, products):
    flour, _ = products
    q = await svc.create_quotation(
        db,
        QuotationCreate(
            supplier_id=supplier.id,
            items=[
                QuotationItemCreate(product_id=flour.id, quantity=Decimal("4"), estimated_unit_price=Decimal("4.80")),
                QuotationItemCreate(product_id=flour.id, quantity=Decimal("6")),
            ],
        ),
        user,
    )

    assert len(q.items) == 1
    assert q.items[0].quantity == Decimal("10.000")
    assert q.items[0].estimated_unit_price == Decimal("4.80")
    assert q.estimated_total == Decimal("48.00")


async def test_duplicate_draft_is_rejected(db, user, supplier, products):
    await _create(db, user, supplier, products)

    with pytest.raises(AppException) as exc:
        await _create(db, user, supplier, products)

    assert exc.value.status_code == 409
    assert exc.value.error_code == ErrorCode.QUOTATION_DUPLICATE_DRAFT


async def test_create_requires_known_supplier_and_products(db, user, supplier, products):
    with pytest.raises(AppException) as exc:
        await svc.create_quotation(
            db,
            QuotationCreate(supplier_id=999, items=[QuotationItemCreate(product_id=products[0].id, quantity=1)]),
            user,
        )
    assert exc.value.error_code == ErrorCode.SUPPLIER_NOT_FOUND

    with pytest.raises(AppException) as exc:
        await svc.create_quotation(
            db,
            QuotationCreate(supplier_id=supplier.id, items=[QuotationItemCreate(product_id=999, quantity=1)]),
            user,
        )
    assert exc.value.error_code == ErrorCode.PRODUCT_NOT_FOUND
    assert exc.value.details == {"missing": [999]}


async def test_missing_quotation_is_not_found(db, user):
    with pytest.raises(AppException) as exc:
        await svc.get_quotation(db, 42)
    assert exc.value.status_code == 404
    assert exc.value.error_code == ErrorCode.QUOTATION_NOT_FOUND


async def test_send_uses_template_when_ai_is_offline(db, user, supplier, products, offline_gemini):
    q = await _create(db, user, supplier, products)

    sent = await svc.send_quotation_email(db, offline_gemini, q.id, user)

    assert sent.status == QuotationStatus.pending
    assert sent.email_subject.startswith("Quotation Request - ")
    assert "Farinha 00: 10 kg" in sent.email_body
    assert sent.email_sent_at is not None
    assert sent.additional_data["email_source"] == "template"
    assert sent.history[-1].action == "EMAIL_SENT"


async def test_supplier_response_records_quoted_prices(db, user, supplier, products, gemini, offline_gemini):
    q = await _quoted(db, gemini, offline_gemini, user, supplier, products)

    assert q.status == QuotationStatus.quoted
    assert [i.quoted_unit_price for i in q.items] == [Decimal("4.50"), Decimal("2.50")]
    assert q.quoted_total == Decimal("95.00")
    assert q.estimated_total == Decimal("90.00")
    assert q.delivery_days == 3
    assert q.delivery_date.isoformat() == "2026-11-02"
    assert q.payment_terms == "28 days"
    assert q.ai_analysis["deliveryDate"] == "2026-11-02"
    assert q.needs_manual_review is False
    assert q.history[-1].action == "AI_RESPONSE_PROCESSED"
    assert_history_chain(q)


async def test_unmatched_items_keep_estimates_in_quoted_total(db, user, supplier, products, gemini, offline_gemini):
    q = await _create(db, user, supplier, products)
    await svc.send_quotation_email(db, offline_gemini, q.id, user)

    reply = {"hasQuote": True, "items": [{"name": "Farinha", "unitPrice": 6}]}
    with respx.mock(assert_all_called=True) as router:
        router.post(GEMINI_TEXT_URL).respond(200, json=gemini_reply(json.dumps(reply)))
        q = await svc.process_supplier_response(db, gemini, q.id, "Only flour today.", user)

    assert q.items[1].quoted_unit_price is None
    # 10 x 6.00 + 20 x 2.00 estimated
    assert q.quoted_total == Decimal("100.00")


async def test_unreadable_response_goes_to_manual_review(db, user, supplier, products, gemini, offline_gemini):
    q = await _create(db, user, supplier, products)
    await svc.send_quotation_email(db, offline_gemini, q.id, user)

    with respx.mock(assert_all_called=True) as router:
        router.post(GEMINI_TEXT_URL).respond(200, json=gemini_reply("Sorry, I cannot help with that."))
        q = await svc.process_supplier_response(db, gemini, q.id, "See attachment", user)

    assert q.status == QuotationStatus.awaiting
    assert q.needs_manual_review is True
    assert q.quoted_total is None
    assert "No JSON object" in q.additional_data["ai_analysis_error"]
    assert q.history[-1].action == "AI_RESPONSE_FAILED"

    logs = (await db.execute(
        select(AuditLog).where(AuditLog.action == "AI_RESPONSE_FAILED")
    )).scalars().all()
    assert len(logs) == 1
    assert "needs manual review" in logs[0].message


async def test_full_order_lifecycle(db, user, supplier, products, gemini, offline_gemini):
    flour, cheese = products
    q = await _quoted(db, gemini, offline_gemini, user, supplier, products)

    q = await svc.confirm_order(db, offline_gemini, q.id, user)
    assert q.status == QuotationStatus.ordered
    assert q.confirmed_at is not None
    assert q.additional_data["confirmation_email"]["source"] == "template"

    q = await svc.mark_shipped(db, q.id, user, MarkShippedPayload(tracking_code="BR123", carrier="Jadlog"))
    assert q.status == QuotationStatus.shipped
    assert q.additional_data["tracking_code"] == "BR123"

    q = await svc.confirm_receipt(
        db, offline_gemini, q.id, user,
        ConfirmReceiptPayload(
            invoice_number="NF-778",
            items=[ReceiptItem(product_id=cheese.id, received_quantity=Decimal("18"))],
        ),
    )
    assert q.status == QuotationStatus.received
    assert q.invoice_number == "NF-778"
    assert q.received_at is not None
    assert [h.status for h in q.history] == [
        QuotationStatus.draft,
        QuotationStatus.pending,
        QuotationStatus.quoted,
        QuotationStatus.ordered,
        QuotationStatus.shipped,
        QuotationStatus.received,
    ]
    assert_history_chain(q)

    await db.refresh(flour)
    await db.refresh(cheese)
    assert flour.current_stock == Decimal("50.000")
    assert cheese.current_stock == Decimal("21.000")

    movements = (await db.execute(select(StockMovement).order_by(StockMovement.id))).scalars().all()
    assert [(m.product_id, m.reference_type, m.reference_id) for m in movements] == [
        (flour.id, "quotation", q.id),
        (cheese.id, "quotation", q.id),
    ]

    completed = (await db.execute(
        select(AuditLog).where(AuditLog.action == "ORDER_COMPLETED")
    )).scalar_one()
    assert completed.new_state["quotation_number"] == q.quotation_number
    assert len(completed.new_state["timeline"]) == 6
    assert completed.new_state["timeline"][-1]["at"] is not None

    with pytest.raises(AppException) as exc:
        await svc.cancel_quotation(db, q.id, "too late", user)
    assert exc.value.error_code == ErrorCode.QUOTATION_INVALID_TRANSITION


async def test_receipt_skips_deactivated_products(db, user, supplier, products, gemini, offline_gemini):
    flour, cheese = products
    q = await _quoted(db, gemini, offline_gemini, user, supplier, products)
    await svc.confirm_order(db, offline_gemini, q.id, user)

    cheese.is_deleted = True
    await db.commit()

    await svc.confirm_receipt(db, offline_gemini, q.id, user)

    movements = (await db.execute(select(StockMovement))).scalars().all()
    assert [m.product_id for m in movements] == [flour.id]


async def test_confirm_requires_quoted(db, user, supplier, products, offline_gemini):
    q = await _create(db, user, supplier, products)
    await svc.send_quotation_email(db, offline_gemini, q.id, user)

    with pytest.raises(AppException) as exc:
        await svc.confirm_order(db, offline_gemini, q.id, user)

    assert exc.value.status_code == 409
    assert exc.value.error_code == ErrorCode.QUOTATION_INVALID_STATE


async def test_follow_up_moves_open_quotation_to_awaiting(db, user, supplier, products, offline_gemini):
    q = await _create(db, user, supplier, products)

    with pytest.raises(AppException) as exc:
        await svc.request_follow_up(db, offline_gemini, q.id, "No answer", user)
    assert exc.value.error_code == ErrorCode.QUOTATION_INVALID_STATE

    await svc.send_quotation_email(db, offline_gemini, q.id, user)
    q = await svc.request_follow_up(db, offline_gemini, q.id, "No answer in 2 days", user)

    assert q.status == QuotationStatus.awaiting
    assert q.history[-1].action == "FOLLOW_UP"
    assert q.history[-1].details["reason"] == "No answer in 2 days"
    assert q.additional_data["follow_up_email"]["subject"] == "Re: Order Follow-up"


async def test_follow_up_on_order_keeps_status(db, user, supplier, products, gemini, offline_gemini):
    q = await _quoted(db, gemini, offline_gemini, user, supplier, products)
    q = await svc.confirm_order(db, offline_gemini, q.id, user)
    before = len(q.history)

    q = await svc.request_follow_up(db, offline_gemini, q.id, "Delivery is late", user)

    assert q.status == QuotationStatus.ordered
    assert len(q.history) == before + 1
    assert q.history[-1].previous_status == QuotationStatus.ordered
    assert_history_chain(q)


async def test_generic_status_change_merges_metadata(db, user, supplier, products):
    q = await _create(db, user, supplier, products)

    with pytest.raises(AppException):
        await svc.update_quotation_status(db, q.id, QuotationStatus.quoted, user)

    q = await svc.update_quotation_status(
        db, q.id, QuotationStatus.cancelled, user,
        metadata={"notes": "Supplier closed for holidays", "reason": "holiday"},
    )

    assert q.status == QuotationStatus.cancelled
    assert q.notes == "Supplier closed for holidays"
    assert q.additional_data == {"reason": "holiday"}
    assert q.version == 2

    log = (await db.execute(
        select(AuditLog).where(AuditLog.action == "STATUS_CHANGE")
    )).scalar_one()
    assert log.diff["status"] == {"old": "draft", "new": "cancelled"}
    assert log.username_snapshot == user.username


async def test_list_quotations_filters(db, user, supplier, products, offline_gemini):
    flour, _ = products
    first = await _create(db, user, supplier, products)
    await svc.create_quotation(
        db,
        QuotationCreate(supplier_id=supplier.id, items=[QuotationItemCreate(product_id=flour.id, quantity=1)]),
        user,
    )
    await svc.send_quotation_email(db, offline_gemini, first.id, user)

    drafts = await svc.list_quotations(db, status=QuotationStatus.draft)
    pending = await svc.list_quotations(db, status=QuotationStatus.pending)
    everything = await svc.list_quotations(db, supplier_id=supplier.id, order="asc")

    assert drafts.total == 1
    assert pending.total == 1
    assert pending.items[0].items_count == 2
    assert [i.id for i in everything.items] == [first.id, first.id + 1]

    with pytest.raises(AppException):
        await svc.list_quotations(db, sort_by="nope")
