from decimal import Decimal

import pytest

from app.constants.activity_codes import ActivityCode
from app.schemas.support.audit_log_schemas import AuditLogFilters
from app.services.support.audit_service import list_audit_logs
from app.utils.activity_helpers import actor_context, calculate_diff, emit_activity


def test_calculate_diff_reports_changed_keys_only():
    old = {"status": "draft", "total": 90, "created_at": "x", "_internal": 1, "notes": None}
    new = {"status": "pending", "total": 90, "created_at": "y", "_internal": 2, "tracking": "BR1"}

    assert calculate_diff(old, new) == {
        "status": {"old": "draft", "new": "pending"},
        "tracking": {"old": None, "new": "BR1"},
    }


def test_calculate_diff_tolerates_missing_states():
    assert calculate_diff(None, {"a": 1}) == {"a": {"old": None, "new": 1}}
    assert calculate_diff({"a": 1}, "not a dict") == {"a": {"old": 1, "new": None}}
    assert calculate_diff(None, None) == {}


def test_actor_context(user):
    assert actor_context(None) == {"actor_role": "System", "actor_email": "system"}
    assert actor_context(user) == {"actor_role": "Admin", "actor_email": "admin@padoca.com.br"}


async def test_emit_activity_renders_message_and_diff(db, user):
    entry = await emit_activity(
        db,
        user=user,
        code=ActivityCode.UPDATE_PRODUCT,
        entity_type="product",
        entity_id=7,
        previous_state={"price_per_unit": Decimal("5.00")},
        new_state={"price_per_unit": Decimal("5.50")},
        target_name="Farinha 00",
        changes="price_per_unit",
    )
    await db.commit()

    assert entry.id is not None
    assert entry.entity_id == "7"
    assert entry.message == "Admin (admin@padoca.com.br) updated product Farinha 00: price_per_unit"
    assert entry.diff == {"price_per_unit": {"old": 5.0, "new": 5.5}}
    assert entry.user_id == user.id


async def test_emit_activity_as_system(db):
    entry = await emit_activity(
        db,
        user=None,
        code=ActivityCode.AI_RESPONSE_FAILED,
        entity_type="quotation",
        entity_id=1,
        target_name="QT-000001",
        changes="timeout",
    )

    assert entry.user_id is None
    assert entry.username_snapshot == "system"
    assert entry.diff is None
    assert entry.message == "Supplier reply for quotation QT-000001 needs manual review: timeout"


async def test_emit_activity_requires_template_keys(db, user):
    with pytest.raises(ValueError, match="target_name"):
        await emit_activity(
            db, user=user, code=ActivityCode.CREATE_SUPPLIER, entity_type="supplier", entity_id=1,
        )


async def test_list_audit_logs_filters_and_pages(db, user):
    for i in range(3):
        await emit_activity(
            db, user=user, code=ActivityCode.CREATE_PRODUCT,
            entity_type="product", entity_id=i, target_name=f"P{i}",
        )
    await emit_activity(
        db, user=None, code=ActivityCode.CANCEL,
        entity_type="quotation", entity_id=1, target_name="QT-000001", changes="duplicate",
    )
    await db.commit()

    everything = await list_audit_logs(db=db, filters=AuditLogFilters())
    products = await list_audit_logs(
        db=db, filters=AuditLogFilters(entity_type="product", page=2, page_size=2, sort_order="asc"),
    )
    system = await list_audit_logs(db=db, filters=AuditLogFilters(username="syst"))

    assert everything["total"] == 4
    assert everything["items"][0].action == "CANCEL"
    assert products["total"] == 3
    assert [i.entity_id for i in products["items"]] == ["2"]
    assert [i.action for i in system["items"]] == ["CANCEL"]
