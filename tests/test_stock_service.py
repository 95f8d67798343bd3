from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import select

from app.constants.error_codes import ErrorCode
from app.core.exceptions import AppException
from app.models.enums.stock_movement_type import StockMovementType
from app.models.support.audit_log_models import AuditLog
from app.services.inventory.stock_service import (
    check_low_stock_products,
    get_low_stock_products,
    record_stock_movement,
)

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def product(**kwargs):
    fields = dict(
        id=1, name="Mozzarella", category="Dairy", unit="kg", supplier_id=None,
        current_stock=Decimal("6"), min_stock=Decimal("8"), max_stock=None,
    )
    fields.update(kwargs)
    return SimpleNamespace(**fields)


def movement(quantity, days_ago, movement_type=StockMovementType.exit, product_id=1, naive=False):
    created_at = NOW - timedelta(days=days_ago)
    if naive:
        created_at = created_at.replace(tzinfo=None)
    return SimpleNamespace(
        product_id=product_id,
        movement_type=movement_type,
        quantity=Decimal(quantity),
        created_at=created_at,
    )


def test_low_stock_uses_last_30_days_of_exits():
    movements = [
        movement("30", 1),
        movement("15", 5, naive=True),
        movement("100", 40),
        movement("50", 2, movement_type=StockMovementType.entry),
        movement("9", 1, product_id=2),
    ]

    [item] = check_low_stock_products([product()], movements, now=NOW)

    assert item["daily_rate"] == pytest.approx(1.5)
    assert item["days_until_stockout"] == 4
    assert item["urgency"] == "warning"
    # no max_stock: order up to three times the minimum
    assert item["quantity_to_order"] == pytest.approx(18)


def test_low_stock_without_consumption():
    [item] = check_low_stock_products(
        [product(current_stock=Decimal("3"), max_stock=Decimal("20"))], [], now=NOW
    )

    assert item["daily_rate"] == 0
    assert item["days_until_stockout"] is None
    assert item["urgency"] == "critical"
    assert item["quantity_to_order"] == pytest.approx(17)


def test_products_above_minimum_are_not_reported():
    assert check_low_stock_products([product(current_stock=Decimal("8.001"))], [], now=NOW) == []
    assert len(check_low_stock_products([product(current_stock=Decimal("8"))], [], now=NOW)) == 1


async def test_entry_and_exit_update_stock(db, user, products):
    flour, _ = products

    entry = await record_stock_movement(
        db, product_id=flour.id, movement_type=StockMovementType.entry,
        quantity=Decimal("12.5"), user=user, reason="Delivery",
    )
    exit_ = await record_stock_movement(
        db, product_id=flour.id, movement_type=StockMovementType.exit,
        quantity=Decimal("2.5"), user=user,
    )
    await db.commit()

    assert entry.stock_after == Decimal("52.500")
    assert exit_.stock_after == Decimal("50.000")
    assert flour.current_stock == Decimal("50.000")

    logs = (await db.execute(
        select(AuditLog).where(AuditLog.action == "STOCK_MOVEMENT").order_by(AuditLog.id)
    )).scalars().all()
    assert len(logs) == 2
    assert logs[0].diff == {"current_stock": {"old": 40.0, "new": 52.5}}


async def test_adjustment_sets_absolute_count(db, user, products):
    _, cheese = products

    m = await record_stock_movement(
        db, product_id=cheese.id, movement_type=StockMovementType.adjustment,
        quantity=0, user=user, reason="Inventory count",
    )

    assert m.stock_after == Decimal("0")
    assert cheese.current_stock == Decimal("0")


async def test_exit_cannot_drive_stock_negative(db, user, products):
    _, cheese = products

    with pytest.raises(AppException) as exc:
        await record_stock_movement(
            db, product_id=cheese.id, movement_type=StockMovementType.exit,
            quantity=Decimal("10"), user=user,
        )

    assert exc.value.status_code == 409
    assert exc.value.error_code == ErrorCode.INSUFFICIENT_STOCK
    assert cheese.current_stock == Decimal("3")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"movement_type": StockMovementType.entry, "quantity": 0},
        {"movement_type": StockMovementType.entry, "quantity": -1},
        {"movement_type": StockMovementType.entry, "quantity": 1, "reference_type": "gift"},
    ],
)
async def test_invalid_movements_are_rejected(db, user, products, kwargs):
    with pytest.raises(AppException) as exc:
        await record_stock_movement(db, product_id=products[0].id, user=user, **kwargs)

    assert exc.value.status_code == 400
    assert exc.value.error_code == ErrorCode.INVALID_STOCK_MOVEMENT


async def test_unknown_product_is_not_found(db, user):
    with pytest.raises(AppException) as exc:
        await record_stock_movement(
            db, product_id=404, movement_type=StockMovementType.entry, quantity=1, user=user,
        )
    assert exc.value.error_code == ErrorCode.PRODUCT_NOT_FOUND


async def test_get_low_stock_products_from_database(db, user, supplier, products):
    _, cheese = products
    await record_stock_movement(
        db, product_id=cheese.id, movement_type=StockMovementType.exit,
        quantity=Decimal("3"), user=user, reason="Saturday service",
    )
    await db.commit()

    low = await get_low_stock_products(db)

    assert [p["name"] for p in low] == ["Mozzarella"]
    assert low[0]["current_stock"] == 0
    assert low[0]["daily_rate"] == pytest.approx(0.1)
    assert low[0]["days_until_stockout"] == 0
    assert low[0]["urgency"] == "critical"
    assert low[0]["quantity_to_order"] == pytest.approx(20)

    assert await get_low_stock_products(db, supplier_id=supplier.id + 1) == []
