import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import select

from app.constants.error_codes import ErrorCode
from app.core.db import AsyncSessionLocal
from app.core.exceptions import AppException
from app.models.enums.stock_movement_type import StockMovementType
from app.models.masters.product_models import Product
from app.services.inventory.inventory_backup_service import (
    export_inventory_backup,
    export_inventory_csv,
    import_inventory_backup,
    list_categories,
    update_categories,
)
from app.services.inventory.inventory_sync_service import (
    InventorySyncDebouncer,
    get_inventory_snapshot,
    put_document,
    sync_inventory,
)
from app.services.inventory.stock_service import record_stock_movement


async def test_export_then_import_restores_inventory(db, user, products):
    flour, cheese = products
    await update_categories(db, ["Dry goods", "Dairy"], user)
    backup = await export_inventory_backup(db)

    await record_stock_movement(
        db, product_id=flour.id, movement_type=StockMovementType.exit,
        quantity=Decimal("15"), user=user,
    )
    cheese.price_per_unit = Decimal("2.40")
    await update_categories(db, ["Misc"], user)

    result = await import_inventory_backup(db, backup, user)

    assert result == {
        "items_count": 2,
        "categories_count": 2,
        "created": 0,
        "updated": 2,
        "removed": 0,
    }
    assert await export_inventory_backup(db) == backup
    assert backup["version"] == "2"
    assert backup["categories"] == ["Dry goods", "Dairy"]


async def test_import_soft_deletes_items_missing_from_backup(db, user, products):
    flour, cheese = products
    backup = await export_inventory_backup(db)
    backup["items"] = [i for i in backup["items"] if i["id"] == flour.id]
    backup["items"].append({"name": "Sal grosso", "unit": "kg", "current_stock": 5})

    result = await import_inventory_backup(db, backup, user)

    assert (result["created"], result["updated"], result["removed"]) == (1, 1, 1)
    await db.refresh(cheese)
    assert cheese.is_deleted is True

    names = [i["name"] for i in (await export_inventory_backup(db))["items"]]
    assert names == ["Farinha 00", "Sal grosso"]


async def test_import_into_empty_database_keeps_ids(db, user):
    backup = {
        "version": "2",
        "items": [
            {"id": 7, "name": "Tomate pelado", "unit": "can", "current_stock": 24, "min_stock": 12},
        ],
        "categories": ["Canned"],
    }

    await import_inventory_backup(db, backup, user)

    product = await db.get(Product, 7)
    assert product.name == "Tomate pelado"
    assert product.current_stock == Decimal("24")
    assert await list_categories(db) == ["Canned"]


async def test_v1_items_are_migrated(db, user):
    await import_inventory_backup(
        db,
        {"items": [{"name": "Fermento", "quantity": 0.5, "unit": "kg", "legacyField": True}]},
        user,
    )

    [item] = (await export_inventory_backup(db))["items"]
    assert item["package_quantity"] == 0.5
    assert item["package_count"] == 1
    assert "legacyField" not in item


async def test_import_keeps_categories_when_backup_has_none(db, user, products):
    await update_categories(db, ["Dairy"], user)
    backup = await export_inventory_backup(db)
    del backup["categories"]

    result = await import_inventory_backup(db, backup, user)

    assert result["categories_count"] == 1
    assert await list_categories(db) == ["Dairy"]


@pytest.mark.parametrize("payload", [{}, {"items": "nope"}, [], {"categories": []}])
async def test_import_requires_items_list(db, user, payload):
    with pytest.raises(AppException) as exc:
        await import_inventory_backup(db, payload, user)

    assert exc.value.status_code == 400
    assert exc.value.error_code == ErrorCode.INVENTORY_BACKUP_INVALID


async def test_import_reports_invalid_items(db, user):
    with pytest.raises(AppException) as exc:
        await import_inventory_backup(db, {"items": [{"name": ""}]}, user)

    assert exc.value.error_code == ErrorCode.INVENTORY_BACKUP_INVALID
    assert exc.value.details["errors"][0]["loc"] == ("items", 0, "name")


async def test_update_categories_dedupes_and_strips(db, user):
    result = await update_categories(db, [" Dairy", "Dry goods", "Dairy", ""], user)

    assert result == ["Dairy", "Dry goods"]
    assert await list_categories(db) == ["Dairy", "Dry goods"]


async def test_csv_export(db, user, products):
    flour, _ = products
    flour.package_quantity = Decimal("25")
    flour.package_count = 2
    await db.commit()

    text = await export_inventory_csv(db)
    lines = text.lstrip("\ufeff").splitlines()

    assert text.startswith("\ufeff")
    assert lines[0] == "ID;Item;Category;Package Qty;Unit;Packages;Total Qty;Price/Package;Total Value"
    assert lines[1] == f"{flour.id};Farinha 00;Dry goods;25;kg;2;50;5.00;10.00"
    assert len(lines) == 3


# =====================================================
# DOCUMENT MIRROR
# =====================================================
async def test_snapshot_is_none_before_first_sync(db):
    assert await get_inventory_snapshot(db) is None


async def test_sync_writes_current_inventory(db, user, products):
    assert await sync_inventory(db) is True

    snapshot = await get_inventory_snapshot(db)

    assert snapshot["source"] == "inventory_v2"
    assert [i["name"] for i in snapshot["items"]] == ["Farinha 00", "Mozzarella"]
    assert snapshot["categories"] == []
    assert snapshot["updated_at"]

    products[1].current_stock = Decimal("9")
    await db.commit()
    await sync_inventory(db)

    snapshot = await get_inventory_snapshot(db)
    assert snapshot["items"][1]["current_stock"] == 9.0


async def test_snapshot_falls_back_to_legacy_document(db):
    await put_document(db, "settings", "inventory", {"items": [{"name": "Oregano"}]})

    snapshot = await get_inventory_snapshot(db)

    assert snapshot == {"source": "inventory", "items": [{"name": "Oregano"}], "categories": None}


# =====================================================
# DEBOUNCER
# =====================================================
class FakeSync:
    def __init__(self, ok=True):
        self.ok = ok
        self.calls = 0

    async def __call__(self, db):
        self.calls += 1
        return self.ok


async def test_debouncer_coalesces_bursts():
    sync = FakeSync()
    debouncer = InventorySyncDebouncer(AsyncSessionLocal, delay=0.05, sync=sync)

    for _ in range(5):
        debouncer.schedule()
        await asyncio.sleep(0.01)
    assert debouncer.pending

    await asyncio.sleep(0.2)

    assert sync.calls == 1
    assert not debouncer.pending
    assert debouncer.as_dict()["status"] == "synced"
    assert debouncer.last_synced_at is not None


async def test_debouncer_flush_runs_pending_sync_now():
    sync = FakeSync()
    debouncer = InventorySyncDebouncer(AsyncSessionLocal, delay=60, sync=sync)

    await debouncer.flush()
    assert sync.calls == 0

    debouncer.schedule()
    await debouncer.flush()

    assert sync.calls == 1


async def test_debouncer_reports_failure_and_close_cancels():
    sync = FakeSync(ok=False)
    debouncer = InventorySyncDebouncer(AsyncSessionLocal, delay=0, sync=sync)

    debouncer.schedule()
    await asyncio.sleep(0.05)
    assert debouncer.as_dict() == {
        "status": "error",
        "last_synced_at": None,
        "last_error": "Inventory sync failed",
    }

    debouncer.delay = 60
    debouncer.schedule()
    await debouncer.close()

    assert not debouncer.pending
    assert sync.calls == 1


async def test_debouncer_survives_unexpected_errors():
    def broken_session():
        raise RuntimeError("database unreachable")

    sync = FakeSync()
    debouncer = InventorySyncDebouncer(broken_session, delay=60, sync=sync)

    debouncer.schedule()
    await debouncer.flush()

    assert sync.calls == 0
    assert debouncer.status == "error"
    assert debouncer.last_error == "database unreachable"

    debouncer.session_factory = AsyncSessionLocal
    debouncer.schedule()
    await debouncer.flush()

    assert debouncer.as_dict()["status"] == "synced"
    assert debouncer.last_error is None
