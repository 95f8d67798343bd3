import csv
import io
from decimal import Decimal

from pydantic import ValidationError
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.masters.product_models import Product
from app.models.inventory.inventory_category_models import InventoryCategory
from app.schemas.inventory.inventory_backup_schemas import InventoryBackup, BackupItem
from app.core.exceptions import AppException
from app.constants.error_codes import ErrorCode
from app.constants.activity_codes import ActivityCode
from app.utils.activity_helpers import emit_activity
from app.utils.logger import get_logger

logger = get_logger(__name__)

BACKUP_VERSION = "2"
CSV_HEADER = [
    "ID", "Item", "Category", "Package Qty", "Unit",
    "Packages", "Total Qty", "Price/Package", "Total Value",
]


def _num(value) -> float:
    return float(value) if value is not None else 0.0


def serialize_product(product: Product) -> dict:
    return {
        "id": product.id,
        "name": product.name,
        "category": product.category,
        "subcategory": product.subcategory,
        "unit": product.unit,
        "package_quantity": _num(product.package_quantity),
        "package_count": product.package_count,
        "price_per_unit": _num(product.price_per_unit),
        "current_stock": _num(product.current_stock),
        "min_stock": _num(product.min_stock),
        "max_stock": float(product.max_stock) if product.max_stock is not None else None,
        "supplier_id": product.supplier_id,
        "purchase_date": product.purchase_date.isoformat() if product.purchase_date else None,
    }


async def list_categories(db: AsyncSession) -> list[str]:
    rows = await db.execute(
        select(InventoryCategory.name).order_by(InventoryCategory.position, InventoryCategory.id)
    )
    return list(rows.scalars().all())


async def _replace_categories(db: AsyncSession, names: list[str]) -> list[str]:
    seen: list[str] = []
    for name in (n.strip() for n in names):
        if name and name not in seen:
            seen.append(name)

    await db.execute(delete(InventoryCategory))
    db.add_all(InventoryCategory(name=name, position=i) for i, name in enumerate(seen))
    return seen


async def update_categories(db: AsyncSession, names: list[str], user) -> list[str]:
    before = await list_categories(db)
    after = await _replace_categories(db, names)

    await emit_activity(
        db,
        user=user,
        code=ActivityCode.UPDATE_CATEGORIES,
        entity_type="inventory",
        entity_id="categories",
        previous_state={"categories": before},
        new_state={"categories": after},
        changes=", ".join(after) or "none",
    )
    await db.commit()
    return after


# =====================================================
# EXPORT
# =====================================================
async def export_inventory_backup(db: AsyncSession) -> dict:
    products = (
        await db.execute(
            select(Product).where(Product.is_deleted.is_(False)).order_by(Product.id)
        )
    ).scalars().all()

    return {
        "version": BACKUP_VERSION,
        "items": [serialize_product(p) for p in products],
        "categories": await list_categories(db),
    }


async def export_inventory_csv(db: AsyncSession) -> str:
    """Semicolon separated stock report with a UTF-8 BOM for spreadsheet apps."""
    backup = await export_inventory_backup(db)

    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=";", lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for item in backup["items"]:
        count = item["package_count"] or 1
        writer.writerow([
            item["id"],
            item["name"],
            item["category"] or "",
            f"{item['package_quantity']:g}",
            item["unit"],
            count,
            f"{item['package_quantity'] * count:g}",
            f"{item['price_per_unit']:.2f}",
            f"{item['price_per_unit'] * count:.2f}",
        ])
    return "\ufeff" + buffer.getvalue()


# =====================================================
# IMPORT
# =====================================================
def _apply(product: Product, item: BackupItem) -> None:
    product.name = item.name
    product.category = item.category
    product.subcategory = item.subcategory
    product.unit = item.unit
    product.package_quantity = Decimal(str(item.package_quantity))
    product.package_count = item.package_count
    product.price_per_unit = Decimal(str(item.price_per_unit))
    product.current_stock = Decimal(str(item.current_stock))
    product.min_stock = Decimal(str(item.min_stock))
    product.max_stock = Decimal(str(item.max_stock)) if item.max_stock is not None else None
    product.supplier_id = item.supplier_id
    product.purchase_date = item.purchase_date
    product.is_deleted = False


async def import_inventory_backup(db: AsyncSession, payload: dict, user) -> dict:
    """Restore a backup: upsert items by id, soft-delete the rest, replace categories."""
    if not isinstance(payload, dict) or not isinstance(payload.get("items"), list):
        raise AppException(
            400,
            "Invalid backup file: 'items' list is required",
            ErrorCode.INVENTORY_BACKUP_INVALID,
        )

    try:
        backup = InventoryBackup.model_validate(payload)
    except ValidationError as exc:
        raise AppException(
            400,
            "Invalid backup file",
            ErrorCode.INVENTORY_BACKUP_INVALID,
            details={"errors": exc.errors(include_context=False, include_url=False)},
        )

    existing = {
        p.id: p for p in (await db.execute(select(Product))).scalars().all()
    }

    created = updated = 0
    kept_ids: set[int] = set()

    for item in backup.items:
        product = existing.get(item.id) if item.id is not None else None
        if product is None:
            product = Product(id=item.id, created_by_id=user.id)
            db.add(product)
            created += 1
        else:
            updated += 1
            product.version += 1
        _apply(product, item)
        product.updated_by_id = user.id
        await db.flush()
        kept_ids.add(product.id)

    removed = 0
    for product_id, product in existing.items():
        if product_id not in kept_ids and not product.is_deleted:
            product.is_deleted = True
            product.version += 1
            product.updated_by_id = user.id
            removed += 1

    categories = await list_categories(db)
    if backup.categories is not None:
        categories = await _replace_categories(db, backup.categories)

    await emit_activity(
        db,
        user=user,
        code=ActivityCode.IMPORT_INVENTORY,
        entity_type="inventory",
        entity_id="backup",
        new_state={"created": created, "updated": updated, "removed": removed},
        items_count=len(backup.items),
        categories_count=len(categories),
    )

    await db.commit()
    logger.info(
        "Inventory backup restored",
        extra={"items_created": created, "items_updated": updated, "items_removed": removed},
    )

    return {
        "items_count": len(backup.items),
        "categories_count": len(categories),
        "created": created,
        "updated": updated,
        "removed": removed,
    }
