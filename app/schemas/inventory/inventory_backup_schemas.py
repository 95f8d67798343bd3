from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Any, List, Optional
from datetime import date


class BackupItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None
    name: str = Field(min_length=1)
    category: Optional[str] = None
    subcategory: Optional[str] = None
    unit: str = "un"
    package_quantity: float = 0
    package_count: int = 1
    price_per_unit: float = 0
    current_stock: float = 0
    min_stock: float = 0
    max_stock: Optional[float] = None
    supplier_id: Optional[int] = None
    purchase_date: Optional[date] = None

    @model_validator(mode="before")
    @classmethod
    def migrate_v1(cls, data: Any):
        # v1 items carried the package size as "quantity"
        if isinstance(data, dict) and "package_quantity" not in data and "quantity" in data:
            data = dict(data)
            data["package_quantity"] = data.pop("quantity") or 0
            data.setdefault("package_count", 1)
        return data


class InventoryBackup(BaseModel):
    version: str = "2"
    items: List[BackupItem]
    categories: Optional[List[str]] = None


class InventoryImportResult(BaseModel):
    items_count: int
    categories_count: int
    created: int
    updated: int
    removed: int


class CategoriesPayload(BaseModel):
    categories: List[str]


class InventorySnapshotOut(BaseModel):
    source: str
    items: List[dict[str, Any]]
    categories: Optional[List[str]] = None


class InventorySyncStatus(BaseModel):
    status: str
    last_synced_at: Optional[str] = None
    last_error: Optional[str] = None
