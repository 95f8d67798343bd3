from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, EmailStr


class SupplierCreate(BaseModel):
    name: str
    company: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    whatsapp: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    auto_order_enabled: bool = False


class SupplierUpdate(BaseModel):
    name: Optional[str] = None
    company: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    whatsapp: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    auto_order_enabled: Optional[bool] = None

    version: int


class SupplierOut(BaseModel):
    id: int
    supplier_code: str
    name: str
    company: Optional[str]
    email: Optional[str]
    phone: Optional[str]
    whatsapp: Optional[str]
    address: Optional[str]
    notes: Optional[str]
    auto_order_enabled: bool

    is_deleted: bool
    version: int
    created_by_id: Optional[int]
    updated_by_id: Optional[int]
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class SupplierListData(BaseModel):
    total: int
    items: List[SupplierOut]


class SupplierProductOut(BaseModel):
    """An inventory item sourced from the supplier, with its reorder state."""

    id: int
    name: str
    category: Optional[str]
    unit: str
    price_per_unit: Decimal
    current_stock: Decimal
    min_stock: Decimal
    below_minimum: bool = False

    class Config:
        from_attributes = True


class VersionPayload(BaseModel):
    version: int
