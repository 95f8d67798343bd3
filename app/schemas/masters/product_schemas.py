# app/schemas/masters/product_schemas.py

from pydantic import BaseModel, Field
from typing import Optional, List
from decimal import Decimal
from datetime import datetime, date


class ProductCreate(BaseModel):
    name: str = Field(min_length=1)
    category: Optional[str] = None
    subcategory: Optional[str] = None
    unit: str = "un"
    package_quantity: Decimal = Field(default=Decimal("0"), ge=0)
    package_count: int = Field(default=1, ge=0)
    price_per_unit: Decimal = Field(default=Decimal("0"), ge=0)
    current_stock: Decimal = Field(default=Decimal("0"), ge=0)
    min_stock: Decimal = Field(default=Decimal("0"), ge=0)
    max_stock: Optional[Decimal] = Field(default=None, ge=0)
    supplier_id: Optional[int] = None
    purchase_date: Optional[date] = None


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    unit: Optional[str] = None
    package_quantity: Optional[Decimal] = Field(default=None, ge=0)
    package_count: Optional[int] = Field(default=None, ge=0)
    price_per_unit: Optional[Decimal] = Field(default=None, ge=0)
    min_stock: Optional[Decimal] = Field(default=None, ge=0)
    max_stock: Optional[Decimal] = Field(default=None, ge=0)
    supplier_id: Optional[int] = None
    purchase_date: Optional[date] = None

    version: int


class ProductOut(BaseModel):
    id: int
    name: str
    category: Optional[str]
    subcategory: Optional[str]
    unit: str
    package_quantity: Decimal
    package_count: int
    price_per_unit: Decimal
    current_stock: Decimal
    min_stock: Decimal
    max_stock: Optional[Decimal]
    supplier_id: Optional[int]
    purchase_date: Optional[date]

    is_deleted: bool
    version: int

    created_by_id: Optional[int]
    updated_by_id: Optional[int]

    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class ProductListData(BaseModel):
    total: int
    items: List[ProductOut]


class VersionPayload(BaseModel):
    version: int
