from pydantic import BaseModel, Field
from typing import Optional, List
from decimal import Decimal
from datetime import datetime

from app.models.enums.stock_movement_type import StockMovementType


class StockMovementCreate(BaseModel):
    product_id: int
    movement_type: StockMovementType
    quantity: Decimal = Field(ge=0)
    reason: Optional[str] = None


class StockMovementOut(BaseModel):
    id: int
    product_id: int
    movement_type: StockMovementType
    quantity: Decimal
    stock_after: Decimal
    reason: Optional[str]
    reference_type: Optional[str]
    reference_id: Optional[int]
    created_by_id: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True


class StockMovementListData(BaseModel):
    total: int
    items: List[StockMovementOut]


class LowStockProductOut(BaseModel):
    id: int
    name: str
    category: Optional[str]
    unit: str
    supplier_id: Optional[int]
    current_stock: float
    min_stock: float
    max_stock: Optional[float]
    daily_rate: float
    quantity_to_order: float
    days_until_stockout: Optional[int]
    urgency: str
