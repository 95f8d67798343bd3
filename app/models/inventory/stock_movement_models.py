from sqlalchemy import Column, Integer, String, Numeric, Enum, CheckConstraint, ForeignKey, Index
from app.core.db import Base
from app.models.base.mixins import TimestampMixin, AuditMixin
from app.models.enums.stock_movement_type import StockMovementType


class StockMovement(Base, TimestampMixin, AuditMixin):
    """Stock ledger row. Quantities are always positive; direction comes from movement_type."""

    __tablename__ = "stock_movements"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True)
    movement_type = Column(Enum(StockMovementType), nullable=False, index=True)
    quantity = Column(Numeric(12, 3), nullable=False)
    stock_after = Column(Numeric(12, 3), nullable=False)
    reason = Column(String(255), nullable=True)
    reference_type = Column(String(50), nullable=True)
    reference_id = Column(Integer, nullable=True)

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_stock_movement_quantity_non_negative"),
        Index("ix_stock_movement_product_created", "product_id", "created_at"),
        Index("ix_stock_movement_reference", "reference_type", "reference_id"),
    )

    def __repr__(self):
        return f"<StockMovement id={self.id} product_id={self.product_id} {self.movement_type} qty={self.quantity}>"
