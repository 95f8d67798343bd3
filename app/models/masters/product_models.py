from decimal import Decimal

from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, Index, Date, CheckConstraint
from app.core.db import Base
from app.models.base.mixins import TimestampMixin, SoftDeleteMixin, AuditMixin


class Product(Base, TimestampMixin, SoftDeleteMixin, AuditMixin):
    """A stock-tracked inventory item (ingredient, packaging, cleaning supply)."""

    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, index=True)
    category = Column(String(100), nullable=True, index=True)
    subcategory = Column(String(100), nullable=True)
    unit = Column(String(20), nullable=False, default="un")

    package_quantity = Column(Numeric(12, 3), nullable=False, default=Decimal("0"))
    package_count = Column(Integer, nullable=False, default=1)
    price_per_unit = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    current_stock = Column(Numeric(12, 3), nullable=False, default=Decimal("0"))
    min_stock = Column(Numeric(12, 3), nullable=False, default=Decimal("0"))
    max_stock = Column(Numeric(12, 3), nullable=True)

    supplier_id = Column(Integer, ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True, index=True)
    purchase_date = Column(Date, nullable=True)
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        Index("ix_product_name_category", "name", "category"),
        CheckConstraint("current_stock >= 0", name="ck_product_stock_non_negative"),
        CheckConstraint("price_per_unit >= 0", name="ck_product_price_non_negative"),
    )

    def __repr__(self):
        return f"<Product id={self.id} name={self.name} stock={self.current_stock}>"
