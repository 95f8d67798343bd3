from decimal import Decimal

from sqlalchemy import (
    Column, Integer, String, ForeignKey, Numeric, Enum, JSON, Index,
    CheckConstraint, Boolean, Date, DateTime, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from app.core.db import Base
from app.models.base.mixins import TimestampMixin, AuditMixin, utcnow
from app.models.enums.quotation_status import QuotationStatus


class Quotation(Base, TimestampMixin, AuditMixin):
    __tablename__ = "quotations"

    id = Column(Integer, primary_key=True)
    quotation_number = Column(String(50), nullable=False, unique=True, index=True)
    status = Column(Enum(QuotationStatus), nullable=False, default=QuotationStatus.draft, index=True)

    supplier_id = Column(Integer, ForeignKey("suppliers.id", ondelete="RESTRICT"), nullable=False, index=True)
    supplier_name = Column(String(255), nullable=False)
    supplier_email = Column(String(255), nullable=True)

    estimated_total = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    quoted_total = Column(Numeric(14, 2), nullable=True)

    delivery_date = Column(Date, nullable=True)
    delivery_days = Column(Integer, nullable=True)
    payment_terms = Column(String(255), nullable=True)
    supplier_notes = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    email_subject = Column(String(255), nullable=True)
    email_body = Column(Text, nullable=True)
    email_sent_at = Column(DateTime(timezone=True), nullable=True)
    raw_supplier_response = Column(Text, nullable=True)
    response_received_at = Column(DateTime(timezone=True), nullable=True)
    ai_analysis = Column(JSON, nullable=True)
    needs_manual_review = Column(Boolean, nullable=False, default=False)

    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    shipped_at = Column(DateTime(timezone=True), nullable=True)
    received_at = Column(DateTime(timezone=True), nullable=True)
    invoice_number = Column(String(100), nullable=True)

    version = Column(Integer, nullable=False, default=1)
    item_signature = Column(String(128), nullable=False, index=True)
    additional_data = Column(JSON, nullable=True)

    items = relationship(
        "QuotationItem",
        back_populates="quotation",
        cascade="all, delete-orphan",
        order_by="QuotationItem.id",
        lazy="selectin",
    )
    history = relationship(
        "QuotationHistory",
        back_populates="quotation",
        cascade="all, delete-orphan",
        order_by="QuotationHistory.id",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_quotation_supplier_status", "supplier_id", "status"),
        CheckConstraint("estimated_total >= 0", name="ck_quotation_estimated_non_negative"),
    )

    def __repr__(self):
        return f"<Quotation {self.quotation_number} status={self.status}>"


class QuotationItem(Base, TimestampMixin):
    __tablename__ = "quotation_items"

    id = Column(Integer, primary_key=True)
    quotation_id = Column(Integer, ForeignKey("quotations.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True)
    product_name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=True)
    quantity = Column(Numeric(12, 3), nullable=False)
    unit = Column(String(20), nullable=False, default="un")
    estimated_unit_price = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    quoted_unit_price = Column(Numeric(12, 2), nullable=True)
    quoted_availability = Column(Numeric(12, 3), nullable=True)

    quotation = relationship("Quotation", back_populates="items")

    __table_args__ = (
        UniqueConstraint("quotation_id", "product_id", name="uq_quotation_item_product"),
        CheckConstraint("quantity > 0", name="ck_quotation_item_quantity_positive"),
        CheckConstraint("estimated_unit_price >= 0", name="ck_quotation_item_price_non_negative"),
    )

    @property
    def effective_unit_price(self) -> Decimal:
        if self.quoted_unit_price is not None:
            return self.quoted_unit_price
        return self.estimated_unit_price or Decimal("0.00")

    def __repr__(self):
        return f"<QuotationItem id={self.id} product_id={self.product_id} qty={self.quantity}>"


class QuotationHistory(Base):
    """Append-only status trail of a quotation. Never updated, never deleted."""

    __tablename__ = "quotation_history"

    id = Column(Integer, primary_key=True)
    quotation_id = Column(Integer, ForeignKey("quotations.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(Enum(QuotationStatus), nullable=False)
    previous_status = Column(Enum(QuotationStatus), nullable=True)
    action = Column(String(50), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    username = Column(String(150), nullable=False)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    quotation = relationship("Quotation", back_populates="history")

    def __repr__(self):
        return f"<QuotationHistory {self.previous_status}->{self.status} {self.action}>"
