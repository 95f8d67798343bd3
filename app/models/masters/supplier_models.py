from sqlalchemy import Boolean, Column, Integer, String, Text

from app.core.db import Base
from app.models.base.mixins import TimestampMixin, SoftDeleteMixin, AuditMixin


class Supplier(Base, TimestampMixin, SoftDeleteMixin, AuditMixin):
    """A vendor that receives quotation requests by email."""

    __tablename__ = "suppliers"

    id = Column(Integer, primary_key=True)
    supplier_code = Column(String(50), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False, unique=True, index=True)
    company = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(20), nullable=True, index=True)
    whatsapp = Column(String(20), nullable=True)
    address = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    auto_order_enabled = Column(Boolean, nullable=False, default=False)
    version = Column(Integer, nullable=False, default=1)

    def __repr__(self):
        return f"<Supplier id={self.id} code={self.supplier_code} email={self.email}>"
