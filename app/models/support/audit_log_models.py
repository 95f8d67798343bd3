from sqlalchemy import Column, Integer, String, ForeignKey, Index, JSON, Text
from app.core.db import Base
from app.models.base.mixins import TimestampMixin


class AuditLog(Base, TimestampMixin):
    """Immutable audit log. APPEND-ONLY. Never updated, never deleted."""

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True)
    entity_type = Column(String(50), nullable=False, index=True)
    entity_id = Column(String(50), nullable=False)
    action = Column(String(50), nullable=False, index=True)
    previous_state = Column(JSON, nullable=True)
    new_state = Column(JSON, nullable=True)
    diff = Column(JSON, nullable=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    username_snapshot = Column(String(150), nullable=False, index=True)
    message = Column(Text, nullable=False)

    __table_args__ = (Index("ix_audit_log_entity", "entity_type", "entity_id", "created_at"),)

    def __repr__(self):
        return f"<AuditLog id={self.id} {self.entity_type}#{self.entity_id} {self.action}>"
