from sqlalchemy import Column, Integer, String, JSON, UniqueConstraint
from app.core.db import Base
from app.models.base.mixins import TimestampMixin


class DocumentSnapshot(Base, TimestampMixin):
    """Whole-document JSON store keyed by (collection, document_id). Last write wins."""

    __tablename__ = "document_snapshots"

    id = Column(Integer, primary_key=True)
    collection = Column(String(100), nullable=False, index=True)
    document_id = Column(String(100), nullable=False)
    payload = Column(JSON, nullable=False)

    __table_args__ = (
        UniqueConstraint("collection", "document_id", name="uq_document_snapshot_key"),
    )

    def __repr__(self):
        return f"<DocumentSnapshot {self.collection}/{self.document_id}>"
