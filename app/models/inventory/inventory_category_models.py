from sqlalchemy import Column, Integer, String
from app.core.db import Base


class InventoryCategory(Base):
    __tablename__ = "inventory_categories"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False, unique=True)
    position = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<InventoryCategory {self.position}:{self.name}>"
