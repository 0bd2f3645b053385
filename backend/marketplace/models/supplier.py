"""Supplier ORM model — the supplier identity record read by the catalog."""
import uuid
from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from marketplace.database import Base


class Supplier(Base):
    __tablename__ = "suppliers"

    supplier_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    display_name = Column(String(150), nullable=False)
    is_verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    offerings = relationship("Offering", back_populates="supplier")
