"""Order and OrderItem ORM models — one order per supplier of a confirmed proposal."""
import uuid
import enum
from sqlalchemy import Column, String, Date, DateTime, Integer, Text, ForeignKey, Enum as SAEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from marketplace.database import Base


class OrderStatus(str, enum.Enum):
    pending = "pending"
    confirmed = "confirmed"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


class Order(Base):
    __tablename__ = "orders"

    order_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    client_id = Column(String(36), nullable=False, index=True)
    supplier_id = Column(String(36), ForeignKey("suppliers.supplier_id"), nullable=False, index=True)
    group_id = Column(String(36), ForeignKey("order_groups.group_id"), nullable=True, index=True)
    status = Column(SAEnum(OrderStatus), nullable=False, default=OrderStatus.pending)
    total_amount = Column(Integer, nullable=False, default=0)
    deposit_paid = Column(Integer, nullable=True)
    event_type = Column(String(50), nullable=True)
    event_date = Column(Date, nullable=True)
    event_location = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")

    # UPDATEs carry "WHERE version = <loaded version>"; order_fsm bumps the counter itself.
    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}


class OrderItem(Base):
    __tablename__ = "order_items"

    item_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(String(36), ForeignKey("orders.order_id"), nullable=False)
    offering_id = Column(String(36), ForeignKey("offerings.offering_id"), nullable=False)
    offering_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    rental_days = Column(Integer, nullable=False, default=1)
    price_per_day = Column(Integer, nullable=False)
    subtotal = Column(Integer, nullable=False)

    order = relationship("Order", back_populates="items")
