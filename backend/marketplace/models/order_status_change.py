"""OrderStatusChange ORM model — ledger of every order status transition."""
import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.sql import func
from marketplace.database import Base


class OrderStatusChange(Base):
    __tablename__ = "order_status_changes"

    change_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(String(36), ForeignKey("orders.order_id"), nullable=False, index=True)
    actor_id = Column(String(36), nullable=True)
    event = Column(String(50), nullable=False)
    from_status = Column(String(20), nullable=False)
    to_status = Column(String(20), nullable=False)
    payment_reference = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
