"""OrderGroup ORM model — durable orchestration intent shared by a batch of orders."""
import uuid
import enum
from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, Enum as SAEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from marketplace.database import Base


class GroupStatus(str, enum.Enum):
    creating = "creating"
    booked = "booked"
    failed = "failed"


class OrderGroup(Base):
    __tablename__ = "order_groups"

    group_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    client_id = Column(String(36), nullable=False, index=True)
    proposal_id = Column(String(36), ForeignKey("proposals.proposal_id"), nullable=False)
    idempotency_token = Column(String(255), nullable=False, unique=True)
    status = Column(SAEnum(GroupStatus), nullable=False, default=GroupStatus.creating)
    subtotal = Column(Integer, nullable=False, default=0)
    service_fee = Column(Integer, nullable=False, default=0)
    payable_amount = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="XOF")
    # Set by whichever request currently owns the intent; compared on every handover
    claimed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    orders = relationship("Order", order_by="Order.created_at")
