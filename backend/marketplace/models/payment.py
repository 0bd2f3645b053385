"""Payment and PaymentReconciliation ORM models."""
import enum
from sqlalchemy import Column, String, DateTime, Integer, JSON, ForeignKey, Enum as SAEnum
from sqlalchemy.sql import func
from marketplace.database import Base


class ReconciliationState(str, enum.Enum):
    processing = "processing"
    done = "done"


class ReconciliationOutcome(str, enum.Enum):
    confirmed = "confirmed"
    partial = "partial"
    failed = "failed"


class Payment(Base):
    """A gateway transaction initialized for one order group."""

    __tablename__ = "payments"

    reference = Column(String(255), primary_key=True)
    group_id = Column(String(36), ForeignKey("order_groups.group_id"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False)
    email = Column(String(255), nullable=True)
    authorization_url = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class PaymentReconciliation(Base):
    """One row per reference; the primary key serializes concurrent reconciliations."""

    __tablename__ = "payment_reconciliations"

    reference = Column(String(255), primary_key=True)
    group_id = Column(String(36), nullable=True, index=True)
    state = Column(SAEnum(ReconciliationState), nullable=False, default=ReconciliationState.processing)
    outcome = Column(SAEnum(ReconciliationOutcome), nullable=True)
    verified_amount = Column(Integer, nullable=True)
    orders_updated = Column(Integer, nullable=False, default=0)
    unconfirmed_orders = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    claimed_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
