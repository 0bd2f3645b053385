"""Proposal and ProposalLine ORM models — persisted form of a proposal draft."""
import uuid
import enum
from sqlalchemy import Column, String, Boolean, DateTime, Integer, ForeignKey, Enum as SAEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from marketplace.database import Base


class ProposalStatus(str, enum.Enum):
    open = "open"
    confirmed = "confirmed"


class Proposal(Base):
    __tablename__ = "proposals"

    proposal_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    brief_id = Column(String(36), ForeignKey("event_briefs.brief_id"), nullable=False)
    client_id = Column(String(36), nullable=False, index=True)
    status = Column(SAEnum(ProposalStatus), nullable=False, default=ProposalStatus.open)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    brief = relationship("EventBrief")
    lines = relationship(
        "ProposalLine",
        back_populates="proposal",
        cascade="all, delete-orphan",
        order_by="ProposalLine.position",
    )


class ProposalLine(Base):
    __tablename__ = "proposal_lines"

    line_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    proposal_id = Column(String(36), ForeignKey("proposals.proposal_id"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    needed_category = Column(String(100), nullable=False)
    offering_id = Column(String(36), ForeignKey("offerings.offering_id"), nullable=False)
    # Snapshot of the offering at proposal time
    offering_name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=False)
    supplier_id = Column(String(36), nullable=False)
    price_per_day = Column(Integer, nullable=False)
    is_verified = Column(Boolean, nullable=False, default=False)
    available_quantity = Column(Integer, nullable=False, default=1)
    quantity = Column(Integer, nullable=False, default=1)
    rental_days = Column(Integer, nullable=False, default=1)

    proposal = relationship("Proposal", back_populates="lines")
