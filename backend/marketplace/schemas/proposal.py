"""Pydantic schemas for event briefs and proposals."""
from __future__ import annotations
from datetime import date, datetime
from typing import Optional

import pytz
from pydantic import BaseModel, Field, field_validator, model_validator

from marketplace.config import settings
from marketplace.errors import NOTICE_MESSAGES, Notice
from marketplace.models.brief import EventType
from marketplace.services.proposal_editor import ProposalDraft


class BriefCreate(BaseModel):
    client_id: str
    event_type: EventType = EventType.autre
    event_name: Optional[str] = None
    budget_min: int = Field(0, ge=0)
    budget_max: int = Field(..., gt=0)
    guest_count: int = Field(0, ge=0)
    event_date: Optional[date] = None
    event_location: Optional[str] = None
    services_needed: list[str] = []
    additional_notes: Optional[str] = None

    @field_validator("event_date")
    @classmethod
    def not_in_the_past(cls, value: Optional[date]) -> Optional[date]:
        """Event dates are checked against today in the marketplace's timezone."""
        if value is None:
            return value
        today = datetime.now(pytz.timezone(settings.MARKETPLACE_TIMEZONE)).date()
        if value < today:
            raise ValueError("event_date cannot be in the past")
        return value

    @model_validator(mode="after")
    def budget_range(self) -> "BriefCreate":
        if self.budget_min > self.budget_max:
            raise ValueError("budget_min cannot exceed budget_max")
        return self


class BriefOut(BaseModel):
    brief_id: str
    client_id: str
    event_type: str
    event_name: Optional[str] = None
    budget_min: int
    budget_max: int
    guest_count: int
    event_date: Optional[date] = None
    event_location: Optional[str] = None
    services_needed: list[str] = []
    additional_notes: Optional[str] = None
    applied_recommendation: Optional[list[str]] = None
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ProposalLineOut(BaseModel):
    line_id: str
    offering_id: str
    offering_name: str
    category: str
    needed_category: str
    supplier_id: str
    price_per_day: int
    is_verified: bool
    available_quantity: int
    quantity: int
    rental_days: int
    subtotal: int


class NoticeOut(BaseModel):
    code: str
    message: str


class ProposalOut(BaseModel):
    proposal_id: str
    status: str
    brief: BriefOut
    lines: list[ProposalLineOut] = []
    total: int
    budget_max: int
    unmatched_categories: list[str] = []
    notices: list[NoticeOut] = []


class LineUpdate(BaseModel):
    quantity: Optional[int] = None
    rental_days: Optional[int] = None


def proposal_out(proposal, draft: ProposalDraft) -> ProposalOut:
    """Render a stored proposal with the totals and notices of its draft."""
    return ProposalOut(
        proposal_id=proposal.proposal_id,
        status=proposal.status.value,
        brief=BriefOut.model_validate(proposal.brief),
        lines=[
            ProposalLineOut(
                line_id=line.line_id,
                offering_id=line.offering_id,
                offering_name=line.offering_name,
                category=line.category,
                needed_category=line.needed_category,
                supplier_id=line.supplier_id,
                price_per_day=line.price_per_day,
                is_verified=line.is_verified,
                available_quantity=line.available_quantity,
                quantity=line.quantity,
                rental_days=line.rental_days,
                subtotal=line.subtotal,
            )
            for line in draft.lines
        ],
        total=draft.total,
        budget_max=draft.budget_max,
        unmatched_categories=draft.unmatched_categories,
        notices=[NoticeOut(code=n.value, message=NOTICE_MESSAGES[Notice(n)]) for n in draft.notices],
    )
