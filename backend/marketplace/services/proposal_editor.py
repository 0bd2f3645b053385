"""Proposal Editor — pure, in-memory edits of a proposal draft.

No persistence and no exceptions: unknown line ids leave the draft as it was,
quantities and rental days are clamped to at least 1, and totals are derived
on every read. The budget ceiling only constrains the selector's first draft;
after edits an over-budget total is reported as a notice, never blocked.
"""
import uuid
from dataclasses import dataclass, field
from typing import Optional

from marketplace.errors import Notice


@dataclass
class DraftLine:
    offering_id: str
    offering_name: str
    category: str
    needed_category: str
    supplier_id: str
    price_per_day: int
    is_verified: bool = False
    available_quantity: int = 1
    quantity: int = 1
    rental_days: int = 1
    line_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def subtotal(self) -> int:
        return self.price_per_day * self.quantity * self.rental_days


@dataclass
class ProposalDraft:
    budget_max: int
    lines: list[DraftLine] = field(default_factory=list)
    unmatched_categories: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(line.subtotal for line in self.lines)

    @property
    def notices(self) -> list[Notice]:
        notices = []
        if not self.lines:
            notices.append(Notice.no_matching_offerings)
        if self.total > self.budget_max:
            notices.append(Notice.budget_exceeded_by_edit)
        if any(line.quantity > line.available_quantity for line in self.lines):
            notices.append(Notice.quantity_exceeds_availability)
        return notices

    def find_line(self, line_id: str) -> Optional[DraftLine]:
        return next((line for line in self.lines if line.line_id == line_id), None)


def set_quantity(draft: ProposalDraft, line_id: str, quantity: int) -> ProposalDraft:
    line = draft.find_line(line_id)
    if line is not None:
        line.quantity = max(1, int(quantity))
    return draft


def set_rental_days(draft: ProposalDraft, line_id: str, days: int) -> ProposalDraft:
    line = draft.find_line(line_id)
    if line is not None:
        line.rental_days = max(1, int(days))
    return draft


def remove_line(draft: ProposalDraft, line_id: str) -> ProposalDraft:
    draft.lines = [line for line in draft.lines if line.line_id != line_id]
    return draft
