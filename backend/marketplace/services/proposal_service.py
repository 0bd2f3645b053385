"""Proposal store — persists selector drafts and applies editor operations to them."""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from marketplace.errors import Notice
from marketplace.models.brief import EventBrief
from marketplace.models.proposal import Proposal, ProposalLine
from marketplace.services import proposal_editor
from marketplace.services.catalog import CatalogQuery
from marketplace.services.proposal_editor import DraftLine, ProposalDraft
from marketplace.services.recommendation_service import select

logger = logging.getLogger(__name__)


def to_draft(proposal: Proposal) -> ProposalDraft:
    """Rebuild the in-memory draft of a stored proposal."""
    covered = {line.needed_category for line in proposal.lines}
    return ProposalDraft(
        budget_max=proposal.brief.budget_max,
        unmatched_categories=[c for c in (proposal.brief.services_needed or []) if c not in covered],
        lines=[
            DraftLine(
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
            )
            for line in proposal.lines
        ],
    )


def _sync_lines(proposal: Proposal, draft: ProposalDraft) -> None:
    """Write draft quantities back and drop lines the draft no longer has."""
    by_id = {line.line_id: line for line in draft.lines}
    for line in list(proposal.lines):
        edited = by_id.get(line.line_id)
        if edited is None:
            proposal.lines.remove(line)
            continue
        line.quantity = edited.quantity
        line.rental_days = edited.rental_days


def create_proposal(db: Session, brief: EventBrief, catalog: CatalogQuery) -> tuple[Proposal, ProposalDraft]:
    """Run the selector for a stored brief and persist the resulting draft."""
    draft = select(brief, catalog)
    proposal = Proposal(brief_id=brief.brief_id, client_id=brief.client_id)
    for position, line in enumerate(draft.lines):
        proposal.lines.append(ProposalLine(
            line_id=line.line_id,
            position=position,
            needed_category=line.needed_category,
            offering_id=line.offering_id,
            offering_name=line.offering_name,
            category=line.category,
            supplier_id=line.supplier_id,
            price_per_day=line.price_per_day,
            is_verified=line.is_verified,
            available_quantity=line.available_quantity,
            quantity=line.quantity,
            rental_days=line.rental_days,
        ))
    db.add(proposal)
    db.commit()
    db.refresh(proposal)
    logger.info(
        "Created proposal %s for brief %s with %d line(s), total %d",
        proposal.proposal_id, brief.brief_id, len(draft.lines), draft.total,
    )
    return proposal, draft


def _save_edit(db: Session, proposal: Proposal, draft: ProposalDraft) -> ProposalDraft:
    _sync_lines(proposal, draft)
    db.commit()
    db.refresh(proposal)
    draft = to_draft(proposal)
    logger.info("Edited proposal %s (total now %d)", proposal.proposal_id, draft.total)
    if Notice.budget_exceeded_by_edit in draft.notices:
        logger.warning(
            "Proposal %s exceeds its budget after edit (%d > %d)",
            proposal.proposal_id, draft.total, draft.budget_max,
        )
    return draft


def update_line(
    db: Session,
    proposal: Proposal,
    line_id: str,
    quantity: Optional[int] = None,
    rental_days: Optional[int] = None,
) -> ProposalDraft:
    """Change a line's quantity and/or rental days (each clamped to at least 1)."""
    draft = to_draft(proposal)
    if quantity is not None:
        proposal_editor.set_quantity(draft, line_id, quantity)
    if rental_days is not None:
        proposal_editor.set_rental_days(draft, line_id, rental_days)
    return _save_edit(db, proposal, draft)


def remove_line(db: Session, proposal: Proposal, line_id: str) -> ProposalDraft:
    draft = proposal_editor.remove_line(to_draft(proposal), line_id)
    return _save_edit(db, proposal, draft)
