"""Proposal API routes — brief in, editable proposal out, confirm into an order group."""
import logging
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from marketplace.context import RequestContext
from marketplace.database import get_db
from marketplace.errors import Notice
from marketplace.models.brief import EventBrief
from marketplace.models.proposal import Proposal, ProposalStatus
from marketplace.schemas.order import ConfirmRequest, OrderGroupResult
from marketplace.schemas.proposal import BriefCreate, LineUpdate, ProposalOut, proposal_out
from marketplace.services import order_group_service, proposal_service
from marketplace.services.catalog import SqlCatalog

logger = logging.getLogger(__name__)
router = APIRouter()


def _get_proposal(db: Session, proposal_id: str) -> Proposal:
    proposal = db.query(Proposal).filter(Proposal.proposal_id == proposal_id).first()
    if not proposal:
        raise HTTPException(status_code=404, detail="Proposal not found")
    return proposal


def _get_editable_line(db: Session, proposal_id: str, line_id: str, client_id: str) -> Proposal:
    proposal = _get_proposal(db, proposal_id)
    if proposal.client_id != client_id:
        raise HTTPException(status_code=403, detail="Only the client who owns this proposal may edit it.")
    if proposal.status != ProposalStatus.open:
        raise HTTPException(status_code=409, detail="This proposal has been confirmed and can no longer be edited.")
    if not any(line.line_id == line_id for line in proposal.lines):
        raise HTTPException(status_code=404, detail="Proposal line not found")
    return proposal


@router.post("/", response_model=ProposalOut, status_code=status.HTTP_201_CREATED)
def create_proposal(payload: BriefCreate, db: Session = Depends(get_db)):
    """Store the brief and return the selector's budget-bounded proposal.

    An empty proposal is a normal answer carrying the no-match notice.
    """
    brief = EventBrief(**payload.model_dump())
    db.add(brief)
    db.flush()
    proposal, draft = proposal_service.create_proposal(db, brief, SqlCatalog(db))
    if Notice.no_matching_offerings in draft.notices:
        logger.info("No offering matched brief %s", brief.brief_id)
    return proposal_out(proposal, draft)


@router.get("/{proposal_id}", response_model=ProposalOut)
def get_proposal(proposal_id: str, db: Session = Depends(get_db)):
    proposal = _get_proposal(db, proposal_id)
    return proposal_out(proposal, proposal_service.to_draft(proposal))


@router.patch("/{proposal_id}/lines/{line_id}", response_model=ProposalOut)
def update_line(
    proposal_id: str,
    line_id: str,
    payload: LineUpdate,
    client_id: str = Query(..., description="ID of the client editing the proposal"),
    db: Session = Depends(get_db),
):
    """Change quantity and/or rental days; values below 1 are clamped, budget is not enforced."""
    proposal = _get_editable_line(db, proposal_id, line_id, client_id)
    draft = proposal_service.update_line(
        db, proposal, line_id, quantity=payload.quantity, rental_days=payload.rental_days,
    )
    return proposal_out(proposal, draft)


@router.delete("/{proposal_id}/lines/{line_id}", response_model=ProposalOut)
def remove_line(
    proposal_id: str,
    line_id: str,
    client_id: str = Query(..., description="ID of the client editing the proposal"),
    db: Session = Depends(get_db),
):
    proposal = _get_editable_line(db, proposal_id, line_id, client_id)
    draft = proposal_service.remove_line(db, proposal, line_id)
    return proposal_out(proposal, draft)


@router.post("/{proposal_id}/confirm", response_model=OrderGroupResult, status_code=status.HTTP_201_CREATED)
def confirm_proposal(
    proposal_id: str,
    payload: ConfirmRequest,
    response: Response,
    db: Session = Depends(get_db),
):
    """Book one pending order per supplier under a single group and return the payable amount.

    Replaying the same idempotency token returns the already-booked group with 200.
    """
    proposal = _get_proposal(db, proposal_id)
    result = order_group_service.confirm(
        db,
        proposal,
        RequestContext(client_id=payload.client_id),
        idempotency_token=payload.idempotency_token,
    )
    if result.replayed:
        response.status_code = status.HTTP_200_OK
    return result
