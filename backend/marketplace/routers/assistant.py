"""Planner assistant API route."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from openai import OpenAI
from sqlalchemy.orm import Session

from marketplace.database import get_db
from marketplace.models.proposal import Proposal
from marketplace.schemas.assistant import AdviceRequest, AdviceResponse
from marketplace.services.planner_assistant import advise, get_openai_client

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/advise", response_model=AdviceResponse)
def advise_on_proposal(
    payload: AdviceRequest,
    db: Session = Depends(get_db),
    client: Optional[OpenAI] = Depends(get_openai_client),
):
    """Ask the assistant about a proposal; recommendations are limited to active offerings."""
    proposal = db.query(Proposal).filter(Proposal.proposal_id == payload.proposal_id).first()
    if not proposal:
        raise HTTPException(status_code=404, detail="Proposal not found")
    if proposal.client_id != payload.client_id:
        raise HTTPException(status_code=403, detail="Only the client who owns this proposal may ask about it.")

    logger.info("Assistant question from client %s on proposal %s", payload.client_id, payload.proposal_id)
    result = advise(db, proposal, payload.question, client)
    return AdviceResponse(response=result["response"], recommended_offering_ids=result["recommended_offering_ids"])
