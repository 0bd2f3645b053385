"""Pydantic schemas for the planner assistant."""
from pydantic import BaseModel, Field


class AdviceRequest(BaseModel):
    client_id: str
    proposal_id: str
    question: str = Field(..., min_length=1)


class AdviceResponse(BaseModel):
    response: str
    recommended_offering_ids: list[str] = []
