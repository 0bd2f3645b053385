"""Pydantic schemas for payment initialization and reconciliation."""
from typing import Optional
from pydantic import BaseModel, Field


class PaymentInitRequest(BaseModel):
    client_id: str
    email: str = Field(..., min_length=3)
    callback_url: Optional[str] = None


class PaymentInitOut(BaseModel):
    reference: str
    group_id: str
    amount: int
    currency: str
    authorization_url: Optional[str] = None
    access_code: Optional[str] = None


class UnconfirmedOrder(BaseModel):
    order_id: str
    status: str


class ReconciliationResult(BaseModel):
    reference: str
    group_id: Optional[str] = None
    outcome: str  # confirmed | partial | failed
    verified_amount: Optional[int] = None
    orders_updated: int = 0
    unconfirmed_orders: list[UnconfirmedOrder] = []
    duplicate: bool = False
    message: Optional[str] = None
