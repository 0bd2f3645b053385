"""Pydantic schemas for orders, order groups and the confirm operation."""
from __future__ import annotations
from datetime import date, datetime
from typing import Any, Optional
from pydantic import BaseModel, Field


class ConfirmRequest(BaseModel):
    client_id: str
    idempotency_token: str = Field(..., min_length=1, max_length=255)


class OrderItemOut(BaseModel):
    offering_id: str
    offering_name: str
    quantity: int
    rental_days: int
    price_per_day: int
    subtotal: int

    model_config = {"from_attributes": True}


class OrderOut(BaseModel):
    order_id: str
    client_id: str
    supplier_id: str
    group_id: Optional[str] = None
    status: str
    total_amount: int
    deposit_paid: Optional[int] = None
    event_type: Optional[str] = None
    event_date: Optional[date] = None
    event_location: Optional[str] = None
    version: int
    created_at: datetime
    updated_at: datetime
    items: list[OrderItemOut] = []

    model_config = {"from_attributes": True}


class SupplierOrder(BaseModel):
    order_id: str
    supplier_id: str
    supplier_name: Optional[str] = None
    amount: int
    status: str
    items: list[OrderItemOut] = []


class PaymentInitPayload(BaseModel):
    amount: int
    amount_subunit: int  # what the gateway charges (amount x 100)
    currency: str
    initialize_path: str
    metadata: dict[str, Any]


class OrderGroupResult(BaseModel):
    group_id: str
    idempotency_token: str
    proposal_id: str
    client_id: str
    status: str
    subtotal: int
    service_fee: int
    payable_amount: int
    currency: str
    orders: list[SupplierOrder] = []
    payment: Optional[PaymentInitPayload] = None
    replayed: bool = False


class OrderTransitionRequest(BaseModel):
    actor_id: str
    event: str  # payment_succeeded is reserved for reconciliation
    version: Optional[int] = None  # when set, must match the order's current version


class ExpireUnpaidResult(BaseModel):
    ttl_hours: int
    groups_expired: list[str] = []
    orders_cancelled: int = 0
