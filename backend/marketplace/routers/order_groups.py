"""Order group API routes — re-query by token, payment initialization, unpaid expiry."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from marketplace.database import get_db
from marketplace.models.order_group import OrderGroup
from marketplace.schemas.order import ExpireUnpaidResult, OrderGroupResult
from marketplace.schemas.payment import PaymentInitOut, PaymentInitRequest
from marketplace.services import order_group_service, payment_service
from marketplace.services.payment_gateway import PaymentGateway, get_payment_gateway

logger = logging.getLogger(__name__)
router = APIRouter()


def _get_group(db: Session, group_id: str) -> OrderGroup:
    group = db.query(OrderGroup).filter(OrderGroup.group_id == group_id).first()
    if not group:
        raise HTTPException(status_code=404, detail="Order group not found")
    return group


@router.get("/", response_model=list[OrderGroupResult])
def list_order_groups(
    idempotency_token: Optional[str] = Query(None),
    client_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """Find groups by the confirm call's idempotency token (after a timeout) or by client."""
    query = db.query(OrderGroup)
    if idempotency_token:
        query = query.filter(OrderGroup.idempotency_token == idempotency_token)
    if client_id:
        query = query.filter(OrderGroup.client_id == client_id)
    return [order_group_service.build_result(db, g) for g in query.order_by(OrderGroup.created_at.desc()).all()]


@router.post("/expire-unpaid", response_model=ExpireUnpaidResult)
def expire_unpaid(ttl_hours: Optional[int] = Query(None, ge=0), db: Session = Depends(get_db)):
    """Cancel pending orders of groups left unpaid past the configured TTL (0 disables)."""
    return order_group_service.expire_unpaid_groups(db, ttl_hours=ttl_hours)


@router.get("/{group_id}", response_model=OrderGroupResult)
def get_order_group(group_id: str, db: Session = Depends(get_db)):
    return order_group_service.build_result(db, _get_group(db, group_id))


@router.post("/{group_id}/payments", response_model=PaymentInitOut, status_code=status.HTTP_201_CREATED)
def initialize_payment(
    group_id: str,
    payload: PaymentInitRequest,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """Open one gateway transaction for the whole group."""
    group = _get_group(db, group_id)
    if group.client_id != payload.client_id:
        raise HTTPException(status_code=403, detail="Only the client who owns this group may pay for it.")
    return payment_service.initialize_group_payment(
        db, group, email=payload.email, gateway=gateway, callback_url=payload.callback_url,
    )
