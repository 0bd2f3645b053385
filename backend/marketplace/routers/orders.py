"""Order API routes — reads and supplier/client status transitions."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from marketplace.database import get_db
from marketplace.models.order import Order, OrderStatus
from marketplace.schemas.order import OrderOut, OrderTransitionRequest
from marketplace.services import order_fsm
from marketplace.services.order_fsm import OrderEvent

logger = logging.getLogger(__name__)
router = APIRouter()

# Who may trigger which event outside of payment reconciliation
SUPPLIER_EVENTS = {OrderEvent.start, OrderEvent.complete, OrderEvent.cancel}
CLIENT_EVENTS = {OrderEvent.cancel}


@router.get("/", response_model=list[OrderOut])
def list_orders(
    group_id: Optional[str] = Query(None),
    client_id: Optional[str] = Query(None),
    supplier_id: Optional[str] = Query(None),
    status_filter: Optional[OrderStatus] = Query(None),
    db: Session = Depends(get_db),
):
    """List orders with optional filters."""
    query = db.query(Order)
    if group_id:
        query = query.filter(Order.group_id == group_id)
    if client_id:
        query = query.filter(Order.client_id == client_id)
    if supplier_id:
        query = query.filter(Order.supplier_id == supplier_id)
    if status_filter:
        query = query.filter(Order.status == status_filter)
    return query.order_by(Order.created_at.desc()).all()


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: str, db: Session = Depends(get_db)):
    order = db.query(Order).filter(Order.order_id == order_id).first()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.post("/{order_id}/transition", response_model=OrderOut)
def transition_order(order_id: str, payload: OrderTransitionRequest, db: Session = Depends(get_db)):
    """Fulfillment and cancellation; payment confirmation only happens through reconciliation.

    The UPDATE is guarded by the order's version, so a transition racing a
    payment (or another actor) fails with 409 instead of overwriting it.
    """
    order = db.query(Order).filter(Order.order_id == order_id).with_for_update().first()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")

    if payload.version is not None and order.version != payload.version:
        raise HTTPException(
            status_code=409,
            detail=f"Version mismatch: expected {order.version}, got {payload.version}. Re-fetch and retry.",
        )

    try:
        event = OrderEvent(payload.event)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Unknown order event '{payload.event}'")

    allowed = set()
    if payload.actor_id == order.supplier_id:
        allowed |= SUPPLIER_EVENTS
    if payload.actor_id == order.client_id:
        allowed |= CLIENT_EVENTS
    if event not in allowed:
        raise HTTPException(status_code=403, detail=f"This actor may not apply '{event.value}' to the order.")

    expected = order.version
    order_fsm.transition(db, order, event, actor_id=payload.actor_id)
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        logger.warning("Order %s changed while applying '%s'; rejected", order_id, event.value)
        raise HTTPException(
            status_code=409,
            detail=f"Version mismatch: order {order_id} is no longer at version {expected}. Re-fetch and retry.",
        )
    db.refresh(order)
    return order
