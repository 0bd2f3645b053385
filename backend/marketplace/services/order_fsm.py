"""Order status state machine — the only place an order's status changes.

Every change bumps ``Order.version`` and appends an ``OrderStatusChange`` row
to the ledger in the caller's transaction (the caller commits).
"""
import enum
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from marketplace.errors import InvalidTransition
from marketplace.models.order import Order, OrderStatus
from marketplace.models.order_status_change import OrderStatusChange

logger = logging.getLogger(__name__)


class OrderEvent(str, enum.Enum):
    payment_succeeded = "payment_succeeded"
    start = "start"
    complete = "complete"
    cancel = "cancel"


TRANSITIONS: dict[tuple[OrderStatus, OrderEvent], OrderStatus] = {
    (OrderStatus.pending, OrderEvent.payment_succeeded): OrderStatus.confirmed,
    (OrderStatus.confirmed, OrderEvent.start): OrderStatus.in_progress,
    (OrderStatus.in_progress, OrderEvent.complete): OrderStatus.completed,
    (OrderStatus.pending, OrderEvent.cancel): OrderStatus.cancelled,
    (OrderStatus.confirmed, OrderEvent.cancel): OrderStatus.cancelled,
    (OrderStatus.in_progress, OrderEvent.cancel): OrderStatus.cancelled,
}

TERMINAL_STATUSES = frozenset({OrderStatus.completed, OrderStatus.cancelled})


def next_status(current: OrderStatus, event: OrderEvent) -> Optional[OrderStatus]:
    return TRANSITIONS.get((OrderStatus(current), OrderEvent(event)))


def transition(
    db: Session,
    order: Order,
    event: OrderEvent,
    actor_id: Optional[str] = None,
    payment_reference: Optional[str] = None,
) -> Order:
    """Apply ``event`` to ``order`` or raise InvalidTransition; does not commit."""
    current = OrderStatus(order.status)
    target = next_status(current, event)
    if target is None:
        raise InvalidTransition(
            f"Cannot apply '{OrderEvent(event).value}' to an order that is {current.value}.",
            order_id=order.order_id,
            status=current.value,
        )

    order.status = target
    order.version += 1
    order.updated_at = datetime.now(timezone.utc)
    db.add(OrderStatusChange(
        order_id=order.order_id,
        actor_id=actor_id,
        event=OrderEvent(event).value,
        from_status=current.value,
        to_status=target.value,
        payment_reference=payment_reference,
    ))
    logger.info("Order %s: %s -> %s (%s)", order.order_id, current.value, target.value, OrderEvent(event).value)
    return order
