"""Order persistence interface used by the orchestrator and reconciliation."""
from typing import Optional, Protocol, Sequence

from sqlalchemy.orm import Session

from marketplace.errors import InvalidTransition
from marketplace.models.order import Order, OrderItem, OrderStatus
from marketplace.services import order_fsm


class OrderStore(Protocol):
    def create_order(self, order: Order, items: Sequence[OrderItem]) -> Order: ...

    def update_order_status(
        self,
        order_id: str,
        status: OrderStatus,
        actor_id: Optional[str] = None,
        payment_reference: Optional[str] = None,
    ) -> Order: ...

    def find_orders_by_group(self, group_id: str) -> list[Order]: ...


class SqlOrderStore:
    """OrderStore writing through the request session; callers own the commit."""

    def __init__(self, db: Session):
        self.db = db

    def create_order(self, order: Order, items: Sequence[OrderItem]) -> Order:
        order.items.extend(items)
        self.db.add(order)
        self.db.flush()
        return order

    def update_order_status(
        self,
        order_id: str,
        status: OrderStatus,
        actor_id: Optional[str] = None,
        payment_reference: Optional[str] = None,
    ) -> Order:
        """Move an order to ``status`` through the state machine's transition table."""
        order = self.db.query(Order).filter(Order.order_id == order_id).with_for_update().one()
        target = OrderStatus(status)
        event = next(
            (e for (source, e), dest in order_fsm.TRANSITIONS.items() if source == order.status and dest == target),
            None,
        )
        if event is None:
            raise InvalidTransition(
                f"Cannot move an order from {OrderStatus(order.status).value} to {target.value}.",
                order_id=order.order_id,
                status=OrderStatus(order.status).value,
            )
        return order_fsm.transition(self.db, order, event, actor_id=actor_id, payment_reference=payment_reference)

    def find_orders_by_group(self, group_id: str) -> list[Order]:
        return (
            self.db.query(Order)
            .filter(Order.group_id == group_id)
            .order_by(Order.created_at, Order.order_id)
            .all()
        )
