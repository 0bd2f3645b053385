"""Payment initialization for a booked order group (one gateway transaction per group)."""
import logging
import time
from typing import Optional

from sqlalchemy.orm import Session

from marketplace.config import settings
from marketplace.errors import OrchestrationInProgress
from marketplace.models.order_group import GroupStatus, OrderGroup
from marketplace.models.payment import Payment
from marketplace.schemas.payment import PaymentInitOut
from marketplace.services.order_store import SqlOrderStore
from marketplace.services.payment_gateway import PaymentGateway

logger = logging.getLogger(__name__)


def new_reference(group_id: str) -> str:
    return f"group_{group_id}_{int(time.time() * 1000)}"


def initialize_group_payment(
    db: Session,
    group: OrderGroup,
    email: str,
    gateway: PaymentGateway,
    callback_url: Optional[str] = None,
) -> PaymentInitOut:
    """Open a gateway transaction for the group's single payable amount."""
    if group.status != GroupStatus.booked:
        raise OrchestrationInProgress(
            f"Order group is {group.status.value}; only booked groups can be paid.",
            group_id=group.group_id,
        )

    orders = SqlOrderStore(db).find_orders_by_group(group.group_id)
    reference = new_reference(group.group_id)
    init = gateway.initialize(
        reference=reference,
        email=email,
        amount=group.payable_amount,
        currency=group.currency,
        metadata={"group_id": group.group_id, "order_ids": [o.order_id for o in orders]},
        callback_url=callback_url or settings.PAYMENT_CALLBACK_URL,
    )
    reference = init.get("reference") or reference

    payment = Payment(
        reference=reference,
        group_id=group.group_id,
        amount=group.payable_amount,
        currency=group.currency,
        email=email,
        authorization_url=init.get("authorization_url"),
    )
    db.add(payment)
    db.commit()
    logger.info("Initialized payment %s for group %s (%d %s)", reference, group.group_id, payment.amount, payment.currency)
    return PaymentInitOut(
        reference=reference,
        group_id=group.group_id,
        amount=payment.amount,
        currency=payment.currency,
        authorization_url=payment.authorization_url,
        access_code=init.get("access_code"),
    )
