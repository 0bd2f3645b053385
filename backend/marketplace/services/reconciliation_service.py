"""Payment Reconciliation Service — settles an order group from one payment reference.

Each reference is reconciled at most once. The first request claims it by
inserting a PaymentReconciliation row keyed on the reference. A concurrent or
later request for the same reference waits for that claim to finish and gets
the recorded outcome back with ``duplicate=True``; it only gives up with
ReconciliationInProgress when the wait runs out. A claim left ``processing``
past its lease (crashed worker) is taken over. A payment failure never cancels
orders: they stay pending so the client can pay again.
"""
import logging
import time
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from marketplace.config import settings
from marketplace.errors import (
    GroupReconciliationPartial,
    InvalidTransition,
    PaymentNotFound,
    ReconciliationInProgress,
)
from marketplace.models.order import OrderStatus
from marketplace.models.order_group import OrderGroup
from marketplace.models.payment import (
    Payment,
    PaymentReconciliation,
    ReconciliationOutcome,
    ReconciliationState,
)
from marketplace.schemas.payment import ReconciliationResult, UnconfirmedOrder
from marketplace.services.leases import is_stale, utcnow
from marketplace.services.order_store import OrderStore, SqlOrderStore
from marketplace.services.payment_gateway import PaymentGateway

logger = logging.getLogger(__name__)

OUTCOME_MESSAGES = {
    ReconciliationOutcome.confirmed: "Payment received, all suppliers have been notified.",
    ReconciliationOutcome.partial: "Payment received, some items pending confirmation, support has been notified.",
    ReconciliationOutcome.failed: "The payment was not completed. Your orders are kept, you can retry the payment.",
}


def _to_result(record: PaymentReconciliation, duplicate: bool = False) -> ReconciliationResult:
    outcome = ReconciliationOutcome(record.outcome)
    return ReconciliationResult(
        reference=record.reference,
        group_id=record.group_id,
        outcome=outcome.value,
        verified_amount=record.verified_amount,
        orders_updated=record.orders_updated,
        unconfirmed_orders=[UnconfirmedOrder(**o) for o in (record.unconfirmed_orders or [])],
        duplicate=duplicate,
        message=OUTCOME_MESSAGES[outcome],
    )


def _cached(record: PaymentReconciliation) -> ReconciliationResult:
    logger.info("Reference %s already reconciled (%s), returning recorded outcome", record.reference, record.outcome.value)
    return _to_result(record, duplicate=True)


def _claim(db: Session, reference: str) -> Optional[datetime]:
    """Insert the claim row; returns its ``claimed_at``, or None when another request owns the reference."""
    claimed_at = utcnow()
    db.add(PaymentReconciliation(reference=reference, state=ReconciliationState.processing, claimed_at=claimed_at))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return None
    return claimed_at


def _release(db: Session, reference: str, claimed_at: datetime) -> None:
    """Drop our unfinished claim so the reference can be reconciled again."""
    db.rollback()
    record = db.identity_map.get(db.identity_key(PaymentReconciliation, reference))
    if record is not None:
        db.expunge(record)
    db.query(PaymentReconciliation).filter(
        PaymentReconciliation.reference == reference,
        PaymentReconciliation.state == ReconciliationState.processing,
        PaymentReconciliation.claimed_at == claimed_at,
    ).delete(synchronize_session=False)
    db.commit()


def _take_over_stale(db: Session, record: PaymentReconciliation) -> None:
    logger.warning(
        "Claim on %s has been processing since %s, past its lease; taking it over",
        record.reference, record.claimed_at or record.created_at,
    )
    db.query(PaymentReconciliation).filter(
        PaymentReconciliation.reference == record.reference,
        PaymentReconciliation.state == ReconciliationState.processing,
        PaymentReconciliation.claimed_at == record.claimed_at,
    ).delete(synchronize_session=False)
    db.expunge(record)
    db.commit()


def _wait_for_claim(db: Session, reference: str) -> Optional[ReconciliationResult]:
    """Wait on another request's claim.

    Returns the recorded outcome once that claim is done, or None when the
    reference is free to claim (no row, or a stale claim just dropped).
    """
    deadline = time.monotonic() + settings.RECONCILE_WAIT_SECONDS
    while True:
        record = db.get(PaymentReconciliation, reference)
        if record is None:
            return None
        if record.state == ReconciliationState.done:
            return _cached(record)
        if is_stale(record.claimed_at or record.created_at, settings.RECONCILE_CLAIM_LEASE_SECONDS):
            _take_over_stale(db, record)
            return None
        if time.monotonic() >= deadline:
            raise ReconciliationInProgress(reference=reference)
        # Forget the row and end the read so the next poll sees the winner's commit
        db.expunge(record)
        db.rollback()
        time.sleep(settings.RECONCILE_POLL_SECONDS)


def _group_for(db: Session, reference: str, gateway_group_id: Optional[str]) -> Optional[str]:
    if gateway_group_id:
        return gateway_group_id
    payment = db.get(Payment, reference)
    return payment.group_id if payment else None


def _settle(
    db: Session,
    reference: str,
    claimed_at: datetime,
    gateway: PaymentGateway,
    store: OrderStore,
) -> PaymentReconciliation:
    """Verify the payment and record the outcome under our claim; commits."""
    claim = db.get(PaymentReconciliation, reference)
    if claim is None:
        raise ReconciliationInProgress("The claim on this reference was taken over.", reference=reference)
    verification = gateway.verify(reference)
    if verification is None:
        raise PaymentNotFound(reference=reference)

    group_id = _group_for(db, reference, verification.group_id)
    if group_id is None or db.get(OrderGroup, group_id) is None:
        raise PaymentNotFound("The payment is not linked to a known order group.", reference=reference)

    claim.group_id = group_id
    claim.verified_amount = verification.amount

    if not verification.success:
        claim.outcome = ReconciliationOutcome.failed
        claim.orders_updated = 0
        claim.unconfirmed_orders = []
    else:
        group = db.get(OrderGroup, group_id)
        if verification.amount < group.payable_amount:
            logger.warning(
                "Reference %s paid %d but group %s is payable %d",
                reference, verification.amount, group_id, group.payable_amount,
            )
        updated = 0
        for order in store.find_orders_by_group(group_id):
            if order.status != OrderStatus.pending:
                continue
            try:
                store.update_order_status(order.order_id, OrderStatus.confirmed, payment_reference=reference)
            except InvalidTransition as e:
                logger.warning("Order %s not confirmed by %s: %s", order.order_id, reference, e)
                continue
            order.deposit_paid = order.total_amount
            updated += 1

        orders = store.find_orders_by_group(group_id)
        unconfirmed = [
            {"order_id": o.order_id, "status": OrderStatus(o.status).value}
            for o in orders
            if o.status != OrderStatus.confirmed
        ]
        if updated == 0:
            logger.warning("Reference %s confirmed no order in group %s (possible double payment)", reference, group_id)
        claim.outcome = (
            ReconciliationOutcome.confirmed if orders and not unconfirmed else ReconciliationOutcome.partial
        )
        claim.orders_updated = updated
        claim.unconfirmed_orders = unconfirmed

    # Only the current holder of the claim may finish it
    still_ours = db.query(PaymentReconciliation).filter(
        PaymentReconciliation.reference == reference,
        PaymentReconciliation.state == ReconciliationState.processing,
        PaymentReconciliation.claimed_at == claimed_at,
    ).update({PaymentReconciliation.state: ReconciliationState.done}, synchronize_session=False)
    if not still_ours:
        raise ReconciliationInProgress("The claim on this reference expired before it was settled.", reference=reference)
    claim.state = ReconciliationState.done
    claim.completed_at = utcnow()
    db.commit()
    db.refresh(claim)
    return claim


def reconcile(
    db: Session,
    reference: str,
    gateway: PaymentGateway,
    store: Optional[OrderStore] = None,
) -> ReconciliationResult:
    """Verify ``reference`` once and move the group's pending orders to confirmed."""
    while True:
        recorded = _wait_for_claim(db, reference)
        if recorded is not None:
            return recorded
        claimed_at = _claim(db, reference)
        if claimed_at is not None:
            break

    try:
        claim = _settle(db, reference, claimed_at, gateway, store or SqlOrderStore(db))
    except StaleDataError as e:
        logger.warning("Orders changed while %s was being reconciled; claim released", reference)
        _release(db, reference, claimed_at)
        raise ReconciliationInProgress(
            "The orders of this group changed during reconciliation. Please retry.",
            reference=reference,
        ) from e
    except Exception as e:
        logger.warning("Reconciliation of %s aborted (%s); claim released", reference, type(e).__name__)
        _release(db, reference, claimed_at)
        raise

    result = _to_result(claim)
    logger.info(
        "Reconciled %s for group %s: %s (%d order(s) updated, verified %s)",
        reference, claim.group_id, result.outcome, result.orders_updated, result.verified_amount,
    )
    if claim.outcome == ReconciliationOutcome.partial:
        logger.error(
            "Group %s partially reconciled by %s; needs follow-up for %s",
            claim.group_id, reference, [o.order_id for o in result.unconfirmed_orders],
        )
        raise GroupReconciliationPartial(result=result.model_dump(mode="json"))
    return result
