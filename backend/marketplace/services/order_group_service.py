"""Order Group Orchestrator — books one order per supplier under a shared group id.

Confirmation runs in two steps:
- the orchestration intent (OrderGroup, status ``creating``) is committed first,
  keyed by the client's idempotency token;
- every supplier order and its items are then written in one transaction,
  which is committed together with the group moving to ``booked``.

Any failure after the intent is committed (storage error, blown deadline,
unexpected exception) rolls the orders back, marks the intent ``failed`` and
re-raises with the retry token. A retry with the same token resumes the failed
intent under the same group id; a retry after success returns the booked group
unchanged. An intent left ``creating`` longer than CONFIRM_LEASE_SECONDS (a
crashed request) is resumable too; every handover and the final booking are
conditional on the intent's ``claimed_at``.
"""
import logging
import time
import uuid
from datetime import datetime, timedelta
from typing import Optional

import pytz
from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.config import settings
from marketplace.context import RequestContext
from marketplace.errors import ConfirmationTimeout, EmptyProposal, OrchestrationInProgress, PartialOrderCreation
from marketplace.models.brief import BriefStatus
from marketplace.models.order import Order, OrderItem, OrderStatus
from marketplace.models.order_group import GroupStatus, OrderGroup
from marketplace.models.payment import PaymentReconciliation, ReconciliationOutcome
from marketplace.models.proposal import Proposal, ProposalLine, ProposalStatus
from marketplace.schemas.order import (
    ExpireUnpaidResult,
    OrderGroupResult,
    OrderItemOut,
    PaymentInitPayload,
    SupplierOrder,
)
from marketplace.services.catalog import CatalogQuery, SqlCatalog
from marketplace.services.leases import is_stale, utcnow
from marketplace.services.order_store import OrderStore, SqlOrderStore

logger = logging.getLogger(__name__)

EXPIRY_ACTOR = "system:unpaid-expiry"


def service_fee_for(subtotal: int, percent: Optional[int] = None) -> int:
    """Marketplace fee on a group subtotal, rounded half-up to whole FCFA."""
    percent = settings.SERVICE_FEE_PERCENT if percent is None else percent
    return (subtotal * percent + 50) // 100


def partition_by_supplier(lines: list[ProposalLine]) -> dict[str, list[ProposalLine]]:
    """Group proposal lines by supplier, keeping first-seen supplier order."""
    partitions: dict[str, list[ProposalLine]] = {}
    for line in lines:
        partitions.setdefault(line.supplier_id, []).append(line)
    return partitions


def line_subtotal(line: ProposalLine) -> int:
    return line.price_per_day * line.quantity * line.rental_days


def find_group_by_token(db: Session, idempotency_token: str) -> Optional[OrderGroup]:
    return db.query(OrderGroup).filter(OrderGroup.idempotency_token == idempotency_token).first()


def build_result(
    db: Session,
    group: OrderGroup,
    catalog: Optional[CatalogQuery] = None,
    replayed: bool = False,
) -> OrderGroupResult:
    """Describe a group, its per-supplier orders and the single payable amount."""
    catalog = catalog or SqlCatalog(db)
    orders = SqlOrderStore(db).find_orders_by_group(group.group_id)
    profiles = catalog.get_supplier_profiles([o.supplier_id for o in orders])
    payment = None
    if group.status == GroupStatus.booked:
        payment = PaymentInitPayload(
            amount=group.payable_amount,
            amount_subunit=group.payable_amount * 100,
            currency=group.currency,
            initialize_path=f"/api/order-groups/{group.group_id}/payments",
            metadata={"group_id": group.group_id, "order_ids": [o.order_id for o in orders]},
        )
    return OrderGroupResult(
        group_id=group.group_id,
        idempotency_token=group.idempotency_token,
        proposal_id=group.proposal_id,
        client_id=group.client_id,
        status=group.status.value,
        subtotal=group.subtotal,
        service_fee=group.service_fee,
        payable_amount=group.payable_amount,
        currency=group.currency,
        orders=[
            SupplierOrder(
                order_id=o.order_id,
                supplier_id=o.supplier_id,
                supplier_name=profiles.get(o.supplier_id, {}).get("name"),
                amount=o.total_amount,
                status=o.status.value,
                items=[OrderItemOut.model_validate(item) for item in o.items],
            )
            for o in orders
        ],
        payment=payment,
        replayed=replayed,
    )


def _open_intent(db: Session, proposal: Proposal, context: RequestContext, idempotency_token: str) -> OrderGroup:
    """Commit a fresh orchestration intent, or raise if another request holds the token."""
    group = OrderGroup(
        group_id=str(uuid.uuid4()),
        client_id=context.client_id,
        proposal_id=proposal.proposal_id,
        idempotency_token=idempotency_token,
        status=GroupStatus.creating,
        currency=settings.CURRENCY,
        claimed_at=utcnow(),
    )
    db.add(group)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise OrchestrationInProgress(idempotency_token=idempotency_token)
    return group


def _resume_intent(db: Session, existing: OrderGroup, idempotency_token: str) -> datetime:
    """Take over a failed or abandoned intent; returns the new ``claimed_at``."""
    last_claim = existing.claimed_at or existing.created_at
    if existing.status == GroupStatus.creating and not is_stale(last_claim, settings.CONFIRM_LEASE_SECONDS):
        raise OrchestrationInProgress(idempotency_token=idempotency_token, group_id=existing.group_id)

    previous_status, previous_claim = existing.status, existing.claimed_at
    claimed_at = utcnow()
    claimed = (
        db.query(OrderGroup)
        .filter(
            OrderGroup.group_id == existing.group_id,
            OrderGroup.status == previous_status,
            OrderGroup.claimed_at == previous_claim,
        )
        .update({OrderGroup.status: GroupStatus.creating, OrderGroup.claimed_at: claimed_at}, synchronize_session=False)
    )
    db.commit()
    if not claimed:
        raise OrchestrationInProgress(idempotency_token=idempotency_token, group_id=existing.group_id)
    if previous_status == GroupStatus.creating:
        logger.warning(
            "Group %s was left creating since %s; resuming it for token %s",
            existing.group_id, last_claim, idempotency_token,
        )
    else:
        logger.info("Resuming failed group %s for token %s", existing.group_id, idempotency_token)
    return claimed_at


def _mark_failed(db: Session, group_id: str, claimed_at: datetime) -> None:
    """Fail our own intent; a request that took it over in the meantime keeps it."""
    db.query(OrderGroup).filter(
        OrderGroup.group_id == group_id,
        OrderGroup.status == GroupStatus.creating,
        OrderGroup.claimed_at == claimed_at,
    ).update({OrderGroup.status: GroupStatus.failed}, synchronize_session=False)
    db.commit()


def confirm(
    db: Session,
    proposal: Proposal,
    context: RequestContext,
    idempotency_token: str,
    store: Optional[OrderStore] = None,
    catalog: Optional[CatalogQuery] = None,
    timeout_seconds: Optional[float] = None,
) -> OrderGroupResult:
    """Turn an approved proposal into one pending order per supplier under one group id."""
    if proposal.client_id != context.client_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the client who owns this proposal may confirm it.",
        )
    if not proposal.lines:
        raise EmptyProposal(proposal_id=proposal.proposal_id)

    existing = find_group_by_token(db, idempotency_token)
    if existing is not None:
        if existing.proposal_id != proposal.proposal_id or existing.client_id != context.client_id:
            raise OrchestrationInProgress(
                "This idempotency token was already used for another confirmation.",
                idempotency_token=idempotency_token,
            )
        if existing.status == GroupStatus.booked:
            logger.info("Replayed confirmation %s -> group %s", idempotency_token, existing.group_id)
            return build_result(db, existing, catalog, replayed=True)
        claimed_at = _resume_intent(db, existing, idempotency_token)
        db.refresh(existing)
        group = existing
    else:
        if proposal.status == ProposalStatus.confirmed:
            raise OrchestrationInProgress(
                "This proposal has already been confirmed.",
                proposal_id=proposal.proposal_id,
            )
        group = _open_intent(db, proposal, context, idempotency_token)
        claimed_at = group.claimed_at

    group_id = group.group_id
    store = store or SqlOrderStore(db)
    timeout_seconds = settings.CONFIRM_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds
    deadline = time.monotonic() + timeout_seconds
    brief = proposal.brief
    partitions = partition_by_supplier(list(proposal.lines))
    created = 0

    try:
        subtotal = 0
        for supplier_id, lines in partitions.items():
            if time.monotonic() >= deadline:
                raise ConfirmationTimeout(idempotency_token=idempotency_token, group_id=group_id)
            amount = sum(line_subtotal(line) for line in lines)
            order = Order(
                client_id=context.client_id,
                supplier_id=supplier_id,
                group_id=group_id,
                total_amount=amount,
                event_type=brief.event_type.value if brief.event_type else None,
                event_date=brief.event_date,
                event_location=brief.event_location,
                notes=brief.additional_notes,
            )
            items = [
                OrderItem(
                    offering_id=line.offering_id,
                    offering_name=line.offering_name,
                    quantity=line.quantity,
                    rental_days=line.rental_days,
                    price_per_day=line.price_per_day,
                    subtotal=line_subtotal(line),
                )
                for line in lines
            ]
            store.create_order(order, items)
            created += 1
            subtotal += amount

        service_fee = service_fee_for(subtotal)
        # Only the request still holding the intent may book it
        booked = (
            db.query(OrderGroup)
            .filter(
                OrderGroup.group_id == group_id,
                OrderGroup.status == GroupStatus.creating,
                OrderGroup.claimed_at == claimed_at,
            )
            .update({
                OrderGroup.status: GroupStatus.booked,
                OrderGroup.subtotal: subtotal,
                OrderGroup.service_fee: service_fee,
                OrderGroup.payable_amount: subtotal + service_fee,
            }, synchronize_session=False)
        )
        if not booked:
            db.rollback()
            logger.warning("Group %s was taken over by another request; orders rolled back", group_id)
            raise OrchestrationInProgress(idempotency_token=idempotency_token, group_id=group_id)
        proposal.status = ProposalStatus.confirmed
        brief.applied_recommendation = [line.offering_id for line in proposal.lines]
        brief.status = BriefStatus.pending
        db.commit()
    except OrchestrationInProgress:
        raise
    except ConfirmationTimeout:
        db.rollback()
        _mark_failed(db, group_id, claimed_at)
        logger.warning("Confirmation %s timed out after %d order(s); rolled back", idempotency_token, created)
        raise
    except SQLAlchemyError as e:
        db.rollback()
        _mark_failed(db, group_id, claimed_at)
        logger.error(
            "Order creation failed for group %s after %d of %d supplier order(s): %s",
            group_id, created, len(partitions), e,
        )
        raise PartialOrderCreation(
            idempotency_token=idempotency_token,
            group_id=group_id,
            orders_created_before_failure=created,
        ) from e
    except Exception:
        db.rollback()
        _mark_failed(db, group_id, claimed_at)
        logger.error("Confirmation %s aborted after %d order(s); rolled back", idempotency_token, created)
        raise

    db.refresh(group)
    logger.info(
        "Booked group %s: %d supplier order(s), payable %d %s",
        group_id, len(partitions), group.payable_amount, group.currency,
    )
    return build_result(db, group, catalog)


def expire_unpaid_groups(
    db: Session,
    now: Optional[datetime] = None,
    ttl_hours: Optional[int] = None,
    store: Optional[OrderStore] = None,
) -> ExpireUnpaidResult:
    """Cancel pending orders of booked groups left unpaid for longer than the TTL.

    A TTL of 0 disables the sweep. Groups with any recorded successful or
    partial reconciliation are never touched.
    """
    ttl_hours = settings.PENDING_ORDER_TTL_HOURS if ttl_hours is None else ttl_hours
    result = ExpireUnpaidResult(ttl_hours=ttl_hours)
    if ttl_hours <= 0:
        return result

    now = now or datetime.now(pytz.timezone(settings.MARKETPLACE_TIMEZONE))
    cutoff = now.astimezone(pytz.utc) - timedelta(hours=ttl_hours)
    store = store or SqlOrderStore(db)

    paid_groups = {
        row.group_id
        for row in db.query(PaymentReconciliation.group_id).filter(
            PaymentReconciliation.outcome.in_([ReconciliationOutcome.confirmed, ReconciliationOutcome.partial])
        )
    }
    for group in db.query(OrderGroup).filter(OrderGroup.status == GroupStatus.booked).all():
        created_at = group.created_at
        if created_at.tzinfo is None:
            created_at = pytz.utc.localize(created_at)
        if created_at > cutoff or group.group_id in paid_groups:
            continue
        cancelled = 0
        for order in store.find_orders_by_group(group.group_id):
            if order.status == OrderStatus.pending:
                store.update_order_status(order.order_id, OrderStatus.cancelled, actor_id=EXPIRY_ACTOR)
                cancelled += 1
        if cancelled:
            result.groups_expired.append(group.group_id)
            result.orders_cancelled += cancelled

    db.commit()
    logger.info(
        "Expired %d unpaid group(s), %d order(s) cancelled (ttl %dh)",
        len(result.groups_expired), result.orders_cancelled, ttl_hours,
    )
    return result
