"""Payment API routes — reconciliation by reference and the gateway webhook."""
import json
import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from marketplace.config import settings
from marketplace.database import get_db
from marketplace.errors import DuplicatePaymentReference, GroupReconciliationPartial
from marketplace.schemas.payment import ReconciliationResult
from marketplace.services import reconciliation_service
from marketplace.services.payment_gateway import PaymentGateway, get_payment_gateway, verify_webhook_signature

logger = logging.getLogger(__name__)
router = APIRouter()


@router.api_route("/{reference}/reconcile", methods=["GET", "POST"], response_model=ReconciliationResult)
def reconcile_payment(
    reference: str,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """Settle the order group paid by ``reference``; a replay answers 409 with the recorded outcome."""
    result = reconciliation_service.reconcile(db, reference, gateway)
    if result.duplicate:
        raise DuplicatePaymentReference(result=result.model_dump(mode="json"))
    return result


@router.post("/webhook")
async def paystack_webhook(
    request: Request,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """Gateway callback: ``charge.success`` triggers the same reconciliation as the redirect."""
    payload = await request.body()
    signature = request.headers.get("x-paystack-signature")
    if settings.PAYSTACK_SECRET_KEY and not verify_webhook_signature(payload, signature):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    try:
        event = json.loads(payload)
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Webhook body is not valid JSON")

    logger.info("Webhook event: %s", event.get("event"))
    if event.get("event") != "charge.success":
        return {"received": True}

    reference = (event.get("data") or {}).get("reference")
    if not reference:
        raise HTTPException(status_code=400, detail="Webhook event has no reference")

    try:
        result = reconciliation_service.reconcile(db, reference, gateway)
    except GroupReconciliationPartial as e:
        # Acknowledge so the gateway stops retrying; the partial outcome is recorded.
        return {"received": True, "outcome": e.extra["result"]["outcome"]}
    return {"received": True, "outcome": result.outcome, "duplicate": result.duplicate}
