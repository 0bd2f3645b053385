"""Domain errors and notices for the recommendation and order-payment flows.

Selector and proposal editor never raise: they attach a ``Notice`` to the
proposal instead. The orchestrator and reconciliation raise the typed
``MarketplaceError`` subclasses below, which ``marketplace.main`` renders as
``{"detail": {"code": ..., "message": ..., **extra}}`` with the class status code.
"""
import enum
from typing import Any, Optional


class Notice(str, enum.Enum):
    """Non-blocking conditions reported alongside a proposal."""

    no_matching_offerings = "no_matching_offerings"
    budget_exceeded_by_edit = "budget_exceeded_by_edit"
    quantity_exceeds_availability = "quantity_exceeds_availability"


NOTICE_MESSAGES = {
    Notice.no_matching_offerings: "No offering matches your brief. Please adjust your criteria.",
    Notice.budget_exceeded_by_edit: "Your selection now exceeds the budget you entered.",
    Notice.quantity_exceeds_availability: "A requested quantity exceeds what the supplier lists as available.",
}


class MarketplaceError(Exception):
    """Base class for errors surfaced to the caller with a retry or follow-up action."""

    status_code = 500
    code = "marketplace_error"
    message = "Unexpected marketplace error."

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.message = message or self.message
        self.extra = extra
        super().__init__(self.message)

    def to_detail(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.extra}


class EmptyProposal(MarketplaceError):
    status_code = 422
    code = "empty_proposal"
    message = "The proposal has no lines to confirm."


class OrchestrationInProgress(MarketplaceError):
    status_code = 409
    code = "orchestration_in_progress"
    message = "This confirmation is already being processed. Re-query it before retrying."


class PartialOrderCreation(MarketplaceError):
    status_code = 500
    code = "partial_order_creation"
    message = "Something went wrong, no charge was made, please retry."


class ConfirmationTimeout(MarketplaceError):
    status_code = 504
    code = "confirmation_timeout"
    message = "Confirmation timed out. Check the order group with your token before retrying."


class PaymentNotFound(MarketplaceError):
    status_code = 404
    code = "payment_not_found"
    message = "The payment reference is unknown to the gateway."


class GatewayUnavailable(MarketplaceError):
    status_code = 503
    code = "gateway_unavailable"
    message = "The payment gateway is unavailable. Please retry shortly."
    retry_after_seconds = 5


class DuplicatePaymentReference(MarketplaceError):
    """Raised by the HTTP layer for a replayed reference; reconcile() itself returns the cached result."""

    status_code = 409
    code = "duplicate_payment_reference"
    message = "This payment reference has already been processed."


class ReconciliationInProgress(MarketplaceError):
    status_code = 409
    code = "reconciliation_in_progress"
    message = "This payment reference is being reconciled by another request."


class GroupReconciliationPartial(MarketplaceError):
    status_code = 500
    code = "group_reconciliation_partial"
    message = "Payment received, some items pending confirmation, support has been notified."


class InvalidTransition(MarketplaceError):
    status_code = 409
    code = "invalid_transition"
    message = "This status change is not allowed."
