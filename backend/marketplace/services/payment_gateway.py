"""Payment gateway client — Paystack transaction initialize/verify and webhook signatures.

The gateway does not guarantee exactly-once delivery of callbacks; idempotency
is the reconciliation service's job. Network failures and 5xx answers surface
as GatewayUnavailable so callers can retry with backoff.
"""
import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import Any, Iterator, Optional, Protocol

import httpx

from marketplace.config import settings
from marketplace.errors import GatewayUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayVerification:
    reference: str
    success: bool
    amount: int  # whole currency units
    group_id: Optional[str]
    status: str = ""
    currency: Optional[str] = None
    paid_at: Optional[str] = None


class PaymentGateway(Protocol):
    def initialize(
        self,
        reference: str,
        email: str,
        amount: int,
        currency: str,
        metadata: dict[str, Any],
        callback_url: Optional[str] = None,
    ) -> dict[str, Any]: ...

    def verify(self, reference: str) -> Optional[GatewayVerification]: ...


class PaystackGateway:
    """Thin httpx client over the Paystack transaction API."""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.secret_key = secret_key if secret_key is not None else settings.PAYSTACK_SECRET_KEY
        self.base_url = (base_url or settings.PAYSTACK_BASE_URL).rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout or settings.PAYSTACK_TIMEOUT_SECONDS,
            headers={"Authorization": f"Bearer {self.secret_key}"},
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, json: Optional[dict[str, Any]] = None) -> Optional[dict[str, Any]]:
        """Send a request; None on 404, GatewayUnavailable on transport errors and 5xx."""
        if not self.secret_key:
            raise GatewayUnavailable("The payment gateway is not configured.")
        try:
            response = self._client.request(method, path, json=json)
        except httpx.RequestError as e:
            logger.error("Paystack %s %s failed: %s", method, path, e)
            raise GatewayUnavailable() from e

        if response.status_code == 404:
            return None
        if response.status_code >= 500:
            logger.error("Paystack %s %s returned %d", method, path, response.status_code)
            raise GatewayUnavailable()
        try:
            body = response.json()
        except ValueError as e:
            raise GatewayUnavailable("The payment gateway returned an unreadable answer.") from e
        if response.status_code >= 400:
            logger.warning("Paystack %s %s rejected: %s", method, path, body.get("message"))
            if response.status_code == 400 and path.startswith("/transaction/verify/"):
                # Paystack answers 400 "Transaction reference not found"
                return None
            raise GatewayUnavailable(body.get("message") or "The payment gateway rejected the request.")
        return body

    def initialize(
        self,
        reference: str,
        email: str,
        amount: int,
        currency: str,
        metadata: dict[str, Any],
        callback_url: Optional[str] = None,
    ) -> dict[str, Any]:
        body = self._request("POST", "/transaction/initialize", json={
            "email": email,
            "amount": amount * 100,  # gateway works in the lowest currency unit
            "reference": reference,
            "currency": currency,
            "callback_url": callback_url,
            "metadata": metadata,
        })
        if body is None:
            raise GatewayUnavailable("The payment gateway could not initialize the transaction.")
        data = body.get("data") or {}
        logger.info("Payment initialized: %s (%d %s)", reference, amount, currency)
        return {
            "authorization_url": data.get("authorization_url"),
            "access_code": data.get("access_code"),
            "reference": data.get("reference", reference),
        }

    def verify(self, reference: str) -> Optional[GatewayVerification]:
        body = self._request("GET", f"/transaction/verify/{reference}")
        if body is None:
            return None
        data = body.get("data") or {}
        metadata = data.get("metadata") or {}
        verification = GatewayVerification(
            reference=data.get("reference", reference),
            success=data.get("status") == "success",
            amount=int(data.get("amount") or 0) // 100,
            group_id=metadata.get("group_id") if isinstance(metadata, dict) else None,
            status=data.get("status") or "",
            currency=data.get("currency"),
            paid_at=data.get("paid_at"),
        )
        logger.info("Payment verification: %s -> %s", reference, verification.status)
        return verification


def verify_webhook_signature(payload: bytes, signature: Optional[str], secret_key: Optional[str] = None) -> bool:
    """Check Paystack's ``x-paystack-signature`` (HMAC-SHA512 of the raw body)."""
    secret_key = settings.PAYSTACK_SECRET_KEY if secret_key is None else secret_key
    if not secret_key or not signature:
        return False
    expected = hmac.new(secret_key.encode(), payload, hashlib.sha512).hexdigest()
    return hmac.compare_digest(expected, signature)


def get_payment_gateway() -> Iterator[PaymentGateway]:
    """FastAPI dependency — one client per request, closed afterwards; overridden in tests."""
    gateway = PaystackGateway()
    try:
        yield gateway
    finally:
        gateway.close()
