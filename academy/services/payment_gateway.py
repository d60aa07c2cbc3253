"""
Payment Gateway Client - Razorpay Integration

Handles the gateway side of checkout:
- Create Razorpay orders (bounded by a timeout)
- Verify checkout callback signatures
- Verify webhook body signatures
- List payments of an order (for reconciliation)

The client is constructed once by the application lifespan and injected
into the services that need it.
"""

import asyncio
import hashlib
import hmac
import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

import razorpay

from academy.core.exceptions import GatewayError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayOrder:
    """Order created on the gateway."""
    id: str
    amount: int  # In paise / cents
    currency: str
    receipt: str


def to_minor_units(amount: Decimal) -> int:
    """Convert a rupee/dollar amount to paise/cents."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_signature(secret: str, payload: bytes) -> str:
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


class PaymentGatewayClient:
    """
    Thin async wrapper over the synchronous Razorpay SDK.

    SDK calls run in a worker thread and are bounded by ``timeout`` seconds;
    a timeout is reported as GatewayError like any other gateway failure.
    """

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        webhook_secret: Optional[str] = None,
        timeout: float = 15.0,
        client: Optional[Any] = None,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.webhook_secret = webhook_secret
        self.timeout = timeout
        self.client = client or razorpay.Client(auth=(key_id, key_secret))

    async def _call(self, description: str, func, *args, **kwargs):
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, *args, **kwargs),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"Gateway timed out after {self.timeout}s: {description}")
            raise GatewayError("Payment gateway timed out", {"operation": description})
        except Exception as e:
            logger.error(f"Gateway call failed ({description}): {e}")
            raise GatewayError("Payment gateway request failed", {"operation": description})

    async def create_order(
        self,
        amount: Decimal,
        currency: str,
        receipt: str,
        notes: Optional[Dict[str, str]] = None,
    ) -> GatewayOrder:
        """
        Create a Razorpay order for payment.

        Args:
            amount: Amount in major units (rupees / dollars)
            currency: INR or USD
            receipt: Our invoice number
            notes: Free-form key/value notes shown on the gateway dashboard

        Returns:
            GatewayOrder with the gateway's order id
        """
        order_data = {
            "amount": to_minor_units(amount),
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
        }
        response = await self._call("order.create", self.client.order.create, data=order_data)

        order_id = response.get("id") if isinstance(response, dict) else None
        if not order_id:
            raise GatewayError("Payment gateway returned no order id", {"receipt": receipt})

        logger.info(f"Created Razorpay order {order_id} for invoice {receipt}")
        return GatewayOrder(
            id=order_id,
            amount=order_data["amount"],
            currency=currency,
            receipt=receipt,
        )

    def verify_payment_signature(
        self,
        gateway_order_id: str,
        gateway_payment_id: str,
        signature: str,
    ) -> bool:
        """Check HMAC-SHA256(key_secret, "order_id|payment_id") in constant time."""
        if not signature:
            return False
        payload = f"{gateway_order_id}|{gateway_payment_id}".encode()
        expected = compute_signature(self.key_secret, payload)
        return hmac.compare_digest(expected, signature)

    def verify_webhook_signature(self, body: bytes, signature: str) -> bool:
        """
        Verify Razorpay webhook signature.

        Args:
            body: Raw request body bytes
            signature: X-Razorpay-Signature header value
        """
        if not self.webhook_secret:
            logger.warning("Webhook secret not configured")
            return False
        if not signature:
            return False

        is_valid = hmac.compare_digest(compute_signature(self.webhook_secret, body), signature)
        if not is_valid:
            logger.warning("Invalid webhook signature")
        return is_valid

    async def get_order_payments(self, gateway_order_id: str) -> List[Dict[str, Any]]:
        """All payment attempts recorded by the gateway for an order."""
        response = await self._call("order.payments", self.client.order.payments, gateway_order_id)
        return response.get("items", [])


# Webhook event types
class WebhookEvent:
    """Razorpay webhook event types."""
    PAYMENT_CAPTURED = "payment.captured"
    PAYMENT_FAILED = "payment.failed"
    ORDER_PAID = "order.paid"
