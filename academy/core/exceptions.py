"""
Checkout error taxonomy.

Every error carries a stable machine code, an HTTP status and a message that
is safe to show the buyer. The app-level handler in ``academy.main`` turns
them into ``{"error": {"code", "message", "details"}}`` responses.
"""

from typing import Any, Dict, Optional


class CheckoutError(Exception):
    """Base class for errors raised by the checkout pipeline."""
    code = "CHECKOUT_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(CheckoutError):
    """Bad input, unknown or out-of-scope coupon, invalid amount."""
    code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(CheckoutError):
    """Course, payment or user does not exist (or is not visible to the caller)."""
    code = "NOT_FOUND"
    status_code = 404


class SecurityError(CheckoutError):
    """Gateway signature mismatch. The payment has been forced to FAILED."""
    code = "SECURITY_ERROR"
    status_code = 400


class GatewayError(CheckoutError):
    """Payment gateway unreachable, timed out or rejected the request."""
    code = "GATEWAY_ERROR"
    status_code = 502


class PaymentProcessingError(CheckoutError):
    """Completion writes failed and were rolled back; the payment is FAILED."""
    code = "PAYMENT_PROCESSING_ERROR"
    status_code = 500
