# Services module
from academy.services.coupon_service import CouponService
from academy.services.order_service import OrderService
from academy.services.payment_confirmation_service import PaymentConfirmationService
from academy.services.payment_gateway import PaymentGatewayClient
from academy.services.invoice_sequence_service import InvoiceSequenceService
from academy.services.commission_service import CommissionService
from academy.services.billing_service import BillingService
from academy.services.email_service import EmailService
from academy.services.notification_service import NotificationDispatcher

__all__ = [
    "CouponService",
    "OrderService",
    "PaymentConfirmationService",
    "PaymentGatewayClient",
    "InvoiceSequenceService",
    "CommissionService",
    "BillingService",
    "EmailService",
    "NotificationDispatcher",
]
