# Import all models so they register with Base.metadata
from academy.models.user import User, UserAddress, UserRole
from academy.models.course import Course, Enrollment, EnrollmentStatus
from academy.models.coupon import Coupon, CouponCourse, CreatorRole, DiscountType
from academy.models.payment import Payment, PaymentCoupon, PaymentChannel, PaymentStatus
from academy.models.commission import Commission, CommissionStatus, Payout, PayoutStatus
from academy.models.invoice_sequence import InvoiceSequence

__all__ = [
    "User",
    "UserAddress",
    "UserRole",
    "Course",
    "Enrollment",
    "EnrollmentStatus",
    "Coupon",
    "CouponCourse",
    "CreatorRole",
    "DiscountType",
    "Payment",
    "PaymentCoupon",
    "PaymentChannel",
    "PaymentStatus",
    "Commission",
    "CommissionStatus",
    "Payout",
    "PayoutStatus",
    "InvoiceSequence",
]
