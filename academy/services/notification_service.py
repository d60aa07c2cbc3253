"""
Checkout Notification Dispatcher

Sends the post-payment emails once a payment has been committed as
COMPLETED:
1. Invoice
2. Course details
3. Live session joining details

Delivery runs as background asyncio tasks owned by the dispatcher. The
payment confirmation never waits on them and never sees their failures.
"""
import asyncio
import logging
import uuid
from typing import Callable, Optional, Set

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from academy.models.course import Course
from academy.models.payment import Payment
from academy.models.user import User
from academy.services.email_service import EmailService

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """
    Fire-and-forget email delivery.

    Constructed by the application lifespan with a session factory and an
    EmailService; ``aclose()`` is called at shutdown.
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        email_service: EmailService,
        shutdown_timeout: float = 5.0,
    ):
        self.session_factory = session_factory
        self.email_service = email_service
        self.shutdown_timeout = shutdown_timeout
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def payment_completed(self, payment_id: uuid.UUID) -> Optional[asyncio.Task]:
        """Schedule confirmation emails for a completed payment."""
        try:
            task = asyncio.get_running_loop().create_task(self._send_payment_emails(payment_id))
        except RuntimeError:
            logger.warning(f"No event loop; confirmation emails for {payment_id} not sent")
            return None
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _send_payment_emails(self, payment_id: uuid.UUID) -> None:
        try:
            async with self.session_factory() as db:
                result = await db.execute(
                    select(Payment, User, Course)
                    .join(User, User.id == Payment.user_id)
                    .join(Course, Course.id == Payment.course_id)
                    .where(Payment.id == payment_id)
                )
                row = result.one_or_none()

            if row is None:
                logger.warning(f"Payment {payment_id} vanished before notifications")
                return

            payment, user, course = row
            if not user.email:
                logger.warning(f"User {user.id} has no email; skipping notifications")
                return

            name = user.name or "Student"
            sends = [
                ("invoice", lambda: self.email_service.send_invoice_email(
                    to_email=user.email,
                    student_name=name,
                    invoice_number=payment.invoice_number,
                    course_title=course.title,
                    currency=payment.currency,
                    original_amount=payment.original_amount,
                    discount_amount=payment.discount_amount,
                    tax_amount=payment.tax_amount,
                    final_amount=payment.final_amount,
                    gst_number=user.gst_number,
                )),
                ("course details", lambda: self.email_service.send_course_details_email(
                    to_email=user.email,
                    student_name=name,
                    course_title=course.title,
                    description=course.description,
                    duration=course.duration,
                    instructor=course.instructor,
                )),
                ("live session", lambda: self.email_service.send_live_session_email(
                    to_email=user.email,
                    student_name=name,
                    course_title=course.title,
                    session_link=course.live_session_link,
                    schedule=course.schedule,
                )),
            ]

            for label, send in sends:
                sent = await asyncio.to_thread(send)
                if not sent:
                    logger.warning(f"{label.capitalize()} email for {payment.invoice_number} not sent")

        except Exception as e:
            logger.warning(f"Notifications for payment {payment_id} failed: {e}")

    async def aclose(self) -> None:
        """Give in-flight emails a moment, then cancel the rest."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        done, not_done = await asyncio.wait(tasks, timeout=self.shutdown_timeout)
        for task in not_done:
            task.cancel()
        if not_done:
            logger.warning(f"Cancelled {len(not_done)} pending notification tasks at shutdown")
