import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional
from decimal import Decimal
import logging

logger = logging.getLogger(__name__)


class EmailService:
    """Email service for sending checkout emails via SMTP."""

    def __init__(
        self,
        smtp_host: str = "smtp.gmail.com",
        smtp_port: int = 587,
        smtp_user: str = "",
        smtp_password: str = "",
        from_email: str = "",
        from_name: str = "Futuretek",
        frontend_url: str = "http://localhost:3000"
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.from_email = from_email or smtp_user
        self.from_name = from_name
        self.frontend_url = frontend_url

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_user and self.smtp_password)

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """
        Send an email over SMTP with STARTTLS.

        Args:
            to_email: Recipient email address
            subject: Email subject
            html_content: HTML body of the email
            text_content: Plain text body (optional fallback)

        Returns:
            True if email sent successfully, False otherwise
        """
        if not self.is_configured:
            logger.warning("Email not configured. SMTP credentials missing.")
            return False

        try:
            msg = MIMEMultipart('alternative')
            msg['Subject'] = subject
            msg['From'] = f"{self.from_name} <{self.from_email}>"
            msg['To'] = to_email

            if text_content:
                msg.attach(MIMEText(text_content, 'plain'))
            msg.attach(MIMEText(html_content, 'html'))

            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=10) as server:
                server.starttls()
                server.login(self.smtp_user, self.smtp_password)
                server.sendmail(self.from_email, to_email, msg.as_string())

            logger.info(f"Email sent successfully to {to_email}")
            return True

        except smtplib.SMTPAuthenticationError:
            logger.error("SMTP Authentication failed. Check email credentials.")
            return False
        except smtplib.SMTPException as e:
            logger.error(f"SMTP error: {e}")
            return False
        except OSError as e:
            logger.error(f"Network error sending email: {e}")
            return False

    # ==================== CHECKOUT NOTIFICATIONS ====================

    def send_invoice_email(
        self,
        to_email: str,
        student_name: str,
        invoice_number: str,
        course_title: str,
        currency: str,
        original_amount: Decimal,
        discount_amount: Decimal,
        tax_amount: Decimal,
        final_amount: Decimal,
        gst_number: Optional[str] = None,
    ) -> bool:
        """
        Send the payment invoice.

        Args:
            to_email: Student email
            student_name: Student's name
            invoice_number: e.g. FT2425G00007
            course_title: Course purchased
            currency: INR or USD
            original_amount: Course price before discounts
            discount_amount: Total platform + affiliate discount
            tax_amount: GST (0 for FOREX)
            final_amount: Amount charged
            gst_number: Buyer GSTIN, printed when present

        Returns:
            True if sent successfully
        """
        subject = f"Invoice {invoice_number} - Payment Confirmation"

        rows = [
            ("Course fee", original_amount),
            ("Discount", -discount_amount),
        ]
        if tax_amount:
            rows.append(("GST", tax_amount))

        rows_html = "".join(
            f"""
            <tr>
                <td style="padding: 10px; border-bottom: 1px solid #eee;">{label}</td>
                <td style="padding: 10px; border-bottom: 1px solid #eee; text-align: right;">{currency} {amount:,.2f}</td>
            </tr>
            """
            for label, amount in rows
        )

        html_content = f"""
        <!DOCTYPE html>
        <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
            <div style="background: #1a56db; color: white; padding: 20px; text-align: center;">
                <h1 style="margin: 0;">Payment Received</h1>
                <p style="margin: 5px 0 0 0;">Invoice {invoice_number}</p>
            </div>
            <div style="padding: 30px; background: #f9f9f9;">
                <p>Hello {student_name},</p>
                <p>Thank you for enrolling in <strong>{course_title}</strong>.</p>
                {f"<p>GSTIN: <strong>{gst_number}</strong></p>" if gst_number else ""}
                <table style="width: 100%; border-collapse: collapse;">
                    {rows_html}
                    <tr style="background: #1a56db; color: white;">
                        <td style="padding: 12px; font-weight: bold;">Total paid</td>
                        <td style="padding: 12px; text-align: right; font-weight: bold;">{currency} {final_amount:,.2f}</td>
                    </tr>
                </table>
                <p style="margin-top: 20px;">
                    <a href="{self.frontend_url}/dashboard/payments">View your payments</a>
                </p>
            </div>
        </body>
        </html>
        """

        text_content = f"""
        Invoice {invoice_number}

        Hello {student_name},

        Course: {course_title}
        Course fee: {currency} {original_amount:,.2f}
        Discount: {currency} {discount_amount:,.2f}
        GST: {currency} {tax_amount:,.2f}
        Total paid: {currency} {final_amount:,.2f}
        """

        return self.send_email(to_email, subject, html_content, text_content)

    def send_course_details_email(
        self,
        to_email: str,
        student_name: str,
        course_title: str,
        description: Optional[str] = None,
        duration: Optional[str] = None,
        instructor: Optional[str] = None,
    ) -> bool:
        """Welcome mail with what the student just bought."""
        subject = f"Welcome to {course_title} - Course Details"

        details = ""
        if duration:
            details += f"<p><strong>Duration:</strong> {duration}</p>"
        if instructor:
            details += f"<p><strong>Instructor:</strong> {instructor}</p>"

        html_content = f"""
        <!DOCTYPE html>
        <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
            <h2>Welcome to {course_title}</h2>
            <p>Hi {student_name},</p>
            <p>{description or "An amazing learning experience"}</p>
            {details}
            <p style="text-align: center; margin: 30px 0;">
                <a href="{self.frontend_url}/dashboard/courses"
                   style="display: inline-block; background: #1a56db; color: white; padding: 12px 30px; text-decoration: none; border-radius: 5px;">
                    Go to My Courses
                </a>
            </p>
        </body>
        </html>
        """

        return self.send_email(to_email, subject, html_content)

    def send_live_session_email(
        self,
        to_email: str,
        student_name: str,
        course_title: str,
        session_link: Optional[str] = None,
        schedule: Optional[str] = None,
    ) -> bool:
        """Joining details for the live classes."""
        subject = f"Live Session Details - {course_title}"

        html_content = f"""
        <!DOCTYPE html>
        <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
            <h2>Live Session Details</h2>
            <p>Hi {student_name},</p>
            <p>Here is how to join the live sessions of <strong>{course_title}</strong>.</p>
            <p><strong>Schedule:</strong> {schedule or "Will be shared soon"}</p>
            <p><strong>Joining link:</strong> {f'<a href="{session_link}">{session_link}</a>' if session_link else "Will be shared before the first session"}</p>
        </body>
        </html>
        """

        return self.send_email(to_email, subject, html_content)


def get_email_service() -> EmailService:
    """Get configured email service instance."""
    from academy.config import settings

    return EmailService(
        smtp_host=settings.SMTP_HOST,
        smtp_port=settings.SMTP_PORT,
        smtp_user=settings.SMTP_USER,
        smtp_password=settings.SMTP_PASSWORD,
        from_email=settings.SMTP_FROM_EMAIL,
        from_name=settings.SMTP_FROM_NAME,
        frontend_url=settings.FRONTEND_URL,
    )
