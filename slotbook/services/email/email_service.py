# ===== slotbook/services/email/email_service.py =====
import html
import smtplib
from datetime import datetime
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import List, Optional
import logging

from slotbook.config.settings import settings
from slotbook.services.scheduling.calendar_math import as_utc, get_zone

logger = logging.getLogger(__name__)

_HEADINGS = {
    "booked": ("Appointment Confirmed", "#2563eb"),
    "rescheduled": ("Appointment Rescheduled", "#2563eb"),
    "cancelled": ("Appointment Cancelled", "#dc2626"),
}

_OWNER_HEADINGS = {
    "booked": "New Appointment Booked",
    "rescheduled": "Appointment Rescheduled",
    "cancelled": "Appointment Cancelled by Customer",
}

_OWNER_INTROS = {
    "booked": "A new appointment has been scheduled:",
    "rescheduled": "An appointment has been moved:",
    "cancelled": "A customer has cancelled their appointment.",
}


class EmailService:
    """Service for sending emails via SMTP"""

    @staticmethod
    def _get_smtp_connection():
        """Create and return SMTP connection"""
        try:
            if settings.EMAIL_USE_TLS:
                server = smtplib.SMTP(settings.EMAIL_HOST, settings.EMAIL_PORT)
                server.starttls()
            else:
                server = smtplib.SMTP_SSL(settings.EMAIL_HOST, settings.EMAIL_PORT)

            if settings.EMAIL_USERNAME and settings.EMAIL_PASSWORD:
                server.login(settings.EMAIL_USERNAME, settings.EMAIL_PASSWORD)

            return server
        except Exception as e:
            logger.error(f"Failed to connect to SMTP server: {e}")
            raise

    @staticmethod
    def send_email(
            to_email: str,
            subject: str,
            html_content: str,
            plain_text: Optional[str] = None,
            cc: Optional[List[str]] = None
    ) -> bool:
        """
        Send an email using SMTP

        Args:
            to_email: Recipient email address
            subject: Email subject
            html_content: HTML content of the email
            plain_text: Plain text version (fallback for non-HTML clients)
            cc: List of CC email addresses

        Returns:
            bool: True if email sent successfully
        """
        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM_ADDRESS}>"
        msg['To'] = to_email

        if cc:
            msg['Cc'] = ', '.join(cc)

        if plain_text:
            msg.attach(MIMEText(plain_text, 'plain'))
        msg.attach(MIMEText(html_content, 'html'))

        recipients = [to_email] + (cc or [])

        try:
            server = EmailService._get_smtp_connection()
            server.sendmail(settings.EMAIL_FROM_ADDRESS, recipients, msg.as_string())
            server.quit()
        except Exception as e:
            logger.error(f"Failed to send email to {to_email}: {e}")
            raise

        logger.info(f"Email sent successfully to {to_email}")
        return True

    @staticmethod
    def format_local(instant: datetime, tz_name: str) -> str:
        """e.g. 'Monday, March 4, 2030 at 9:30 AM' in the business timezone"""
        local = as_utc(instant).astimezone(get_zone(tz_name))
        hour = local.strftime("%I").lstrip("0")
        return f"{local.strftime('%A, %B')} {local.day}, {local.year} at {hour}:{local.strftime('%M %p')}"

    @staticmethod
    def build_appointment_email(
            kind: str,
            business_name: str,
            customer_name: str,
            service_name: str,
            start_time: datetime,
            tz_name: str,
            previous_start_time: Optional[datetime] = None,
            reason: Optional[str] = None,
            audience: str = "customer",
            customer_email: Optional[str] = None
    ) -> tuple:
        """
        Return (subject, html, plain_text) for a booked/rescheduled/cancelled notice

        audience "customer" greets the customer; "business" tells the owner
        who booked, moved or cancelled. Customer-supplied text is HTML-escaped.
        """
        if kind not in _HEADINGS:
            raise ValueError(f"Unknown appointment email kind: {kind}")
        if audience not in ("customer", "business"):
            raise ValueError(f"Unknown email audience: {audience}")

        heading, color = _HEADINGS[kind]
        when = EmailService.format_local(start_time, tz_name)

        lines = [f"Service: {service_name}", f"When: {when}"]
        if previous_start_time is not None:
            lines.insert(0, f"Previously: {EmailService.format_local(previous_start_time, tz_name)}")
        if reason:
            lines.append(f"Reason: {reason}")

        if audience == "business":
            heading = _OWNER_HEADINGS[kind]
            greeting = _OWNER_INTROS[kind]
            lines = [f"Customer: {customer_name}", f"Email: {customer_email or '-'}", *lines]
            subject = f"{heading} - {customer_name}"
            footer = "You can view all appointments in your dashboard."
        else:
            greeting = f"Hello {customer_name},"
            subject = f"{heading} - {business_name}"
            footer = business_name

        details = "".join(f"<p>{html.escape(line)}</p>" for line in lines)
        html_content = f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
            <h2 style="color: {color};">{heading}</h2>
            <p>{html.escape(greeting)}</p>
            <div style="border-left: 4px solid {color}; padding: 15px; margin: 20px 0;">
                {details}
            </div>
            <p style="margin-top: 30px; color: #666; font-size: 14px;">{html.escape(footer)}</p>
        </div>
        """
        plain_text = "\n".join([heading, greeting, *lines, footer])

        return subject, html_content, plain_text
