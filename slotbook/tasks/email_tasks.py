# ===== slotbook/tasks/email_tasks.py =====
from datetime import datetime
from typing import Optional
from uuid import UUID
import logging

from slotbook.config.celery_config import celery_app
from slotbook.config.database import SessionLocal
from slotbook.models import Appointment, Business, Customer, Service
from slotbook.services.email.email_service import EmailService

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, max_retries=3)
def send_appointment_email(
        self,
        appointment_id: str,
        kind: str,
        recipient: str = "customer",
        previous_start_time: Optional[str] = None,
        reason: Optional[str] = None
):
    """
    Email the customer or the business owner about an appointment change

    Args:
        appointment_id: Appointment to describe
        kind: "booked", "rescheduled" or "cancelled"
        recipient: "customer" or "business"
        previous_start_time: ISO instant of the old slot (reschedule only)
        reason: Cancellation reason (cancel only)
    """
    db = SessionLocal()
    try:
        appointment = db.query(Appointment).filter_by(id=UUID(appointment_id)).first()
        if not appointment:
            logger.error(f"Appointment {appointment_id} not found, skipping {kind} email")
            return {"status": "failed", "reason": "appointment_not_found"}

        customer = db.query(Customer).filter_by(id=appointment.customer_id).first()
        business = db.query(Business).filter_by(id=appointment.business_id).first()
        service = db.query(Service).filter_by(id=appointment.service_id).first()

        if recipient == "business":
            to_email = business.email
            if not to_email:
                logger.info(f"Business {business.id} has no email, skipping {kind} notice")
                return {"status": "skipped", "reason": "no_business_email"}
        else:
            if not customer or not customer.email:
                return {"status": "skipped", "reason": "no_customer_email"}
            to_email = customer.email

        subject, html_content, plain_text = EmailService.build_appointment_email(
            kind=kind,
            business_name=business.name,
            customer_name=(customer.name or customer.email) if customer else "Customer",
            service_name=service.name if service else "Appointment",
            start_time=appointment.start_time,
            tz_name=appointment.timezone or business.timezone,
            previous_start_time=datetime.fromisoformat(previous_start_time) if previous_start_time else None,
            reason=reason,
            audience=recipient,
            customer_email=customer.email if customer else None,
        )

        logger.info(f"Sending {kind} email for appointment {appointment_id} to {to_email}")
        EmailService.send_email(
            to_email=to_email,
            subject=subject,
            html_content=html_content,
            plain_text=plain_text,
        )
        return {"status": "success", "email": to_email}

    except Exception as exc:
        logger.error(f"Failed to send {kind} email for appointment {appointment_id}: {exc}")

        # Retry with exponential backoff: 1min, 2min, 4min
        raise self.retry(
            exc=exc,
            countdown=60 * (2 ** self.request.retries)
        )
    finally:
        db.close()
