# ===== slotbook/tasks/calendar_tasks.py =====
from datetime import datetime, timezone
from uuid import UUID
import logging

from slotbook.config.celery_config import celery_app
from slotbook.config.database import SessionLocal
from slotbook.models import Appointment, Business
from slotbook.services.appointment.appointment_service import AppointmentService
from slotbook.services.webhook.calendar_webhook_service import CalendarWebhookService

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, max_retries=3)
def push_appointment_to_calendar(self, appointment_id: str, event_type: str):
    """Send an appointment event to the business's calendar-sync endpoint"""
    db = SessionLocal()
    try:
        appointment = db.query(Appointment).filter_by(id=UUID(appointment_id)).first()
        if not appointment:
            logger.error(f"Appointment {appointment_id} not found")
            return {"status": "failed", "reason": "appointment_not_found"}

        business = db.query(Business).filter_by(id=appointment.business_id).first()
        url = (business.webhook_urls or {}).get("calendar") if business else None

        if not url:
            appointment.sync_status = "sync_disabled"
            db.commit()
            return {"status": "skipped", "reason": "no_calendar_endpoint"}

        CalendarWebhookService().deliver(url, event_type, AppointmentService.serialize(appointment))

        appointment.sync_status = "synced"
        appointment.last_sync_error = None
        appointment.last_synced_at = datetime.now(timezone.utc)
        db.commit()

        logger.info(f"Synced appointment {appointment_id} ({event_type})")
        return {"status": "synced", "event": event_type}

    except Exception as exc:
        logger.error(f"Calendar sync failed for {appointment_id}: {exc}")

        db.rollback()
        appointment = db.query(Appointment).filter_by(id=UUID(appointment_id)).first()
        if appointment:
            appointment.sync_status = "failed"
            appointment.last_sync_error = str(exc)
            db.commit()

        raise self.retry(exc=exc, countdown=60 * (self.request.retries + 1))
    finally:
        db.close()
