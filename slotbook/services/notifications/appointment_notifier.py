# slotbook/services/notifications/appointment_notifier.py
"""Fire-and-forget email and calendar notifications for appointment changes"""
from datetime import datetime
from typing import Optional
import logging

from slotbook.models.appointment import Appointment
from slotbook.tasks.calendar_tasks import push_appointment_to_calendar
from slotbook.tasks.email_tasks import send_appointment_email

logger = logging.getLogger(__name__)


class AppointmentNotifier:
    """
    Enqueues notification tasks after a booking change has been committed.

    Bookings and reschedules go to both the customer and the business owner;
    a cancellation goes to whichever side did not cancel. A broker outage is
    logged and swallowed here: the booking itself already succeeded and must
    not be reported as failed.
    """

    def __init__(self, email_task=send_appointment_email, calendar_task=push_appointment_to_calendar):
        self.email_task = email_task
        self.calendar_task = calendar_task

    def _enqueue(self, task, *args, **kwargs) -> bool:
        try:
            task.delay(*args, **kwargs)
            return True
        except Exception as e:
            logger.error(f"Failed to enqueue {getattr(task, 'name', task)} for {args[0]}: {e}")
            return False

    def appointment_booked(self, appointment: Appointment) -> None:
        appointment_id = str(appointment.id)
        self._enqueue(self.calendar_task, appointment_id, "appointment.created")
        for recipient in ("customer", "business"):
            self._enqueue(self.email_task, appointment_id, "booked", recipient=recipient)

    def appointment_rescheduled(self, appointment: Appointment, previous_start_time: datetime) -> None:
        appointment_id = str(appointment.id)
        self._enqueue(self.calendar_task, appointment_id, "appointment.rescheduled")
        for recipient in ("customer", "business"):
            self._enqueue(
                self.email_task, appointment_id, "rescheduled",
                recipient=recipient,
                previous_start_time=previous_start_time.isoformat()
            )

    def appointment_cancelled(
            self,
            appointment: Appointment,
            cancelled_by: str,
            reason: Optional[str] = None
    ) -> None:
        appointment_id = str(appointment.id)
        self._enqueue(self.calendar_task, appointment_id, "appointment.cancelled")

        recipient = "business" if cancelled_by == "customer" else "customer"
        self._enqueue(self.email_task, appointment_id, "cancelled", recipient=recipient, reason=reason)
