# ============================================================================
# slotbook/services/appointment/appointment_service.py
# ============================================================================
"""Service for committing, rescheduling and cancelling appointments"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from uuid import UUID
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from slotbook.config.settings import get_settings
from slotbook.core.exceptions import ConflictError, NotFoundError, SchedulingError, ValidationError
from slotbook.models.appointment import Appointment, AppointmentStatus
from slotbook.models.customer import Customer
from slotbook.models.service import Service
from slotbook.services.availability.availability_service import AvailabilityService
from slotbook.services.business.business_service import BusinessService
from slotbook.services.scheduling.calendar_math import as_utc
from slotbook.services.scheduling.conflicts import TimeInterval, find_conflicts

logger = logging.getLogger(__name__)

# Postgres exclusion constraint created by the initial migration
NO_OVERLAP_CONSTRAINT = "appointments_no_overlap_per_business"

RESCHEDULABLE_STATUSES = AppointmentStatus.active()


class AppointmentService:
    """Handles the appointment write path"""

    @staticmethod
    def create_appointment(
            db: Session,
            business_id: UUID,
            service_id: UUID,
            customer_id: UUID,
            start_time: Optional[datetime],
            notes: Optional[str] = None,
            staff_member_id: Optional[UUID] = None,
            idempotency_key: Optional[str] = None,
            now: Optional[datetime] = None
    ) -> Tuple[Appointment, bool]:
        """
        Commit a chosen start time as a scheduled appointment.

        The conflict check and the insert run in one transaction that holds a
        row lock on the business, so of two requests for the same slot the
        first to commit wins and the other gets ConflictError. On Postgres the
        exclusion constraint backs this up at commit time.

        Args:
            db: Database session
            business_id: Owning business
            service_id: Service being booked; its current duration sets end_time
            customer_id: Customer from find_or_create_customer
            start_time: Timezone-aware start instant
            notes: Optional customer notes
            staff_member_id: Staff member to assign; scopes the conflict check
                when STAFF_SCOPED_CONFLICTS is enabled
            idempotency_key: Client request id; a replay returns the original booking
            now: Clock override for tests

        Returns:
            (appointment, created); created is False when an idempotency key
            replayed an earlier booking

        Raises:
            ValidationError: start_time missing, naive or in the past
            NotFoundError: business, service or customer unknown
            ConflictError: the interval is no longer free
        """
        start = AppointmentService._validate_start(start_time, now)

        try:
            business = BusinessService.get_business(db, business_id, for_update=True)
            service = BusinessService.get_service(db, business_id, service_id)
            AppointmentService._get_customer(db, business_id, customer_id)

            if idempotency_key:
                existing = AppointmentService._find_by_idempotency_key(db, business_id, idempotency_key)
                if existing:
                    db.commit()
                    logger.info(f"Replayed booking {existing.id} for idempotency key {idempotency_key}")
                    return existing, False

            end = start + timedelta(minutes=service.duration_minutes)
            AppointmentService._ensure_interval_free(
                db, business_id, service, start, staff_member_id
            )

            appointment = Appointment(
                business_id=business_id,
                service_id=service_id,
                customer_id=customer_id,
                staff_member_id=staff_member_id,
                start_time=start,
                end_time=end,
                status=AppointmentStatus.SCHEDULED.value,
                timezone=business.timezone or get_settings().DEFAULT_TIMEZONE,
                customer_notes=notes or None,
                idempotency_key=idempotency_key,
            )
            db.add(appointment)
            db.commit()

        except IntegrityError as exc:
            db.rollback()
            if idempotency_key:
                existing = AppointmentService._find_by_idempotency_key(db, business_id, idempotency_key)
                if existing:
                    return existing, False
            conflict = AppointmentService._conflict_from_integrity_error(exc, start)
            if conflict is None:
                raise
            raise conflict from exc
        except SchedulingError:
            db.rollback()
            raise

        db.refresh(appointment)
        logger.info(
            f"Booked appointment {appointment.id} for business {business_id} "
            f"at {start.isoformat()}"
        )
        return appointment, True

    @staticmethod
    def reschedule_appointment(
            db: Session,
            business_id: UUID,
            appointment_id: UUID,
            new_start_time: Optional[datetime],
            now: Optional[datetime] = None
    ) -> Tuple[Appointment, datetime]:
        """
        Move an active appointment to a new start time.

        Runs the same locked conflict check as a new booking, ignoring the
        appointment being moved. Status goes back to scheduled and the
        confirmation/reminder markers are cleared.

        Returns:
            (appointment, previous_start_time)
        """
        start = AppointmentService._validate_start(new_start_time, now)

        try:
            BusinessService.get_business(db, business_id, for_update=True)
            appointment = AppointmentService.get_appointment(db, business_id, appointment_id)

            if appointment.status not in RESCHEDULABLE_STATUSES:
                raise ValidationError(
                    f"Cannot reschedule {appointment.status} appointment",
                    appointment_id=appointment_id,
                )

            service = BusinessService.get_service(db, business_id, appointment.service_id)
            AppointmentService._ensure_interval_free(
                db, business_id, service, start,
                appointment.staff_member_id, exclude_appointment_id=appointment.id
            )

            previous_start = as_utc(appointment.start_time)
            appointment.start_time = start
            appointment.end_time = start + timedelta(minutes=service.duration_minutes)
            appointment.status = AppointmentStatus.SCHEDULED.value
            appointment.confirmation_sent_at = None
            appointment.reminder_sent_at = None
            appointment.sync_status = "pending"
            db.commit()

        except IntegrityError as exc:
            db.rollback()
            conflict = AppointmentService._conflict_from_integrity_error(exc, start)
            if conflict is None:
                raise
            raise conflict from exc
        except SchedulingError:
            db.rollback()
            raise

        db.refresh(appointment)
        logger.info(
            f"Rescheduled appointment {appointment_id} from {previous_start.isoformat()} "
            f"to {start.isoformat()}"
        )
        return appointment, previous_start

    @staticmethod
    def cancel_appointment(
            db: Session,
            business_id: UUID,
            appointment_id: UUID,
            cancelled_by: str,
            reason: Optional[str] = None
    ) -> Appointment:
        """Mark an appointment cancelled; the row is kept for history"""
        try:
            appointment = AppointmentService.get_appointment(db, business_id, appointment_id)

            if appointment.status == AppointmentStatus.CANCELLED.value:
                raise ValidationError("Appointment is already cancelled", appointment_id=appointment_id)
            if not AppointmentStatus.can_transition(appointment.status, AppointmentStatus.CANCELLED.value):
                raise ValidationError(
                    f"Cannot cancel {appointment.status} appointment",
                    appointment_id=appointment_id,
                )

            appointment.status = AppointmentStatus.CANCELLED.value
            appointment.cancelled_at = datetime.now(timezone.utc)
            appointment.cancellation_reason = reason
            appointment.internal_notes = (
                f"Cancelled by {cancelled_by}: {reason}" if reason else f"Cancelled by {cancelled_by}"
            )
            db.commit()

        except SchedulingError:
            db.rollback()
            raise

        db.refresh(appointment)
        logger.info(f"Cancelled appointment {appointment_id} (by {cancelled_by})")
        return appointment

    @staticmethod
    def get_appointment(db: Session, business_id: UUID, appointment_id: UUID) -> Appointment:
        appointment = db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.business_id == business_id
        ).first()

        if not appointment:
            raise NotFoundError(
                f"Appointment {appointment_id} not found",
                business_id=business_id,
                appointment_id=appointment_id,
            )
        return appointment

    @staticmethod
    def serialize(appointment: Appointment) -> dict:
        return {
            "id": str(appointment.id),
            "business_id": str(appointment.business_id),
            "service_id": str(appointment.service_id),
            "customer_id": str(appointment.customer_id),
            "start_time": as_utc(appointment.start_time).isoformat(),
            "end_time": as_utc(appointment.end_time).isoformat(),
            "status": appointment.status,
            "timezone": appointment.timezone,
        }

    @staticmethod
    def _validate_start(start_time: Optional[datetime], now: Optional[datetime]) -> datetime:
        if start_time is None:
            raise ValidationError("Start time is required")
        if start_time.tzinfo is None:
            raise ValidationError("Start time must include a timezone offset")

        start = as_utc(start_time)
        if start <= as_utc(now or datetime.now(timezone.utc)):
            raise ValidationError("Start time must be in the future", start_time=start.isoformat())
        return start

    @staticmethod
    def _get_customer(db: Session, business_id: UUID, customer_id: UUID) -> Customer:
        customer = db.query(Customer).filter(
            Customer.id == customer_id,
            Customer.business_id == business_id
        ).first()
        if not customer:
            raise NotFoundError(f"Customer {customer_id} not found", customer_id=customer_id)
        return customer

    @staticmethod
    def _find_by_idempotency_key(db: Session, business_id: UUID, key: str) -> Optional[Appointment]:
        return db.query(Appointment).filter(
            Appointment.business_id == business_id,
            Appointment.idempotency_key == key
        ).first()

    @staticmethod
    def _ensure_interval_free(
            db: Session,
            business_id: UUID,
            service: Service,
            start: datetime,
            staff_member_id: Optional[UUID],
            exclude_appointment_id: Optional[UUID] = None
    ) -> None:
        """Raise ConflictError if [start, start + duration + buffer) hits an active booking"""
        candidate = TimeInterval(start, start + timedelta(minutes=service.effective_span_minutes))

        occupied = AvailabilityService.get_occupied_intervals(
            db, business_id, candidate.start, candidate.end,
            staff_member_id=AvailabilityService.conflict_scope(staff_member_id),
            exclude_appointment_id=exclude_appointment_id,
        )
        conflicts = find_conflicts(candidate, occupied)

        if conflicts:
            logger.info(
                f"Rejected booking for business {business_id} at {start.isoformat()}: "
                f"{len(conflicts)} conflicting appointment(s)"
            )
            raise ConflictError(
                "The selected time slot is no longer available",
                start_time=start.isoformat(),
            )

    @staticmethod
    def _conflict_from_integrity_error(exc: IntegrityError, start: datetime) -> Optional[ConflictError]:
        """
        ConflictError for an overlap rejected by the exclusion constraint.

        Any other integrity failure is a defect rather than a taken slot, so
        None is returned and the caller re-raises the original error.
        """
        orig = getattr(exc, "orig", None)
        diag = getattr(orig, "diag", None)
        constraint_name = getattr(diag, "constraint_name", "") or ""
        text = str(orig).lower()

        if constraint_name == NO_OVERLAP_CONSTRAINT or "exclusion constraint" in text or "no_overlap" in text:
            logger.info(f"Exclusion constraint rejected booking at {start.isoformat()}")
            return ConflictError(
                "The selected time slot is no longer available",
                start_time=start.isoformat(),
            )

        logger.error(f"Unexpected integrity error while booking at {start.isoformat()}: {exc}")
        return None
