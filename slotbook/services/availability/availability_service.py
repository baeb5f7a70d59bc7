from typing import List, Dict, Optional, Sequence
from datetime import date, datetime, timedelta, timezone
from uuid import UUID
from sqlalchemy import or_
from sqlalchemy.orm import Session
from slotbook.config.settings import get_settings
from slotbook.core.exceptions import ValidationError
from slotbook.models.appointment import Appointment, AppointmentStatus
from slotbook.services.business.business_service import BusinessService
from slotbook.services.scheduling.calendar_math import as_utc, day_bounds_utc, day_windows, Window
from slotbook.services.scheduling.conflicts import TimeInterval, has_conflict
import logging

logger = logging.getLogger(__name__)


class AvailabilityService:
    """Computes bookable slots from business hours and existing appointments"""

    @staticmethod
    def get_available_slots(
            db: Session,
            business_id: UUID,
            service_id: UUID,
            target_date: date,
            staff_member_id: Optional[UUID] = None,
            now: Optional[datetime] = None,
            granularity_minutes: Optional[int] = None
    ) -> List[Dict]:
        """
        List every bookable start time for a service on a date.

        Read-only; the result may be stale by the time the caller books, the
        booking write path re-checks.

        Returns:
            [{"start": datetime, "end": datetime}, ...] in UTC, ascending by
            window then step. "end" excludes the service buffer.
        """
        business = BusinessService.get_business(db, business_id)
        service = BusinessService.get_service(db, business_id, service_id)

        hours = BusinessService.get_hours_for_date(
            db, business_id, target_date, staff_member_id
        )
        windows = day_windows(target_date, business.timezone, hours)

        if not windows:
            logger.info(f"Business {business_id} is closed on {target_date.isoformat()}")
            return []

        day_start, day_end = day_bounds_utc(target_date, business.timezone)
        occupied = AvailabilityService.get_occupied_intervals(
            db, business_id, day_start, day_end,
            AvailabilityService.conflict_scope(staff_member_id)
        )

        slots = AvailabilityService.generate_slots(
            windows=windows,
            duration_minutes=service.duration_minutes,
            buffer_minutes=service.buffer_minutes or 0,
            occupied=occupied,
            now=now or datetime.now(timezone.utc),
            granularity_minutes=(
                get_settings().SLOT_GRANULARITY_MINUTES if granularity_minutes is None else granularity_minutes
            ),
        )

        logger.info(
            f"Generated {len(slots)} slots for service {service_id} on {target_date.isoformat()} "
            f"({len(windows)} windows, {len(occupied)} booked)"
        )
        return slots

    @staticmethod
    def conflict_scope(staff_member_id: Optional[UUID]) -> Optional[UUID]:
        """
        Staff id to partition conflict checks by, or None for business-wide.

        The Postgres exclusion constraint is business-wide, so partitioning
        stays off unless STAFF_SCOPED_CONFLICTS is enabled alongside a
        constraint that includes staff_member_id.
        """
        if staff_member_id and get_settings().STAFF_SCOPED_CONFLICTS:
            return staff_member_id
        return None

    @staticmethod
    def get_occupied_intervals(
            db: Session,
            business_id: UUID,
            range_start: datetime,
            range_end: datetime,
            staff_member_id: Optional[UUID] = None,
            exclude_appointment_id: Optional[UUID] = None
    ) -> List[TimeInterval]:
        """
        Active appointment intervals touching [range_start, range_end).

        Scoped to the whole business unless a staff member is given, in which
        case that member's bookings plus business-wide (unassigned) bookings
        count as occupied.
        """
        query = db.query(Appointment.start_time, Appointment.end_time).filter(
            Appointment.business_id == business_id,
            Appointment.status.in_(AppointmentStatus.active()),
            Appointment.start_time < as_utc(range_end),
            Appointment.end_time > as_utc(range_start)
        )

        if staff_member_id:
            query = query.filter(or_(
                Appointment.staff_member_id == staff_member_id,
                Appointment.staff_member_id.is_(None)
            ))
        if exclude_appointment_id:
            query = query.filter(Appointment.id != exclude_appointment_id)

        return [
            TimeInterval(as_utc(start), as_utc(end))
            for start, end in query.order_by(Appointment.start_time.asc()).all()
        ]

    @staticmethod
    def generate_slots(
            windows: Sequence[Window],
            duration_minutes: int,
            buffer_minutes: int,
            occupied: Sequence[TimeInterval],
            now: datetime,
            granularity_minutes: int = 15
    ) -> List[Dict]:
        """Walk each window in fixed steps, keeping conflict-free future candidates"""
        if granularity_minutes <= 0:
            raise ValidationError(
                "Slot granularity must be a positive number of minutes",
                granularity_minutes=granularity_minutes,
            )

        span = timedelta(minutes=duration_minutes + buffer_minutes)
        duration = timedelta(minutes=duration_minutes)
        step = timedelta(minutes=min(granularity_minutes, duration_minutes + buffer_minutes))
        now = as_utc(now)

        slots = []
        for window_start, window_end in windows:
            # Step in UTC so DST transitions inside a window stay exact
            current_slot = as_utc(window_start)
            window_end = as_utc(window_end)

            while current_slot + span <= window_end:
                candidate = TimeInterval(current_slot, current_slot + span)

                if current_slot > now and not has_conflict(candidate, occupied):
                    slots.append({
                        "start": current_slot,
                        "end": current_slot + duration,
                    })

                current_slot += step

        return slots
