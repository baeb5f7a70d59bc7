# ===== slotbook/models/appointment.py =====
import enum
import uuid

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Uuid, Index, UniqueConstraint
from sqlalchemy.sql import func
from .base import Base


class AppointmentStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"

    @classmethod
    def active(cls):
        """Statuses that occupy time on the calendar"""
        return [cls.SCHEDULED.value, cls.CONFIRMED.value]

    @classmethod
    def can_transition(cls, current: str, target: str) -> bool:
        return target in _TRANSITIONS.get(current, ())


_TRANSITIONS = {
    AppointmentStatus.SCHEDULED.value: (
        AppointmentStatus.CONFIRMED.value,
        AppointmentStatus.CANCELLED.value,
        AppointmentStatus.NO_SHOW.value,
    ),
    AppointmentStatus.CONFIRMED.value: (
        AppointmentStatus.COMPLETED.value,
        AppointmentStatus.CANCELLED.value,
        AppointmentStatus.NO_SHOW.value,
    ),
}


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        Index("ix_appointments_business_start", "business_id", "start_time"),
        UniqueConstraint("business_id", "idempotency_key", name="uq_appointments_idempotency"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # References
    business_id = Column(Uuid, ForeignKey("businesses.id"), nullable=False)
    service_id = Column(Uuid, ForeignKey("services.id"), nullable=False)
    customer_id = Column(Uuid, ForeignKey("customers.id"), nullable=False)
    staff_member_id = Column(Uuid, nullable=True)

    # Stored as UTC instants; end_time excludes the service buffer
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    timezone = Column(String(50), nullable=False, default="UTC")  # for display

    status = Column(String(20), nullable=False, default=AppointmentStatus.SCHEDULED.value)
    customer_notes = Column(Text, nullable=True)
    internal_notes = Column(Text, nullable=True)

    # Client-supplied request id so an unknown-outcome booking can be replayed
    idempotency_key = Column(String(100), nullable=True)

    # Calendar sync
    sync_status = Column(String(20), default="pending")  # pending, synced, failed, sync_disabled
    last_sync_error = Column(Text, nullable=True)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)

    # Reminders & notifications
    reminder_sent_at = Column(DateTime(timezone=True), nullable=True)
    confirmation_sent_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    def __repr__(self):
        return f"<Appointment(id={self.id}, start={self.start_time}, status={self.status})>"
