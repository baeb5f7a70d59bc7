# slotbook/models/service.py
"""
Service Model - bookable service definitions
Duration plus buffer defines the span a booking reserves.
"""
from sqlalchemy import Column, String, Integer, ForeignKey, Boolean, DateTime, Text, Uuid
from sqlalchemy.sql import func
import uuid
from slotbook.models.base import Base


class Service(Base):
    """Source of truth for service duration and buffer"""
    __tablename__ = "services"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(
        Uuid,
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    duration_minutes = Column(Integer, nullable=False)
    # Idle time kept clear after the appointment, never stored on the booking
    buffer_minutes = Column(Integer, nullable=False, default=0)

    is_active = Column(Boolean, default=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    def __repr__(self):
        return f"<Service(id={self.id}, name={self.name}, business_id={self.business_id})>"

    @property
    def effective_span_minutes(self) -> int:
        """Duration plus buffer, used to space candidate slots"""
        return self.duration_minutes + (self.buffer_minutes or 0)
