# slotbook/models/business.py
"""
Business Model - tenant root for services, hours, customers and appointments
"""
from sqlalchemy import Column, String, Boolean, DateTime, JSON, Integer, ForeignKey, Uuid, Index
from sqlalchemy.sql import func
import uuid
from slotbook.models.base import Base


class Business(Base):
    __tablename__ = "businesses"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=True)

    # IANA zone name; business hours are wall-clock times in this zone
    timezone = Column(String(50), default="UTC", nullable=False)

    # {"calendar": "https://..."} receives appointment events for calendar sync
    webhook_urls = Column(JSON, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    is_active = Column(Boolean, default=True)

    def __repr__(self):
        return f"<Business(id={self.id}, name={self.name})>"


class BusinessHours(Base):
    __tablename__ = "business_hours"
    __table_args__ = (
        Index("ix_business_hours_business_day", "business_id", "day_of_week"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(Uuid, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False)
    staff_member_id = Column(Uuid, nullable=True)
    day_of_week = Column(Integer, nullable=False)  # 0=Monday, 6=Sunday
    start_time = Column(String(8), nullable=False)  # HH:MM or HH:MM:SS
    end_time = Column(String(8), nullable=False)  # HH:MM or HH:MM:SS
    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return (
            f"<BusinessHours(business_id={self.business_id}, day={self.day_of_week}, "
            f"{self.start_time}-{self.end_time})>"
        )
