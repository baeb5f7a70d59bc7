"""
Pydantic schemas for slot listing and appointment mutations
"""
from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from slotbook.services.scheduling.calendar_math import as_utc


# ============================================================================
# Request Schemas (for incoming data)
# ============================================================================

class AppointmentCreateRequest(BaseModel):
    """Booking request from the chat layer or a direct API client"""
    business_id: UUID
    service_id: UUID
    customer_email: str = Field(..., max_length=255)
    customer_name: Optional[str] = Field(None, max_length=255)
    customer_phone: Optional[str] = Field(None, max_length=50)
    # Optional here so a missing value surfaces as a 400 from the booking core
    start_time: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=1000)
    staff_member_id: Optional[UUID] = None
    idempotency_key: Optional[str] = Field(None, max_length=100)


class AppointmentRescheduleRequest(BaseModel):
    business_id: UUID
    new_start_time: Optional[datetime] = None


class AppointmentCancelRequest(BaseModel):
    business_id: UUID
    cancelled_by: Literal["customer", "business"]
    reason: Optional[str] = Field(None, max_length=1000)


# ============================================================================
# Response Schemas (for outgoing data)
# ============================================================================

class SlotResponse(BaseModel):
    start_time: datetime
    end_time: datetime


class SlotListResponse(BaseModel):
    business_id: UUID
    service_id: UUID
    date: str
    slots: List[SlotResponse]


class AppointmentResponse(BaseModel):
    id: UUID
    start_time: datetime
    end_time: datetime
    status: str
    timezone: str

    @field_validator("start_time", "end_time")
    @classmethod
    def tag_utc(cls, v):
        """Storage may hand back naive UTC values"""
        return as_utc(v)

    class Config:
        from_attributes = True


class AppointmentMutationResponse(BaseModel):
    success: bool = True
    message: str
    appointment: AppointmentResponse
