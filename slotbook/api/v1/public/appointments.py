# ============================================================================
# FILE: slotbook/api/v1/public/appointments.py
# Booking, reschedule and cancel endpoints - thin HTTP layer
# ============================================================================
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Response, status
from sqlalchemy.orm import Session

from slotbook.api.dependencies import get_notifier
from slotbook.config.database import get_db
from slotbook.schemas.appointment import (
    AppointmentCancelRequest,
    AppointmentCreateRequest,
    AppointmentMutationResponse,
    AppointmentRescheduleRequest,
    AppointmentResponse,
)
from slotbook.services.appointment.appointment_service import AppointmentService
from slotbook.services.customer.customer_service import CustomerService
from slotbook.services.notifications.appointment_notifier import AppointmentNotifier

router = APIRouter(prefix="/appointments", tags=["public-appointments"])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=AppointmentResponse)
async def create_appointment(
        payload: AppointmentCreateRequest,
        response: Response,
        db: Session = Depends(get_db),
        notifier: AppointmentNotifier = Depends(get_notifier)
):
    """
    Book a slot. Returns 409 when the slot was taken in the meantime;
    re-list slots and pick another time. Repeating a request with the same
    idempotency_key returns the original booking with 200 and sends nothing.
    """
    customer = CustomerService.find_or_create_customer(
        db=db,
        business_id=payload.business_id,
        email=payload.customer_email,
        name=payload.customer_name,
        phone=payload.customer_phone,
    )

    appointment, created = AppointmentService.create_appointment(
        db=db,
        business_id=payload.business_id,
        service_id=payload.service_id,
        customer_id=customer.id,
        start_time=payload.start_time,
        notes=payload.notes,
        staff_member_id=payload.staff_member_id,
        idempotency_key=payload.idempotency_key,
    )

    if created:
        notifier.appointment_booked(appointment)
    else:
        response.status_code = status.HTTP_200_OK
    return appointment


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
        business_id: UUID,
        appointment_id: UUID = Path(..., description="The appointment ID"),
        db: Session = Depends(get_db)
):
    """Look up a booking, e.g. after a timed-out create call"""
    return AppointmentService.get_appointment(db, business_id, appointment_id)


@router.post("/{appointment_id}/reschedule", response_model=AppointmentMutationResponse)
async def reschedule_appointment(
        payload: AppointmentRescheduleRequest,
        appointment_id: UUID = Path(..., description="The appointment ID"),
        db: Session = Depends(get_db),
        notifier: AppointmentNotifier = Depends(get_notifier)
):
    """Move an appointment; 409 if the new time overlaps another booking"""
    appointment, previous_start = AppointmentService.reschedule_appointment(
        db=db,
        business_id=payload.business_id,
        appointment_id=appointment_id,
        new_start_time=payload.new_start_time,
    )

    notifier.appointment_rescheduled(appointment, previous_start)
    return AppointmentMutationResponse(
        message="Appointment rescheduled successfully",
        appointment=AppointmentResponse.model_validate(appointment),
    )


@router.post("/{appointment_id}/cancel", response_model=AppointmentMutationResponse)
async def cancel_appointment(
        payload: AppointmentCancelRequest,
        appointment_id: UUID = Path(..., description="The appointment ID"),
        db: Session = Depends(get_db),
        notifier: AppointmentNotifier = Depends(get_notifier)
):
    """Cancel an appointment; the record is kept"""
    appointment = AppointmentService.cancel_appointment(
        db=db,
        business_id=payload.business_id,
        appointment_id=appointment_id,
        cancelled_by=payload.cancelled_by,
        reason=payload.reason,
    )

    notifier.appointment_cancelled(appointment, payload.cancelled_by, payload.reason)
    return AppointmentMutationResponse(
        message="Appointment cancelled successfully",
        appointment=AppointmentResponse.model_validate(appointment),
    )
