from .appointment import (
    AppointmentCreateRequest,
    AppointmentRescheduleRequest,
    AppointmentCancelRequest,
    SlotResponse,
    SlotListResponse,
    AppointmentResponse,
    AppointmentMutationResponse,
)

__all__ = [
    "AppointmentCreateRequest",
    "AppointmentRescheduleRequest",
    "AppointmentCancelRequest",
    "SlotResponse",
    "SlotListResponse",
    "AppointmentResponse",
    "AppointmentMutationResponse",
]
