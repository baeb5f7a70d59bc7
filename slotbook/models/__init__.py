# slotbook/models/__init__.py
from .base import Base
from .business import Business, BusinessHours
from .service import Service
from .customer import Customer
from .appointment import Appointment, AppointmentStatus

__all__ = [
    "Base",
    "Business",
    "BusinessHours",
    "Service",
    "Customer",
    "Appointment",
    "AppointmentStatus",
]
