# ============================================================================
# FILE: slotbook/api/dependencies.py
# Shared FastAPI dependencies
# ============================================================================
from slotbook.services.notifications.appointment_notifier import AppointmentNotifier


def get_notifier() -> AppointmentNotifier:
    """Notification dispatcher; overridden in tests"""
    return AppointmentNotifier()
