"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability import AvailabilityEngine, is_slot_free
from .models import (
    Appointment,
    AppointmentStatus,
    BookedInterval,
    ConfirmedSlot,
    DayWindow,
    Service,
    Shop,
    StaffAvailability,
    StaffMember,
    Unavailable,
    WeeklySchedule,
)

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "AvailabilityEngine",
    "BookedInterval",
    "ConfirmedSlot",
    "DayWindow",
    "Service",
    "Shop",
    "StaffAvailability",
    "StaffMember",
    "Unavailable",
    "WeeklySchedule",
    "is_slot_free",
]
