"""
Domain-specific exception hierarchy for the barbershop booking core.
"""


class BookingError(Exception):
    """Base class for all application-level errors."""


class InvalidDuration(BookingError):
    """Raised when a service duration or slot interval is not a positive number of minutes."""


class InvalidScheduleFormat(BookingError):
    """Raised when schedule data contains malformed times or conflicting weekday entries."""


class InvalidDate(BookingError):
    """Raised when a target date cannot be parsed."""


class InvalidRecurrence(BookingError):
    """Raised when a recurrence is requested with a non-positive week offset."""


class SlotNoLongerAvailable(BookingError):
    """Raised when a booking loses the race for a slot or the slot is not offered."""


class InvalidStatusTransition(BookingError):
    """Raised when an appointment cannot move to the requested status."""


class NotFoundError(BookingError):
    """Raised when a referenced record does not exist in a store."""


class ShopNotFound(NotFoundError):
    """Raised when a shop id is unknown."""


class ServiceNotFound(NotFoundError):
    """Raised when a service id is unknown."""


class AppointmentNotFound(NotFoundError):
    """Raised when an appointment id is unknown."""


class StaffNotFound(NotFoundError):
    """Raised when a staff id is unknown or belongs to another shop."""
