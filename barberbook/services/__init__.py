"""
Service layer helpers that orchestrate stores and domain logic.
"""

from .booking_service import (
    BookingService,
    BookingStoreProtocol,
    ClockProtocol,
    DirectoryStoreProtocol,
)

__all__ = ["BookingService", "BookingStoreProtocol", "ClockProtocol", "DirectoryStoreProtocol"]
