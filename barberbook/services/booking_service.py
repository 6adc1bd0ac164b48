"""
Application services for slot lookup and booking.

The service gathers the engine inputs from the directory and booking stores
(concurrently, they are independent reads) and delegates the calculation to
the domain-level ``AvailabilityEngine``. Stores and clock are plain protocols
so tests can swap in in-memory stubs.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Protocol

from pendulum import DateTime

from ..domain.availability import AvailabilityEngine
from ..domain.exceptions import (
    InvalidScheduleFormat,
    ServiceNotFound,
    SlotNoLongerAvailable,
    StaffNotFound,
)
from ..domain.models import (
    Appointment,
    AppointmentStatus,
    BookedInterval,
    ConfirmedSlot,
    Service,
    StaffAvailability,
    StaffMember,
    Unavailable,
    WeeklySchedule,
    coerce_date,
    parse_clock_time,
)
from ..domain.recurrence import resolve_recurrence, shift_date

logger = logging.getLogger(__name__)


class DirectoryStoreProtocol(Protocol):
    """Shop, staff and service lookups needed by the service."""

    async def get_shop_weekly_schedule(self, shop_id: str) -> WeeklySchedule:
        """Return the shop's weekly hours."""

    async def get_staff_availability(self, staff_id: str) -> Optional[StaffAvailability]:
        """Return a staff member's individual hours, if any."""

    async def list_staff(self, shop_id: str) -> List[StaffMember]:
        """Return all staff of a shop."""

    async def get_service(self, service_id: str) -> Optional[Service]:
        """Return a service record."""


class BookingStoreProtocol(Protocol):
    """Appointment persistence needed by the service."""

    async def list_active_booked_intervals(
        self,
        shop_id: str,
        date,
        staff_id: Optional[str] = None,
    ) -> List[BookedInterval]:
        """Return the time held by scheduled appointments on a date."""

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        """Return an appointment by id."""

    async def create_appointment(
        self,
        appointment: Appointment,
        *,
        duration_minutes: int,
        staff_capacity: int,
    ) -> Appointment:
        """Atomically check the slot and insert the appointment."""

    async def update_status(self, appointment_id: str, status: AppointmentStatus) -> Appointment:
        """Move an appointment to a new status."""


class ClockProtocol(Protocol):
    """Source of the current time."""

    def current_time(self) -> DateTime:
        """Return the current time in the shop's timezone."""


class BookingService:
    """
    Orchestrates store reads, slot calculation and booking writes.
    """

    def __init__(
        self,
        directory: DirectoryStoreProtocol,
        bookings: BookingStoreProtocol,
        clock: ClockProtocol,
        engine: AvailabilityEngine | None = None,
    ) -> None:
        self._directory = directory
        self._bookings = bookings
        self._clock = clock
        self._engine = engine or AvailabilityEngine()

    async def get_available_slots(
        self,
        *,
        shop_id: str,
        service_id: str,
        date,
        staff_id: Optional[str] = None,
    ) -> List[str]:
        """
        Available start times for a service, optionally with a given staff member.

        Inactive services have no availability, and neither does a staff member
        who is not assigned to the service.

        Raises:
            ServiceNotFound: If the service id is unknown
            StaffNotFound: If staff_id is not a member of the shop
        """
        service = await self._require_service(service_id)
        if not service.is_active:
            return []

        return await self.compute_available_slots(
            shop_id=shop_id,
            service_duration_minutes=service.duration_minutes,
            date=date,
            staff_id=staff_id,
            service_id=service.id,
        )

    async def compute_available_slots(
        self,
        *,
        shop_id: str,
        service_duration_minutes: int,
        date,
        staff_id: Optional[str] = None,
        service_id: Optional[str] = None,
    ) -> List[str]:
        """
        Fetch a consistent snapshot of the inputs and run the engine.

        When both staff_id and service_id are given, a staff member who is not
        assigned to the service has no slots.

        Raises:
            StaffNotFound: If staff_id is not a member of the shop
        """
        target_date = coerce_date(date)

        try:
            schedule, staff_schedule, staff, booked = await asyncio.gather(
                self._directory.get_shop_weekly_schedule(shop_id),
                self._fetch_staff_schedule(staff_id),
                self._directory.list_staff(shop_id),
                self._bookings.list_active_booked_intervals(shop_id, target_date),
            )

            if staff_id is not None:
                member = _find_staff_member(staff, staff_id, shop_id)
                if service_id is not None and service_id not in member.assigned_services:
                    logger.debug("Staff %s is not assigned to service %s", staff_id, service_id)
                    return []

            return self._engine.compute_available_slots(
                shop_schedule=schedule,
                staff_schedule=staff_schedule,
                staff_id=staff_id,
                date=target_date,
                service_duration_minutes=service_duration_minutes,
                booked_intervals=booked,
                all_staff_count=len(staff),
                now=self._clock.current_time(),
            )
        except InvalidScheduleFormat as exc:
            logger.error("Malformed schedule data for shop %s: %s", shop_id, exc)
            raise

    async def shift_and_check(
        self,
        source_appointment: Appointment,
        weeks_forward: int,
    ) -> ConfirmedSlot | Unavailable:
        """
        Re-check the source appointment's time ``weeks_forward`` weeks later.

        Returns:
            ConfirmedSlot if the exact time is free on the new date, else Unavailable.
            A service that is no longer active is always Unavailable.

        Raises:
            InvalidRecurrence: If weeks_forward is below 1
            ServiceNotFound: If the source's service no longer exists
            StaffNotFound: If the source's staff member left the shop
        """
        new_date = shift_date(source_appointment.date, weeks_forward)
        slots = await self.get_available_slots(
            shop_id=source_appointment.shop_id,
            service_id=source_appointment.service_id,
            date=new_date,
            staff_id=source_appointment.staff_id,
        )

        return resolve_recurrence(source_appointment.time, new_date, slots)

    async def book_appointment(
        self,
        *,
        client_id: str,
        shop_id: str,
        service_id: str,
        date,
        time: str,
        staff_id: Optional[str] = None,
        notes: Optional[str] = None,
        source_appointment_id: Optional[str] = None,
    ) -> Appointment:
        """
        Book a slot that is currently offered.

        The store repeats the conflict check atomically with the insert.

        Raises:
            SlotNoLongerAvailable: If the time is not offered or was just taken
            StaffNotFound: If staff_id is not a member of the shop
        """
        target_date = coerce_date(date)
        parse_clock_time(time)
        service = await self._require_service(service_id)

        slots = await self.get_available_slots(
            shop_id=shop_id,
            service_id=service_id,
            date=target_date,
            staff_id=staff_id,
        )
        if time not in slots:
            logger.info("Rejected booking for shop %s at %s %s", shop_id, target_date, time)
            raise SlotNoLongerAvailable(
                f"{target_date.isoformat()} {time} is not available for this service."
            )

        staff = await self._directory.list_staff(shop_id)
        appointment = Appointment(
            id=None,
            client_id=client_id,
            shop_id=shop_id,
            service_id=service_id,
            staff_id=staff_id,
            date=target_date,
            time=time,
            status=AppointmentStatus.SCHEDULED,
            notes=notes,
            created_at=self._clock.current_time(),
            source_appointment_id=source_appointment_id,
        )

        try:
            return await self._bookings.create_appointment(
                appointment,
                duration_minutes=service.duration_minutes,
                staff_capacity=len(staff),
            )
        except SlotNoLongerAvailable:
            logger.info("Slot %s %s at shop %s was taken concurrently", target_date, time, shop_id)
            raise

    async def book_recurring(
        self,
        source_appointment: Appointment,
        weeks_forward: int,
    ) -> Appointment | Unavailable:
        """
        Book the same service, staff and time ``weeks_forward`` weeks later.

        Returns the new appointment, or the Unavailable result of the re-check.
        """
        result = await self.shift_and_check(source_appointment, weeks_forward)
        if isinstance(result, Unavailable):
            return result

        return await self.book_appointment(
            client_id=source_appointment.client_id,
            shop_id=source_appointment.shop_id,
            service_id=source_appointment.service_id,
            date=result.date,
            time=result.time,
            staff_id=source_appointment.staff_id,
            notes=source_appointment.notes,
            source_appointment_id=source_appointment.id,
        )

    async def cancel_appointment(self, appointment_id: str) -> Appointment:
        """Cancel a scheduled appointment, freeing its slot."""
        return await self._bookings.update_status(appointment_id, AppointmentStatus.CANCELLED)

    async def complete_appointment(self, appointment_id: str) -> Appointment:
        """Mark a scheduled appointment as completed."""
        return await self._bookings.update_status(appointment_id, AppointmentStatus.COMPLETED)

    async def _fetch_staff_schedule(self, staff_id: Optional[str]) -> Optional[StaffAvailability]:
        if staff_id is None:
            return None
        return await self._directory.get_staff_availability(staff_id)

    async def _require_service(self, service_id: str) -> Service:
        service = await self._directory.get_service(service_id)
        if service is None:
            raise ServiceNotFound(f"Service not found: {service_id}")
        return service


def _find_staff_member(staff: List[StaffMember], staff_id: str, shop_id: str) -> StaffMember:
    for member in staff:
        if member.id == staff_id:
            return member
    raise StaffNotFound(f"Staff member {staff_id} not found in shop {shop_id}")
