"""
JSON-file backed directory and booking store.

The file uses the record layout of the booking platform (camelCase keys):

{
    "shops": [{"id": ..., "name": ..., "workingHours": [...]}],
    "services": [{"id": ..., "barbershopId": ..., "duration": 45, ...}],
    "barbers": [{"id": ..., "barbershopId": ..., "availableHours": [...] | null}],
    "appointments": [{"id": ..., "date": "2024-11-25", "time": "10:00", ...}]
}

Shop and staff records are parsed on access, so malformed hours surface as
``InvalidScheduleFormat`` on the query that needs them.
"""

import asyncio
import json
import logging
import uuid
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pendulum

from ..domain.availability import is_slot_free
from ..domain.exceptions import (
    AppointmentNotFound,
    InvalidDate,
    InvalidScheduleFormat,
    InvalidStatusTransition,
    ShopNotFound,
    SlotNoLongerAvailable,
)
from ..domain.models import (
    Appointment,
    AppointmentStatus,
    BookedInterval,
    DayWindow,
    Service,
    Shop,
    StaffAvailability,
    StaffMember,
    WeeklySchedule,
    coerce_date,
)

logger = logging.getLogger(__name__)


def _parse_day_windows(records: Sequence[Dict[str, Any]], *, staff_hours: bool = False) -> List[DayWindow]:
    windows: List[DayWindow] = []

    for record in records:
        try:
            windows.append(
                DayWindow(
                    day_of_week=record["dayOfWeek"],
                    start=record["start"],
                    end=record["end"],
                    is_open=True if staff_hours else bool(record.get("isOpen", True)),
                )
            )
        except (KeyError, TypeError) as exc:
            raise InvalidScheduleFormat(f"Incomplete working hours entry {record!r}") from exc

    return windows


def _shop_from_record(record: Dict[str, Any], default_hours: Sequence[DayWindow]) -> Shop:
    hours = record.get("workingHours")
    if hours is None:
        schedule = WeeklySchedule(days=tuple(default_hours))
    else:
        schedule = WeeklySchedule(days=tuple(_parse_day_windows(hours)))

    return Shop(id=record["id"], name=record.get("name", ""), working_hours=schedule)


def _service_from_record(record: Dict[str, Any]) -> Service:
    try:
        price = Decimal(str(record.get("price", "0")))
    except InvalidOperation:
        logger.warning("Service %s has an invalid price %r", record.get("id"), record.get("price"))
        price = Decimal("0")

    return Service(
            id=record["id"],
            shop_id=record["barbershopId"],
        name=record.get("name", ""),
        duration_minutes=int(record["duration"]),
        price=price,
        is_active=bool(record.get("isActive", True)),
    )


def _staff_from_record(record: Dict[str, Any]) -> StaffMember:
    hours = record.get("availableHours")
    availability = None
    if hours is not None:
        availability = StaffAvailability(
            staff_id=record["id"],
            days=tuple(_parse_day_windows(hours, staff_hours=True)),
        )

    return StaffMember(
            id=record["id"],
            shop_id=record["barbershopId"],
        name=record.get("name", ""),
        availability=availability,
        assigned_services=list(record.get("assignedServices") or []),
    )


def _appointment_from_record(record: Dict[str, Any]) -> Appointment:
    created_at = record.get("createdAt")
    try:
        return Appointment(
            id=record["id"],
            client_id=record["clientId"],
            shop_id=record["barbershopId"],
            service_id=record["serviceId"],
            staff_id=record.get("barberId"),
            date=coerce_date(record["date"]),
            time=record["time"],
            status=AppointmentStatus(record.get("status", AppointmentStatus.SCHEDULED.value)),
            notes=record.get("notes"),
            created_at=pendulum.parse(created_at) if created_at else None,
            source_appointment_id=record.get("sourceAppointmentId"),
        )
    except (KeyError, TypeError, ValueError, InvalidDate) as exc:
        raise ValueError(f"Malformed appointment record {record.get('id')!r}: {exc!r}") from exc


def _appointment_to_record(appointment: Appointment) -> Dict[str, Any]:
    return {
        "id": appointment.id,
        "clientId": appointment.client_id,
        "barbershopId": appointment.shop_id,
        "serviceId": appointment.service_id,
        "barberId": appointment.staff_id,
        "date": appointment.date.isoformat(),
        "time": appointment.time,
        "status": appointment.status.value,
        "notes": appointment.notes,
        "createdAt": appointment.created_at.isoformat() if appointment.created_at else None,
        "sourceAppointmentId": appointment.source_appointment_id,
    }


class JsonShopStore:
    """
    Directory and booking store over a single JSON document.

    Writes are serialised with an asyncio lock; the conflict check and the
    insert of a new appointment happen inside the same critical section, so
    of two concurrent bookings for the last free chair exactly one wins.
    """

    def __init__(
        self,
        data: Dict[str, Any],
        data_file: Path | None = None,
        default_working_hours: Sequence[DayWindow] = (),
    ):
        """
        Initialize the store.

        Args:
            data: Parsed JSON document
            data_file: Where to persist changes; None keeps everything in memory
            default_working_hours: Hours for shops whose record has none
        """
        self.data_file = data_file
        self.default_working_hours = tuple(default_working_hours)
        self._document = data

        self._shops = {record["id"]: record for record in data.get("shops", [])}
        self._services = {record["id"]: record for record in data.get("services", [])}
        self._staff = {record["id"]: record for record in data.get("barbers", [])}
        self._appointments: Dict[str, Appointment] = {}
        for record in data.get("appointments", []):
            appointment = _appointment_from_record(record)
            self._appointments[appointment.id] = appointment

        self._lock = asyncio.Lock()

    @classmethod
    def load(cls, data_file: Path, default_working_hours: Sequence[DayWindow] = ()) -> "JsonShopStore":
        """
        Load a store from a JSON file.

        Raises:
            FileNotFoundError: If the data file doesn't exist
            ValueError: If the file is not a JSON object
        """
        if not data_file.exists():
            raise FileNotFoundError(f"Data file not found: {data_file}")

        with open(data_file, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid JSON in {data_file}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Data file must contain an object at the root level.")

        return cls(data, data_file=data_file, default_working_hours=default_working_hours)

    # Directory ---------------------------------------------------------

    async def get_shop(self, shop_id: str) -> Shop:
        record = self._shops.get(shop_id)
        if record is None:
            raise ShopNotFound(f"Shop not found: {shop_id}")
        return _shop_from_record(record, self.default_working_hours)

    async def get_shop_weekly_schedule(self, shop_id: str) -> WeeklySchedule:
        shop = await self.get_shop(shop_id)
        return shop.working_hours

    async def get_staff_member(self, staff_id: str) -> Optional[StaffMember]:
        record = self._staff.get(staff_id)
        return _staff_from_record(record) if record is not None else None

    async def get_staff_availability(self, staff_id: str) -> Optional[StaffAvailability]:
        member = await self.get_staff_member(staff_id)
        return member.availability if member is not None else None

    async def list_staff(self, shop_id: str) -> List[StaffMember]:
        return [
            _staff_from_record(record)
            for record in self._staff.values()
            if record.get("barbershopId") == shop_id
        ]

    async def get_service(self, service_id: str) -> Optional[Service]:
        record = self._services.get(service_id)
        return _service_from_record(record) if record is not None else None

    # Bookings ----------------------------------------------------------

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        return self._appointments.get(appointment_id)

    async def list_appointments(self, shop_id: str, date=None) -> List[Appointment]:
        """List a shop's appointments, optionally for one date, in time order."""
        target = coerce_date(date) if date is not None else None
        matches = [
            appointment for appointment in self._appointments.values()
            if appointment.shop_id == shop_id
            and (target is None or appointment.date == target)
        ]
        return sorted(matches, key=lambda a: (a.date, a.time))

    async def list_active_booked_intervals(
        self,
        shop_id: str,
        date,
        staff_id: Optional[str] = None,
    ) -> List[BookedInterval]:
        return self._booked_intervals(shop_id, coerce_date(date), staff_id)

    def _booked_intervals(self, shop_id: str, date, staff_id: Optional[str]) -> List[BookedInterval]:
        intervals: List[BookedInterval] = []

        for appointment in self._appointments.values():
            if not appointment.is_active or appointment.shop_id != shop_id:
                continue
            if appointment.date != date:
                continue
            if staff_id is not None and appointment.staff_id != staff_id:
                continue

            service = self._services.get(appointment.service_id)
            if service is None:
                logger.warning(
                    "Appointment %s references unknown service %s; ignoring it",
                    appointment.id,
                    appointment.service_id,
                )
                continue

            intervals.append(
                BookedInterval(
                    date=appointment.date,
                    start_time=appointment.time,
                    duration_minutes=int(service["duration"]),
                    staff_id=appointment.staff_id,
                )
            )

        return intervals

    async def create_appointment(
        self,
        appointment: Appointment,
        *,
        duration_minutes: int,
        staff_capacity: int,
    ) -> Appointment:
        """
        Insert an appointment unless its slot was taken in the meantime.

        Raises:
            SlotNoLongerAvailable: If an active booking already occupies the slot
        """
        async with self._lock:
            booked = self._booked_intervals(appointment.shop_id, appointment.date, None)
            probe = BookedInterval(
                date=appointment.date,
                start_time=appointment.time,
                duration_minutes=duration_minutes,
                staff_id=appointment.staff_id,
            )

            if not is_slot_free(
                probe.start_minutes,
                duration_minutes,
                booked,
                staff_id=appointment.staff_id,
                staff_capacity=staff_capacity,
            ):
                raise SlotNoLongerAvailable(
                    f"{appointment.date.isoformat()} {appointment.time} is no longer available."
                )

            if not appointment.id:
                appointment = replace(appointment, id=f"appt_{uuid.uuid4().hex[:12]}")

            self._appointments[appointment.id] = appointment
            try:
                self._save()
            except OSError:
                del self._appointments[appointment.id]
                raise

            return appointment

    async def update_status(self, appointment_id: str, status: AppointmentStatus) -> Appointment:
        """
        Move a scheduled appointment to a final status.

        Raises:
            AppointmentNotFound: If the id is unknown
            InvalidStatusTransition: If the appointment is not scheduled anymore
        """
        async with self._lock:
            current = self._appointments.get(appointment_id)
            if current is None:
                raise AppointmentNotFound(f"Appointment not found: {appointment_id}")

            if not current.is_active or status == AppointmentStatus.SCHEDULED:
                raise InvalidStatusTransition(
                    f"Cannot change appointment {appointment_id} from "
                    f"{current.status.value} to {status.value}"
                )

            updated = replace(current, status=status)
            self._appointments[appointment_id] = updated
            try:
                self._save()
            except OSError:
                self._appointments[appointment_id] = current
                raise

            return updated

    def _save(self) -> None:
        """Persist appointments back to the data file."""
        if self.data_file is None:
            return

        self._document["appointments"] = [
            _appointment_to_record(appointment)
            for appointment in self._appointments.values()
        ]
        with open(self.data_file, "w", encoding="utf-8") as f:
            json.dump(self._document, f, indent=2, ensure_ascii=False)

        logger.debug("Saved %d appointments to %s", len(self._appointments), self.data_file)
