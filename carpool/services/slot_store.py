"""
Slot store: the only writer of schedule slots and their assignments.

Provides:
- Slot creation with its first vehicle, atomically
- Serializable vehicle assignment guarding against double-booking
- Vehicle removal that deletes the slot with its last vehicle
- Child assignment, seat override and driver updates
- All-or-nothing bulk rescheduling
- Typed read helpers

Every operation runs in its own transaction. Nothing is retried here;
transient failures surface as TransientStoreError for the caller to retry.
"""

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Union
from uuid import UUID

from dateutil.parser import isoparse
from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from carpool.clock import Clock, SystemClock
from carpool.config import Settings, get_settings
from carpool.database import SERIALIZABLE, SessionFactory, SessionLocal, transaction
from carpool.exceptions import (
    ChildAssignmentNotFoundError,
    ChildNotFoundError,
    DriverNotFoundError,
    DuplicateAssignmentError,
    DuplicateChildAssignmentError,
    DuplicateSlotError,
    GroupNotFoundError,
    InvalidDatetimeError,
    InvalidSeatOverrideError,
    PastDatetimeError,
    PastModificationError,
    SlotNotFoundError,
    VehicleAssignmentNotFoundError,
    VehicleDoubleBookedError,
    VehicleNotFoundError,
)
from carpool.models.family import Child, Person
from carpool.models.groups import Group
from carpool.models.resources import Vehicle
from carpool.models.schedule import ChildAssignment, ScheduleSlot, VehicleAssignment
from carpool.services.queries import (
    ChildAssignmentRecord,
    SlotRecord,
    VehicleAssignmentRecord,
    build_slot_record,
    build_vehicle_assignment_record,
    find_vehicle_booking,
    get_group_slots_in_range,
    get_slot_by_id,
    get_slots_at,
)

logger = logging.getLogger(__name__)

DatetimeInput = Union[dt.datetime, str]

# Temporary instants for slots mid-move; slots can never be scheduled this early
PARKING_EPOCH = dt.datetime(1970, 1, 1, tzinfo=dt.timezone.utc)


def parse_datetime(value: DatetimeInput) -> dt.datetime:
    """
    Normalize a datetime or ISO 8601 string to an aware UTC datetime.

    Naive values are taken to be UTC.

    Raises:
        InvalidDatetimeError: If the value cannot be parsed
    """
    if isinstance(value, dt.datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = isoparse(value)
        except (ValueError, OverflowError) as e:
            raise InvalidDatetimeError(f"Invalid datetime: {value!r}", original_error=e) from e
    else:
        raise InvalidDatetimeError(f"Invalid datetime: {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed.astimezone(dt.timezone.utc)


@dataclass(frozen=True)
class SlotUpdate:
    """A requested change to one slot in a bulk reschedule."""

    slot_id: UUID
    datetime: Optional[DatetimeInput] = None


@dataclass(frozen=True)
class VehicleRemoval:
    """Outcome of removing a vehicle from a slot."""

    vehicle_assignment_id: UUID
    slot_deleted: bool


class SlotStore:
    """
    Persistence operations on schedule slots.

    Usage:
        store = SlotStore(SessionLocal, clock=SystemClock())
        slot = store.create_slot(group_id, "2025-06-23T08:00:00Z", vehicle_id)
        store.assign_vehicle(slot.id, other_vehicle_id, driver_id=person_id)
    """

    def __init__(
        self,
        session_factory: Optional[SessionFactory] = None,
        clock: Optional[Clock] = None,
        settings: Optional[Settings] = None,
    ):
        self._session_factory = session_factory or SessionLocal
        self._clock = clock or SystemClock()
        self._settings = settings or get_settings()

    # =========================================================================
    # Transactions
    # =========================================================================

    def _transaction(self):
        return transaction(self._session_factory)

    def _serializable(self):
        return transaction(
            self._session_factory,
            isolation_level=SERIALIZABLE,
            timeout_seconds=self._settings.transaction_timeout_seconds,
        )

    # =========================================================================
    # Validation
    # =========================================================================

    def _validate_seat_override(self, seats: Optional[int]) -> None:
        if seats is None:
            return

        if isinstance(seats, bool) or not isinstance(seats, int):
            raise InvalidSeatOverrideError(f"Seat override must be an integer, got {seats!r}")

        if seats < 0 or seats > self._settings.max_seat_override:
            raise InvalidSeatOverrideError(
                f"Seat override must be between 0 and {self._settings.max_seat_override}, got {seats}"
            )

    def _load_vehicle(self, session: Session, vehicle_id: UUID) -> Vehicle:
        vehicle = session.get(Vehicle, vehicle_id)
        if vehicle is None:
            raise VehicleNotFoundError(f"Vehicle {vehicle_id} not found")
        return vehicle

    def _load_driver(self, session: Session, driver_id: Optional[UUID]) -> Optional[Person]:
        if driver_id is None:
            return None
        driver = session.get(Person, driver_id)
        if driver is None:
            raise DriverNotFoundError(f"Driver {driver_id} not found")
        return driver

    def _load_slot(self, session: Session, slot_id: UUID) -> ScheduleSlot:
        slot = session.get(ScheduleSlot, slot_id)
        if slot is None:
            raise SlotNotFoundError(f"Schedule slot {slot_id} not found")
        return slot

    def _ensure_not_double_booked(
        self,
        session: Session,
        group_id: UUID,
        vehicle_id: UUID,
        instant: dt.datetime,
        exclude_slot_ids: Sequence[UUID] = (),
    ) -> None:
        booking = find_vehicle_booking(session, group_id, vehicle_id, instant, exclude_slot_ids)
        if booking is not None:
            raise VehicleDoubleBookedError(
                f"Vehicle {vehicle_id} is already assigned to slot {booking.schedule_slot_id} "
                f"of group {group_id} at {instant.isoformat()}"
            )

    # =========================================================================
    # Slot lifecycle
    # =========================================================================

    def create_slot(
        self,
        group_id: UUID,
        datetime: DatetimeInput,
        vehicle_id: UUID,
        driver_id: Optional[UUID] = None,
        seat_override: Optional[int] = None,
    ) -> SlotRecord:
        """
        Create a slot together with its first vehicle assignment.

        Args:
            group_id: Group owning the slot
            datetime: Departure instant (aware datetime or ISO 8601 string)
            vehicle_id: First vehicle
            driver_id: Optional driver of the first vehicle
            seat_override: Optional seats for the first vehicle

        Returns:
            SlotRecord of the new slot

        Raises:
            InvalidDatetimeError, InvalidSeatOverrideError, PastDatetimeError,
            GroupNotFoundError, VehicleNotFoundError, DriverNotFoundError,
            DuplicateSlotError, VehicleDoubleBookedError, TransientStoreError
        """
        instant = parse_datetime(datetime)
        self._validate_seat_override(seat_override)

        now = self._clock.now()
        if instant <= now:
            raise PastDatetimeError(
                f"Cannot create a slot at {instant.isoformat()}: not after {now.isoformat()}"
            )

        with self._serializable() as session:
            group = session.get(Group, group_id)
            if group is None:
                raise GroupNotFoundError(f"Group {group_id} not found")

            vehicle = self._load_vehicle(session, vehicle_id)
            driver = self._load_driver(session, driver_id)

            existing = session.scalar(
                select(ScheduleSlot.id).where(
                    and_(
                        ScheduleSlot.group_id == group_id,
                        ScheduleSlot.datetime == instant,
                    )
                )
            )
            if existing is not None:
                raise DuplicateSlotError(
                    f"Group {group_id} already has a slot at {instant.isoformat()}"
                )

            self._ensure_not_double_booked(session, group_id, vehicle_id, instant)

            slot = ScheduleSlot(group=group, datetime=instant)
            slot.vehicle_assignments.append(
                VehicleAssignment(vehicle=vehicle, driver=driver, seat_override=seat_override)
            )
            session.add(slot)

            try:
                session.flush()
            except IntegrityError as e:
                raise DuplicateSlotError(
                    f"Group {group_id} already has a slot at {instant.isoformat()}",
                    original_error=e,
                ) from e

            record = build_slot_record(slot)

        logger.info(f"Created schedule slot {record.id} for group {group_id} at {instant.isoformat()}")
        return record

    def assign_vehicle(
        self,
        slot_id: UUID,
        vehicle_id: UUID,
        driver_id: Optional[UUID] = None,
        seat_override: Optional[int] = None,
    ) -> VehicleAssignmentRecord:
        """
        Assign a vehicle to an existing slot.

        Runs serializable with a bounded timeout: the duplicate and
        double-booking checks and the insert happen in one transaction.

        Raises:
            InvalidSeatOverrideError, SlotNotFoundError, VehicleNotFoundError,
            DriverNotFoundError, DuplicateAssignmentError,
            VehicleDoubleBookedError, TransientStoreError
        """
        self._validate_seat_override(seat_override)

        with self._serializable() as session:
            slot = self._load_slot(session, slot_id)
            vehicle = self._load_vehicle(session, vehicle_id)
            driver = self._load_driver(session, driver_id)

            duplicate = session.scalar(
                select(VehicleAssignment.id).where(
                    and_(
                        VehicleAssignment.schedule_slot_id == slot_id,
                        VehicleAssignment.vehicle_id == vehicle_id,
                    )
                )
            )
            if duplicate is not None:
                raise DuplicateAssignmentError(
                    f"Vehicle {vehicle_id} is already assigned to slot {slot_id}"
                )

            self._ensure_not_double_booked(
                session, slot.group_id, vehicle_id, slot.datetime, exclude_slot_ids=[slot.id]
            )

            assignment = VehicleAssignment(
                schedule_slot=slot,
                vehicle=vehicle,
                driver=driver,
                seat_override=seat_override,
            )
            session.add(assignment)

            try:
                session.flush()
            except IntegrityError as e:
                raise DuplicateAssignmentError(
                    f"Vehicle {vehicle_id} is already assigned to slot {slot_id}",
                    original_error=e,
                ) from e

            record = build_vehicle_assignment_record(assignment)

        logger.info(f"Assigned vehicle {vehicle_id} to slot {slot_id}")
        return record

    def remove_vehicle(self, slot_id: UUID, vehicle_id: UUID) -> VehicleRemoval:
        """
        Remove a vehicle (and its children) from a slot.

        Deletes the slot in the same transaction when this was its last vehicle.

        Raises:
            SlotNotFoundError, VehicleAssignmentNotFoundError
        """
        with self._transaction() as session:
            assignment = session.scalars(
                select(VehicleAssignment).where(
                    and_(
                        VehicleAssignment.schedule_slot_id == slot_id,
                        VehicleAssignment.vehicle_id == vehicle_id,
                    )
                )
            ).first()

            if assignment is None:
                self._load_slot(session, slot_id)
                raise VehicleAssignmentNotFoundError(
                    f"Vehicle {vehicle_id} is not assigned to slot {slot_id}"
                )

            assignment_id = assignment.id
            slot = assignment.schedule_slot
            session.delete(assignment)
            session.flush()

            remaining = session.scalar(
                select(func.count())
                .select_from(VehicleAssignment)
                .where(VehicleAssignment.schedule_slot_id == slot_id)
            )
            slot_deleted = remaining == 0
            if slot_deleted:
                session.delete(slot)

        if slot_deleted:
            logger.info(f"Removed last vehicle {vehicle_id}; deleted slot {slot_id}")
        else:
            logger.info(f"Removed vehicle {vehicle_id} from slot {slot_id}")

        return VehicleRemoval(vehicle_assignment_id=assignment_id, slot_deleted=slot_deleted)

    # =========================================================================
    # Children
    # =========================================================================

    def assign_child(self, vehicle_assignment_id: UUID, child_id: UUID) -> ChildAssignmentRecord:
        """
        Put a child in a vehicle of a slot.

        Capacity is not enforced; an overbooked vehicle is reported as
        overcapacity by the dashboard.

        Raises:
            VehicleAssignmentNotFoundError, ChildNotFoundError,
            DuplicateChildAssignmentError
        """
        with self._transaction() as session:
            assignment = session.get(VehicleAssignment, vehicle_assignment_id)
            if assignment is None:
                raise VehicleAssignmentNotFoundError(
                    f"Vehicle assignment {vehicle_assignment_id} not found"
                )

            child = session.get(Child, child_id)
            if child is None:
                raise ChildNotFoundError(f"Child {child_id} not found")

            slot_id = assignment.schedule_slot_id
            existing = session.scalar(
                select(ChildAssignment.id).where(
                    and_(
                        ChildAssignment.schedule_slot_id == slot_id,
                        ChildAssignment.child_id == child_id,
                    )
                )
            )
            if existing is not None:
                raise DuplicateChildAssignmentError(
                    f"Child {child_id} already rides in slot {slot_id}"
                )

            child_assignment = ChildAssignment(
                schedule_slot=assignment.schedule_slot,
                vehicle_assignment=assignment,
                child=child,
            )
            session.add(child_assignment)

            try:
                session.flush()
            except IntegrityError as e:
                raise DuplicateChildAssignmentError(
                    f"Child {child_id} already rides in slot {slot_id}",
                    original_error=e,
                ) from e

            record = ChildAssignmentRecord(
                id=child_assignment.id,
                schedule_slot_id=slot_id,
                vehicle_assignment_id=assignment.id,
                child_id=child_id,
            )

        logger.info(f"Assigned child {child_id} to vehicle assignment {vehicle_assignment_id}")
        return record

    def remove_child(self, slot_id: UUID, child_id: UUID) -> None:
        """
        Take a child out of a slot.

        Raises:
            ChildAssignmentNotFoundError
        """
        with self._transaction() as session:
            child_assignment = session.scalars(
                select(ChildAssignment).where(
                    and_(
                        ChildAssignment.schedule_slot_id == slot_id,
                        ChildAssignment.child_id == child_id,
                    )
                )
            ).first()

            if child_assignment is None:
                raise ChildAssignmentNotFoundError(
                    f"Child {child_id} is not assigned to slot {slot_id}"
                )

            session.delete(child_assignment)

        logger.info(f"Removed child {child_id} from slot {slot_id}")

    # =========================================================================
    # Assignment updates
    # =========================================================================

    def update_seat_override(
        self,
        vehicle_assignment_id: UUID,
        seats: Optional[int] = None,
    ) -> VehicleAssignmentRecord:
        """
        Set or clear the seat override of a vehicle assignment.

        None clears it, falling back to the vehicle's capacity.

        Raises:
            InvalidSeatOverrideError, VehicleAssignmentNotFoundError
        """
        self._validate_seat_override(seats)

        with self._transaction() as session:
            assignment = session.get(VehicleAssignment, vehicle_assignment_id)
            if assignment is None:
                raise VehicleAssignmentNotFoundError(
                    f"Vehicle assignment {vehicle_assignment_id} not found"
                )

            assignment.seat_override = seats
            session.flush()
            record = build_vehicle_assignment_record(assignment)

        logger.info(f"Set seat override of vehicle assignment {vehicle_assignment_id} to {seats}")
        return record

    def update_driver(
        self,
        slot_id: UUID,
        vehicle_id: UUID,
        driver_id: Optional[UUID] = None,
    ) -> VehicleAssignmentRecord:
        """
        Set or clear the driver of a vehicle in a slot.

        Raises:
            VehicleAssignmentNotFoundError, DriverNotFoundError
        """
        with self._transaction() as session:
            assignment = session.scalars(
                select(VehicleAssignment).where(
                    and_(
                        VehicleAssignment.schedule_slot_id == slot_id,
                        VehicleAssignment.vehicle_id == vehicle_id,
                    )
                )
            ).first()

            if assignment is None:
                raise VehicleAssignmentNotFoundError(
                    f"Vehicle {vehicle_id} is not assigned to slot {slot_id}"
                )

            assignment.driver = self._load_driver(session, driver_id)
            session.flush()
            record = build_vehicle_assignment_record(assignment)

        logger.info(f"Set driver of vehicle {vehicle_id} in slot {slot_id} to {driver_id}")
        return record

    # =========================================================================
    # Rescheduling
    # =========================================================================

    def bulk_reschedule(self, updates: Sequence[SlotUpdate]) -> list[SlotRecord]:
        """
        Apply several slot updates all-or-nothing.

        Every update is validated before anything is written. A slot may be
        moved only to a future instant; an update that keeps the datetime
        requires the slot to still be in the future.

        Args:
            updates: Slot updates; datetime None keeps the current instant

        Returns:
            SlotRecords in update order

        Raises:
            InvalidDatetimeError, SlotNotFoundError, PastModificationError,
            DuplicateSlotError, VehicleDoubleBookedError, TransientStoreError
        """
        if not updates:
            return []

        targets = [
            (update.slot_id, parse_datetime(update.datetime) if update.datetime is not None else None)
            for update in updates
        ]
        now = self._clock.now()

        with self._serializable() as session:
            planned = []
            for slot_id, target in targets:
                slot = self._load_slot(session, slot_id)

                if target is None or target == slot.datetime:
                    if slot.datetime <= now:
                        raise PastModificationError(
                            f"Slot {slot_id} at {slot.datetime.isoformat()} is in the past"
                        )
                    planned.append((slot, None))
                elif target <= now:
                    raise PastModificationError(
                        f"Cannot move slot {slot_id} to {target.isoformat()}: not in the future"
                    )
                else:
                    planned.append((slot, target))

            moves = [(slot, target) for slot, target in planned if target is not None]
            moved_ids = [slot.id for slot, _ in moves]

            self._check_move_collisions(session, moves, moved_ids)

            try:
                # Park moved slots first so swaps within a group never hit the unique key
                for index, (slot, _) in enumerate(moves):
                    slot.datetime = PARKING_EPOCH + dt.timedelta(seconds=index)
                session.flush()

                for slot, target in moves:
                    slot.datetime = target
                session.flush()
            except IntegrityError as e:
                raise DuplicateSlotError(
                    "Rescheduling would create two slots with the same group and datetime",
                    original_error=e,
                ) from e

            records = [build_slot_record(slot) for slot, _ in planned]

        logger.info(f"Rescheduled {len(moves)} of {len(planned)} slots")
        return records

    def _check_move_collisions(self, session: Session, moves, moved_ids: list[UUID]) -> None:
        """Reject moves that collide on slot key or vehicle booking."""
        keys = set()
        bookings = set()

        for slot, target in moves:
            key = (slot.group_id, target)
            if key in keys:
                raise DuplicateSlotError(
                    f"Two updates move slots of group {slot.group_id} to {target.isoformat()}"
                )
            keys.add(key)

            clash = session.scalar(
                select(ScheduleSlot.id).where(
                    and_(
                        ScheduleSlot.group_id == slot.group_id,
                        ScheduleSlot.datetime == target,
                        ScheduleSlot.id.not_in(moved_ids),
                    )
                )
            )
            if clash is not None:
                raise DuplicateSlotError(
                    f"Group {slot.group_id} already has a slot at {target.isoformat()}"
                )

            minute = target.replace(second=0, microsecond=0)
            for assignment in slot.vehicle_assignments:
                booking = (slot.group_id, minute, assignment.vehicle_id)
                if booking in bookings:
                    raise VehicleDoubleBookedError(
                        f"Vehicle {assignment.vehicle_id} would drive two slots of group "
                        f"{slot.group_id} at {target.isoformat()}"
                    )
                bookings.add(booking)

                self._ensure_not_double_booked(
                    session, slot.group_id, assignment.vehicle_id, target, exclude_slot_ids=moved_ids
                )

    # =========================================================================
    # Reads
    # =========================================================================

    def get_slot(self, slot_id: UUID) -> SlotRecord:
        """
        Get a slot with its assignments.

        Raises:
            SlotNotFoundError
        """
        with self._transaction() as session:
            slot = get_slot_by_id(session, slot_id)
            if slot is None:
                raise SlotNotFoundError(f"Schedule slot {slot_id} not found")
            return build_slot_record(slot)

    def find_slot(self, group_id: UUID, datetime: DatetimeInput) -> Optional[SlotRecord]:
        """Get the slot of a group at an exact instant, if any."""
        instant = parse_datetime(datetime)
        with self._transaction() as session:
            slots = get_slots_at(session, group_id, instant)
            return build_slot_record(slots[0]) if slots else None

    def list_group_slots(
        self,
        group_id: UUID,
        start: DatetimeInput,
        end: DatetimeInput,
    ) -> list[SlotRecord]:
        """Get the slots of a group in [start, end], ordered by datetime."""
        range_start = parse_datetime(start)
        range_end = parse_datetime(end)
        with self._transaction() as session:
            return [
                build_slot_record(slot)
                for slot in get_group_slots_in_range(session, group_id, range_start, range_end)
            ]
