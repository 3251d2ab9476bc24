"""
Query helpers and typed records for schedule slots.

Provides common query patterns with:
- Eager loading to avoid N+1 queries
- Time-range and exact-instant filtering
- Minute-window vehicle booking checks
- Family visibility filtering for the weekly dashboard

Slots are converted to frozen records inside the session, so callers
never touch lazy-loading ORM objects after a transaction has closed.
"""

import datetime as dt
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session, selectinload

from carpool.models.family import Child, FamilyMembership
from carpool.models.groups import Group, GroupFamilyMember
from carpool.models.schedule import ChildAssignment, ScheduleSlot, VehicleAssignment
from carpool.services.capacity import CapacityStatus, capacity_status, effective_capacity

BOOKING_WINDOW = dt.timedelta(minutes=1)


# =============================================================================
# Records
# =============================================================================


@dataclass(frozen=True)
class ChildRecord:
    """A child riding in a vehicle assignment."""

    child_assignment_id: UUID
    child_id: UUID
    child_name: str
    family_id: UUID


@dataclass(frozen=True)
class ChildAssignmentRecord:
    """Result of assigning a child to a vehicle."""

    id: UUID
    schedule_slot_id: UUID
    vehicle_assignment_id: UUID
    child_id: UUID


@dataclass(frozen=True)
class VehicleAssignmentRecord:
    """A vehicle in a slot, with its driver and the children riding in it."""

    id: UUID
    schedule_slot_id: UUID
    vehicle_id: UUID
    vehicle_name: str
    vehicle_capacity: int
    vehicle_family_id: UUID
    seat_override: Optional[int] = None
    driver_id: Optional[UUID] = None
    driver_name: Optional[str] = None
    children: tuple[ChildRecord, ...] = ()

    @property
    def effective_capacity(self) -> int:
        return effective_capacity(self.vehicle_capacity, self.seat_override)

    @property
    def assigned_children_count(self) -> int:
        return len(self.children)

    @property
    def available_seats(self) -> int:
        return self.effective_capacity - self.assigned_children_count

    @property
    def capacity_status(self) -> CapacityStatus:
        return capacity_status(self.available_seats, self.effective_capacity)


@dataclass(frozen=True)
class SlotRecord:
    """A schedule slot joined with its vehicle and child assignments."""

    id: UUID
    group_id: UUID
    group_name: str
    datetime: dt.datetime
    vehicle_assignments: tuple[VehicleAssignmentRecord, ...] = ()

    @property
    def total_capacity(self) -> int:
        return sum(va.effective_capacity for va in self.vehicle_assignments)

    @property
    def assigned_children_count(self) -> int:
        return sum(va.assigned_children_count for va in self.vehicle_assignments)

    @property
    def available_seats(self) -> int:
        return self.total_capacity - self.assigned_children_count

    @property
    def capacity_status(self) -> CapacityStatus:
        return capacity_status(self.available_seats, self.total_capacity)

    def vehicle_ids(self) -> list[UUID]:
        return [va.vehicle_id for va in self.vehicle_assignments]


def build_child_record(assignment: ChildAssignment) -> ChildRecord:
    return ChildRecord(
        child_assignment_id=assignment.id,
        child_id=assignment.child_id,
        child_name=assignment.child.name,
        family_id=assignment.child.family_id,
    )


def build_vehicle_assignment_record(assignment: VehicleAssignment) -> VehicleAssignmentRecord:
    """Convert a loaded VehicleAssignment (vehicle, driver, children) to a record."""
    children = sorted(
        (build_child_record(c) for c in assignment.children),
        key=lambda c: (c.child_name, c.child_id),
    )
    driver = assignment.driver

    return VehicleAssignmentRecord(
        id=assignment.id,
        schedule_slot_id=assignment.schedule_slot_id,
        vehicle_id=assignment.vehicle_id,
        vehicle_name=assignment.vehicle.name,
        vehicle_capacity=assignment.vehicle.capacity,
        vehicle_family_id=assignment.vehicle.family_id,
        seat_override=assignment.seat_override,
        driver_id=assignment.driver_id,
        driver_name=driver.name if driver else None,
        children=tuple(children),
    )


def build_slot_record(slot: ScheduleSlot) -> SlotRecord:
    """Convert a loaded ScheduleSlot to a record; vehicles ordered by name then id."""
    assignments = sorted(
        (build_vehicle_assignment_record(va) for va in slot.vehicle_assignments),
        key=lambda va: (va.vehicle_name, va.vehicle_id),
    )

    return SlotRecord(
        id=slot.id,
        group_id=slot.group_id,
        group_name=slot.group.name,
        datetime=slot.datetime,
        vehicle_assignments=tuple(assignments),
    )


# =============================================================================
# Slot Queries
# =============================================================================


def slot_load_options():
    """Eager-load everything build_slot_record touches."""
    return (
        selectinload(ScheduleSlot.group),
        selectinload(ScheduleSlot.vehicle_assignments).options(
            selectinload(VehicleAssignment.vehicle),
            selectinload(VehicleAssignment.driver),
            selectinload(VehicleAssignment.children).selectinload(ChildAssignment.child),
        ),
        selectinload(ScheduleSlot.child_assignments).selectinload(ChildAssignment.child),
    )


def get_slot_by_id(session: Session, slot_id: UUID) -> Optional[ScheduleSlot]:
    """
    Get a single slot with all assignments loaded.

    Args:
        session: Database session
        slot_id: Slot ID

    Returns:
        ScheduleSlot or None
    """
    stmt = (
        select(ScheduleSlot)
        .where(ScheduleSlot.id == slot_id)
        .options(*slot_load_options())
    )

    return session.scalars(stmt).first()


def get_slots_at(
    session: Session,
    group_id: UUID,
    instant: dt.datetime,
) -> Sequence[ScheduleSlot]:
    """
    Get slots of a group at exactly the given instant.

    Returns:
        Slots with vehicles, drivers and children eagerly loaded
    """
    stmt = (
        select(ScheduleSlot)
        .where(
            and_(
                ScheduleSlot.group_id == group_id,
                ScheduleSlot.datetime == instant,
            )
        )
        .options(*slot_load_options())
        .order_by(ScheduleSlot.id)
    )

    return session.scalars(stmt).all()


def get_group_slots_in_range(
    session: Session,
    group_id: UUID,
    start: dt.datetime,
    end: dt.datetime,
) -> Sequence[ScheduleSlot]:
    """
    Get all slots of a group within a time range.

    Args:
        session: Database session
        group_id: Group to query
        start: Range start (inclusive)
        end: Range end (inclusive)

    Returns:
        Slots ordered by datetime, with assignments eagerly loaded
    """
    stmt = (
        select(ScheduleSlot)
        .where(
            and_(
                ScheduleSlot.group_id == group_id,
                ScheduleSlot.datetime >= start,
                ScheduleSlot.datetime <= end,
            )
        )
        .options(*slot_load_options())
        .order_by(ScheduleSlot.datetime, ScheduleSlot.id)
    )

    return session.scalars(stmt).all()


def find_vehicle_booking(
    session: Session,
    group_id: UUID,
    vehicle_id: UUID,
    instant: dt.datetime,
    exclude_slot_ids: Iterable[UUID] = (),
) -> Optional[VehicleAssignment]:
    """
    Find an assignment of the vehicle to another slot of the group in the same minute.

    Slot instants are compared at minute precision: a slot at 08:00:30
    collides with one at 08:00:00.

    Args:
        session: Database session
        group_id: Group of the target slot
        vehicle_id: Vehicle being booked
        instant: Target slot instant
        exclude_slot_ids: Slots not counted as bookings (e.g. the target slot)

    Returns:
        The colliding VehicleAssignment, or None
    """
    # (group, datetime) is unique per slot, so an exact-instant match could never
    # find another slot; the minute window is the smallest key that can collide.
    # Slots at 08:00:00 and 08:00:30 therefore cannot share a vehicle.
    minute_start = instant.replace(second=0, microsecond=0)

    conditions = [
        ScheduleSlot.group_id == group_id,
        ScheduleSlot.datetime >= minute_start,
        ScheduleSlot.datetime < minute_start + BOOKING_WINDOW,
        VehicleAssignment.vehicle_id == vehicle_id,
    ]

    excluded = list(exclude_slot_ids)
    if excluded:
        conditions.append(ScheduleSlot.id.not_in(excluded))

    stmt = (
        select(VehicleAssignment)
        .join(VehicleAssignment.schedule_slot)
        .where(and_(*conditions))
        .limit(1)
    )

    return session.scalars(stmt).first()


# =============================================================================
# Visibility Queries
# =============================================================================


def get_visible_slots(
    session: Session,
    family_id: UUID,
    start: dt.datetime,
    end: dt.datetime,
) -> list[SlotRecord]:
    """
    Get every slot in a window that a family may see.

    A slot is visible when any of these hold:
    - its group is owned by the family
    - its group lists the family as a member
    - a vehicle assignment is driven by a member of the family
    - a child of the family rides in it

    Each slot appears once even when several criteria match.

    Args:
        session: Database session
        family_id: Requesting family
        start: Window start (inclusive)
        end: Window end (inclusive)

    Returns:
        Slot records ordered by datetime, group name and slot id
    """
    member_person_ids = select(FamilyMembership.person_id).where(
        FamilyMembership.family_id == family_id
    )

    stmt = (
        select(ScheduleSlot)
        .join(ScheduleSlot.group)
        .where(
            and_(
                ScheduleSlot.datetime >= start,
                ScheduleSlot.datetime <= end,
                or_(
                    Group.family_id == family_id,
                    Group.member_families.any(GroupFamilyMember.family_id == family_id),
                    ScheduleSlot.vehicle_assignments.any(
                        VehicleAssignment.driver_id.in_(member_person_ids)
                    ),
                    ScheduleSlot.child_assignments.any(
                        ChildAssignment.child.has(Child.family_id == family_id)
                    ),
                ),
            )
        )
        .options(*slot_load_options())
        .order_by(ScheduleSlot.datetime, Group.name, ScheduleSlot.id)
    )

    return [build_slot_record(slot) for slot in session.scalars(stmt).all()]
