"""
Weekly dashboard aggregation.

Builds a family's view of one Monday-to-Sunday week (UTC):
1. Resolve the requesting person's family
2. Load every slot the family may see in the window
3. Drop vehicles the family may not see, and children of other families
   riding in other families' vehicles
4. Bucket slots into 7 days and, within a day, by HH:MM
5. Annotate every vehicle and transport with a capacity status

Driver families are resolved in one batched query; vehicle and child
families come eagerly loaded with the slots.
"""

import datetime as dt
import logging
from collections import defaultdict
from typing import Optional, Union
from uuid import UUID

from sqlalchemy.orm import Session

from carpool.clock import Clock, SystemClock
from carpool.services.capacity import capacity_status
from carpool.services.families import family_ids_for_persons, resolve_family
from carpool.services.queries import SlotRecord, VehicleAssignmentRecord, get_visible_slots
from carpool.services.schemas import (
    ChildSummary,
    DashboardFailure,
    DashboardMetadata,
    DashboardResult,
    DashboardSuccess,
    DayTransportSummary,
    DriverSummary,
    TransportSlotSummary,
    VehicleAssignmentSummary,
    WeeklyDashboard,
)
from carpool.services.slot_store import parse_datetime

logger = logging.getLogger(__name__)

DAYS_IN_WEEK = 7
PICKUP_CUTOFF_HOUR = 12
HOME_DESTINATION = "Home"

WeekAnchor = Union[dt.datetime, dt.date, str]


def week_bounds(anchor: WeekAnchor) -> tuple[dt.datetime, dt.datetime]:
    """
    Compute the UTC week containing an anchor.

    The week runs from Monday 00:00:00.000 to Sunday 23:59:59.999. A Sunday
    anchor belongs to the week that started six days earlier.

    Args:
        anchor: Any instant or date in the week

    Returns:
        (start, end) as aware UTC datetimes
    """
    if isinstance(anchor, dt.datetime) or isinstance(anchor, str):
        day = parse_datetime(anchor).date()
    else:
        day = anchor

    monday = day - dt.timedelta(days=day.weekday())
    start = dt.datetime.combine(monday, dt.time.min, tzinfo=dt.timezone.utc)
    end = start + dt.timedelta(days=DAYS_IN_WEEK) - dt.timedelta(milliseconds=1)
    return start, end


def trip_type_for(instant: dt.datetime) -> str:
    """Morning departures are pickups; noon onwards are dropoffs."""
    return "pickup" if instant.hour < PICKUP_CUTOFF_HOUR else "dropoff"


def is_vehicle_visible(
    assignment: VehicleAssignmentRecord,
    family_id: UUID,
    driver_families: dict[UUID, UUID],
) -> bool:
    """
    Whether a family may see a vehicle assignment.

    Visible when the family owns the vehicle, has a child riding in it,
    or a family member drives it.
    """
    if assignment.vehicle_family_id == family_id:
        return True

    if any(child.family_id == family_id for child in assignment.children):
        return True

    return assignment.driver_id is not None and driver_families.get(assignment.driver_id) == family_id


def summarize_vehicle(assignment: VehicleAssignmentRecord, family_id: UUID) -> VehicleAssignmentSummary:
    """
    Capacity summary of one vehicle as seen by a family.

    The assigned count covers every child in the vehicle; the child detail
    list only covers children the family may see.
    """
    is_family_vehicle = assignment.vehicle_family_id == family_id

    children = [
        ChildSummary(
            child_id=child.child_id,
            child_name=child.child_name,
            child_family_id=child.family_id,
            is_family_child=child.family_id == family_id,
        )
        for child in assignment.children
        if is_family_vehicle or child.family_id == family_id
    ]

    driver = None
    if assignment.driver_id is not None and assignment.driver_name is not None:
        driver = DriverSummary(id=assignment.driver_id, name=assignment.driver_name)

    return VehicleAssignmentSummary(
        vehicle_assignment_id=assignment.id,
        vehicle_id=assignment.vehicle_id,
        vehicle_name=assignment.vehicle_name,
        vehicle_capacity=assignment.effective_capacity,
        seat_override=assignment.seat_override,
        assigned_children_count=assignment.assigned_children_count,
        available_seats=assignment.available_seats,
        capacity_status=assignment.capacity_status,
        vehicle_family_id=assignment.vehicle_family_id,
        is_family_vehicle=is_family_vehicle,
        driver=driver,
        children=children,
    )


def summarize_transport(
    time_key: str,
    entries: list[tuple[SlotRecord, list[VehicleAssignmentRecord]]],
    family_id: UUID,
) -> TransportSlotSummary:
    """Merge the filtered slots departing at one HH:MM into a transport summary."""
    first_slot = entries[0][0]

    vehicles = sorted(
        (summarize_vehicle(assignment, family_id) for _, assignments in entries for assignment in assignments),
        key=lambda v: (v.vehicle_name, v.vehicle_id, v.vehicle_assignment_id),
    )

    total_children = sum(v.assigned_children_count for v in vehicles)
    total_capacity = sum(v.vehicle_capacity for v in vehicles)
    available = total_capacity - total_children

    trip_type = trip_type_for(first_slot.datetime)
    destination = first_slot.group_name if trip_type == "pickup" else HOME_DESTINATION

    return TransportSlotSummary(
        time=time_key,
        datetime=first_slot.datetime,
        trip_type=trip_type,
        destination=destination,
        group_id=first_slot.group_id,
        group_name=first_slot.group_name,
        schedule_slot_id=first_slot.id,
        schedule_slot_ids=[slot.id for slot, _ in entries],
        vehicle_assignment_summaries=vehicles,
        total_children_assigned=total_children,
        total_capacity=total_capacity,
        available_seats=available,
        overall_capacity_status=capacity_status(available, total_capacity),
    )


def summarize_day(
    day: dt.date,
    entries: list[tuple[SlotRecord, list[VehicleAssignmentRecord]]],
    family_id: UUID,
) -> DayTransportSummary:
    """Bucket one day's slots by HH:MM and total them."""
    by_time: dict[str, list] = {}
    for slot, assignments in entries:
        time_key = slot.datetime.strftime("%H:%M")
        by_time.setdefault(time_key, []).append((slot, assignments))

    transports = [
        summarize_transport(time_key, time_entries, family_id)
        for time_key, time_entries in sorted(by_time.items())
    ]

    vehicle_ids = {
        vehicle.vehicle_id
        for transport in transports
        for vehicle in transport.vehicle_assignment_summaries
    }

    return DayTransportSummary(
        date=day,
        transports=transports,
        total_children_in_vehicles=sum(t.total_children_assigned for t in transports),
        total_vehicles_with_assignments=len(vehicle_ids),
        has_scheduled_transports=bool(transports),
    )


def weekly_dashboard(
    session: Session,
    person_id: UUID,
    week_start: Optional[WeekAnchor] = None,
    clock: Optional[Clock] = None,
) -> DashboardResult:
    """
    Build the weekly dashboard for a person's family.

    Args:
        session: Database session
        person_id: Requesting person
        week_start: Any instant or date in the wanted week (default: now)
        clock: Source of "now" (default: system clock)

    Returns:
        DashboardSuccess with exactly 7 days, or
        DashboardFailure(error_code="NO_FAMILY") when the person has no family

    Raises:
        InvalidDatetimeError: If week_start cannot be parsed
    """
    clock = clock or SystemClock()

    family = resolve_family(session, person_id)
    if family is None:
        return DashboardFailure(
            error=f"Person {person_id} does not belong to a family",
            error_code="NO_FAMILY",
        )

    family_id = family.family_id
    start, end = week_bounds(week_start if week_start is not None else clock.now())

    slots = get_visible_slots(session, family_id, start, end)

    driver_families = family_ids_for_persons(
        session,
        {va.driver_id for slot in slots for va in slot.vehicle_assignments if va.driver_id is not None},
    )

    by_day = defaultdict(list)
    for slot in slots:
        visible = [
            va for va in slot.vehicle_assignments
            if is_vehicle_visible(va, family_id, driver_families)
        ]
        by_day[slot.datetime.date()].append((slot, visible))

    days = []
    for offset in range(DAYS_IN_WEEK):
        day = start.date() + dt.timedelta(days=offset)
        days.append(summarize_day(day, by_day.get(day, []), family_id))

    visible_children = {
        child.child_id
        for day in days
        for transport in day.transports
        for vehicle in transport.vehicle_assignment_summaries
        for child in vehicle.children
    }

    metadata = DashboardMetadata(
        family_id=family_id,
        family_name=family.family_name,
        total_groups=len({slot.group_id for slot in slots}),
        total_children=len(visible_children),
    )

    logger.info(
        f"Built weekly dashboard for family {family_id} "
        f"({start.date().isoformat()}..{end.date().isoformat()}): {len(slots)} visible slots"
    )

    return DashboardSuccess(
        data=WeeklyDashboard(
            days=days,
            start_date=start.date(),
            end_date=end.date(),
            generated_at=clock.now(),
            metadata=metadata,
        )
    )
