"""
Scheduling conflict detection.

Before a person (or their family) is committed to a group departure,
the calling workflow asks whether that family is already involved in
the group's slots at the same instant: as driver, as vehicle owner, or
through one of its children.

Detection is read-only. Missing reference data (no family membership, a
vehicle or child deleted concurrently) never raises; it only means no
conflict can be derived from that reference.
"""

import datetime as dt
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from carpool.exceptions import SchedulingConflictError
from carpool.services.families import resolve_family
from carpool.services.queries import get_slots_at
from carpool.services.slot_store import DatetimeInput, parse_datetime

logger = logging.getLogger(__name__)


class ConflictType(str, Enum):
    """Ways a family can already be committed to a slot."""

    ALREADY_DRIVING = "already_driving"
    FAMILY_VEHICLE_COMMITTED = "family_vehicle_committed"
    FAMILY_CHILD_COMMITTED = "family_child_committed"


@dataclass(frozen=True)
class SchedulingConflict:
    """An existing commitment found at the target group and instant."""

    conflict_type: ConflictType
    schedule_slot_id: UUID
    datetime: dt.datetime
    message: str
    vehicle_id: Optional[UUID] = None
    child_id: Optional[UUID] = None


def detect_conflicts(
    session: Session,
    person_id: UUID,
    group_id: UUID,
    datetime: DatetimeInput,
) -> list[SchedulingConflict]:
    """
    Find every commitment of a person's family at a group and instant.

    For each slot of the group at exactly that instant:
    - every vehicle driven by the person is reported
    - every vehicle owned by the person's family is reported,
      whoever drives it
    - every child of the person's family riding in the slot is reported

    Args:
        session: Database session
        person_id: Person about to be assigned
        group_id: Target group
        datetime: Target instant (aware datetime or ISO 8601 string)

    Returns:
        All conflicts, possibly several per slot; empty when none

    Raises:
        InvalidDatetimeError: If the datetime cannot be parsed
    """
    instant = parse_datetime(datetime)

    family = resolve_family(session, person_id)
    family_id = family.family_id if family else None
    if family_id is None:
        logger.warning(
            f"Person {person_id} has no family membership; only driver conflicts are checked"
        )

    conflicts: list[SchedulingConflict] = []

    for slot in get_slots_at(session, group_id, instant):
        for assignment in slot.vehicle_assignments:
            if assignment.driver_id == person_id:
                conflicts.append(
                    SchedulingConflict(
                        conflict_type=ConflictType.ALREADY_DRIVING,
                        schedule_slot_id=slot.id,
                        datetime=slot.datetime,
                        message=f"Already driving vehicle {assignment.vehicle_id} at {instant.isoformat()}",
                        vehicle_id=assignment.vehicle_id,
                    )
                )

            if family_id is None:
                continue

            vehicle = assignment.vehicle
            if vehicle is None:
                logger.warning(
                    f"Vehicle {assignment.vehicle_id} of slot {slot.id} not found; skipping ownership check"
                )
                continue

            if vehicle.family_id == family_id:
                conflicts.append(
                    SchedulingConflict(
                        conflict_type=ConflictType.FAMILY_VEHICLE_COMMITTED,
                        schedule_slot_id=slot.id,
                        datetime=slot.datetime,
                        message=f"Family vehicle '{vehicle.name}' is already committed at {instant.isoformat()}",
                        vehicle_id=vehicle.id,
                    )
                )

        if family_id is None:
            continue

        for child_assignment in slot.child_assignments:
            child = child_assignment.child
            if child is None:
                logger.warning(
                    f"Child {child_assignment.child_id} of slot {slot.id} not found; skipping ownership check"
                )
                continue

            if child.family_id == family_id:
                conflicts.append(
                    SchedulingConflict(
                        conflict_type=ConflictType.FAMILY_CHILD_COMMITTED,
                        schedule_slot_id=slot.id,
                        datetime=slot.datetime,
                        message=f"Family child '{child.name}' is already committed at {instant.isoformat()}",
                        child_id=child.id,
                    )
                )

    return conflicts


def ensure_no_conflicts(
    session: Session,
    person_id: UUID,
    group_id: UUID,
    datetime: DatetimeInput,
) -> None:
    """
    Gate an assignment on conflict detection.

    Raises:
        SchedulingConflictError: Carrying every detected conflict
    """
    conflicts = detect_conflicts(session, person_id, group_id, datetime)
    if conflicts:
        raise SchedulingConflictError(
            f"{len(conflicts)} scheduling conflict(s) for person {person_id} in group {group_id}",
            conflicts=conflicts,
        )
