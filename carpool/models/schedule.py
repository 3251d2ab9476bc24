"""
Schedule slot and assignment models.

Entities:
- ScheduleSlot: A (group, instant) unit that carries at least one vehicle
- VehicleAssignment: A vehicle, optional driver and optional seat override in a slot
- ChildAssignment: A child riding in one vehicle assignment of a slot

Lifecycle is managed by SlotStore; no other component writes these tables.
"""

import uuid
import datetime as dt
from typing import Optional, TYPE_CHECKING

from sqlalchemy import Integer, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from carpool.models.base import BaseModel, UTCDateTime

# Avoid circular imports for type hints
if TYPE_CHECKING:
    from carpool.models.family import Child, Person
    from carpool.models.groups import Group
    from carpool.models.resources import Vehicle


class ScheduleSlot(BaseModel):
    """
    A scheduled departure of a group.

    Invariants:
    - unique per (group_id, datetime)
    - never exists without a vehicle assignment
    """

    __tablename__ = "schedule_slots"

    group_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        doc="Group the slot belongs to"
    )

    datetime: Mapped[dt.datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        doc="Departure instant (UTC)"
    )

    group: Mapped["Group"] = relationship(
        "Group",
        back_populates="schedule_slots"
    )

    vehicle_assignments: Mapped[list["VehicleAssignment"]] = relationship(
        "VehicleAssignment",
        back_populates="schedule_slot",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="VehicleAssignment.created_at",
    )

    child_assignments: Mapped[list["ChildAssignment"]] = relationship(
        "ChildAssignment",
        back_populates="schedule_slot",
        cascade="all",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("group_id", "datetime", name="uq_schedule_slot_group_datetime"),
        Index("idx_schedule_slot_datetime", "datetime"),
    )

    def __repr__(self) -> str:
        return f"<ScheduleSlot(group_id={self.group_id}, datetime={self.datetime})>"


class VehicleAssignment(BaseModel):
    """A vehicle attached to a schedule slot."""

    __tablename__ = "schedule_slot_vehicles"

    schedule_slot_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("schedule_slots.id", ondelete="CASCADE"),
        nullable=False
    )

    vehicle_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("vehicles.id", ondelete="CASCADE"),
        nullable=False
    )

    driver_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("persons.id", ondelete="SET NULL"),
        nullable=True,
        doc="Driving person (NULL when not yet decided)"
    )

    seat_override: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        doc="Seats available for this slot, overriding the vehicle capacity"
    )

    schedule_slot: Mapped["ScheduleSlot"] = relationship(
        "ScheduleSlot",
        back_populates="vehicle_assignments"
    )

    vehicle: Mapped["Vehicle"] = relationship(
        "Vehicle",
        back_populates="assignments"
    )

    driver: Mapped[Optional["Person"]] = relationship("Person")

    children: Mapped[list["ChildAssignment"]] = relationship(
        "ChildAssignment",
        back_populates="vehicle_assignment",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("schedule_slot_id", "vehicle_id", name="uq_slot_vehicle"),
        Index("idx_slot_vehicle_vehicle", "vehicle_id"),
        Index("idx_slot_vehicle_driver", "driver_id"),
    )

    def __repr__(self) -> str:
        return f"<VehicleAssignment(slot_id={self.schedule_slot_id}, vehicle_id={self.vehicle_id})>"


class ChildAssignment(BaseModel):
    """A child riding in a vehicle assignment of the same slot."""

    __tablename__ = "schedule_slot_children"

    schedule_slot_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("schedule_slots.id", ondelete="CASCADE"),
        nullable=False
    )

    vehicle_assignment_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("schedule_slot_vehicles.id", ondelete="CASCADE"),
        nullable=False
    )

    child_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("children.id", ondelete="CASCADE"),
        nullable=False
    )

    schedule_slot: Mapped["ScheduleSlot"] = relationship(
        "ScheduleSlot",
        back_populates="child_assignments",
    )

    vehicle_assignment: Mapped["VehicleAssignment"] = relationship(
        "VehicleAssignment",
        back_populates="children",
    )

    child: Mapped["Child"] = relationship("Child")

    __table_args__ = (
        UniqueConstraint("schedule_slot_id", "child_id", name="uq_slot_child"),
        Index("idx_slot_child_vehicle_assignment", "vehicle_assignment_id"),
        Index("idx_slot_child_child", "child_id"),
    )

    def __repr__(self) -> str:
        return f"<ChildAssignment(slot_id={self.schedule_slot_id}, child_id={self.child_id})>"
