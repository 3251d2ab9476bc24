"""
Vehicle model.

Entities:
- Vehicle: A family-owned car with a nominal seat capacity
"""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import String, Integer, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from carpool.models.base import BaseModel

# Avoid circular imports for type hints
if TYPE_CHECKING:
    from carpool.models.family import Family
    from carpool.models.schedule import VehicleAssignment


class Vehicle(BaseModel):
    """
    A vehicle that can be assigned to schedule slots.

    Capacity is the nominal number of child seats; a vehicle assignment may
    override it for a single slot.
    """

    __tablename__ = "vehicles"

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        doc="Vehicle name (e.g., 'Blue Minivan')"
    )

    capacity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        doc="Nominal seat capacity (>= 1)"
    )

    family_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("families.id", ondelete="CASCADE"),
        nullable=False,
        doc="Owning family"
    )

    family: Mapped["Family"] = relationship(
        "Family",
        back_populates="vehicles"
    )

    assignments: Mapped[list["VehicleAssignment"]] = relationship(
        "VehicleAssignment",
        back_populates="vehicle",
        passive_deletes=True,
        doc="Slot assignments of this vehicle"
    )

    __table_args__ = (
        CheckConstraint("capacity >= 1", name="ck_vehicle_capacity_positive"),
        Index("idx_vehicle_family", "family_id"),
    )

    def __repr__(self) -> str:
        return f"<Vehicle(name='{self.name}', capacity={self.capacity})>"
