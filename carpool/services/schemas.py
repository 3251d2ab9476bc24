"""
Pydantic result models for the weekly dashboard.

The dashboard returns a tagged value: DashboardSuccess with the seven-day
structure, or DashboardFailure for business failures such as a person
without a family.
"""

import datetime as dt
from typing import Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from carpool.services.capacity import CapacityStatus


# =============================================================================
# Vehicle-level summaries
# =============================================================================


class DriverSummary(BaseModel):
    """Driver of a vehicle assignment."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    name: str


class ChildSummary(BaseModel):
    """Child riding in a vehicle, as visible to the requesting family."""

    model_config = ConfigDict(frozen=True)

    child_id: UUID
    child_name: str
    child_family_id: UUID
    is_family_child: bool = Field(..., description="Child belongs to the requesting family")


class VehicleAssignmentSummary(BaseModel):
    """Capacity picture of one vehicle in a transport."""

    model_config = ConfigDict(frozen=True)

    vehicle_assignment_id: UUID
    vehicle_id: UUID
    vehicle_name: str
    vehicle_capacity: int = Field(..., description="Effective seats (override or nominal capacity)")
    seat_override: Optional[int] = None
    assigned_children_count: int = Field(..., ge=0)
    available_seats: int = Field(..., description="May be negative when overbooked")
    capacity_status: CapacityStatus
    vehicle_family_id: UUID
    is_family_vehicle: bool
    driver: Optional[DriverSummary] = None
    children: list[ChildSummary] = Field(default_factory=list)


# =============================================================================
# Transport and day summaries
# =============================================================================


class TransportSlotSummary(BaseModel):
    """All visible vehicles departing at one clock time on one day."""

    model_config = ConfigDict(frozen=True)

    time: str = Field(..., description="UTC clock time, HH:MM")
    datetime: dt.datetime
    trip_type: Literal["pickup", "dropoff"]
    destination: str
    group_id: UUID
    group_name: str
    schedule_slot_id: UUID = Field(..., description="First slot merged into this transport")
    schedule_slot_ids: list[UUID] = Field(default_factory=list, description="Every slot merged into this transport")
    vehicle_assignment_summaries: list[VehicleAssignmentSummary] = Field(default_factory=list)
    total_children_assigned: int
    total_capacity: int
    available_seats: int
    overall_capacity_status: CapacityStatus


class DayTransportSummary(BaseModel):
    """One calendar day (UTC) of the dashboard week."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    transports: list[TransportSlotSummary] = Field(default_factory=list)
    total_children_in_vehicles: int = 0
    total_vehicles_with_assignments: int = 0
    has_scheduled_transports: bool = False


# =============================================================================
# Dashboard results
# =============================================================================


class DashboardMetadata(BaseModel):
    """Family context and counts for a dashboard week."""

    model_config = ConfigDict(frozen=True)

    family_id: UUID
    family_name: str
    total_groups: int = Field(..., description="Distinct groups with visible slots this week")
    total_children: int = Field(..., description="Distinct visible children assigned this week")


class WeeklyDashboard(BaseModel):
    """Seven day buckets, Monday through Sunday."""

    model_config = ConfigDict(frozen=True)

    days: list[DayTransportSummary] = Field(..., min_length=7, max_length=7)
    start_date: dt.date
    end_date: dt.date
    generated_at: dt.datetime
    metadata: DashboardMetadata


class DashboardSuccess(BaseModel):
    """Successful dashboard computation."""

    success: Literal[True] = True
    data: WeeklyDashboard


class DashboardFailure(BaseModel):
    """Dashboard could not be computed for a business reason."""

    success: Literal[False] = False
    error: str
    error_code: Literal["NO_FAMILY"]


DashboardResult = Union[DashboardSuccess, DashboardFailure]
