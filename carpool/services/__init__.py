"""
Service layer for the carpool scheduling core.

Provides:
- Capacity classification
- Slot store (the only writer of slots and assignments)
- Conflict detection for family commitments
- Weekly dashboard aggregation with family-scoped visibility
- Caller-side retry for transient store failures
"""

from carpool.services.capacity import (
    CapacityStatus,
    capacity_status,
    effective_capacity,
)

from carpool.services.queries import (
    ChildRecord,
    ChildAssignmentRecord,
    VehicleAssignmentRecord,
    SlotRecord,
    get_visible_slots,
)

from carpool.services.families import (
    ResolvedFamily,
    resolve_family,
    require_family,
    family_ids_for_persons,
)

from carpool.services.slot_store import (
    SlotStore,
    SlotUpdate,
    VehicleRemoval,
    parse_datetime,
)

from carpool.services.conflicts import (
    ConflictType,
    SchedulingConflict,
    detect_conflicts,
    ensure_no_conflicts,
)

from carpool.services.schemas import (
    DashboardFailure,
    DashboardResult,
    DashboardSuccess,
    WeeklyDashboard,
)

from carpool.services.dashboard import (
    week_bounds,
    weekly_dashboard,
)

from carpool.services.retry import retry_on_transient

__all__ = [
    # Capacity
    "CapacityStatus",
    "capacity_status",
    "effective_capacity",
    # Records
    "ChildRecord",
    "ChildAssignmentRecord",
    "VehicleAssignmentRecord",
    "SlotRecord",
    "get_visible_slots",
    # Families
    "ResolvedFamily",
    "resolve_family",
    "require_family",
    "family_ids_for_persons",
    # Slot store
    "SlotStore",
    "SlotUpdate",
    "VehicleRemoval",
    "parse_datetime",
    # Conflicts
    "ConflictType",
    "SchedulingConflict",
    "detect_conflicts",
    "ensure_no_conflicts",
    # Dashboard
    "DashboardFailure",
    "DashboardResult",
    "DashboardSuccess",
    "WeeklyDashboard",
    "week_bounds",
    "weekly_dashboard",
    # Retry
    "retry_on_transient",
]
