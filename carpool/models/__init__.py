"""
SQLAlchemy models for the carpool scheduling core.

This module exports all database models for easy importing and
ensures Alembic can discover them for migrations.
"""

# Import base classes
from carpool.models.base import Base, BaseModel, GUID, UTCDateTime

# Import all models (must be imported for Alembic autogenerate)
from carpool.models.family import Person, Family, FamilyMembership, Child
from carpool.models.groups import Group, GroupFamilyMember
from carpool.models.resources import Vehicle
from carpool.models.schedule import ScheduleSlot, VehicleAssignment, ChildAssignment

__all__ = [
    # Base classes
    "Base",
    "BaseModel",
    "GUID",
    "UTCDateTime",
    # Family models
    "Person",
    "Family",
    "FamilyMembership",
    "Child",
    # Group models
    "Group",
    "GroupFamilyMember",
    # Vehicle model
    "Vehicle",
    # Schedule models
    "ScheduleSlot",
    "VehicleAssignment",
    "ChildAssignment",
]
