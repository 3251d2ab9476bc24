"""
Family, membership and child models.

Entities:
- Person: A user who can belong to a family and drive vehicles
- Family: A household that owns vehicles and children
- FamilyMembership: Links a person to their family (at most one per person)
- Child: A child owned by a family, assignable to schedule slots
"""

import uuid
from typing import Optional, TYPE_CHECKING

from sqlalchemy import String, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from carpool.models.base import BaseModel

# Avoid circular imports for type hints
if TYPE_CHECKING:
    from carpool.models.groups import Group
    from carpool.models.resources import Vehicle


class Person(BaseModel):
    """
    A user of the carpool application.

    A person resolves to at most one family through FamilyMembership and
    may be named as the driver of a vehicle assignment.
    """

    __tablename__ = "persons"

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        doc="Full name"
    )

    email: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        unique=True,
        doc="Email address"
    )

    membership: Mapped[Optional["FamilyMembership"]] = relationship(
        "FamilyMembership",
        back_populates="person",
        uselist=False,
        doc="Family membership of this person (if any)"
    )

    __table_args__ = (
        Index("idx_person_email", "email"),
    )

    def __repr__(self) -> str:
        return f"<Person(name='{self.name}')>"


class Family(BaseModel):
    """
    A household.

    Owns vehicles and children, owns groups, and may be invited into
    groups owned by other families.
    """

    __tablename__ = "families"

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        doc="Family display name"
    )

    memberships: Mapped[list["FamilyMembership"]] = relationship(
        "FamilyMembership",
        back_populates="family",
        passive_deletes=True,
        doc="Members of this family"
    )

    vehicles: Mapped[list["Vehicle"]] = relationship(
        "Vehicle",
        back_populates="family",
        passive_deletes=True,
        doc="Vehicles owned by this family"
    )

    children: Mapped[list["Child"]] = relationship(
        "Child",
        back_populates="family",
        passive_deletes=True,
        doc="Children of this family"
    )

    owned_groups: Mapped[list["Group"]] = relationship(
        "Group",
        back_populates="owner_family",
        doc="Groups created by this family"
    )

    def __repr__(self) -> str:
        return f"<Family(name='{self.name}')>"


class FamilyMembership(BaseModel):
    """
    Links a person to their family.

    Role is 'ADMIN' or 'MEMBER'. The scheduling core only reads this table
    to resolve a person's family.
    """

    __tablename__ = "family_memberships"

    family_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("families.id", ondelete="CASCADE"),
        nullable=False,
        doc="Family the person belongs to"
    )

    person_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("persons.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        doc="Member person (a person belongs to at most one family)"
    )

    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="MEMBER",
        doc="Membership role: 'ADMIN' or 'MEMBER'"
    )

    family: Mapped["Family"] = relationship(
        "Family",
        back_populates="memberships"
    )

    person: Mapped["Person"] = relationship(
        "Person",
        back_populates="membership"
    )

    __table_args__ = (
        Index("idx_family_membership_family", "family_id"),
    )

    def __repr__(self) -> str:
        return f"<FamilyMembership(family_id={self.family_id}, person_id={self.person_id}, role='{self.role}')>"


class Child(BaseModel):
    """A child owned by a family."""

    __tablename__ = "children"

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        doc="Child's name"
    )

    family_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("families.id", ondelete="CASCADE"),
        nullable=False,
        doc="Owning family"
    )

    family: Mapped["Family"] = relationship(
        "Family",
        back_populates="children"
    )

    __table_args__ = (
        Index("idx_child_family", "family_id"),
    )

    def __repr__(self) -> str:
        return f"<Child(name='{self.name}')>"
