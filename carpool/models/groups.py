"""
Group models.

Entities:
- Group: A carpool group owned by one family
- GroupFamilyMember: An invited family participating in a group
"""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import String, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from carpool.models.base import BaseModel

# Avoid circular imports for type hints
if TYPE_CHECKING:
    from carpool.models.family import Family
    from carpool.models.schedule import ScheduleSlot


class Group(BaseModel):
    """A carpool group; owns its schedule slots."""

    __tablename__ = "groups"

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        doc="Group name (used as the morning destination label)"
    )

    family_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("families.id", ondelete="CASCADE"),
        nullable=False,
        doc="Owning family"
    )

    owner_family: Mapped["Family"] = relationship(
        "Family",
        back_populates="owned_groups"
    )

    member_families: Mapped[list["GroupFamilyMember"]] = relationship(
        "GroupFamilyMember",
        back_populates="group",
        passive_deletes=True,
        doc="Families invited into this group"
    )

    schedule_slots: Mapped[list["ScheduleSlot"]] = relationship(
        "ScheduleSlot",
        back_populates="group",
        passive_deletes=True,
        doc="Schedule slots of this group"
    )

    __table_args__ = (
        Index("idx_group_family", "family_id"),
    )

    def __repr__(self) -> str:
        return f"<Group(name='{self.name}')>"


class GroupFamilyMember(BaseModel):
    """A family participating in a group it does not own."""

    __tablename__ = "group_family_members"

    group_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False
    )

    family_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("families.id", ondelete="CASCADE"),
        nullable=False
    )

    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="MEMBER",
        doc="Role of the family in the group: 'ADMIN' or 'MEMBER'"
    )

    group: Mapped["Group"] = relationship(
        "Group",
        back_populates="member_families"
    )

    family: Mapped["Family"] = relationship("Family")

    __table_args__ = (
        UniqueConstraint("group_id", "family_id", name="uq_group_family_member"),
        Index("idx_group_member_family", "family_id"),
    )

    def __repr__(self) -> str:
        return f"<GroupFamilyMember(group_id={self.group_id}, family_id={self.family_id})>"
