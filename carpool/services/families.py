"""
Family resolution for persons.

Read-only lookups against family_memberships. The scheduling core treats
these as its identity seam: it never writes memberships.
"""

from dataclasses import dataclass
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from carpool.exceptions import NoFamilyError
from carpool.models.family import FamilyMembership


@dataclass(frozen=True)
class ResolvedFamily:
    """A person's family and their role in it."""

    family_id: UUID
    family_name: str
    role: str


def resolve_family(session: Session, person_id: UUID) -> Optional[ResolvedFamily]:
    """
    Resolve the family a person belongs to.

    Args:
        session: Database session
        person_id: Person to resolve

    Returns:
        ResolvedFamily, or None if the person has no membership
    """
    stmt = (
        select(FamilyMembership)
        .where(FamilyMembership.person_id == person_id)
        .options(joinedload(FamilyMembership.family))
    )
    membership = session.scalars(stmt).first()

    if membership is None:
        return None

    return ResolvedFamily(
        family_id=membership.family_id,
        family_name=membership.family.name,
        role=membership.role,
    )


def require_family(session: Session, person_id: UUID) -> ResolvedFamily:
    """
    Resolve a person's family, failing closed.

    Raises:
        NoFamilyError: If the person belongs to no family
    """
    family = resolve_family(session, person_id)
    if family is None:
        raise NoFamilyError(f"Person {person_id} does not belong to a family")
    return family


def family_ids_for_persons(session: Session, person_ids: Iterable[UUID]) -> dict[UUID, UUID]:
    """
    Map persons to their family ids in a single query.

    Persons without a membership are absent from the result.
    """
    ids = {pid for pid in person_ids if pid is not None}
    if not ids:
        return {}

    stmt = select(FamilyMembership.person_id, FamilyMembership.family_id).where(
        FamilyMembership.person_id.in_(ids)
    )

    return {person_id: family_id for person_id, family_id in session.execute(stmt).all()}
