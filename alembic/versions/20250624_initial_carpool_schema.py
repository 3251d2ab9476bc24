"""Initial carpool schema

Revision ID: 3f7b1c2d9a40
Revises:
Create Date: 2025-06-24

Creates the tables read and written by the scheduling core:
- persons, families, family_memberships, children
- groups, group_family_members
- vehicles
- schedule_slots, schedule_slot_vehicles, schedule_slot_children
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from carpool.models.base import GUID, UTCDateTime


# revision identifiers, used by Alembic.
revision: str = '3f7b1c2d9a40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _audit_columns() -> list:
    return [
        sa.Column('id', GUID(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table('persons',
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email')
    )
    with op.batch_alter_table('persons', schema=None) as batch_op:
        batch_op.create_index('idx_person_email', ['email'], unique=False)

    op.create_table('families',
        sa.Column('name', sa.String(length=100), nullable=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('family_memberships',
        sa.Column('family_id', GUID(), nullable=False),
        sa.Column('person_id', GUID(), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['family_id'], ['families.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['person_id'], ['persons.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('person_id')
    )
    with op.batch_alter_table('family_memberships', schema=None) as batch_op:
        batch_op.create_index('idx_family_membership_family', ['family_id'], unique=False)

    op.create_table('children',
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('family_id', GUID(), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['family_id'], ['families.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('children', schema=None) as batch_op:
        batch_op.create_index('idx_child_family', ['family_id'], unique=False)

    op.create_table('groups',
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('family_id', GUID(), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['family_id'], ['families.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('groups', schema=None) as batch_op:
        batch_op.create_index('idx_group_family', ['family_id'], unique=False)

    op.create_table('group_family_members',
        sa.Column('group_id', GUID(), nullable=False),
        sa.Column('family_id', GUID(), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['family_id'], ['families.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['group_id'], ['groups.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('group_id', 'family_id', name='uq_group_family_member')
    )
    with op.batch_alter_table('group_family_members', schema=None) as batch_op:
        batch_op.create_index('idx_group_member_family', ['family_id'], unique=False)

    op.create_table('vehicles',
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.Column('family_id', GUID(), nullable=False),
        *_audit_columns(),
        sa.CheckConstraint('capacity >= 1', name='ck_vehicle_capacity_positive'),
        sa.ForeignKeyConstraint(['family_id'], ['families.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('vehicles', schema=None) as batch_op:
        batch_op.create_index('idx_vehicle_family', ['family_id'], unique=False)

    op.create_table('schedule_slots',
        sa.Column('group_id', GUID(), nullable=False),
        sa.Column('datetime', UTCDateTime(), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['group_id'], ['groups.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('group_id', 'datetime', name='uq_schedule_slot_group_datetime')
    )
    with op.batch_alter_table('schedule_slots', schema=None) as batch_op:
        batch_op.create_index('idx_schedule_slot_datetime', ['datetime'], unique=False)

    op.create_table('schedule_slot_vehicles',
        sa.Column('schedule_slot_id', GUID(), nullable=False),
        sa.Column('vehicle_id', GUID(), nullable=False),
        sa.Column('driver_id', GUID(), nullable=True),
        sa.Column('seat_override', sa.Integer(), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['driver_id'], ['persons.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['schedule_slot_id'], ['schedule_slots.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['vehicle_id'], ['vehicles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('schedule_slot_id', 'vehicle_id', name='uq_slot_vehicle')
    )
    with op.batch_alter_table('schedule_slot_vehicles', schema=None) as batch_op:
        batch_op.create_index('idx_slot_vehicle_vehicle', ['vehicle_id'], unique=False)
        batch_op.create_index('idx_slot_vehicle_driver', ['driver_id'], unique=False)

    op.create_table('schedule_slot_children',
        sa.Column('schedule_slot_id', GUID(), nullable=False),
        sa.Column('vehicle_assignment_id', GUID(), nullable=False),
        sa.Column('child_id', GUID(), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['child_id'], ['children.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['schedule_slot_id'], ['schedule_slots.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['vehicle_assignment_id'], ['schedule_slot_vehicles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('schedule_slot_id', 'child_id', name='uq_slot_child')
    )
    with op.batch_alter_table('schedule_slot_children', schema=None) as batch_op:
        batch_op.create_index('idx_slot_child_vehicle_assignment', ['vehicle_assignment_id'], unique=False)
        batch_op.create_index('idx_slot_child_child', ['child_id'], unique=False)


def downgrade() -> None:
    with op.batch_alter_table('schedule_slot_children', schema=None) as batch_op:
        batch_op.drop_index('idx_slot_child_child')
        batch_op.drop_index('idx_slot_child_vehicle_assignment')
    op.drop_table('schedule_slot_children')

    with op.batch_alter_table('schedule_slot_vehicles', schema=None) as batch_op:
        batch_op.drop_index('idx_slot_vehicle_driver')
        batch_op.drop_index('idx_slot_vehicle_vehicle')
    op.drop_table('schedule_slot_vehicles')

    with op.batch_alter_table('schedule_slots', schema=None) as batch_op:
        batch_op.drop_index('idx_schedule_slot_datetime')
    op.drop_table('schedule_slots')

    with op.batch_alter_table('vehicles', schema=None) as batch_op:
        batch_op.drop_index('idx_vehicle_family')
    op.drop_table('vehicles')

    with op.batch_alter_table('group_family_members', schema=None) as batch_op:
        batch_op.drop_index('idx_group_member_family')
    op.drop_table('group_family_members')

    with op.batch_alter_table('groups', schema=None) as batch_op:
        batch_op.drop_index('idx_group_family')
    op.drop_table('groups')

    with op.batch_alter_table('children', schema=None) as batch_op:
        batch_op.drop_index('idx_child_family')
    op.drop_table('children')

    with op.batch_alter_table('family_memberships', schema=None) as batch_op:
        batch_op.drop_index('idx_family_membership_family')
    op.drop_table('family_memberships')

    op.drop_table('families')

    with op.batch_alter_table('persons', schema=None) as batch_op:
        batch_op.drop_index('idx_person_email')
    op.drop_table('persons')
