"""
Integration tests for concurrent vehicle assignment.

Two writers race to put the same vehicle into the same group at the same
minute. Serializable assignment lets exactly one of them win.
"""

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from carpool.exceptions import (
    DuplicateAssignmentError,
    TransientStoreError,
    VehicleDoubleBookedError,
)
from carpool.models.schedule import VehicleAssignment
from carpool.services.retry import retry_on_transient

ROUNDS = 5


def successes(outcomes):
    return [result for result, error in outcomes if error is None]


def failures(outcomes):
    return [error for result, error in outcomes if error is not None]


def vehicle_assignment_count(db_session, vehicle_id):
    return db_session.scalar(
        select(func.count()).select_from(VehicleAssignment).where(VehicleAssignment.vehicle_id == vehicle_id)
    )


@pytest.mark.integration
class TestConcurrentDoubleBooking:
    """Concurrent assignment of one vehicle to two slots in the same minute."""

    def test_exactly_one_assignment_wins(self, store, world, slot_time, db_session, run_concurrently):
        for round_number in range(ROUNDS):
            instant = slot_time + timedelta(days=round_number)
            first = store.create_slot(world.school.id, instant, world.van.id)
            second = store.create_slot(world.school.id, instant + timedelta(seconds=30), world.sedan.id)

            outcomes = run_concurrently(
                lambda: store.assign_vehicle(first.id, world.suv.id),
                lambda: store.assign_vehicle(second.id, world.suv.id),
            )

            assert len(successes(outcomes)) == 1
            for error in failures(outcomes):
                assert isinstance(error, (VehicleDoubleBookedError, TransientStoreError))

        assert vehicle_assignment_count(db_session, world.suv.id) == ROUNDS

    def test_retried_writers_still_exclude_each_other(
        self, store, world, slot_time, db_session, run_concurrently
    ):
        """Retrying transient failures ends in a business error, never a second booking."""
        assign = retry_on_transient(attempts=3, min_wait=0, max_wait=0)(store.assign_vehicle)
        first = store.create_slot(world.school.id, slot_time, world.van.id)
        second = store.create_slot(world.school.id, slot_time + timedelta(seconds=45), world.sedan.id)

        outcomes = run_concurrently(
            lambda: assign(first.id, world.suv.id),
            lambda: assign(second.id, world.suv.id),
        )

        assert len(successes(outcomes)) == 1
        assert all(isinstance(error, VehicleDoubleBookedError) for error in failures(outcomes))
        assert vehicle_assignment_count(db_session, world.suv.id) == 1

    def test_different_groups_do_not_conflict(self, store, world, slot_time, db_session, run_concurrently):
        first = store.create_slot(world.school.id, slot_time, world.van.id)
        second = store.create_slot(world.soccer.id, slot_time, world.sedan.id)

        outcomes = run_concurrently(
            lambda: store.assign_vehicle(first.id, world.suv.id),
            lambda: store.assign_vehicle(second.id, world.suv.id),
        )

        assert len(successes(outcomes)) == 2
        assert vehicle_assignment_count(db_session, world.suv.id) == 2


@pytest.mark.integration
class TestConcurrentDuplicateAssignment:
    """Concurrent assignment of one vehicle to the same slot."""

    def test_one_duplicate_is_rejected(self, store, world, slot_time, db_session, run_concurrently):
        slot = store.create_slot(world.school.id, slot_time, world.van.id)

        outcomes = run_concurrently(
            lambda: store.assign_vehicle(slot.id, world.suv.id),
            lambda: store.assign_vehicle(slot.id, world.suv.id),
        )

        assert len(successes(outcomes)) == 1
        for error in failures(outcomes):
            assert isinstance(error, (DuplicateAssignmentError, TransientStoreError))
        assert vehicle_assignment_count(db_session, world.suv.id) == 1
