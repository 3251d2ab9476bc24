"""
Unit tests for capacity classification.

Thresholds are inclusive at every boundary; zero seats left is
overcapacity, not full.
"""

import pytest

from carpool.services.capacity import CapacityStatus, capacity_status, effective_capacity


class TestCapacityStatus:
    """Test capacity_status thresholds."""

    def test_zero_available_is_overcapacity(self):
        """A vehicle with no seats left is classified overcapacity."""
        assert capacity_status(0, 10) == CapacityStatus.OVERCAPACITY

    def test_ten_percent_is_full(self):
        assert capacity_status(1, 10) == CapacityStatus.FULL

    def test_thirty_percent_is_limited(self):
        assert capacity_status(3, 10) == CapacityStatus.LIMITED

    def test_forty_percent_is_available(self):
        assert capacity_status(4, 10) == CapacityStatus.AVAILABLE

    @pytest.mark.parametrize("available", [-3, 0, 1, 7, 100])
    def test_zero_total_is_full(self, available):
        """No capacity at all counts as fully consumed."""
        assert capacity_status(available, 0) == CapacityStatus.FULL

    def test_negative_available_is_overcapacity(self):
        """More children than seats is overcapacity."""
        assert capacity_status(-1, 4) == CapacityStatus.OVERCAPACITY

    @pytest.mark.parametrize(
        "available,total,expected",
        [
            (2, 20, CapacityStatus.FULL),  # exactly 0.10
            (3, 20, CapacityStatus.LIMITED),  # 0.15
            (6, 20, CapacityStatus.LIMITED),  # exactly 0.30
            (7, 20, CapacityStatus.AVAILABLE),  # 0.35
            (1, 3, CapacityStatus.AVAILABLE),
            (3, 4, CapacityStatus.AVAILABLE),
            (4, 4, CapacityStatus.AVAILABLE),
        ],
    )
    def test_boundaries_are_inclusive(self, available, total, expected):
        assert capacity_status(available, total) == expected

    def test_status_compares_as_string(self):
        """Statuses serialize as their lowercase names."""
        assert CapacityStatus.OVERCAPACITY == "overcapacity"
        assert CapacityStatus.LIMITED.value == "limited"


class TestEffectiveCapacity:
    """Test seat override resolution."""

    def test_no_override_uses_vehicle_capacity(self):
        assert effective_capacity(4, None) == 4

    def test_override_replaces_capacity(self):
        assert effective_capacity(4, 2) == 2

    def test_zero_override_is_honoured(self):
        """An override of 0 is a real value, not a missing one."""
        assert effective_capacity(4, 0) == 0
