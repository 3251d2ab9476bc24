"""
Capacity classification for vehicles and transports.

Maps (available seats, total seats) to one of four statuses. Thresholds
are fixed business constants; every comparison is inclusive (<=).
"""

from enum import Enum
from typing import Optional

FULL_THRESHOLD = 0.10
LIMITED_THRESHOLD = 0.30


class CapacityStatus(str, Enum):
    """Remaining-seat classification."""

    OVERCAPACITY = "overcapacity"
    FULL = "full"
    LIMITED = "limited"
    AVAILABLE = "available"


def capacity_status(available: int, total: int) -> CapacityStatus:
    """
    Classify remaining capacity.

    A total of zero is treated as fully consumed. Zero available seats is
    overcapacity, not full: the `ratio <= 0` branch wins.

    Args:
        available: Remaining seats (negative when overbooked)
        total: Total seats

    Returns:
        CapacityStatus for the pair

    Example:
        >>> capacity_status(3, 10)
        <CapacityStatus.LIMITED: 'limited'>
    """
    if total == 0:
        return CapacityStatus.FULL

    ratio = available / total

    if ratio <= 0:
        return CapacityStatus.OVERCAPACITY
    if ratio <= FULL_THRESHOLD:
        return CapacityStatus.FULL
    if ratio <= LIMITED_THRESHOLD:
        return CapacityStatus.LIMITED
    return CapacityStatus.AVAILABLE


def effective_capacity(vehicle_capacity: int, seat_override: Optional[int]) -> int:
    """Seats usable in a slot: the override when set (including 0), else the vehicle capacity."""
    if seat_override is not None:
        return seat_override
    return vehicle_capacity
