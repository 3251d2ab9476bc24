"""
Exceptions raised by the scheduling core.

Every failure carries a `retryable` flag so callers can retry transient
store failures without ever retrying business-rule violations.
"""

from typing import Any, Optional


class CarpoolError(Exception):
    """Base exception for scheduling operations."""

    retryable: bool = False

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


# =============================================================================
# Validation failures (caller error)
# =============================================================================


class ValidationFailure(CarpoolError):
    """The request itself is invalid; never retried."""


class DuplicateSlotError(ValidationFailure):
    """A schedule slot already exists for this group and datetime."""


class DuplicateAssignmentError(ValidationFailure):
    """The vehicle is already assigned to this schedule slot."""


class DuplicateChildAssignmentError(ValidationFailure):
    """The child already rides in a vehicle of this schedule slot."""


class PastDatetimeError(ValidationFailure):
    """A slot cannot be created at or before the current instant."""


class PastModificationError(ValidationFailure):
    """A slot in the past cannot be modified or moved into the past."""


class InvalidDatetimeError(ValidationFailure):
    """Datetime value could not be parsed."""


class InvalidSeatOverrideError(ValidationFailure):
    """Seat override is outside the accepted range."""


# =============================================================================
# Not-found failures
# =============================================================================


class NotFoundFailure(CarpoolError):
    """A referenced entity does not exist."""


class SlotNotFoundError(NotFoundFailure):
    """Schedule slot not found."""


class VehicleNotFoundError(NotFoundFailure):
    """Vehicle not found."""


class DriverNotFoundError(NotFoundFailure):
    """Driver (person) not found."""


class GroupNotFoundError(NotFoundFailure):
    """Group not found."""


class ChildNotFoundError(NotFoundFailure):
    """Child not found."""


class VehicleAssignmentNotFoundError(NotFoundFailure):
    """Vehicle assignment not found."""


class ChildAssignmentNotFoundError(NotFoundFailure):
    """Child assignment not found."""


class NoFamilyError(NotFoundFailure):
    """
    The person does not belong to any family.

    User-facing: callers map it to an authorization-style response.
    """


# =============================================================================
# Invariant / conflict failures
# =============================================================================


class ConflictFailure(CarpoolError):
    """The write would violate a cross-row scheduling invariant."""


class VehicleDoubleBookedError(ConflictFailure):
    """The vehicle already drives another slot of the group at that time."""


class SchedulingConflictError(ConflictFailure):
    """
    The person's family is already committed at the target group and time.

    Raised by workflows that gate assignments on conflict detection.
    """

    def __init__(
        self,
        message: str,
        conflicts: Optional[list[Any]] = None,
        original_error: Exception | None = None,
    ):
        super().__init__(message, original_error=original_error)
        self.conflicts = list(conflicts or [])


# =============================================================================
# Transient failures (retryable)
# =============================================================================


class TransientStoreError(CarpoolError):
    """
    The store could not complete the transaction right now.

    Retryable after backoff; the core itself never retries.
    """

    retryable = True


class SerializationFailureError(TransientStoreError):
    """
    Concurrent transactions could not be serialized.

    Causes:
    - Serialization failure or deadlock reported by the database
    - SQLite writer lock still held by another connection
    """


class TransactionTimeoutError(TransientStoreError):
    """The transaction exceeded its statement or lock timeout."""
