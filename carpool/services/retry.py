"""
Caller-side retry for transient store failures.

The slot store never retries on its own. Workflows that want to retry
serialization failures and timeouts wrap their call with retry_on_transient;
business failures (validation, not-found, conflicts) are re-raised at once.
"""

import logging
from typing import Optional

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from carpool.config import get_settings
from carpool.exceptions import CarpoolError

logger = logging.getLogger(__name__)


def _is_retryable_error(exception: BaseException) -> bool:
    """Check if an exception should trigger a retry."""
    if isinstance(exception, CarpoolError):
        return exception.retryable
    return False


def retry_on_transient(
    attempts: Optional[int] = None,
    min_wait: float = 0.1,
    max_wait: float = 2.0,
):
    """
    Decorator retrying a call on retryable carpool errors with exponential backoff.

    Usage:
        @retry_on_transient()
        def book(slot_id, vehicle_id):
            return store.assign_vehicle(slot_id, vehicle_id)

    Args:
        attempts: Total attempts (default: settings.assignment_retry_attempts)
        min_wait: First backoff in seconds
        max_wait: Backoff ceiling in seconds

    Returns:
        tenacity retry decorator; the last error is re-raised when attempts run out
    """
    if attempts is None:
        attempts = get_settings().assignment_retry_attempts

    return retry(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=min_wait, min=min_wait, max=max_wait),
        retry=retry_if_exception(_is_retryable_error),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
