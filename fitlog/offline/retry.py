# =============================================================================
# fitlog/offline/retry.py
# Retry with exponential backoff and jitter
# =============================================================================

from __future__ import annotations
import random
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional, TypeVar
import logging

from fitlog.errors import OperationCancelledError

if TYPE_CHECKING:
    from fitlog.offline.cancellation import CancellationToken
    from fitlog.offline.connection_manager import ConnectionManager

logger = logging.getLogger(__name__)

T = TypeVar("T")

# 4xx statuses that are still worth another attempt
TRANSIENT_CLIENT_STATUSES = (408, 429)


def is_retryable_status(status: Optional[int]) -> bool:
    """False for client errors (4xx) other than 408 and 429."""
    if status is None:
        return True
    if 400 <= status < 500:
        return status in TRANSIENT_CLIENT_STATUSES
    return True


def error_status(error: BaseException) -> Optional[int]:
    """HTTP status carried by an exception, if any."""
    status = getattr(error, "status", None)
    if status is None:
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def backoff_delay_ms(attempt: int, base_delay_ms: float, jitter_ms: float = 1000) -> float:
    """base * 2**attempt plus uniform jitter in [0, jitter_ms)."""
    return base_delay_ms * (2 ** attempt) + random.uniform(0, jitter_ms)


def retry_with_backoff(
    operation: Callable[[], T],
    max_retries: int = 3,
    base_delay_ms: float = 1000,
    connection: Optional[ConnectionManager] = None,
    sleep: Callable[[float], None] = time.sleep,
    token: Optional[CancellationToken] = None,
) -> T:
    """
    Run operation, retrying transient failures.

    Stops immediately when the device is offline or the failure is a
    non-transient 4xx. No delay follows the final attempt.

    Args:
        operation: Zero-argument callable performing one attempt
        max_retries: Total number of attempts
        base_delay_ms: Delay before the second attempt, doubled each time
        connection: Consulted after each failure; offline stops retrying
        sleep: Sleep function taking seconds
        token: Cancels the remaining attempts

    Returns:
        The first successful result

    Raises:
        The last error once attempts are exhausted
    """
    last_error: Optional[BaseException] = None

    for attempt in range(max(1, max_retries)):
        if token is not None:
            token.raise_if_cancelled()
        try:
            return operation()
        except OperationCancelledError:
            raise
        except Exception as e:
            last_error = e

            if connection is not None and not connection.is_online:
                raise

            if not is_retryable_status(error_status(e)):
                raise

            if attempt < max_retries - 1:
                delay = backoff_delay_ms(attempt, base_delay_ms)
                logger.info(
                    f"Retry attempt {attempt + 1}/{max_retries} after {delay:.0f}ms: {e}"
                )
                sleep(delay / 1000)

    assert last_error is not None
    raise last_error


@dataclass(frozen=True)
class RetryPolicy:
    """Retry parameters injected into the API wrappers and the AI client."""
    max_retries: int = 3
    base_delay_ms: float = 1000
    sleep: Callable[[float], None] = time.sleep

    def run(
        self,
        operation: Callable[[], T],
        connection: Optional[ConnectionManager] = None,
        token: Optional[CancellationToken] = None,
    ) -> T:
        return retry_with_backoff(
            operation,
            max_retries=self.max_retries,
            base_delay_ms=self.base_delay_ms,
            connection=connection,
            sleep=self.sleep,
            token=token,
        )
