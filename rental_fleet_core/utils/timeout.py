"""
Time budgets for store reads and writes.

Pool checkout timeouts and statements cancelled by the server are turned into
OperationTimeoutError. The Deadline a block yields is checked by
SessionManagedService.transaction() right before commit: work that ran past
its budget is rolled back, and work that has committed is never reported as
timed out.
"""

import time
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from ..config import get_config
from ..exceptions import OperationTimeoutError
from .logger import get_logger

# Postgres query_canceled
_CANCELLED_SQLSTATE = "57014"

_CANCELLED_MARKERS = (
    "canceling statement due to statement timeout",
    "statement timeout",
    "database is locked",
    "interrupted",
)


def timeout_for(kind: str) -> float:
    """Configured budget for a store operation kind (query, insert, update, delete)."""
    timeouts = get_config().timeouts
    return getattr(timeouts, kind, timeouts.default)


def is_cancelled_statement(error: OperationalError) -> bool:
    """True when the driver reports the statement was cancelled or timed out."""
    orig = getattr(error, "orig", None)
    if getattr(orig, "pgcode", None) == _CANCELLED_SQLSTATE:
        return True
    text = str(orig if orig is not None else error).lower()
    return any(marker in text for marker in _CANCELLED_MARKERS)


class Deadline:
    """Budget shared by the steps of one unit of work."""

    def __init__(self, operation: str, seconds: Optional[float] = None):
        self.operation = operation
        self.seconds = seconds if seconds is not None else get_config().timeouts.default
        self._started = time.monotonic()

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self._started

    @property
    def remaining(self) -> float:
        return max(0.0, self.seconds - self.elapsed)

    @property
    def expired(self) -> bool:
        return self.elapsed > self.seconds

    def check(self) -> None:
        """Raise OperationTimeoutError once the budget is spent."""
        if self.expired:
            get_logger().warning(
                f"Deadline exceeded for {self.operation}",
                extra={"operation": self.operation, "timeout_seconds": self.seconds},
            )
            raise OperationTimeoutError(self.operation, self.seconds)


@contextmanager
def store_timeout(operation: str, seconds: Optional[float] = None) -> Generator[Deadline, None, None]:
    """
    Bound a block of store work.

    Args:
        operation: Name reported on timeout
        seconds: Budget in seconds (default: config.timeouts.default)

    Yields:
        The Deadline tracking this block

    Raises:
        OperationTimeoutError: If the store timed out
    """
    deadline = Deadline(operation, seconds)
    try:
        yield deadline
    except PoolTimeoutError as e:
        raise OperationTimeoutError(operation, deadline.seconds, cause=e) from e
    except OperationalError as e:
        if is_cancelled_statement(e):
            raise OperationTimeoutError(operation, deadline.seconds, cause=e) from e
        raise
