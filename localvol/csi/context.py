"""Per-call deadline and cancellation."""

import threading
import time
from typing import Optional

from localvol.exceptions import DeadlineExceeded, OperationCancelled


class CallContext:
    """Deadline and cancellation signal of one provisioning call.

    ``timeout`` is relative, in seconds; ``None`` means no deadline.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.deadline = time.monotonic() + timeout if timeout is not None else None
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``, capped by the deadline.

        Returns False when the call was cancelled or the deadline passed.
        """
        remaining = self.remaining()
        if remaining is not None:
            seconds = min(seconds, remaining)
        if self._cancelled.wait(max(0.0, seconds)):
            return False
        return not self.expired

    def check(self, operation: str) -> None:
        """Raise OperationCancelled, or DeadlineExceeded past the deadline."""
        if self.cancelled:
            raise OperationCancelled(operation=operation, details="cancelled by caller")
        if self.expired:
            raise DeadlineExceeded(operation=operation, details="deadline exceeded")
