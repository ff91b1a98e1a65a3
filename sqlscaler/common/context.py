import threading
import time
from typing import Optional

from sqlscaler.common.errors import ProbeCancelledError


class PollContext:
    """
    Cancellation and deadline carrier for a single poll.

    The host creates one context per poll (or per poll cycle) and may cancel it
    from another thread. Scalers check it between blocking steps and derive
    driver timeouts from the time remaining.
    """

    def __init__(self, timeout: Optional[float] = None, cancel_event: threading.Event = None):
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._cancel_event = cancel_event or threading.Event()

    @classmethod
    def background(cls) -> 'PollContext':
        """Context with no deadline, cancelled only through cancel()."""
        return cls()

    def cancel(self):
        self._cancel_event.set()

    @property
    def deadline_exceeded(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set() or self.deadline_exceeded

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None when there is none."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_done(self, step: str = None):
        if self._cancel_event.is_set():
            raise ProbeCancelledError(step=step)
        if self.deadline_exceeded:
            raise ProbeCancelledError(TimeoutError("deadline exceeded"), step=step)
