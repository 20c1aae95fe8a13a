"""Cancellation signal combining a caller event with an optional timeout."""
import time


class CancelToken:
    """Looks like a threading.Event to code that only polls ``is_set()``."""

    def __init__(self, event=None, timeout=None, clock=time.monotonic):
        self.event = event
        self._clock = clock
        self.deadline = None if timeout is None else clock() + timeout

    def is_set(self):
        if self.event is not None and self.event.is_set():
            return True
        return self.deadline is not None and self._clock() >= self.deadline


def cancel_token(cancel=None, timeout=None):
    """None when there is nothing to watch, else a CancelToken."""
    if cancel is None and timeout is None:
        return None
    return CancelToken(cancel, timeout)
