import threading
import time


class MeasuredRate:
    """
    Counts events per fixed interval.

    ``get_count()`` reports the last completed interval while
    ``get_current_count()`` reports the one in progress.
    """

    __slots__ = (
        "_interval",
        "_last_bucket",
        "_current_bucket",
        "_threshold",
        "_lock",
    )

    def __init__(self, interval_seconds: float) -> None:
        self._interval = interval_seconds
        self._last_bucket = 0
        self._current_bucket = 0
        self._threshold = time.monotonic() + interval_seconds
        self._lock = threading.Lock()

    def increment(self, current_time: float | None = None):
        with self._lock:
            self._check_and_reset(current_time)
            self._current_bucket += 1

    def get_count(self, current_time: float | None = None) -> int:
        with self._lock:
            self._check_and_reset(current_time)
            return self._last_bucket

    def get_current_count(self, current_time: float | None = None) -> int:
        with self._lock:
            self._check_and_reset(current_time)
            return self._current_bucket

    def _check_and_reset(self, current_time: float | None):
        now = current_time if current_time is not None else time.monotonic()
        if now <= self._threshold:
            return

        # More than one full interval elapsed, so the last one saw nothing.
        if now > self._threshold + self._interval:
            self._last_bucket = 0

        else:
            self._last_bucket = self._current_bucket

        self._current_bucket = 0
        self._threshold = now + self._interval
