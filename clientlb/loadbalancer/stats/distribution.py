import math
import threading


class Distribution:
    """
    Running count, mean, variance and extremes of a stream of values.

    Values are never retained, so the distribution covers every value
    seen since the last ``clear()``.
    """

    __slots__ = (
        "_lock",
        "_num_values",
        "_sum_values",
        "_sum_squares",
        "_minimum",
        "_maximum",
    )

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._num_values = 0
        self._sum_values = 0.0
        self._sum_squares = 0.0
        self._minimum = 0.0
        self._maximum = 0.0

    def note_value(self, value: float):
        with self._lock:
            if self._num_values == 0:
                self._minimum = value
                self._maximum = value

            else:
                self._minimum = min(self._minimum, value)
                self._maximum = max(self._maximum, value)

            self._num_values += 1
            self._sum_values += value
            self._sum_squares += value * value

    def clear(self):
        with self._lock:
            self._num_values = 0
            self._sum_values = 0.0
            self._sum_squares = 0.0
            self._minimum = 0.0
            self._maximum = 0.0

    @property
    def num_values(self) -> int:
        return self._num_values

    @property
    def mean(self) -> float:
        with self._lock:
            if self._num_values < 1:
                return 0.0

            return self._sum_values / self._num_values

    @property
    def variance(self) -> float:
        with self._lock:
            if self._num_values < 2:
                return 0.0

            mean = self._sum_values / self._num_values
            # Guard against tiny negative results from float rounding.
            return max(
                0.0,
                (self._sum_squares / self._num_values) - (mean * mean),
            )

    @property
    def stddev(self) -> float:
        return math.sqrt(self.variance)

    @property
    def minimum(self) -> float:
        return self._minimum

    @property
    def maximum(self) -> float:
        return self._maximum
