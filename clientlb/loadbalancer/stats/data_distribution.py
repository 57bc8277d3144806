"""
Windowed value distribution with percentiles.

Keeps the most recent ``buffer_size`` values and computes summary
statistics over them on request.
"""

import math
import threading
from collections import deque
from dataclasses import dataclass, field
from enum import Enum


class Percent(Enum):
    """Percentiles tracked for response times."""
    TEN = 10.0
    TWENTY_FIVE = 25.0
    FIFTY = 50.0
    SEVENTY_FIVE = 75.0
    NINETY = 90.0
    NINETY_FIVE = 95.0
    NINETY_EIGHT = 98.0
    NINETY_NINE = 99.0
    NINETY_NINE_POINT_FIVE = 99.5


DEFAULT_PERCENTILES: tuple[float, ...] = tuple(percent.value for percent in Percent)


@dataclass(slots=True, frozen=True)
class DataSample:
    """Summary of the values in the window when it was taken."""

    count: int = 0
    mean: float = 0.0
    stddev: float = 0.0
    minimum: float = 0.0
    maximum: float = 0.0
    percentiles: dict[float, float] = field(default_factory=dict)


class DataDistribution:
    def __init__(
        self,
        buffer_size: int = 1000,
        percentiles: tuple[float, ...] = DEFAULT_PERCENTILES,
    ) -> None:
        if buffer_size < 1:
            raise ValueError("buffer_size must be at least 1")

        self._values: deque[float] = deque(maxlen=buffer_size)
        self._percentiles = percentiles
        self._lock = threading.Lock()

    def note_value(self, value: float):
        with self._lock:
            self._values.append(value)

    def clear(self):
        with self._lock:
            self._values.clear()

    @property
    def buffer_size(self) -> int:
        return self._values.maxlen

    def get_sample(self) -> DataSample:
        with self._lock:
            values = sorted(self._values)

        count = len(values)
        if count == 0:
            return DataSample(
                percentiles={percentile: 0.0 for percentile in self._percentiles},
            )

        mean = sum(values) / count
        variance = sum((value - mean) ** 2 for value in values) / count

        return DataSample(
            count=count,
            mean=mean,
            stddev=math.sqrt(variance),
            minimum=values[0],
            maximum=values[-1],
            percentiles={
                percentile: self._compute_percentile(values, percentile)
                for percentile in self._percentiles
            },
        )

    def get_percentile(self, percentile: float) -> float:
        with self._lock:
            values = sorted(self._values)

        if not values:
            return 0.0

        return self._compute_percentile(values, percentile)

    def _compute_percentile(self, sorted_values: list[float], percentile: float) -> float:
        if len(sorted_values) == 1:
            return sorted_values[0]

        rank = (percentile / 100.0) * (len(sorted_values) - 1)
        lower = math.floor(rank)
        upper = math.ceil(rank)

        if lower == upper:
            return sorted_values[lower]

        weight = rank - lower
        return sorted_values[lower] + (sorted_values[upper] - sorted_values[lower]) * weight
