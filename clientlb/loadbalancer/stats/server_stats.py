"""
Per-server runtime statistics.

Tracks request counts, active requests, connection failures and response
times for one server, and derives the circuit breaker state from the
number of successive connection failures.

Circuit breaker:
    Once successive connection failures reach ``failure_count_threshold``
    the server is blacked out for

        min(2 ** min(failures - threshold, 16) * timeout_factor, max_timeout)

    seconds, measured from the most recent connection failure.
"""

import threading
import time
from dataclasses import dataclass

from clientlb.loadbalancer.models import Server

from .data_distribution import DataDistribution, DataSample, Percent
from .distribution import Distribution
from .measured_rate import MeasuredRate


MAX_BLACKOUT_EXPONENT = 16


@dataclass(slots=True)
class ServerStatsConfig:
    """
    Thresholds applied to every ``ServerStats`` owned by a balancer.
    """

    failure_count_threshold: int = 3
    """Successive connection failures before the circuit trips."""

    circuit_trip_timeout_factor_seconds: float = 10.0
    """Base blackout duration, doubled per failure beyond the threshold."""

    circuit_trip_max_timeout_seconds: float = 30.0
    """Upper bound on a single blackout."""

    active_requests_count_timeout_seconds: float = 600.0
    """Active request counts untouched for this long are treated as zero."""

    failure_count_window_seconds: float = 1.0
    """Interval over which ``get_failure_count()`` is measured."""

    requests_count_window_seconds: float = 300.0
    """Interval over which ``get_measured_requests_count()`` is measured."""

    response_time_window_size: int = 1000
    """Recent response times kept for percentiles."""

    def __post_init__(self) -> None:
        if self.failure_count_threshold < 1:
            raise ValueError("failure_count_threshold must be at least 1")

        if self.circuit_trip_timeout_factor_seconds < 0:
            raise ValueError("circuit_trip_timeout_factor_seconds must be non-negative")

        if self.circuit_trip_max_timeout_seconds < 0:
            raise ValueError("circuit_trip_max_timeout_seconds must be non-negative")


class ServerStats:
    def __init__(
        self,
        server: Server,
        config: ServerStatsConfig | None = None,
    ) -> None:
        if config is None:
            config = ServerStatsConfig()

        self._server = server
        self._config = config
        self._lock = threading.Lock()

        self._total_requests = 0
        self._active_requests = 0
        self._last_active_request_timestamp = 0.0
        self._successive_connection_failures = 0
        self._last_connection_failed_timestamp = 0.0
        self._total_blackout_seconds = 0.0
        self._first_connection_timestamp: float | None = None

        self._server_failure_counts = MeasuredRate(config.failure_count_window_seconds)
        self._requests_count_in_window = MeasuredRate(config.requests_count_window_seconds)

        self._response_time_dist = Distribution()
        self._data_dist = DataDistribution(buffer_size=config.response_time_window_size)

    @property
    def server(self) -> Server:
        return self._server

    @property
    def config(self) -> ServerStatsConfig:
        return self._config

    # =========================================================================
    # Requests
    # =========================================================================

    def increment_num_requests(self):
        with self._lock:
            self._total_requests += 1

        self._requests_count_in_window.increment()

    def get_total_requests_count(self) -> int:
        return self._total_requests

    def get_measured_requests_count(self) -> int:
        return self._requests_count_in_window.get_count()

    def increment_active_requests_count(self, current_time: float | None = None):
        now = current_time if current_time is not None else time.monotonic()
        with self._lock:
            self._last_active_request_timestamp = now
            self._active_requests += 1

    def decrement_active_requests_count(self, current_time: float | None = None):
        now = current_time if current_time is not None else time.monotonic()
        with self._lock:
            self._last_active_request_timestamp = now
            self._active_requests = max(0, self._active_requests - 1)

    def get_active_requests_count(self, current_time: float | None = None) -> int:
        now = current_time if current_time is not None else time.monotonic()
        with self._lock:
            if self._active_requests == 0:
                return 0

            idle = now - self._last_active_request_timestamp
            if idle > self._config.active_requests_count_timeout_seconds:
                self._active_requests = 0

            return self._active_requests

    def note_first_connection(self, current_time: float | None = None):
        if self._first_connection_timestamp is None:
            self._first_connection_timestamp = (
                current_time if current_time is not None else time.monotonic()
            )

    @property
    def first_connection_timestamp(self) -> float | None:
        return self._first_connection_timestamp

    # =========================================================================
    # Failures and circuit breaker
    # =========================================================================

    def add_to_failure_count(self):
        self._server_failure_counts.increment()

    def get_failure_count(self) -> int:
        return self._server_failure_counts.get_current_count()

    def increment_successive_connection_failure_count(
        self,
        current_time: float | None = None,
    ):
        now = current_time if current_time is not None else time.monotonic()
        with self._lock:
            self._last_connection_failed_timestamp = now
            self._successive_connection_failures += 1
            self._total_blackout_seconds += self._get_blackout_seconds()

    def clear_successive_connection_failure_count(self):
        with self._lock:
            self._successive_connection_failures = 0

    def get_successive_connection_failure_count(self) -> int:
        return self._successive_connection_failures

    def get_total_blackout_seconds(self) -> float:
        return self._total_blackout_seconds

    def get_circuit_breaker_blackout_seconds(self) -> float:
        with self._lock:
            return self._get_blackout_seconds()

    def get_circuit_breaker_timeout(self) -> float:
        """
        Return the monotonic time at which the current blackout ends, or 0
        when the circuit is closed.
        """
        with self._lock:
            blackout = self._get_blackout_seconds()
            if blackout <= 0:
                return 0.0

            return self._last_connection_failed_timestamp + blackout

    def is_circuit_breaker_tripped(self, current_time: float | None = None) -> bool:
        timeout = self.get_circuit_breaker_timeout()
        if timeout <= 0:
            return False

        now = current_time if current_time is not None else time.monotonic()
        return timeout > now

    def _get_blackout_seconds(self) -> float:
        failures = self._successive_connection_failures
        threshold = self._config.failure_count_threshold
        if failures < threshold:
            return 0.0

        exponent = min(failures - threshold, MAX_BLACKOUT_EXPONENT)
        blackout = (1 << exponent) * self._config.circuit_trip_timeout_factor_seconds

        return min(blackout, self._config.circuit_trip_max_timeout_seconds)

    # =========================================================================
    # Response times
    # =========================================================================

    def note_response_time(self, milliseconds: float):
        self._response_time_dist.note_value(milliseconds)
        self._data_dist.note_value(milliseconds)

    def get_response_time_avg(self) -> float:
        return self._response_time_dist.mean

    def get_response_time_max(self) -> float:
        return self._response_time_dist.maximum

    def get_response_time_min(self) -> float:
        return self._response_time_dist.minimum

    def get_response_time_stddev(self) -> float:
        return self._response_time_dist.stddev

    def get_response_time_sample(self) -> DataSample:
        return self._data_dist.get_sample()

    def get_response_time_avg_recent(self) -> float:
        return self._data_dist.get_sample().mean

    def get_response_time_percentile(self, percent: Percent) -> float:
        return self._data_dist.get_percentile(percent.value)

    def __repr__(self) -> str:
        return (
            f"ServerStats(server={self._server.id!r}, "
            f"total_requests={self._total_requests}, "
            f"active_requests={self._active_requests}, "
            f"successive_connection_failures={self._successive_connection_failures}, "
            f"avg_response_time={self.get_response_time_avg():.2f})"
        )
