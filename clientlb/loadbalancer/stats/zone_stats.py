from __future__ import annotations

from typing import TYPE_CHECKING

from clientlb.loadbalancer.models import ZoneSnapshot

from .measured_rate import MeasuredRate

if TYPE_CHECKING:
    from .load_balancer_stats import LoadBalancerStats


class ZoneStats:
    """
    Read-through view of one zone's figures in a ``LoadBalancerStats``,
    plus a per-zone hit counter.
    """

    def __init__(
        self,
        zone: str,
        load_balancer_stats: LoadBalancerStats,
        counter_interval_seconds: float = 60.0,
    ) -> None:
        self._zone = zone.lower()
        self._load_balancer_stats = load_balancer_stats
        self._counter = MeasuredRate(counter_interval_seconds)

    @property
    def zone(self) -> str:
        return self._zone

    def increment_counter(self):
        self._counter.increment()

    def get_counter(self) -> int:
        return self._counter.get_count()

    def get_snapshot(self) -> ZoneSnapshot:
        return self._load_balancer_stats.get_zone_snapshot(self._zone)

    def get_instance_count(self) -> int:
        return self._load_balancer_stats.get_instance_count(self._zone)

    def get_active_requests_count(self) -> int:
        return self.get_snapshot().active_requests_count

    def get_active_requests_per_server(self) -> float:
        return self.get_snapshot().load_per_server

    def get_circuit_breaker_tripped_count(self) -> int:
        return self.get_snapshot().circuit_tripped_count

    def get_measured_zone_hits(self) -> int:
        return self._load_balancer_stats.get_measured_zone_hits(self._zone)

    def get_congestion_rate_percentage(self) -> int:
        return self._load_balancer_stats.get_congestion_rate_percentage(self._zone)

    def __repr__(self) -> str:
        snapshot = self.get_snapshot()
        return (
            f"ZoneStats(zone={self._zone!r}, "
            f"instance_count={snapshot.instance_count}, "
            f"circuit_tripped_count={snapshot.circuit_tripped_count}, "
            f"active_requests_count={snapshot.active_requests_count}, "
            f"load_per_server={snapshot.load_per_server})"
        )
