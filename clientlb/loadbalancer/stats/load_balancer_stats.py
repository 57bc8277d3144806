"""
Aggregated statistics for one load balancer.

Owns a ``ServerStats`` per server, created on first use and expired after
an idle period, and the mapping of zones to their currently up servers
that zone-aware selection works from.

Usage:
    stats = LoadBalancerStats("orders")
    stats.increment_active_requests_count(server)
    snapshot = stats.get_zone_snapshot("us-east-1a")
"""

from __future__ import annotations

import threading
import time
from typing import Iterable, Mapping, Sequence

from clientlb.loadbalancer.models import (
    ClientConfig,
    ClientConfigKey,
    Server,
    ZoneSnapshot,
)

from .server_stats import ServerStats, ServerStatsConfig
from .zone_stats import ZoneStats


class LoadBalancerStats:
    def __init__(
        self,
        name: str = "default",
        stats_config: ServerStatsConfig | None = None,
        expire_after_seconds: float = 30 * 60,
    ) -> None:
        if stats_config is None:
            stats_config = ServerStatsConfig()

        self._name = name
        self._stats_config = stats_config
        self._expire_after_seconds = expire_after_seconds

        self._server_stats: dict[str, tuple[ServerStats, float]] = {}
        self._server_stats_lock = threading.Lock()

        self._zone_stats: dict[str, ZoneStats] = {}
        self._zone_stats_lock = threading.Lock()

        self._up_server_list_zone_map: dict[str, tuple[Server, ...]] = {}

    @classmethod
    def from_client_config(
        cls,
        config: ClientConfig,
        name: str | None = None,
    ) -> LoadBalancerStats:
        return cls(
            name=name or config.client_name,
            stats_config=ServerStatsConfig(
                failure_count_threshold=config.get(
                    ClientConfigKey.CONNECTION_FAILURE_COUNT_THRESHOLD
                ),
                circuit_trip_timeout_factor_seconds=config.get(
                    ClientConfigKey.CIRCUIT_TRIP_TIMEOUT_FACTOR_SECONDS
                ),
                circuit_trip_max_timeout_seconds=config.get(
                    ClientConfigKey.CIRCUIT_TRIP_MAX_TIMEOUT_SECONDS
                ),
                active_requests_count_timeout_seconds=config.get(
                    ClientConfigKey.ACTIVE_REQUESTS_COUNT_TIMEOUT
                ),
                response_time_window_size=config.get(
                    ClientConfigKey.RESPONSE_TIME_WINDOW_SIZE
                ),
            ),
            expire_after_seconds=config.get(
                ClientConfigKey.SERVER_STATS_EXPIRE_MINUTES
            ) * 60,
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def stats_config(self) -> ServerStatsConfig:
        return self._stats_config

    # =========================================================================
    # Server stats
    # =========================================================================

    def get_single_server_stat(self, server: Server) -> ServerStats:
        """
        Return the stats for ``server``, creating a fresh entry when none
        exists. A missing entry means no data yet, never an error.
        """
        now = time.monotonic()
        with self._server_stats_lock:
            existing = self._server_stats.get(server.id)
            stats = existing[0] if existing else ServerStats(server, self._stats_config)
            self._server_stats[server.id] = (stats, now)

        return stats

    def get_server_stats(self) -> dict[str, ServerStats]:
        self.prune_expired()
        with self._server_stats_lock:
            return {
                server_id: stats for server_id, (stats, _) in self._server_stats.items()
            }

    def has_server_stats(self, server: Server) -> bool:
        return server.id in self._server_stats

    def add_server(self, server: Server):
        self.get_single_server_stat(server)

    def update_server_list(self, servers: Iterable[Server]):
        for server in servers:
            self.add_server(server)

    def prune_expired(self, current_time: float | None = None) -> int:
        now = current_time if current_time is not None else time.monotonic()
        with self._server_stats_lock:
            expired = [
                server_id
                for server_id, (_, last_access) in self._server_stats.items()
                if now - last_access > self._expire_after_seconds
            ]

            for server_id in expired:
                del self._server_stats[server_id]

        return len(expired)

    def note_response_time(self, server: Server, milliseconds: float):
        self.get_single_server_stat(server).note_response_time(milliseconds)

    def increment_active_requests_count(self, server: Server):
        self.get_single_server_stat(server).increment_active_requests_count()

    def decrement_active_requests_count(self, server: Server):
        self.get_single_server_stat(server).decrement_active_requests_count()

    def increment_num_requests(self, server: Server):
        self.get_single_server_stat(server).increment_num_requests()

    def increment_successive_connection_failure_count(self, server: Server):
        self.get_single_server_stat(server).increment_successive_connection_failure_count()

    def clear_successive_connection_failure_count(self, server: Server):
        self.get_single_server_stat(server).clear_successive_connection_failure_count()

    def is_circuit_breaker_tripped(self, server: Server) -> bool:
        return self.get_single_server_stat(server).is_circuit_breaker_tripped()

    # =========================================================================
    # Zones
    # =========================================================================

    def get_zone_stats(self, zone: str) -> ZoneStats:
        zone = zone.lower()
        with self._zone_stats_lock:
            return self._zone_stats.setdefault(zone, ZoneStats(zone, self))

    def get_all_zone_stats(self) -> dict[str, ZoneStats]:
        with self._zone_stats_lock:
            return dict(self._zone_stats)

    def increment_zone_counter(self, server: Server):
        if server.zone:
            self.get_zone_stats(server.zone).increment_counter()

    def update_zone_server_mapping(self, zone_servers: Mapping[str, Sequence[Server]]):
        self._up_server_list_zone_map = {
            zone.lower(): tuple(servers) for zone, servers in zone_servers.items()
        }

        for zone in self._up_server_list_zone_map:
            self.get_zone_stats(zone)

    def get_available_zones(self) -> set[str]:
        return set(self._up_server_list_zone_map)

    def get_zone_servers(self, zone: str | None) -> tuple[Server, ...]:
        if zone is None:
            return ()

        return self._up_server_list_zone_map.get(zone.lower(), ())

    def get_instance_count(self, zone: str | None) -> int:
        return len(self.get_zone_servers(zone))

    def get_active_requests_count(self, zone: str | None) -> int:
        return self.get_zone_snapshot(zone).active_requests_count

    def get_active_requests_per_server(self, zone: str | None) -> float:
        return self.get_zone_snapshot(zone).load_per_server

    def get_zone_snapshot(
        self,
        zone: str | None = None,
        servers: Sequence[Server] | None = None,
    ) -> ZoneSnapshot:
        """
        Compute instance, tripped and active request counts over the up
        servers of ``zone``, or over ``servers`` when given.

        ``load_per_server`` counts only servers whose circuit is closed and
        is -1 when every server in the zone is tripped.
        """
        if servers is None:
            servers = self.get_zone_servers(zone)

        if not servers:
            return ZoneSnapshot()

        instance_count = len(servers)
        active_requests_count = 0
        active_requests_on_available = 0
        circuit_tripped_count = 0
        now = time.monotonic()

        for server in servers:
            stats = self.get_single_server_stat(server)
            active = stats.get_active_requests_count(now)

            if stats.is_circuit_breaker_tripped(now):
                circuit_tripped_count += 1

            else:
                active_requests_on_available += active

            active_requests_count += active

        if circuit_tripped_count == instance_count:
            load_per_server = -1.0

        else:
            load_per_server = active_requests_on_available / (
                instance_count - circuit_tripped_count
            )

        return ZoneSnapshot(
            instance_count=instance_count,
            circuit_tripped_count=circuit_tripped_count,
            active_requests_count=active_requests_count,
            load_per_server=load_per_server,
        )

    def get_circuit_breaker_tripped_count(self, zone: str | None = None) -> int:
        if zone is not None:
            return self.get_zone_snapshot(zone).circuit_tripped_count

        return sum(
            self.get_zone_snapshot(available_zone).circuit_tripped_count
            for available_zone in self.get_available_zones()
        )

    def get_measured_zone_hits(self, zone: str | None) -> int:
        return sum(
            self.get_single_server_stat(server).get_measured_requests_count()
            for server in self.get_zone_servers(zone)
        )

    def get_congestion_rate_percentage(self, zone: str | None) -> int:
        servers = self.get_zone_servers(zone)
        if not servers:
            return 0

        active_requests_count = 0
        circuit_tripped_count = 0
        for server in servers:
            stats = self.get_single_server_stat(server)
            active_requests_count += stats.get_active_requests_count()
            if stats.is_circuit_breaker_tripped():
                circuit_tripped_count += 1

        return (active_requests_count + circuit_tripped_count) * 100 // len(servers)

    def __repr__(self) -> str:
        return (
            f"LoadBalancerStats(name={self._name!r}, "
            f"zones={sorted(self._up_server_list_zone_map)!r}, "
            f"servers={len(self._server_stats)})"
        )
