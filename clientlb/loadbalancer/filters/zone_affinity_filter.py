"""
Zone affinity filtering.

With affinity enabled, servers outside the client's zone are dropped
unless the local zone looks unhealthy: too many servers blacked out,
too much load per server, or too few servers left. With exclusivity
enabled, servers outside the zone are always dropped.
"""

from typing import Sequence

from clientlb.logging import BalancerDebug, LoggerStream
from clientlb.logging import logger as default_logger
from clientlb.loadbalancer.models import ClientConfig, ClientConfigKey, Server
from clientlb.loadbalancer.rules.predicates import ZoneAffinityPredicate
from clientlb.loadbalancer.stats import LoadBalancerStats

from .server_list_filter import ServerListFilter


class ZoneAffinityServerListFilter(ServerListFilter):
    def __init__(
        self,
        config: ClientConfig | None = None,
        zone: str | None = None,
        load_balancer_stats: LoadBalancerStats | None = None,
        log_stream: LoggerStream | None = None,
    ) -> None:
        super().__init__(load_balancer_stats=load_balancer_stats)
        if config is None:
            config = ClientConfig()

        self._name = config.client_name
        self._log_stream = log_stream or default_logger["clientlb"]

        self.zone: str | None = zone or config.get(ClientConfigKey.DEPLOYMENT_ZONE)
        self.zone_affinity: bool = config.get(ClientConfigKey.ENABLE_ZONE_AFFINITY)
        self.zone_exclusive: bool = config.get(ClientConfigKey.ENABLE_ZONE_EXCLUSIVITY)

        self.active_requests_per_server_threshold: float = config.get(
            ClientConfigKey.ZONE_AFFINITY_MAX_LOAD_PER_SERVER
        )
        self.blackout_server_percentage_threshold: float = config.get(
            ClientConfigKey.ZONE_AFFINITY_MAX_BLACKOUT_SERVERS_PERCENTAGE
        )
        self.available_servers_threshold: int = config.get(
            ClientConfigKey.ZONE_AFFINITY_MIN_AVAILABLE_SERVERS
        )

        self.override_count = 0

    def get_filtered_list_of_servers(self, servers: Sequence[Server]) -> list[Server]:
        if not self.zone or not (self.zone_affinity or self.zone_exclusive) or not servers:
            return list(servers)

        filtered = ZoneAffinityPredicate(self.zone).get_eligible_servers(servers)
        if self.should_enable_zone_affinity(filtered):
            return filtered

        if self.zone_affinity:
            self.override_count += 1

        return list(servers)

    def should_enable_zone_affinity(self, filtered: Sequence[Server]) -> bool:
        if not (self.zone_affinity or self.zone_exclusive):
            return False

        if self.zone_exclusive:
            return True

        if self.load_balancer_stats is None:
            return self.zone_affinity

        snapshot = self.load_balancer_stats.get_zone_snapshot(servers=filtered)
        instance_count = snapshot.instance_count
        circuit_tripped_count = snapshot.circuit_tripped_count

        if instance_count == 0:
            return False

        blackout_ratio = circuit_tripped_count / instance_count
        available_count = instance_count - circuit_tripped_count

        if (
            blackout_ratio >= self.blackout_server_percentage_threshold
            or snapshot.load_per_server >= self.active_requests_per_server_threshold
            or available_count < self.available_servers_threshold
        ):
            self._log_stream.log(
                BalancerDebug(
                    message=(
                        f"Zone affinity disabled for zone {self.zone}: "
                        f"blackout ratio {blackout_ratio:.2f}, "
                        f"load per server {snapshot.load_per_server:.2f}, "
                        f"available servers {available_count}"
                    ),
                    balancer=self._name,
                )
            )
            return False

        return True
