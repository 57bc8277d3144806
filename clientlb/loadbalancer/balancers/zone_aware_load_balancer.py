"""
Zone aware load balancer.

Keeps one child balancer per zone. On each choice it snapshots every
zone's load, drops zones that are empty, blacked out or the worst loaded
(see ``rules.zone_selection``), picks one of the remaining zones weighted
by instance count and lets that zone's balancer choose. When every zone
is usable, or zone choice yields nothing, it falls back to the parent
rule over all servers.

Child balancers follow the parent's health checks: they mirror each
server's alive flag and are refreshed whenever the parent reports status
changes, so they run no ping timer of their own.
"""

from __future__ import annotations

import threading
from typing import Any, Sequence

from clientlb.logging import BalancerDebug, BalancerWarning
from clientlb.loadbalancer.models import ClientConfig, ClientConfigKey, Server
from clientlb.loadbalancer.ping import Ping
from clientlb.loadbalancer.rules import AvailabilityFilteringRule, Rule
from clientlb.loadbalancer.rules import zone_selection

from .base_load_balancer import BaseLoadBalancer
from .dynamic_server_list_load_balancer import DynamicServerListLoadBalancer


class MirrorPing(Ping):
    """Reports whatever alive flag the server already carries."""

    def is_alive(self, server: Server) -> bool:
        return server.is_alive


class ZoneAwareLoadBalancer(DynamicServerListLoadBalancer):
    def __init__(
        self,
        name: str = "default",
        config: ClientConfig | None = None,
        **kwargs,
    ) -> None:
        if config is None:
            config = ClientConfig(client_name=name)

        self._balancers: dict[str, BaseLoadBalancer] = {}
        self._balancers_lock = threading.RLock()

        self.enabled: bool = config.get(ClientConfigKey.ZONE_AWARE_ENABLED)
        self.triggering_load: float = config.get(ClientConfigKey.ZONE_TRIGGERING_LOAD_PER_SERVER)
        self.triggering_blackout_percentage: float = config.get(
            ClientConfigKey.ZONE_TRIGGERING_BLACKOUT_PERCENTAGE
        )

        super().__init__(name=name, **kwargs)
        self.add_server_status_change_listener(self)

    def choose_server(self, key: Any = None) -> Server | None:
        stats = self.load_balancer_stats
        if not self.enabled or len(stats.get_available_zones()) <= 1:
            return super().choose_server(key)

        try:
            snapshot = zone_selection.create_snapshot(stats)
            available_zones = zone_selection.get_available_zones(
                snapshot,
                self.triggering_load,
                self.triggering_blackout_percentage,
            )

            if available_zones and len(available_zones) < len(snapshot):
                zone = zone_selection.random_choose_zone(snapshot, available_zones)
                self._log_stream.log(
                    BalancerDebug(
                        message=f"Zone chosen: {zone} from available zones {sorted(available_zones)}",
                        balancer=self.name,
                    )
                )

                if zone is not None:
                    server = self.get_load_balancer(zone).choose_server(key)
                    if server is not None:
                        return server

        except Exception as err:
            self._log_stream.log(
                BalancerWarning(
                    message=f"Error choosing server using zone aware logic: {err}",
                    balancer=self.name,
                )
            )

        return super().choose_server(key)

    def set_rule(self, rule: Rule | None):
        super().set_rule(rule)

        with self._balancers_lock:
            balancers = list(self._balancers.values())

        for balancer in balancers:
            balancer.set_rule(self._clone_rule())

    def set_server_list_for_zones(self, zone_servers: dict[str, list[Server]]):
        super().set_server_list_for_zones(zone_servers)

        zone_servers = {zone.lower(): servers for zone, servers in zone_servers.items()}

        for zone, servers in zone_servers.items():
            self.get_load_balancer(zone).set_servers_list(servers)

        with self._balancers_lock:
            stale_zones = [zone for zone in self._balancers if zone not in zone_servers]

        # Zones that vanished keep their balancer with an empty list.
        for zone in stale_zones:
            self.get_load_balancer(zone).set_servers_list([])

    def server_status_changed(self, servers: Sequence[Server]):
        zones = {server.zone.lower() for server in servers}

        for zone in zones:
            with self._balancers_lock:
                balancer = self._balancers.get(zone)

            if balancer is not None:
                balancer.force_quick_ping()

    def get_load_balancer(self, zone: str) -> BaseLoadBalancer:
        zone = zone.lower()
        with self._balancers_lock:
            balancer = self._balancers.get(zone)
            if balancer is None:
                balancer = BaseLoadBalancer(
                    name=f"{self.name}_{zone}",
                    rule=self._clone_rule(),
                    ping=MirrorPing(),
                    load_balancer_stats=self.load_balancer_stats,
                    metrics_sink=self.metrics_sink,
                    log_stream=self._log_stream,
                )
                balancer.cancel_ping_task()
                self._balancers[zone] = balancer

            return balancer

    def get_zone_balancers(self) -> dict[str, BaseLoadBalancer]:
        with self._balancers_lock:
            return dict(self._balancers)

    def shutdown(self):
        super().shutdown()

        with self._balancers_lock:
            balancers = list(self._balancers.values())

        for balancer in balancers:
            balancer.shutdown()

    def _clone_rule(self) -> Rule:
        rule = self.rule
        if rule is not None:
            try:
                return type(rule)()

            except Exception as err:
                self._log_stream.log(
                    BalancerWarning(
                        message=f"Unable to clone rule {type(rule).__name__}, using availability filtering: {err}",
                        balancer=self.name,
                    )
                )

        return AvailabilityFilteringRule()
