from typing import Any

from clientlb.loadbalancer.models import Server

from .round_robin_rule import RoundRobinRule


class BestAvailableRule(RoundRobinRule):
    """
    Picks the live server with the fewest active requests, skipping
    servers whose circuit breaker is tripped. Falls back to round robin
    when no stats are available or every server is tripped.
    """

    def choose(self, key: Any = None) -> Server | None:
        load_balancer = self.load_balancer
        if load_balancer is None:
            return None

        stats = load_balancer.load_balancer_stats
        if stats is None:
            return super().choose(key)

        chosen: Server | None = None
        minimal_concurrent_connections: int | None = None

        for server in load_balancer.get_all_servers():
            if not server.is_alive:
                continue

            server_stats = stats.get_single_server_stat(server)
            if server_stats.is_circuit_breaker_tripped():
                continue

            concurrent_connections = server_stats.get_active_requests_count()
            if (
                minimal_concurrent_connections is None
                or concurrent_connections < minimal_concurrent_connections
            ):
                minimal_concurrent_connections = concurrent_connections
                chosen = server

        if chosen is None:
            return super().choose(key)

        return chosen
