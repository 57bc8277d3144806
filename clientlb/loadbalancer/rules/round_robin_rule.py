import threading
from typing import Any

from clientlb.logging import BalancerWarning
from clientlb.loadbalancer.models import Server

from .rule import Rule


MAX_ROUND_ROBIN_TRIES = 10


class RoundRobinRule(Rule):
    """
    Cycles through all known servers and returns the next one that is
    alive and ready to serve, giving up after ten tries.
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._next_server_cyclic_counter = 0
        self._counter_lock = threading.Lock()

    def choose(self, key: Any = None) -> Server | None:
        load_balancer = self.load_balancer
        if load_balancer is None:
            self._log_stream.log(
                BalancerWarning(
                    message="No load balancer bound to round robin rule",
                    balancer=self._balancer_name,
                )
            )
            return None

        count = 0
        while count < MAX_ROUND_ROBIN_TRIES:
            count += 1

            reachable_servers = load_balancer.get_reachable_servers()
            all_servers = load_balancer.get_all_servers()

            if len(reachable_servers) == 0 or len(all_servers) == 0:
                self._log_stream.log(
                    BalancerWarning(
                        message="No up servers available from load balancer",
                        balancer=self._balancer_name,
                    )
                )
                return None

            server = all_servers[self._increment_and_get_modulo(len(all_servers))]

            if server.is_alive and server.ready_to_serve:
                return server

        self._log_stream.log(
            BalancerWarning(
                message=f"No available alive servers after {MAX_ROUND_ROBIN_TRIES} tries from load balancer",
                balancer=self._balancer_name,
            )
        )

        return None

    def _increment_and_get_modulo(self, modulo: int) -> int:
        with self._counter_lock:
            current = self._next_server_cyclic_counter
            self._next_server_cyclic_counter = (current + 1) % modulo
            return current % modulo
