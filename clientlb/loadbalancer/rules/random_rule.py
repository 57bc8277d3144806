import random
from typing import Any

from clientlb.loadbalancer.models import Server

from .rule import Rule


class RandomRule(Rule):
    """Picks uniformly among reachable servers that are alive."""

    def choose(self, key: Any = None) -> Server | None:
        load_balancer = self.load_balancer
        if load_balancer is None:
            return None

        candidates = [
            server
            for server in load_balancer.get_reachable_servers()
            if server.is_alive
        ]

        if not candidates:
            return None

        return random.choice(candidates)
