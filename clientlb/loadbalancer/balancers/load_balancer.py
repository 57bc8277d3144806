from abc import ABC, abstractmethod
from typing import Any, Sequence

from clientlb.loadbalancer.models import Server
from clientlb.loadbalancer.stats import LoadBalancerStats


class LoadBalancer(ABC):
    """
    Operations every load balancer offers to callers and to rules.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    @abstractmethod
    def load_balancer_stats(self) -> LoadBalancerStats:
        ...

    @abstractmethod
    def add_servers(self, servers: Sequence[Server | str]) -> None:
        ...

    @abstractmethod
    def choose_server(self, key: Any = None) -> Server | None:
        ...

    @abstractmethod
    def mark_server_down(self, server: Server | str) -> None:
        ...

    @abstractmethod
    def get_reachable_servers(self) -> tuple[Server, ...]:
        """Servers found up by the most recent ping cycle."""
        ...

    @abstractmethod
    def get_all_servers(self) -> tuple[Server, ...]:
        """Every known server, reachable or not."""
        ...
