from abc import ABC, abstractmethod
from typing import Sequence

from clientlb.loadbalancer.models import Server
from clientlb.loadbalancer.stats import LoadBalancerStats


class ServerListFilter(ABC):
    """Narrows a candidate server list before it reaches the balancer."""

    def __init__(self, load_balancer_stats: LoadBalancerStats | None = None) -> None:
        self.load_balancer_stats = load_balancer_stats

    @abstractmethod
    def get_filtered_list_of_servers(self, servers: Sequence[Server]) -> list[Server]:
        ...
