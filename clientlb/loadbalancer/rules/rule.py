from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from clientlb.logging import LoggerStream
from clientlb.logging import logger as default_logger
from clientlb.loadbalancer.models import ClientConfig, Server

if TYPE_CHECKING:
    from clientlb.loadbalancer.balancers.load_balancer import LoadBalancer


class Rule(ABC):
    """
    Selection policy bound to one load balancer.

    ``choose`` returns ``None`` when no eligible server exists; it never
    raises for that case.
    """

    def __init__(self, log_stream: LoggerStream | None = None) -> None:
        self._load_balancer: LoadBalancer | None = None
        self._log_stream = log_stream or default_logger["clientlb"]

    @property
    def load_balancer(self) -> LoadBalancer | None:
        return self._load_balancer

    @load_balancer.setter
    def load_balancer(self, load_balancer: LoadBalancer | None):
        self.set_load_balancer(load_balancer)

    def set_load_balancer(self, load_balancer: LoadBalancer | None):
        self._load_balancer = load_balancer

    def init_with_config(self, config: ClientConfig):
        """Apply client properties. Rules without settings ignore it."""

    def shutdown(self):
        """Stop background work owned by the rule."""

    @abstractmethod
    def choose(self, key: Any = None) -> Server | None:
        ...

    @property
    def _balancer_name(self) -> str:
        if self._load_balancer is None:
            return "unbound"

        return self._load_balancer.name
