"""
Shared fixtures for the load balancer and logging test suites.
"""

import threading
from typing import Callable, Generator

import pytest

from clientlb.logging import LoggingConfig
from clientlb.loadbalancer.balancers import BaseLoadBalancer
from clientlb.loadbalancer.metrics import InMemoryMetricsSink
from clientlb.loadbalancer.models import Server
from clientlb.loadbalancer.ping import Ping


class RecordingPing(Ping):
    """
    Ping whose answers are set per server id. Unknown servers are alive.
    Every checked server id is recorded.
    """

    def __init__(self, answers: dict[str, bool] | None = None) -> None:
        self.answers: dict[str, bool] = dict(answers or {})
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def is_alive(self, server: Server) -> bool:
        with self._lock:
            self.calls.append(server.id)

        return self.answers.get(server.id, True)


@pytest.fixture(autouse=True)
def quiet_logging() -> Generator[LoggingConfig, None, None]:
    config = LoggingConfig()
    config.update(log_level="error")
    yield config
    config.reset()


@pytest.fixture
def server_ids() -> list[str]:
    return ["10.0.0.1:8080", "10.0.0.2:8080", "10.0.0.3:8080"]


@pytest.fixture
def servers(server_ids: list[str]) -> list[Server]:
    return [Server.from_id(server_id) for server_id in server_ids]


@pytest.fixture
def zoned_servers() -> list[Server]:
    return [
        Server("10.0.1.1", 8080, zone="us-east-1a"),
        Server("10.0.1.2", 8080, zone="us-east-1a"),
        Server("10.0.2.1", 8080, zone="us-east-1b"),
        Server("10.0.2.2", 8080, zone="us-east-1b"),
    ]


@pytest.fixture
def metrics_sink() -> InMemoryMetricsSink:
    return InMemoryMetricsSink()


@pytest.fixture
def recording_ping() -> RecordingPing:
    return RecordingPing()


@pytest.fixture
def make_balancer() -> Generator[Callable[..., BaseLoadBalancer], None, None]:
    """
    Build balancers with a ping interval long enough that the timer never
    fires during a test. Every balancer is shut down afterwards.
    """
    created: list[BaseLoadBalancer] = []

    def create(**kwargs) -> BaseLoadBalancer:
        kwargs.setdefault("ping_interval", 3600)
        balancer = BaseLoadBalancer(**kwargs)
        created.append(balancer)
        return balancer

    yield create

    for balancer in created:
        balancer.shutdown()
