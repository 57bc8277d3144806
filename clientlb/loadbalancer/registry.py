"""
String-keyed factories for load balancer strategies.

Client config names its rule, ping, ping strategy and stats by key
(``NFLoadBalancerRuleClassName`` and friends). Each kind maps those keys
to a factory taking the ``ClientConfig``. Applications can register
their own factories under new keys or replace the built-in ones.

Usage:
    registry = StrategyRegistry()
    registry.register_rule("sticky", lambda config: StickyRule(config))
    rule = registry.get_rule("sticky", config)
"""

from __future__ import annotations

import threading
from enum import Enum
from typing import Any, Callable, Generic, TypeVar

from clientlb.loadbalancer.exceptions import UnknownStrategyError
from clientlb.loadbalancer.models import ClientConfig, ClientConfigKey
from clientlb.loadbalancer.ping import (
    DummyPing,
    NoOpPing,
    ParallelPingStrategy,
    Ping,
    PingConstant,
    PingStrategy,
    SerialPingStrategy,
)
from clientlb.loadbalancer.rules import (
    AvailabilityFilteringRule,
    BestAvailableRule,
    RandomRule,
    RetryRule,
    RoundRobinRule,
    Rule,
    WeightedResponseTimeRule,
    ZoneAvoidanceRule,
)
from clientlb.loadbalancer.stats import LoadBalancerStats


T = TypeVar("T")

StrategyFactory = Callable[[ClientConfig], T]


class StrategyKind(Enum):
    RULE = "rule"
    PING = "ping"
    PING_STRATEGY = "ping strategy"
    STATS = "stats"


class StrategyTable(Generic[T]):
    __slots__ = ("kind", "_factories", "_lock")

    def __init__(
        self,
        kind: StrategyKind,
        factories: dict[str, StrategyFactory[T]] | None = None,
    ) -> None:
        self.kind = kind
        self._factories: dict[str, StrategyFactory[T]] = dict(factories or {})
        self._lock = threading.Lock()

    def register(self, key: str, factory: StrategyFactory[T]):
        with self._lock:
            self._factories[key.lower()] = factory

    def unregister(self, key: str):
        with self._lock:
            self._factories.pop(key.lower(), None)

    def keys(self) -> list[str]:
        return sorted(self._factories)

    def contains(self, key: str) -> bool:
        return key.lower() in self._factories

    def create(self, key: str, config: ClientConfig) -> T:
        factory = self._factories.get(key.lower())
        if factory is None:
            raise UnknownStrategyError(self.kind.value, key)

        return factory(config)


def _create_parallel_ping_strategy(config: ClientConfig) -> ParallelPingStrategy:
    return ParallelPingStrategy(
        max_total_ping_time=config.get(ClientConfigKey.NFLOADBALANCER_MAX_TOTAL_PING_TIME),
        name=config.client_name,
    )


class StrategyRegistry:
    rules: dict[str, StrategyFactory[Rule]] = {
        "round_robin": lambda config: RoundRobinRule(),
        "random": lambda config: RandomRule(),
        "availability_filtering": lambda config: AvailabilityFilteringRule(config),
        "zone_avoidance": lambda config: ZoneAvoidanceRule(config),
        "best_available": lambda config: BestAvailableRule(),
        "weighted_response_time": lambda config: WeightedResponseTimeRule(),
        "retry": lambda config: RetryRule(),
    }

    pings: dict[str, StrategyFactory[Ping]] = {
        "dummy": lambda config: DummyPing(),
        "no_op": lambda config: NoOpPing(),
        "constant_true": lambda config: PingConstant(True),
        "constant_false": lambda config: PingConstant(False),
    }

    ping_strategies: dict[str, StrategyFactory[PingStrategy]] = {
        "serial": lambda config: SerialPingStrategy(name=config.client_name),
        "parallel": _create_parallel_ping_strategy,
    }

    stats: dict[str, StrategyFactory[LoadBalancerStats]] = {
        "default": lambda config: LoadBalancerStats.from_client_config(config),
    }

    def __init__(self) -> None:
        self._tables: dict[StrategyKind, StrategyTable[Any]] = {
            StrategyKind.RULE: StrategyTable(StrategyKind.RULE, self.rules),
            StrategyKind.PING: StrategyTable(StrategyKind.PING, self.pings),
            StrategyKind.PING_STRATEGY: StrategyTable(
                StrategyKind.PING_STRATEGY,
                self.ping_strategies,
            ),
            StrategyKind.STATS: StrategyTable(StrategyKind.STATS, self.stats),
        }

    def table(self, kind: StrategyKind) -> StrategyTable[Any]:
        return self._tables[kind]

    def register_rule(self, key: str, factory: StrategyFactory[Rule]):
        self._tables[StrategyKind.RULE].register(key, factory)

    def register_ping(self, key: str, factory: StrategyFactory[Ping]):
        self._tables[StrategyKind.PING].register(key, factory)

    def register_ping_strategy(self, key: str, factory: StrategyFactory[PingStrategy]):
        self._tables[StrategyKind.PING_STRATEGY].register(key, factory)

    def register_stats(self, key: str, factory: StrategyFactory[LoadBalancerStats]):
        self._tables[StrategyKind.STATS].register(key, factory)

    def get_rule(self, key: str, config: ClientConfig) -> Rule:
        rule: Rule = self._tables[StrategyKind.RULE].create(key, config)
        rule.init_with_config(config)
        return rule

    def get_ping(self, key: str, config: ClientConfig) -> Ping:
        return self._tables[StrategyKind.PING].create(key, config)

    def get_ping_strategy(self, key: str, config: ClientConfig) -> PingStrategy:
        return self._tables[StrategyKind.PING_STRATEGY].create(key, config)

    def get_stats(self, key: str, config: ClientConfig) -> LoadBalancerStats:
        return self._tables[StrategyKind.STATS].create(key, config)


default_registry = StrategyRegistry()
