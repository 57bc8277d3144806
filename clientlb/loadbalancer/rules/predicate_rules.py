from abc import abstractmethod
from typing import Any

from clientlb.loadbalancer.models import ClientConfig, Server

from .predicates import (
    AvailabilityPredicate,
    CompositePredicate,
    PredicateKey,
    ServerPredicate,
    ZoneAvoidancePredicate,
)
from .round_robin_rule import MAX_ROUND_ROBIN_TRIES, RoundRobinRule
from .rule import Rule


class PredicateBasedRule(Rule):
    """
    Filters live reachable servers through ``predicate`` and round-robins
    over what remains.
    """

    @property
    @abstractmethod
    def predicate(self) -> ServerPredicate:
        ...

    def choose(self, key: Any = None) -> Server | None:
        load_balancer = self.load_balancer
        if load_balancer is None:
            return None

        servers = [
            server
            for server in load_balancer.get_reachable_servers()
            if server.is_alive
        ]

        return self.predicate.choose_round_robin_after_filtering(servers, key)


class AvailabilityFilteringRule(PredicateBasedRule):
    """
    Round robin that skips servers with a tripped circuit breaker or too
    many active requests. After ten rejected picks it filters the whole
    list instead, falling back to any live server.
    """

    def __init__(self, config: ClientConfig | None = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self._round_robin = RoundRobinRule(**kwargs)
        self._predicate = self._build_predicate(config)

    @property
    def predicate(self) -> CompositePredicate:
        return self._predicate

    def set_load_balancer(self, load_balancer):
        super().set_load_balancer(load_balancer)
        self._round_robin.set_load_balancer(load_balancer)

    def init_with_config(self, config: ClientConfig):
        self._predicate = self._build_predicate(config)

    def choose(self, key: Any = None) -> Server | None:
        for _ in range(MAX_ROUND_ROBIN_TRIES):
            server = self._round_robin.choose(key)
            if server is None:
                break

            if self._predicate.apply(PredicateKey(server, key)):
                return server

        return super().choose(key)

    def get_available_servers_count(self) -> int:
        load_balancer = self.load_balancer
        if load_balancer is None:
            return 0

        return len(
            self._predicate.get_eligible_servers(load_balancer.get_all_servers())
        )

    def _build_predicate(self, config: ClientConfig | None) -> CompositePredicate:
        return (
            CompositePredicate.with_predicates(
                AvailabilityPredicate(rule=self, config=config)
            )
            .add_fallback_predicate(ServerPredicate.always_true())
            .build()
        )


class ZoneAvoidanceRule(PredicateBasedRule):
    """
    Avoids overloaded or blacked-out zones and unavailable servers.

    Falls back to availability-only filtering, then to any live server,
    when zone filtering leaves nothing.
    """

    def __init__(self, config: ClientConfig | None = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self._predicate = self._build_predicate(config)

    @property
    def predicate(self) -> CompositePredicate:
        return self._predicate

    def init_with_config(self, config: ClientConfig):
        self._predicate = self._build_predicate(config)

    def _build_predicate(self, config: ClientConfig | None) -> CompositePredicate:
        zone_predicate = ZoneAvoidancePredicate(rule=self, config=config)
        availability_predicate = AvailabilityPredicate(rule=self, config=config)

        return (
            CompositePredicate.with_predicates(zone_predicate, availability_predicate)
            .add_fallback_predicate(availability_predicate)
            .add_fallback_predicate(ServerPredicate.always_true())
            .build()
        )
