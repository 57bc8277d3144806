"""
Server predicates for filter-then-choose rules.

A predicate decides per server whether it is eligible. ``CompositePredicate``
ANDs several predicates and, when that leaves too few servers, retries with
a chain of fallback predicates.

Usage:
    predicate = (
        CompositePredicate.with_predicates(zone_predicate, availability_predicate)
        .add_fallback_predicate(availability_predicate)
        .add_fallback_predicate(ServerPredicate.always_true())
        .build()
    )
    server = predicate.choose_round_robin_after_filtering(servers)
"""

from __future__ import annotations

import random
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Sequence

from clientlb.loadbalancer.models import ClientConfig, ClientConfigKey, Server
from clientlb.loadbalancer.stats import LoadBalancerStats, ServerStats

from . import zone_selection

if TYPE_CHECKING:
    from .rule import Rule


@dataclass(slots=True, frozen=True)
class PredicateKey:
    server: Server
    load_balancer_key: Any = None


class ServerPredicate(ABC):
    def __init__(
        self,
        rule: Rule | None = None,
        load_balancer_stats: LoadBalancerStats | None = None,
    ) -> None:
        self._rule = rule
        self._load_balancer_stats = load_balancer_stats
        self._next_index = 0
        self._index_lock = threading.Lock()

    @abstractmethod
    def apply(self, key: PredicateKey) -> bool:
        ...

    @property
    def load_balancer_stats(self) -> LoadBalancerStats | None:
        if self._load_balancer_stats is not None:
            return self._load_balancer_stats

        if self._rule is not None and self._rule.load_balancer is not None:
            return self._rule.load_balancer.load_balancer_stats

        return None

    def get_eligible_servers(
        self,
        servers: Sequence[Server],
        load_balancer_key: Any = None,
    ) -> list[Server]:
        return [
            server
            for server in servers
            if self.apply(PredicateKey(server, load_balancer_key))
        ]

    def choose_randomly_after_filtering(
        self,
        servers: Sequence[Server],
        load_balancer_key: Any = None,
    ) -> Server | None:
        eligible = self.get_eligible_servers(servers, load_balancer_key)
        if not eligible:
            return None

        return random.choice(eligible)

    def choose_round_robin_after_filtering(
        self,
        servers: Sequence[Server],
        load_balancer_key: Any = None,
    ) -> Server | None:
        eligible = self.get_eligible_servers(servers, load_balancer_key)
        if not eligible:
            return None

        return eligible[self._increment_and_get_modulo(len(eligible))]

    def _increment_and_get_modulo(self, modulo: int) -> int:
        with self._index_lock:
            current = self._next_index
            self._next_index = (current + 1) % modulo
            return current % modulo

    @staticmethod
    def always_true() -> ServerPredicate:
        return FunctionPredicate(lambda key: True)

    @staticmethod
    def of_server_predicate(predicate: Callable[[PredicateKey], bool]) -> ServerPredicate:
        return FunctionPredicate(predicate)


class FunctionPredicate(ServerPredicate):
    def __init__(
        self,
        predicate: Callable[[PredicateKey], bool],
        rule: Rule | None = None,
    ) -> None:
        super().__init__(rule=rule)
        self._predicate = predicate

    def apply(self, key: PredicateKey) -> bool:
        return bool(self._predicate(key))


class AvailabilityPredicate(ServerPredicate):
    """
    Rejects servers whose circuit breaker is tripped or whose active
    request count has reached the configured limit.
    """

    def __init__(
        self,
        rule: Rule | None = None,
        config: ClientConfig | None = None,
        load_balancer_stats: LoadBalancerStats | None = None,
        circuit_breaker_filtering: bool = True,
    ) -> None:
        super().__init__(rule=rule, load_balancer_stats=load_balancer_stats)
        self.circuit_breaker_filtering = circuit_breaker_filtering
        self.active_connections_limit: int = ClientConfigKey.ACTIVE_CONNECTIONS_LIMIT.default

        if config is not None:
            self.active_connections_limit = config.get(
                ClientConfigKey.ACTIVE_CONNECTIONS_LIMIT
            )

    def apply(self, key: PredicateKey) -> bool:
        stats = self.load_balancer_stats
        if stats is None:
            return True

        return not self._should_skip_server(stats.get_single_server_stat(key.server))

    def _should_skip_server(self, stats: ServerStats) -> bool:
        if self.circuit_breaker_filtering and stats.is_circuit_breaker_tripped():
            return True

        return stats.get_active_requests_count() >= self.active_connections_limit


class ZoneAvoidancePredicate(ServerPredicate):
    """
    Rejects servers in zones that ``zone_selection.get_available_zones``
    drops: empty, mostly blacked out, or the worst loaded zone once load
    crosses the triggering threshold.
    """

    def __init__(
        self,
        rule: Rule | None = None,
        config: ClientConfig | None = None,
        load_balancer_stats: LoadBalancerStats | None = None,
    ) -> None:
        super().__init__(rule=rule, load_balancer_stats=load_balancer_stats)
        if config is None:
            config = ClientConfig()

        self.enabled: bool = config.get(ClientConfigKey.ZONE_AWARE_ENABLED)
        self.triggering_load: float = config.get(ClientConfigKey.ZONE_TRIGGERING_LOAD_PER_SERVER)
        self.triggering_blackout_percentage: float = config.get(
            ClientConfigKey.ZONE_TRIGGERING_BLACKOUT_PERCENTAGE
        )

    def apply(self, key: PredicateKey) -> bool:
        if not self.enabled:
            return True

        server_zone = key.server.zone
        if not server_zone:
            return True

        stats = self.load_balancer_stats
        if stats is None or len(stats.get_available_zones()) <= 1:
            return True

        snapshot = zone_selection.create_snapshot(stats)
        server_zone = server_zone.lower()
        if server_zone not in snapshot:
            return True

        available_zones = zone_selection.get_available_zones(
            snapshot,
            self.triggering_load,
            self.triggering_blackout_percentage,
        )

        return available_zones is None or server_zone in available_zones


class ZoneAffinityPredicate(ServerPredicate):
    """Accepts only servers in ``zone``, compared case-insensitively."""

    def __init__(self, zone: str | None = None) -> None:
        super().__init__()
        self.zone = zone

    def apply(self, key: PredicateKey) -> bool:
        server_zone = key.server.zone
        if server_zone is None or self.zone is None:
            return False

        return server_zone.lower() == self.zone.lower()


class CompositePredicate(ServerPredicate):
    def __init__(
        self,
        delegates: Sequence[ServerPredicate],
        fallbacks: Sequence[ServerPredicate] = (),
        minimal_filtered_servers: int = 1,
        minimal_filtered_percentage: float = 0.0,
    ) -> None:
        super().__init__()
        self._delegates = tuple(delegates)
        self._fallbacks = tuple(fallbacks)
        self.minimal_filtered_servers = minimal_filtered_servers
        self.minimal_filtered_percentage = minimal_filtered_percentage

    @classmethod
    def with_predicates(cls, *predicates: ServerPredicate) -> CompositePredicateBuilder:
        return CompositePredicateBuilder(predicates)

    def apply(self, key: PredicateKey) -> bool:
        return all(delegate.apply(key) for delegate in self._delegates)

    def get_eligible_servers(
        self,
        servers: Sequence[Server],
        load_balancer_key: Any = None,
    ) -> list[Server]:
        """
        Filter with the primary predicates, then with each fallback in
        turn until enough servers remain.
        """
        result = super().get_eligible_servers(servers, load_balancer_key)

        for fallback in self._fallbacks:
            if self._has_enough(result, servers):
                break

            result = fallback.get_eligible_servers(servers, load_balancer_key)

        return result

    def _has_enough(self, result: Sequence[Server], servers: Sequence[Server]) -> bool:
        return (
            len(result) >= self.minimal_filtered_servers
            and len(result) > len(servers) * self.minimal_filtered_percentage
        )


class CompositePredicateBuilder:
    def __init__(self, predicates: Sequence[ServerPredicate]) -> None:
        self._predicates = tuple(predicates)
        self._fallbacks: list[ServerPredicate] = []
        self._minimal_filtered_servers = 1
        self._minimal_filtered_percentage = 0.0

    def add_fallback_predicate(self, fallback: ServerPredicate) -> CompositePredicateBuilder:
        self._fallbacks.append(fallback)
        return self

    def set_fallback_threshold_as_minimal_filtered_number_of_servers(
        self,
        number: int,
    ) -> CompositePredicateBuilder:
        self._minimal_filtered_servers = number
        return self

    def set_fallback_threshold_as_minimal_filtered_percentage(
        self,
        percentage: float,
    ) -> CompositePredicateBuilder:
        self._minimal_filtered_percentage = percentage
        return self

    def build(self) -> CompositePredicate:
        return CompositePredicate(
            self._predicates,
            fallbacks=self._fallbacks,
            minimal_filtered_servers=self._minimal_filtered_servers,
            minimal_filtered_percentage=self._minimal_filtered_percentage,
        )
