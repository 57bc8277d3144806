from .best_available_rule import BestAvailableRule as BestAvailableRule
from .predicate_rules import (
    AvailabilityFilteringRule as AvailabilityFilteringRule,
    PredicateBasedRule as PredicateBasedRule,
    ZoneAvoidanceRule as ZoneAvoidanceRule,
)
from .predicates import (
    AvailabilityPredicate as AvailabilityPredicate,
    CompositePredicate as CompositePredicate,
    PredicateKey as PredicateKey,
    ServerPredicate as ServerPredicate,
    ZoneAffinityPredicate as ZoneAffinityPredicate,
    ZoneAvoidancePredicate as ZoneAvoidancePredicate,
)
from .random_rule import RandomRule as RandomRule
from .retry_rule import RetryRule as RetryRule
from .round_robin_rule import RoundRobinRule as RoundRobinRule
from .rule import Rule as Rule
from .weighted_response_time_rule import (
    WeightedResponseTimeRule as WeightedResponseTimeRule,
)
from .zone_selection import (
    create_snapshot as create_snapshot,
    get_available_zones as get_available_zones,
    random_choose_zone as random_choose_zone,
)
