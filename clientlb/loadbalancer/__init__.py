from .balancers import (
    BaseLoadBalancer as BaseLoadBalancer,
    ConfiguredServerList as ConfiguredServerList,
    DynamicServerListLoadBalancer as DynamicServerListLoadBalancer,
    LoadBalancer as LoadBalancer,
    MirrorPing as MirrorPing,
    PollingServerListUpdater as PollingServerListUpdater,
    ServerList as ServerList,
    ServerListChangeListener as ServerListChangeListener,
    ServerListUpdater as ServerListUpdater,
    ServerStatusChangeListener as ServerStatusChangeListener,
    StaticServerList as StaticServerList,
    ZoneAwareLoadBalancer as ZoneAwareLoadBalancer,
)
from .context import (
    DefaultLoadBalancerRetryHandler as DefaultLoadBalancerRetryHandler,
    ExecutionContext as ExecutionContext,
    ExecutionContextListenerInvoker as ExecutionContextListenerInvoker,
    ExecutionInfo as ExecutionInfo,
    ExecutionListener as ExecutionListener,
    LoadBalancerCommand as LoadBalancerCommand,
    RequestSpecificRetryHandler as RequestSpecificRetryHandler,
    RetryHandler as RetryHandler,
)
from .exceptions import (
    AbortExecutionError as AbortExecutionError,
    ClientError as ClientError,
    ClientErrorType as ClientErrorType,
    ClientLoadBalancerError as ClientLoadBalancerError,
    LoadBalancerInitError as LoadBalancerInitError,
    UnknownStrategyError as UnknownStrategyError,
)
from .factory import (
    client_config_from_env as client_config_from_env,
    create_dynamic_load_balancer as create_dynamic_load_balancer,
    create_load_balancer as create_load_balancer,
    create_zone_aware_load_balancer as create_zone_aware_load_balancer,
)
from .filters import (
    ServerListFilter as ServerListFilter,
    ZoneAffinityServerListFilter as ZoneAffinityServerListFilter,
    ZonePreferenceServerListFilter as ZonePreferenceServerListFilter,
)
from .metrics import (
    InMemoryMetricsSink as InMemoryMetricsSink,
    MetricsSink as MetricsSink,
    NullMetricsSink as NullMetricsSink,
)
from .models import (
    ClientConfig as ClientConfig,
    ClientConfigKey as ClientConfigKey,
    Server as Server,
    ServerGroup as ServerGroup,
    ZoneSnapshot as ZoneSnapshot,
)
from .ping import (
    DummyPing as DummyPing,
    NoOpPing as NoOpPing,
    ParallelPingStrategy as ParallelPingStrategy,
    Ping as Ping,
    PingConstant as PingConstant,
    PingStrategy as PingStrategy,
    SerialPingStrategy as SerialPingStrategy,
)
from .priming import (
    PrimeConnection as PrimeConnection,
    PrimeConnections as PrimeConnections,
)
from .registry import (
    StrategyRegistry as StrategyRegistry,
    default_registry as default_registry,
)
from .rules import (
    AvailabilityFilteringRule as AvailabilityFilteringRule,
    BestAvailableRule as BestAvailableRule,
    RandomRule as RandomRule,
    RetryRule as RetryRule,
    RoundRobinRule as RoundRobinRule,
    Rule as Rule,
    WeightedResponseTimeRule as WeightedResponseTimeRule,
    ZoneAvoidanceRule as ZoneAvoidanceRule,
)
from .stats import (
    LoadBalancerStats as LoadBalancerStats,
    ServerStats as ServerStats,
)
