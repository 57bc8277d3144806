"""
Build load balancers from client config.

The rule, ping, ping strategy and stats named in the config are resolved
through a ``StrategyRegistry``. Any failure while building is raised as
``LoadBalancerInitError`` with the original error as its cause.

Usage:
    config = ClientConfig("orders").set(
        ClientConfigKey.LIST_OF_SERVERS,
        "10.0.0.1:8080,10.0.0.2:8080",
    )
    balancer = create_load_balancer(config)
"""

from __future__ import annotations

from typing import Any

from clientlb.env import Env, load_env
from clientlb.logging import LoggerStream, LoggingConfig
from clientlb.loadbalancer.balancers import (
    BaseLoadBalancer,
    ConfiguredServerList,
    DynamicServerListLoadBalancer,
    ServerList,
    ZoneAwareLoadBalancer,
)
from clientlb.loadbalancer.exceptions import LoadBalancerInitError
from clientlb.loadbalancer.filters import ServerListFilter, ZoneAffinityServerListFilter
from clientlb.loadbalancer.metrics import MetricsSink
from clientlb.loadbalancer.models import ClientConfig, ClientConfigKey
from clientlb.loadbalancer.priming import PrimeConnection, PrimeConnections

from .registry import StrategyRegistry, default_registry


def _build_components(
    config: ClientConfig,
    registry: StrategyRegistry,
    prime_connection: PrimeConnection | None,
    metrics_sink: MetricsSink | None,
    log_stream: LoggerStream | None,
) -> dict[str, Any]:
    enable_prime_connections: bool = config.get(ClientConfigKey.ENABLE_PRIME_CONNECTIONS)

    prime_connections: PrimeConnections | None = None
    if enable_prime_connections and prime_connection is not None:
        prime_connections = PrimeConnections(
            config.client_name,
            prime_connection,
            config=config,
            log_stream=log_stream,
        )

    return {
        "rule": registry.get_rule(
            config.get(ClientConfigKey.NFLOADBALANCER_RULE_CLASS_NAME),
            config,
        ),
        "ping": registry.get_ping(
            config.get(ClientConfigKey.NFLOADBALANCER_PING_CLASS_NAME),
            config,
        ),
        "ping_strategy": registry.get_ping_strategy(
            config.get(ClientConfigKey.NFLOADBALANCER_PING_STRATEGY),
            config,
        ),
        "load_balancer_stats": registry.get_stats(
            config.get(ClientConfigKey.NFLOADBALANCER_STATS_CLASS_NAME),
            config,
        ),
        "ping_interval": config.get(ClientConfigKey.NFLOADBALANCER_PING_INTERVAL),
        "max_total_ping_time": config.get(ClientConfigKey.NFLOADBALANCER_MAX_TOTAL_PING_TIME),
        "prime_connections": prime_connections,
        "enable_prime_connections": prime_connections is not None,
        "metrics_sink": metrics_sink,
        "log_stream": log_stream,
    }


def client_config_from_env(
    env: Env | None = None,
    client_name: str | None = None,
) -> ClientConfig:
    """
    Build a ``ClientConfig`` from ``CLIENTLB_*`` settings and apply their
    logging settings. Without an ``Env`` the process environment and any
    ``.env`` file are read.
    """
    if env is None:
        env = load_env()

    logging_config = LoggingConfig()
    logging_config.update(**env.get_logging_config())

    return ClientConfig.from_env(env, client_name=client_name)


def create_load_balancer(
    config: ClientConfig,
    registry: StrategyRegistry | None = None,
    prime_connection: PrimeConnection | None = None,
    metrics_sink: MetricsSink | None = None,
    log_stream: LoggerStream | None = None,
) -> BaseLoadBalancer:
    """
    Build a ``BaseLoadBalancer`` seeded with the config's ``listOfServers``.
    """
    try:
        balancer = BaseLoadBalancer(
            name=config.client_name,
            **_build_components(
                config,
                registry or default_registry,
                prime_connection,
                metrics_sink,
                log_stream,
            ),
        )

    except LoadBalancerInitError:
        raise

    except Exception as err:
        raise LoadBalancerInitError(config.client_name, str(err)) from err

    servers: str | None = config.get(ClientConfigKey.LIST_OF_SERVERS)
    try:
        if servers:
            balancer.set_servers(servers)

    except Exception as err:
        balancer.shutdown()
        raise LoadBalancerInitError(config.client_name, str(err)) from err

    return balancer


def create_dynamic_load_balancer(
    config: ClientConfig,
    server_list: ServerList | None = None,
    server_list_filter: ServerListFilter | None = None,
    registry: StrategyRegistry | None = None,
    prime_connection: PrimeConnection | None = None,
    metrics_sink: MetricsSink | None = None,
    log_stream: LoggerStream | None = None,
) -> DynamicServerListLoadBalancer:
    """
    Build a ``DynamicServerListLoadBalancer``. Without an explicit server
    list the config's ``listOfServers`` is polled.
    """
    try:
        return DynamicServerListLoadBalancer(
            name=config.client_name,
            server_list=server_list or ConfiguredServerList(config),
            server_list_filter=server_list_filter,
            refresh_interval=config.get(ClientConfigKey.SERVER_LIST_REFRESH_INTERVAL),
            **_build_components(
                config,
                registry or default_registry,
                prime_connection,
                metrics_sink,
                log_stream,
            ),
        )

    except LoadBalancerInitError:
        raise

    except Exception as err:
        raise LoadBalancerInitError(config.client_name, str(err)) from err


def create_zone_aware_load_balancer(
    config: ClientConfig,
    server_list: ServerList | None = None,
    server_list_filter: ServerListFilter | None = None,
    registry: StrategyRegistry | None = None,
    prime_connection: PrimeConnection | None = None,
    metrics_sink: MetricsSink | None = None,
    log_stream: LoggerStream | None = None,
) -> ZoneAwareLoadBalancer:
    """
    Build a ``ZoneAwareLoadBalancer``. The server list is filtered by zone
    affinity unless another filter is given.
    """
    try:
        return ZoneAwareLoadBalancer(
            name=config.client_name,
            config=config,
            server_list=server_list or ConfiguredServerList(config),
            server_list_filter=server_list_filter or ZoneAffinityServerListFilter(
                config,
                log_stream=log_stream,
            ),
            refresh_interval=config.get(ClientConfigKey.SERVER_LIST_REFRESH_INTERVAL),
            **_build_components(
                config,
                registry or default_registry,
                prime_connection,
                metrics_sink,
                log_stream,
            ),
        )

    except LoadBalancerInitError:
        raise

    except Exception as err:
        raise LoadBalancerInitError(config.client_name, str(err)) from err
