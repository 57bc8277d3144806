from .env import Env as Env, load_env as load_env
from .loadbalancer import (
    BaseLoadBalancer as BaseLoadBalancer,
    ClientConfig as ClientConfig,
    ClientConfigKey as ClientConfigKey,
    DynamicServerListLoadBalancer as DynamicServerListLoadBalancer,
    LoadBalancerCommand as LoadBalancerCommand,
    Server as Server,
    ZoneAwareLoadBalancer as ZoneAwareLoadBalancer,
    client_config_from_env as client_config_from_env,
    create_dynamic_load_balancer as create_dynamic_load_balancer,
    create_load_balancer as create_load_balancer,
    create_zone_aware_load_balancer as create_zone_aware_load_balancer,
)
