from .base_load_balancer import BaseLoadBalancer as BaseLoadBalancer
from .dynamic_server_list_load_balancer import (
    DynamicServerListLoadBalancer as DynamicServerListLoadBalancer,
)
from .listeners import (
    ServerListChangeListener as ServerListChangeListener,
    ServerStatusChangeListener as ServerStatusChangeListener,
)
from .load_balancer import LoadBalancer as LoadBalancer
from .server_list import (
    ConfiguredServerList as ConfiguredServerList,
    ServerList as ServerList,
    StaticServerList as StaticServerList,
)
from .server_list_updater import (
    PollingServerListUpdater as PollingServerListUpdater,
    ServerListUpdater as ServerListUpdater,
)
from .zone_aware_load_balancer import (
    MirrorPing as MirrorPing,
    ZoneAwareLoadBalancer as ZoneAwareLoadBalancer,
)
