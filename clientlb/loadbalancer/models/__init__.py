from .client_config import (
    ClientConfig as ClientConfig,
    ClientConfigKey as ClientConfigKey,
)
from .server import Server as Server, UNKNOWN_ZONE as UNKNOWN_ZONE
from .server_group import ServerGroup as ServerGroup
from .zone_snapshot import ZoneSnapshot as ZoneSnapshot
