from .server_list_filter import ServerListFilter as ServerListFilter
from .zone_affinity_filter import (
    ZoneAffinityServerListFilter as ZoneAffinityServerListFilter,
)
from .zone_preference_filter import (
    ZonePreferenceServerListFilter as ZonePreferenceServerListFilter,
)
